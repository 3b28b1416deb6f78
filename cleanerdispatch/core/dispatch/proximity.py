"""
Proximity ranking for dispatch.

Distances are great-circle (haversine) kilometres on a spherical Earth of
mean radius 6371.0 km.  The metric is symmetric and monotonic in true
separation, so two cleaners at identical coordinates always tie exactly
and fall through to the id tie-break.
"""
from __future__ import annotations

import math
from typing import Iterable

from cleanerdispatch.core.domain import RankedCandidate, Worker

__all__ = ["EARTH_RADIUS_KM", "haversine_km", "ProximityIndex"]

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class ProximityIndex:
    """
    Ranks candidate cleaners by distance to a target point.

    Stateless; holds only the optional radius cut-off.
    """

    def __init__(self, max_radius_km: float | None = None) -> None:
        self.max_radius_km = max_radius_km

    def nearest(
        self,
        target_lat: float,
        target_lng: float,
        candidates: Iterable[Worker],
    ) -> list[RankedCandidate]:
        """
        Return candidates ordered by ascending distance, ties by worker id.

        Candidates without both coordinates are skipped.  The input is
        never mutated; a new list is returned (empty for empty input).
        """
        ranked: list[RankedCandidate] = []
        for worker in candidates:
            if not worker.has_location():
                continue
            distance = haversine_km(target_lat, target_lng, worker.lat, worker.lng)
            if self.max_radius_km is not None and distance > self.max_radius_km:
                continue
            ranked.append(RankedCandidate(worker=worker, distance_km=distance))

        ranked.sort(key=lambda c: (c.distance_km, c.worker.id))
        return ranked
