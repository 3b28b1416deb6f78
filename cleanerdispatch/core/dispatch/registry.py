"""
Worker registry: single source of truth for cleaner presence.
"""
from __future__ import annotations

from cleanerdispatch.core.domain import Worker, worker_id_for_phone
from cleanerdispatch.core.errors import NotFoundError, ValidationError
from cleanerdispatch.core.ports import AsyncWorkerRepository
from cleanerdispatch.core.storage import bounded
from cleanerdispatch.infra.logging_config import get_logger, mask_coordinates
from cleanerdispatch.infra.metrics import AppMetrics

logger = get_logger(__name__)


def validate_coordinates(lat: float | None, lng: float | None) -> None:
    """Coordinates come in pairs and must be on the globe."""
    if (lat is None) != (lng is None):
        raise ValidationError("lat and lng must be given together", fields=["lat", "lng"])
    if lat is None:
        return
    if not -90.0 <= lat <= 90.0:
        raise ValidationError("lat out of range", fields=["lat"])
    if not -180.0 <= lng <= 180.0:
        raise ValidationError("lng out of range", fields=["lng"])


class WorkerRegistry:
    def __init__(self, repo: AsyncWorkerRepository, *, timeout: float = 5.0) -> None:
        self._repo = repo
        self._timeout = timeout

    async def set_presence(
        self,
        name: str,
        phone: str,
        online: bool,
        lat: float | None = None,
        lng: float | None = None,
    ) -> Worker:
        """
        Upsert a cleaner's presence.  Last write wins.

        The cleaner id is derived from the phone number, so the same
        phone always lands on the same record.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required", fields=["name"])
        worker_id = worker_id_for_phone(phone)
        if not worker_id:
            raise ValidationError("phone is required", fields=["phone"])
        validate_coordinates(lat, lng)

        worker = Worker(
            id=worker_id,
            name=name,
            phone=phone.strip(),
            online=online,
            lat=lat,
            lng=lng,
        )
        saved = await bounded("workers.upsert", self._repo.upsert(worker), self._timeout)

        AppMetrics.presence_updated(online)
        logger.info(
            f"Presence updated: online={online}, location={mask_coordinates(lat, lng)}",
            extra={"worker_id": saved.id},
        )
        if online and not saved.has_location():
            logger.warning(
                "Cleaner is online without a location and will not be matched",
                extra={"worker_id": saved.id},
            )
        return saved

    async def get(self, worker_id: str) -> Worker:
        worker = await bounded("workers.get", self._repo.get(worker_id), self._timeout)
        if worker is None:
            raise NotFoundError(f"Cleaner '{worker_id}' not found", code="cleaner_not_found")
        return worker

    async def list_online_with_location(self) -> list[Worker]:
        """All online cleaners with both coordinates, in no particular order."""
        workers = await bounded(
            "workers.list_online",
            self._repo.list_online_with_location(),
            self._timeout,
        )
        # Repositories filter already; re-check so a lax backend cannot leak
        # unlocated cleaners into ranking.
        return [w for w in workers if w.is_dispatchable()]
