"""
Dispatch engine: end-to-end matching for one job.

Runs concurrently with other dispatches and takes no in-process locks.
At most one assignment per job is enforced by the job store's
conditional write; the engine only walks the ranked candidates until a
write sticks.
"""
from __future__ import annotations

from cleanerdispatch.core.domain import DispatchOutcome, OutcomeKind
from cleanerdispatch.core.errors import ConflictError, NotFoundError
from cleanerdispatch.core.dispatch.job_store import JobStore
from cleanerdispatch.core.dispatch.proximity import ProximityIndex
from cleanerdispatch.core.dispatch.registry import WorkerRegistry
from cleanerdispatch.infra.logging_config import LogContext, get_logger
from cleanerdispatch.infra.metrics import AppMetrics

logger = get_logger(__name__)


class DispatchEngine:
    def __init__(
        self,
        registry: WorkerRegistry,
        proximity: ProximityIndex,
        jobs: JobStore,
    ) -> None:
        self.registry = registry
        self.proximity = proximity
        self.jobs = jobs

    async def assign_nearest(self, job_id: str) -> DispatchOutcome:
        """
        Match ``job_id`` to the nearest online cleaner.

        Outcomes:
            NOT_FOUND         the job does not exist
            ALREADY_ASSIGNED  the job left REQUESTED before or during this call
            NO_MATCH          no located job, no candidates, or every candidate
                              was claimed; the job stays REQUESTED
            ASSIGNED          the job is ACCEPTED by the returned cleaner

        StorageError propagates.
        """
        with AppMetrics.track_dispatch_time():
            outcome = await self._assign_nearest(job_id)

        AppMetrics.dispatch_outcome(outcome.kind.value)
        return outcome

    async def _assign_nearest(self, job_id: str) -> DispatchOutcome:
        log = LogContext(logger, job_id=job_id)

        try:
            job = await self.jobs.get(job_id)
        except NotFoundError:
            log.info("Dispatch skipped: job not found")
            return DispatchOutcome(kind=OutcomeKind.NOT_FOUND)

        if not job.is_requested:
            log.info(f"Dispatch skipped: job already {job.status.value}")
            return DispatchOutcome(kind=OutcomeKind.ALREADY_ASSIGNED, job=job)

        # No geocoding: an address-only job cannot be ranked.
        if not job.has_location():
            log.info("No match: job has no coordinates")
            return DispatchOutcome(kind=OutcomeKind.NO_MATCH, job=job)

        online = await self.registry.list_online_with_location()
        ranked = self.proximity.nearest(job.lat, job.lng, online)
        if not ranked:
            log.info(f"No match: {len(online)} online cleaner(s), none in range")
            return DispatchOutcome(kind=OutcomeKind.NO_MATCH, job=job)

        conflicts: list[str] = []
        for tried, candidate in enumerate(ranked, start=1):
            try:
                accepted = await self.jobs.assign(job.id, candidate.worker.id)
            except ConflictError as exc:
                AppMetrics.dispatch_conflict(exc.reason)
                conflicts.append(exc.reason)
                if exc.reason == ConflictError.WORKER_BUSY:
                    continue
                # Another dispatch for this same job won.
                current = await self.jobs.get(job.id)
                return DispatchOutcome(
                    kind=OutcomeKind.ALREADY_ASSIGNED,
                    job=current,
                    candidates_tried=tried,
                    conflicts=conflicts,
                )

            log.info(
                f"Assigned: distance_km={candidate.distance_km:.3f}, "
                f"rank={tried}/{len(ranked)}",
                extra={"worker_id": candidate.worker.id},
            )
            return DispatchOutcome(
                kind=OutcomeKind.ASSIGNED,
                job=accepted,
                worker=candidate.worker,
                distance_km=candidate.distance_km,
                candidates_tried=tried,
                conflicts=conflicts,
            )

        log.info(f"No match: all {len(ranked)} candidate(s) already claimed")
        return DispatchOutcome(
            kind=OutcomeKind.NO_MATCH,
            job=job,
            candidates_tried=len(ranked),
            conflicts=conflicts,
        )
