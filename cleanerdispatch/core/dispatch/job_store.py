"""
Job store: lifecycle storage for jobs.
"""
from __future__ import annotations

from cleanerdispatch.core.domain import Job, JobIntake
from cleanerdispatch.core.errors import ConflictError, NotFoundError, ValidationError
from cleanerdispatch.core.ports import AsyncJobRepository
from cleanerdispatch.core.pricing import DEFAULT_HOURLY_RATE, MAX_JOB_MINUTES, MAX_PRICE_CENTS, price_cents
from cleanerdispatch.core.storage import bounded
from cleanerdispatch.core.dispatch.registry import validate_coordinates
from cleanerdispatch.infra.logging_config import get_logger
from cleanerdispatch.infra.metrics import AppMetrics

logger = get_logger(__name__)


class JobStore:
    def __init__(
        self,
        repo: AsyncJobRepository,
        *,
        hourly_rate: float = DEFAULT_HOURLY_RATE,
        exclusive_workers: bool = False,
        timeout: float = 5.0,
    ) -> None:
        self._repo = repo
        self._hourly_rate = hourly_rate
        self._exclusive_workers = exclusive_workers
        self._timeout = timeout

    async def create(self, intake: JobIntake) -> Job:
        """
        Price and persist a new REQUESTED job.

        Raises:
            ValidationError: minutes outside 1..MAX_JOB_MINUTES, a price that
                does not fit the price column, or half a coordinate pair
        """
        if intake.minutes is None or intake.minutes <= 0:
            raise ValidationError("minutes must be greater than 0", fields=["minutes"])
        if intake.minutes > MAX_JOB_MINUTES:
            raise ValidationError(
                f"minutes must be at most {MAX_JOB_MINUTES}", fields=["minutes"],
            )
        validate_coordinates(intake.lat, intake.lng)

        price = price_cents(intake.minutes, self._hourly_rate)
        if price > MAX_PRICE_CENTS:
            raise ValidationError("job price exceeds the maximum", fields=["minutes"])
        job = await bounded("jobs.insert", self._repo.insert(intake, price), self._timeout)

        AppMetrics.job_created()
        logger.info(
            f"Job created: minutes={job.minutes}, price_cents={job.price_cents}, "
            f"located={job.has_location()}",
            extra={"job_id": job.id},
        )
        return job

    async def get(self, job_id: str) -> Job:
        job = await bounded("jobs.get", self._repo.get(job_id), self._timeout)
        if job is None:
            raise NotFoundError(f"Job '{job_id}' not found", code="job_not_found")
        return job

    async def assign(self, job_id: str, worker_id: str) -> Job:
        """
        REQUESTED -> ACCEPTED, only if the job is still REQUESTED.

        Raises:
            ConflictError: the precondition failed (see ``reason``)
            NotFoundError: the job does not exist
        """
        try:
            job = await bounded(
                "jobs.assign",
                self._repo.assign_if_requested(
                    job_id, worker_id, exclusive_worker=self._exclusive_workers,
                ),
                self._timeout,
            )
        except ConflictError as exc:
            logger.info(
                f"Assign lost the race: reason={exc.reason}",
                extra={"job_id": job_id, "worker_id": worker_id},
            )
            raise

        logger.info("Job accepted", extra={"job_id": job.id, "worker_id": worker_id})
        return job
