"""
Async PostgreSQL job repository (asyncpg).

Job lifecycle storage.  Assignment is a single conditional UPDATE guarded
by the current status, so concurrent dispatches for the same job cannot
both succeed regardless of how many server processes are running.
"""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from cleanerdispatch.core.domain import Job, JobIntake, JobStatus
from cleanerdispatch.core.errors import ConflictError, NotFoundError
from cleanerdispatch.core.ports import AsyncJobRepository
from cleanerdispatch.infra.db_async import Database
from cleanerdispatch.infra.db_resilience_async import safe_conn, translate_storage_errors
from cleanerdispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


def _row_to_job(row) -> Job:
    """Convert an asyncpg Record to a Job dataclass."""
    return Job(
        id=str(row["id"]),
        name=row["name"],
        phone=row["phone"],
        address=row["address"],
        minutes=row["minutes"],
        price_cents=row["price_cents"],
        status=JobStatus(row["status"]),
        lat=row["lat"],
        lng=row["lng"],
        notes=row["notes"],
        assigned_cleaner_id=row["assigned_cleaner_id"],
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
        accepted_at=row.get("accepted_at"),
    )


def _parse_job_id(job_id: str) -> UUID | None:
    """Job ids are UUIDs; anything else cannot exist."""
    try:
        return UUID(str(job_id))
    except ValueError:
        return None


class AsyncPostgresJobRepository(AsyncJobRepository):
    """Job storage with a status-guarded assign."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @translate_storage_errors("jobs.insert")
    async def insert(self, intake: JobIntake, price_cents: int) -> Job:
        """Insert a new REQUESTED job. The id is generated by the database."""
        async with safe_conn(self._db) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO jobs (name, phone, address, lat, lng, minutes, price_cents, notes, status)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING *
                """,
                intake.name,
                intake.phone,
                intake.address,
                intake.lat,
                intake.lng,
                intake.minutes,
                price_cents,
                intake.notes,
                JobStatus.REQUESTED.value,
            )
            job = _row_to_job(row)
            logger.debug(f"Job inserted: id={job.id[:8]}", extra={"job_id": job.id})
            return job

    @translate_storage_errors("jobs.get")
    async def get(self, job_id: str) -> Optional[Job]:
        uuid_id = _parse_job_id(job_id)
        if uuid_id is None:
            return None
        async with safe_conn(self._db) as conn:
            row = await conn.fetchrow("SELECT * FROM jobs WHERE id = $1", uuid_id)
            return _row_to_job(row) if row else None

    @translate_storage_errors("jobs.assign")
    async def assign_if_requested(
        self,
        job_id: str,
        worker_id: str,
        *,
        exclusive_worker: bool = False,
    ) -> Job:
        """
        Atomically move a job REQUESTED -> ACCEPTED and record the cleaner.

        With ``exclusive_worker`` the UPDATE also requires that the cleaner
        holds no other accepted job.  When zero rows change, the job is
        re-read to tell the caller which precondition failed.

        Raises:
            NotFoundError: job does not exist
            ConflictError: job not REQUESTED (reason ``job_not_requested``)
                or cleaner busy (reason ``worker_busy``)
        """
        uuid_id = _parse_job_id(job_id)
        if uuid_id is None:
            raise NotFoundError(f"Job '{job_id}' not found", code="job_not_found")

        async with safe_conn(self._db) as conn:
            row = await conn.fetchrow(
                """
                UPDATE jobs
                SET status = $3,
                    assigned_cleaner_id = $2,
                    accepted_at = now(),
                    updated_at = now()
                WHERE id = $1
                  AND status = $4
                  AND (
                    NOT $5::boolean
                    OR NOT EXISTS (
                      SELECT 1 FROM jobs busy
                      WHERE busy.assigned_cleaner_id = $2
                        AND busy.status = $3
                    )
                  )
                RETURNING *
                """,
                uuid_id,
                worker_id,
                JobStatus.ACCEPTED.value,
                JobStatus.REQUESTED.value,
                exclusive_worker,
            )
            if row is not None:
                return _row_to_job(row)

            current = await conn.fetchrow(
                "SELECT status FROM jobs WHERE id = $1", uuid_id,
            )

        if current is None:
            raise NotFoundError(f"Job '{job_id}' not found", code="job_not_found")
        if current["status"] != JobStatus.REQUESTED.value:
            raise ConflictError(
                f"Job '{job_id}' is {current['status']}",
                reason=ConflictError.JOB_NOT_REQUESTED,
            )
        raise ConflictError(
            f"Cleaner '{worker_id}' already holds an accepted job",
            reason=ConflictError.WORKER_BUSY,
        )
