from __future__ import annotations
from typing import Protocol, Optional
from cleanerdispatch.core.domain import Job, JobIntake, Worker, WaitlistEntry


# ============================================================================
# STORAGE COLLABORATORS (asyncpg in production, in-memory fakes in tests)
# ============================================================================

class AsyncWorkerRepository(Protocol):
    async def upsert(self, worker: Worker) -> Worker: ...
    async def get(self, worker_id: str) -> Optional[Worker]: ...
    async def list_online_with_location(self) -> list[Worker]: ...


class AsyncJobRepository(Protocol):
    async def insert(self, intake: JobIntake, price_cents: int) -> Job: ...
    async def get(self, job_id: str) -> Optional[Job]: ...

    async def assign_if_requested(
        self,
        job_id: str,
        worker_id: str,
        *,
        exclusive_worker: bool = False,
    ) -> Job:
        """
        Conditional write: REQUESTED -> ACCEPTED with the assigned cleaner.

        Raises ConflictError when the precondition does not hold and
        NotFoundError when the job does not exist.
        """
        ...


class AsyncWaitlistRepository(Protocol):
    async def insert(self, entry: WaitlistEntry) -> WaitlistEntry: ...
