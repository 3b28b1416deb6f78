"""
Async PostgreSQL worker repository (asyncpg).
Stores cleaner presence: one row per cleaner, upserted on every report.
"""
from __future__ import annotations

from typing import Optional

from cleanerdispatch.core.domain import Worker
from cleanerdispatch.core.ports import AsyncWorkerRepository
from cleanerdispatch.infra.db_async import Database
from cleanerdispatch.infra.db_resilience_async import safe_conn, translate_storage_errors
from cleanerdispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


def _row_to_worker(row) -> Worker:
    """Convert an asyncpg Record to a Worker dataclass."""
    return Worker(
        id=row["id"],
        name=row["name"],
        phone=row["phone"],
        online=row["online"],
        lat=row["lat"],
        lng=row["lng"],
        updated_at=row.get("updated_at"),
    )


class AsyncPostgresWorkerRepository(AsyncWorkerRepository):
    """Async PostgreSQL implementation of AsyncWorkerRepository."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @translate_storage_errors("workers.upsert")
    async def upsert(self, worker: Worker) -> Worker:
        """
        Insert or overwrite a cleaner's presence.

        Note:
            ON CONFLICT (id) DO UPDATE: the latest report wins, including
            clearing a previously known location.
        """
        async with safe_conn(self._db) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO workers (id, name, phone, online, lat, lng, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, now())
                ON CONFLICT (id) DO UPDATE
                SET name = EXCLUDED.name,
                    phone = EXCLUDED.phone,
                    online = EXCLUDED.online,
                    lat = EXCLUDED.lat,
                    lng = EXCLUDED.lng,
                    updated_at = now()
                RETURNING *
                """,
                worker.id,
                worker.name,
                worker.phone,
                worker.online,
                worker.lat,
                worker.lng,
            )
            return _row_to_worker(row)

    @translate_storage_errors("workers.get")
    async def get(self, worker_id: str) -> Optional[Worker]:
        async with safe_conn(self._db) as conn:
            row = await conn.fetchrow("SELECT * FROM workers WHERE id = $1", worker_id)
            return _row_to_worker(row) if row else None

    @translate_storage_errors("workers.list_online")
    async def list_online_with_location(self) -> list[Worker]:
        async with safe_conn(self._db) as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM workers
                WHERE online
                  AND lat IS NOT NULL
                  AND lng IS NOT NULL
                """
            )
            return [_row_to_worker(row) for row in rows]
