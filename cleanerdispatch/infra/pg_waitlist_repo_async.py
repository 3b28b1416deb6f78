"""
Async PostgreSQL waitlist repository (asyncpg).
Stores customer and cleaner interest signups as-is.
"""
from __future__ import annotations

from uuid import UUID

from cleanerdispatch.core.domain import WaitlistEntry, WaitlistKind
from cleanerdispatch.core.ports import AsyncWaitlistRepository
from cleanerdispatch.infra.db_async import Database
from cleanerdispatch.infra.db_resilience_async import safe_conn, translate_storage_errors
from cleanerdispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


def _row_to_entry(row) -> WaitlistEntry:
    return WaitlistEntry(
        id=str(row["id"]),
        kind=WaitlistKind(row["kind"]),
        name=row["name"],
        email=row["email"],
        phone=row["phone"],
        city=row["city"],
        notes=row["notes"],
        created_at=row.get("created_at"),
    )


class AsyncPostgresWaitlistRepository(AsyncWaitlistRepository):
    """Async PostgreSQL implementation of AsyncWaitlistRepository."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @translate_storage_errors("waitlist.insert")
    async def insert(self, entry: WaitlistEntry) -> WaitlistEntry:
        async with safe_conn(self._db) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO waitlist_entries (id, kind, name, email, phone, city, notes)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                UUID(entry.id),
                entry.kind.value,
                entry.name,
                entry.email,
                entry.phone,
                entry.city,
                entry.notes,
            )
            return _row_to_entry(row)
