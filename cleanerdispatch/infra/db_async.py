"""
Async database connection using asyncpg.

``Database`` owns the connection pool.  One instance is created at
startup, passed explicitly to every repository, and closed at shutdown.
Connections are borrowed through
``cleanerdispatch.infra.db_resilience_async.safe_conn``.
"""
from __future__ import annotations

import asyncpg
from cleanerdispatch.config import Settings
from cleanerdispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


class Database:
    """Process-wide handle on the asyncpg pool."""

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 2,
        max_size: int = 20,
        command_timeout: float = 10.0,
        application_name: str = "cleaner_dispatch",
    ) -> None:
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.application_name = application_name
        self._pool: asyncpg.Pool | None = None

    @classmethod
    def from_settings(cls, s: Settings) -> "Database":
        return cls(
            s.database_dsn,
            min_size=s.pg_pool_min,
            max_size=s.pg_pool_max,
            command_timeout=s.pg_command_timeout,
        )

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Initialize connection pool on startup"""
        if self._pool is not None:
            return

        logger.info("Initializing asyncpg connection pool")

        self._pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            server_settings={
                'application_name': self.application_name,
            }
        )

        logger.info(f"Connection pool created: min={self.min_size}, max={self.max_size}")

    async def close(self) -> None:
        """Close connection pool on shutdown"""
        if self._pool is None:
            return

        logger.info("Closing connection pool")
        await self._pool.close()
        self._pool = None
        logger.info("Connection pool closed")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Connection pool not initialized. Call connect() first.")
        return self._pool
