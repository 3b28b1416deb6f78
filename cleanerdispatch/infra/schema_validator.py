"""
Schema version validator for deployments.

The application does NOT run migrations itself. Instead:
1. Migrations run separately (CI/CD, migrate job, manual script)
2. Application validates schema version matches expected version
3. Application refuses to start if schema is incompatible
"""
from __future__ import annotations
from cleanerdispatch.config import settings
from cleanerdispatch.infra.db_async import Database
from cleanerdispatch.infra.db_resilience_async import safe_conn
from cleanerdispatch.infra.logging_config import get_logger

logger = get_logger(__name__)

_MIGRATIONS_TABLE_EXISTS = """
    SELECT EXISTS (
        SELECT FROM information_schema.tables
        WHERE table_schema = 'public'
        AND table_name = 'schema_migrations'
    )
"""


async def validate_schema_version(db: Database, expected_version: str | None = None) -> dict:
    """
    Validate that database schema version matches expected version.

    Returns:
        dict with keys:
            - ok: bool (True if schema is compatible)
            - current_version: str (current schema version)
            - expected_version: str (expected schema version)

    Raises:
        RuntimeError: If schema version is incompatible
    """
    expected = expected_version or settings.expected_schema_version

    async with safe_conn(db) as conn:
        table_exists = await conn.fetchval(_MIGRATIONS_TABLE_EXISTS)

        if not table_exists:
            error = (
                "Schema migrations table not found. "
                "Database has not been initialized. "
                "Run migrations first: python -m cleanerdispatch.infra.migrate"
            )
            logger.critical(error)
            raise RuntimeError(error)

        # Migration files are numbered, so the highest version is the latest.
        latest = await conn.fetchrow(
            """
            SELECT version, applied_at
            FROM schema_migrations
            ORDER BY version DESC
            LIMIT 1
            """
        )

        if not latest:
            error = (
                "No migrations have been applied. "
                "Run migrations first: python -m cleanerdispatch.infra.migrate"
            )
            logger.critical(error)
            raise RuntimeError(error)

        current_version = latest['version']

        if current_version != expected:
            error = (
                f"Schema version mismatch! "
                f"Expected: {expected}, "
                f"Found: {current_version}. "
                f"Run migrations to update schema: python -m cleanerdispatch.infra.migrate"
            )
            logger.critical(error)
            raise RuntimeError(error)

        logger.info(f"Schema version validated: {current_version}")

        return {
            "ok": True,
            "current_version": current_version,
            "expected_version": expected,
        }
