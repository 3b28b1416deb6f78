#!/usr/bin/env python3
"""
Standalone migration runner.

Run migrations separately from application startup:
    python -m cleanerdispatch.infra.migrate

The application validates the schema version at startup but never
runs migrations itself.
"""
import asyncio
import sys

from cleanerdispatch.config import settings
from cleanerdispatch.infra.db_async import Database
from cleanerdispatch.infra.logging_config import setup_logging, get_logger
from cleanerdispatch.infra.migrations_async import apply_migrations

logger = get_logger(__name__)


async def main() -> int:
    """Run migrations"""
    setup_logging(level="INFO", use_json=settings.is_production)

    logger.info("=" * 60)
    logger.info("Database Migration Runner")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Database: {settings.pghost}:{settings.pgport}/{settings.pgdatabase}")
    logger.info("=" * 60)

    db = Database.from_settings(settings)
    try:
        await db.connect()
        result = await apply_migrations(db)
    except Exception as exc:
        logger.critical(f"MIGRATION FAILED: {exc}", exc_info=True)
        return 1
    finally:
        await db.close()

    if result['applied']:
        for migration in result['applied']:
            logger.info(f"  applied {migration}")
    else:
        logger.info("No new migrations to apply")

    return 0 if result['ok'] else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
