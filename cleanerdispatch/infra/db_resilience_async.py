"""
Async database resilience utilities.

Retry on transient connection errors, and translation of backend failures
into the domain ``StorageError`` so nothing above infra sees asyncpg types.
"""
from __future__ import annotations
import asyncio
from typing import Callable
from contextlib import asynccontextmanager
from functools import wraps

import asyncpg
from cleanerdispatch.core.errors import StorageError
from cleanerdispatch.infra.db_async import Database
from cleanerdispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


def is_transient_error(exc: Exception) -> bool:
    """
    Check if database error is transient (should retry).

    Transient errors:
    - Connection errors
    - Server closed connection
    - Too many connections
    - Deadlock
    """
    if isinstance(exc, asyncpg.PostgresConnectionError):
        return True

    if isinstance(exc, asyncpg.TooManyConnectionsError):
        return True

    if isinstance(exc, asyncpg.DeadlockDetectedError):
        return True

    if isinstance(exc, (ConnectionError, OSError)):
        return True

    error_message = str(exc).lower()

    transient_patterns = [
        "connection",
        "closed",
        "network",
        "deadlock",
        "too many connections",
        "server closed",
        "connection reset",
    ]

    return any(pattern in error_message for pattern in transient_patterns)


async def acquire_with_retry(db: Database, max_retries: int = 3) -> asyncpg.Connection:
    """Acquire a pooled connection, retrying transient errors with backoff."""
    delay = 0.1

    for attempt in range(max_retries + 1):
        try:
            return await db.pool.acquire()
        except Exception as exc:
            if not is_transient_error(exc):
                raise

            if attempt >= max_retries:
                logger.error(f"Max retries ({max_retries}) exceeded getting connection")
                raise

            logger.warning(
                f"Transient error getting connection (attempt {attempt + 1}/{max_retries}): {exc}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)
            delay = min(delay * 2.0, 5.0)


@asynccontextmanager
async def safe_conn(db: Database, autocommit: bool = True):
    """
    Database connection with automatic retry on transient errors while
    acquiring it.

    Usage:
        async with safe_conn(db) as conn:
            row = await conn.fetchrow("SELECT * FROM workers WHERE id = $1", worker_id)

    Errors raised by the body are never retried: a conditional UPDATE must
    not run twice.

    Args:
        autocommit: If False, the block runs in one transaction committed on
            clean exit (migrations).
    """
    conn = await acquire_with_retry(db)
    try:
        if autocommit:
            yield conn
        else:
            async with conn.transaction():
                yield conn
    finally:
        await db.pool.release(conn)


def translate_storage_errors(operation: str) -> Callable:
    """
    Decorator for repository methods: backend failures become StorageError.

    Domain errors (ConflictError, NotFoundError, ...) and cancellation
    pass through untouched.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, RuntimeError) as exc:
                logger.error(
                    f"Storage failure in {operation}: {exc.__class__.__name__}",
                    exc_info=True,
                )
                raise StorageError(f"{operation} failed") from exc

        return wrapper
    return decorator
