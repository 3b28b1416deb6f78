"""
Timeout guard for storage calls made by the core.

No storage call may block indefinitely: every repository coroutine is
awaited under ``asyncio.wait_for`` and expiry surfaces as a retryable
``StorageError``.  Domain errors raised by the repository pass through
untouched.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from cleanerdispatch.core.errors import StorageError
from cleanerdispatch.infra.logging_config import get_logger
from cleanerdispatch.infra.metrics import AppMetrics

logger = get_logger(__name__)

T = TypeVar("T")


async def bounded(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    """
    Await a storage call with a deadline.

    Args:
        operation: Short name used in logs and metrics (e.g. ``jobs.get``)
        awaitable: The repository coroutine
        timeout: Seconds before giving up

    Raises:
        StorageError: on timeout, or when the repository reported one
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Storage call timed out: {operation} after {timeout:.2f}s")
        AppMetrics.storage_error(operation)
        raise StorageError(f"{operation} timed out")
    except StorageError:
        AppMetrics.storage_error(operation)
        raise
