"""
Typed domain errors for the dispatch core.

Each error maps to a specific HTTP status code and a machine-readable
error code.  The transport layer converts ``DispatchError`` subtypes to
JSON responses without embedding business logic in the route handlers.
"""
from __future__ import annotations


class DispatchError(Exception):
    """Base class for all dispatch domain errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, detail: str = "Internal error", *, code: str | None = None):
        self.detail = detail
        if code is not None:
            self.code = code
        super().__init__(detail)


class ValidationError(DispatchError):
    """Malformed or missing input (400)."""

    status_code = 400
    code = "invalid_request"

    def __init__(self, detail: str = "Invalid request", *, fields: list[str] | None = None, code: str | None = None):
        self.fields = fields or []
        super().__init__(detail, code=code)


class NotFoundError(DispatchError):
    """Referenced entity absent (404)."""

    status_code = 404
    code = "not_found"


class ConflictError(DispatchError):
    """
    A conditional write lost the race (409).

    ``reason`` tells the caller what the precondition was:
    ``job_not_requested`` (the job already left REQUESTED) or
    ``worker_busy`` (the cleaner already holds an accepted job).
    """

    status_code = 409
    code = "conflict"

    JOB_NOT_REQUESTED = "job_not_requested"
    WORKER_BUSY = "worker_busy"

    def __init__(self, detail: str = "Conflict", *, reason: str = JOB_NOT_REQUESTED):
        self.reason = reason
        super().__init__(detail)


class StorageError(DispatchError):
    """Backend unreachable or timed out (503). Safe to retry."""

    status_code = 503
    code = "storage_unavailable"
