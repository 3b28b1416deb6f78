"""
Waitlist signups (customers and cleaners): stored as-is.
"""
from __future__ import annotations

import uuid

from cleanerdispatch.core.domain import WaitlistEntry, WaitlistKind, normalize_phone
from cleanerdispatch.core.errors import ValidationError
from cleanerdispatch.core.ports import AsyncWaitlistRepository
from cleanerdispatch.core.storage import bounded
from cleanerdispatch.infra.logging_config import get_logger
from cleanerdispatch.infra.metrics import AppMetrics

logger = get_logger(__name__)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class WaitlistStore:
    def __init__(self, repo: AsyncWaitlistRepository, *, timeout: float = 5.0) -> None:
        self._repo = repo
        self._timeout = timeout

    async def join(
        self,
        kind: WaitlistKind | str,
        name: str,
        *,
        email: str | None = None,
        phone: str | None = None,
        city: str | None = None,
        notes: str | None = None,
    ) -> WaitlistEntry:
        try:
            kind = WaitlistKind(kind)
        except ValueError:
            raise ValidationError(f"unknown waitlist kind: {kind}", fields=["kind"])

        name = _clean(name)
        if not name:
            raise ValidationError("name is required", fields=["name"])

        email = _clean(email)
        phone = _clean(phone)
        if phone is not None and not normalize_phone(phone):
            raise ValidationError("phone has no digits", fields=["phone"])
        if email is None and phone is None:
            raise ValidationError("email or phone is required", fields=["email", "phone"])

        entry = WaitlistEntry(
            id=str(uuid.uuid4()),
            kind=kind,
            name=name,
            email=email,
            phone=phone,
            city=_clean(city),
            notes=_clean(notes),
        )
        saved = await bounded("waitlist.insert", self._repo.insert(entry), self._timeout)

        AppMetrics.waitlist_joined(kind.value)
        logger.info(f"Waitlist signup: kind={kind.value}, id={saved.id[:8]}")
        return saved
