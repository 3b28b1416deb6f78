from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


# ============================================================================
# ENUMS
# ============================================================================

class JobStatus(str, Enum):
    """
    Stored job lifecycle states owned by this service.
    Later lifecycle (in progress, completed, cancelled) belongs to fulfillment.
    """
    REQUESTED = "requested"
    ACCEPTED = "accepted"


class OutcomeKind(str, Enum):
    """Result of one dispatch attempt. Not persisted."""
    ASSIGNED = "assigned"
    NO_MATCH = "no_match"
    NOT_FOUND = "not_found"
    ALREADY_ASSIGNED = "already_assigned"


class WaitlistKind(str, Enum):
    CUSTOMER = "customer"
    CLEANER = "cleaner"


# ============================================================================
# ENTITIES
# ============================================================================

@dataclass
class Worker:
    """A cleaner and their last reported presence."""
    id: str
    name: str
    phone: str
    online: bool = False
    lat: Optional[float] = None
    lng: Optional[float] = None
    updated_at: Optional[datetime] = None

    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None

    def is_dispatchable(self) -> bool:
        """Online cleaners without a location are never matched."""
        return self.online and self.has_location()


@dataclass
class JobIntake:
    """Validated job request, before pricing and persistence."""
    name: str
    phone: str
    address: str
    minutes: int
    lat: Optional[float] = None
    lng: Optional[float] = None
    notes: Optional[str] = None


@dataclass
class Job:
    id: str
    name: str
    phone: str
    address: str
    minutes: int
    price_cents: int
    status: JobStatus = JobStatus.REQUESTED
    lat: Optional[float] = None
    lng: Optional[float] = None
    notes: Optional[str] = None
    assigned_cleaner_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None

    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def is_requested(self) -> bool:
        return self.status == JobStatus.REQUESTED


@dataclass
class WaitlistEntry:
    id: str
    kind: WaitlistKind
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


# ============================================================================
# DISPATCH RESULTS
# ============================================================================

@dataclass(frozen=True)
class RankedCandidate:
    """A cleaner paired with their great-circle distance to a job."""
    worker: Worker
    distance_km: float


@dataclass
class DispatchOutcome:
    kind: OutcomeKind
    job: Optional[Job] = None
    worker: Optional[Worker] = None
    distance_km: Optional[float] = None
    candidates_tried: int = 0
    conflicts: list[str] = field(default_factory=list)

    @property
    def assigned(self) -> bool:
        return self.kind == OutcomeKind.ASSIGNED


# ============================================================================
# HELPERS
# ============================================================================

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone(phone: str) -> str:
    """
    Normalize a phone number to ``+`` followed by its digits.

    ``"+1 (555) 010-2030"`` → ``"+15550102030"``. Returns an empty string
    when the input holds no digits.
    """
    digits = _NON_DIGITS.sub("", phone or "")
    return f"+{digits}" if digits else ""


def worker_id_for_phone(phone: str) -> str:
    """Stable cleaner identity: the normalized phone number."""
    return normalize_phone(phone)
