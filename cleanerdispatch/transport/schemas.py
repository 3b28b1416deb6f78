from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cleanerdispatch.core.domain import JobStatus, WaitlistKind
from cleanerdispatch.core.pricing import MAX_JOB_MINUTES


class _In(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class JobIn(_In):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=1, max_length=64)
    address: str = Field(min_length=1, max_length=500)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    minutes: int = Field(gt=0, le=MAX_JOB_MINUTES)
    notes: str | None = Field(default=None, max_length=2000)


class CleanerPresenceIn(_In):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=1, max_length=64)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    online: bool = True


class WaitlistIn(_In):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=64)
    city: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=2000)


class JobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    phone: str
    address: str
    lat: float | None
    lng: float | None
    minutes: int
    price_cents: int
    notes: str | None
    status: JobStatus
    assigned_cleaner_id: str | None
    created_at: datetime | None = None
    accepted_at: datetime | None = None


class CleanerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    phone: str
    online: bool
    lat: float | None
    lng: float | None
    updated_at: datetime | None = None


class WaitlistEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: WaitlistKind
    name: str
    email: str | None
    phone: str | None
    city: str | None
    notes: str | None
    created_at: datetime | None = None
