# tests/test_waitlist.py
"""Tests for waitlist signups"""
import pytest

from cleanerdispatch.core.domain import WaitlistKind
from cleanerdispatch.core.errors import ValidationError
from cleanerdispatch.core.waitlist import WaitlistStore
from cleanerdispatch.infra.metrics import get_metrics_collector


@pytest.fixture
def waitlist(waitlist_repo):
    return WaitlistStore(waitlist_repo, timeout=0.2)


@pytest.mark.asyncio
async def test_customer_signup_with_email(waitlist, waitlist_repo):
    entry = await waitlist.join("customer", " Dana ", email="dana@example.com", city="Brooklyn")

    assert entry.kind == WaitlistKind.CUSTOMER
    assert entry.name == "Dana"
    assert entry.phone is None
    assert entry.created_at is not None
    assert len(waitlist_repo.entries) == 1


@pytest.mark.asyncio
async def test_cleaner_signup_with_phone(waitlist):
    entry = await waitlist.join(WaitlistKind.CLEANER, "Eli", phone="+1 555 010 0009")

    assert entry.kind == WaitlistKind.CLEANER
    assert entry.phone == "+1 555 010 0009"
    assert get_metrics_collector().get_counter("waitlist_entries_total", kind="cleaner") == 1


@pytest.mark.asyncio
async def test_blank_optional_fields_stored_as_none(waitlist):
    entry = await waitlist.join("customer", "Dana", email="dana@example.com", city="  ", notes="")

    assert entry.city is None
    assert entry.notes is None


@pytest.mark.asyncio
async def test_requires_email_or_phone(waitlist, waitlist_repo):
    with pytest.raises(ValidationError) as exc_info:
        await waitlist.join("customer", "Dana", email="  ")

    assert exc_info.value.fields == ["email", "phone"]
    assert waitlist_repo.entries == []


@pytest.mark.asyncio
async def test_rejects_phone_without_digits(waitlist):
    with pytest.raises(ValidationError) as exc_info:
        await waitlist.join("cleaner", "Eli", phone="none")
    assert exc_info.value.fields == ["phone"]


@pytest.mark.asyncio
async def test_rejects_unknown_kind(waitlist):
    with pytest.raises(ValidationError) as exc_info:
        await waitlist.join("investor", "Fay", email="fay@example.com")
    assert exc_info.value.fields == ["kind"]


@pytest.mark.asyncio
async def test_rejects_blank_name(waitlist):
    with pytest.raises(ValidationError):
        await waitlist.join("customer", "", email="x@example.com")
