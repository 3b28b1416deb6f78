# tests/test_dispatch_engine.py
"""
Tests for end-to-end dispatch:
- nearest-candidate selection
- outcomes for missing, located-less and already accepted jobs
- conditional assign under concurrent dispatches
- fallback down the candidate ladder when a cleaner is busy
"""
from __future__ import annotations

import asyncio

import pytest

from cleanerdispatch.core.domain import JobIntake, JobStatus, OutcomeKind
from cleanerdispatch.core.errors import StorageError
from cleanerdispatch.core.services import build_services
from cleanerdispatch.infra.metrics import get_metrics_collector
from tests.fakes import HangingWorkerRepository, InMemoryJobRepository, InMemoryWaitlistRepository


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_job(services, lat=40.0, lng=-73.0, minutes=60):
    return await services.jobs.create(
        JobIntake(name="Ana", phone="+15550100001", address="1 Main St",
                  minutes=minutes, lat=lat, lng=lng)
    )


async def _go_online(services, phone, lat, lng, name="Cleaner"):
    return await services.registry.set_presence(name, phone, True, lat, lng)


@pytest.fixture
def exclusive_services(worker_repo, job_repo, waitlist_repo, test_settings):
    cfg = test_settings.model_copy(update={"dispatch_exclusive_workers": True})
    return build_services(worker_repo, job_repo, waitlist_repo, config=cfg)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

class TestAssignNearest:
    @pytest.mark.asyncio
    async def test_assigns_closest_worker(self, services):
        job = await _create_job(services, 40.0, -73.0)
        await _go_online(services, "+10000000001", 40.1, -73.0)
        w2 = await _go_online(services, "+10000000002", 40.01, -73.0)

        outcome = await services.engine.assign_nearest(job.id)

        assert outcome.kind == OutcomeKind.ASSIGNED
        assert outcome.worker.id == w2.id
        assert outcome.job.status == JobStatus.ACCEPTED
        assert outcome.job.assigned_cleaner_id == w2.id
        assert outcome.distance_km == pytest.approx(1.112, abs=0.001)
        assert outcome.candidates_tried == 1

    @pytest.mark.asyncio
    async def test_job_without_location_never_matches(self, services, job_repo):
        job = await _create_job(services, lat=None, lng=None)
        await _go_online(services, "+10000000001", 40.0, -73.0)

        outcome = await services.engine.assign_nearest(job.id)

        assert outcome.kind == OutcomeKind.NO_MATCH
        assert job_repo.assign_calls == []
        assert (await services.jobs.get(job.id)).status == JobStatus.REQUESTED

    @pytest.mark.asyncio
    async def test_no_workers_online(self, services):
        job = await _create_job(services)

        outcome = await services.engine.assign_nearest(job.id)

        assert outcome.kind == OutcomeKind.NO_MATCH
        assert outcome.job.id == job.id
        assert (await services.jobs.get(job.id)).status == JobStatus.REQUESTED

    @pytest.mark.asyncio
    async def test_offline_and_unlocated_workers_ignored(self, services):
        job = await _create_job(services)
        await services.registry.set_presence("Off", "+10000000001", False, 40.0, -73.0)
        await services.registry.set_presence("Lost", "+10000000002", True)

        outcome = await services.engine.assign_nearest(job.id)

        assert outcome.kind == OutcomeKind.NO_MATCH

    @pytest.mark.asyncio
    async def test_worker_offline_after_presence_update(self, services):
        job = await _create_job(services)
        await _go_online(services, "+10000000001", 40.0, -73.0)
        await services.registry.set_presence("Cleaner", "+10000000001", False, 40.0, -73.0)

        outcome = await services.engine.assign_nearest(job.id)

        assert outcome.kind == OutcomeKind.NO_MATCH

    @pytest.mark.asyncio
    async def test_unknown_job(self, services):
        outcome = await services.engine.assign_nearest("no-such-job")

        assert outcome.kind == OutcomeKind.NOT_FOUND
        assert outcome.job is None

    @pytest.mark.asyncio
    async def test_tie_goes_to_lowest_worker_id(self, services):
        job = await _create_job(services, 10.0, 10.0)
        await _go_online(services, "+10000000009", 10.5, 10.5)
        await _go_online(services, "+10000000003", 10.5, 10.5)
        await _go_online(services, "+10000000005", 10.5, 10.5)

        outcome = await services.engine.assign_nearest(job.id)

        assert outcome.worker.id == "+10000000003"

    @pytest.mark.asyncio
    async def test_radius_limit(self, worker_repo, job_repo, waitlist_repo, test_settings):
        cfg = test_settings.model_copy(update={"dispatch_max_radius_km": 5.0})
        services = build_services(worker_repo, job_repo, waitlist_repo, config=cfg)
        job = await _create_job(services, 40.0, -73.0)
        await _go_online(services, "+10000000001", 40.1, -73.0)  # ~11 km

        outcome = await services.engine.assign_nearest(job.id)

        assert outcome.kind == OutcomeKind.NO_MATCH


# ---------------------------------------------------------------------------
# Idempotence and races
# ---------------------------------------------------------------------------

class TestAtMostOneAssignment:
    @pytest.mark.asyncio
    async def test_second_call_reports_already_assigned(self, services):
        job = await _create_job(services)
        w = await _go_online(services, "+10000000001", 40.0, -73.0)

        first = await services.engine.assign_nearest(job.id)
        await _go_online(services, "+10000000002", 40.0, -73.0)
        second = await services.engine.assign_nearest(job.id)

        assert first.kind == OutcomeKind.ASSIGNED
        assert second.kind == OutcomeKind.ALREADY_ASSIGNED
        assert second.job.assigned_cleaner_id == w.id

    @pytest.mark.asyncio
    async def test_concurrent_dispatches_assign_once(self, services, job_repo):
        job = await _create_job(services)
        for i in range(5):
            await _go_online(services, f"+1000000000{i}", 40.0 + i * 0.01, -73.0)

        outcomes = await asyncio.gather(
            *(services.engine.assign_nearest(job.id) for _ in range(10))
        )

        kinds = [o.kind for o in outcomes]
        assert kinds.count(OutcomeKind.ASSIGNED) == 1
        assert kinds.count(OutcomeKind.ALREADY_ASSIGNED) == 9

        winner = next(o for o in outcomes if o.assigned)
        stored = await services.jobs.get(job.id)
        assert stored.status == JobStatus.ACCEPTED
        assert stored.assigned_cleaner_id == winner.worker.id
        for o in outcomes:
            if o.kind == OutcomeKind.ALREADY_ASSIGNED:
                assert o.job.assigned_cleaner_id == winner.worker.id

    @pytest.mark.asyncio
    async def test_lost_race_counts_conflict(self, services):
        job = await _create_job(services)
        await _go_online(services, "+10000000001", 40.0, -73.0)

        await asyncio.gather(*(services.engine.assign_nearest(job.id) for _ in range(3)))

        metrics = get_metrics_collector()
        assert metrics.get_counter("dispatch_outcomes_total", outcome="assigned") == 1
        assert metrics.get_counter("dispatch_outcomes_total", outcome="already_assigned") == 2


# ---------------------------------------------------------------------------
# Candidate ladder
# ---------------------------------------------------------------------------

class TestBusyWorkerFallback:
    @pytest.mark.asyncio
    async def test_busy_nearest_falls_back_to_next(self, exclusive_services):
        services = exclusive_services
        near = await _go_online(services, "+10000000001", 40.0, -73.0)
        far = await _go_online(services, "+10000000002", 40.05, -73.0)

        first_job = await _create_job(services)
        first = await services.engine.assign_nearest(first_job.id)
        assert first.worker.id == near.id

        second_job = await _create_job(services)
        second = await services.engine.assign_nearest(second_job.id)

        assert second.kind == OutcomeKind.ASSIGNED
        assert second.worker.id == far.id
        assert second.candidates_tried == 2
        assert second.conflicts == ["worker_busy"]

    @pytest.mark.asyncio
    async def test_every_candidate_busy_is_no_match(self, exclusive_services):
        services = exclusive_services
        await _go_online(services, "+10000000001", 40.0, -73.0)
        await services.engine.assign_nearest((await _create_job(services)).id)

        job = await _create_job(services)
        outcome = await services.engine.assign_nearest(job.id)

        assert outcome.kind == OutcomeKind.NO_MATCH
        assert outcome.candidates_tried == 1
        assert (await services.jobs.get(job.id)).status == JobStatus.REQUESTED

    @pytest.mark.asyncio
    async def test_two_jobs_race_for_one_worker(self, exclusive_services):
        services = exclusive_services
        await _go_online(services, "+10000000001", 40.0, -73.0)
        a = await _create_job(services)
        b = await _create_job(services)

        outcomes = await asyncio.gather(
            services.engine.assign_nearest(a.id),
            services.engine.assign_nearest(b.id),
        )

        kinds = sorted(o.kind.value for o in outcomes)
        assert kinds == ["assigned", "no_match"]

    @pytest.mark.asyncio
    async def test_busy_worker_still_matched_without_exclusivity(self, services):
        w = await _go_online(services, "+10000000001", 40.0, -73.0)
        await services.engine.assign_nearest((await _create_job(services)).id)

        outcome = await services.engine.assign_nearest((await _create_job(services)).id)

        assert outcome.kind == OutcomeKind.ASSIGNED
        assert outcome.worker.id == w.id


# ---------------------------------------------------------------------------
# Storage failures
# ---------------------------------------------------------------------------

class TestStorageFailures:
    @pytest.mark.asyncio
    async def test_registry_timeout_propagates_and_job_untouched(self, test_settings):
        job_repo = InMemoryJobRepository()
        cfg = test_settings.model_copy(update={"storage_timeout_seconds": 0.05})
        services = build_services(HangingWorkerRepository(), job_repo, InMemoryWaitlistRepository(), config=cfg)
        job = await _create_job(services)

        with pytest.raises(StorageError):
            await services.engine.assign_nearest(job.id)

        assert job_repo.jobs[job.id].status == JobStatus.REQUESTED
        assert job_repo.assign_calls == []

    @pytest.mark.asyncio
    async def test_dispatch_duration_recorded(self, services):
        job = await _create_job(services)
        await services.engine.assign_nearest(job.id)

        stats = get_metrics_collector().get_metrics()["histograms"]["dispatch_seconds"]
        assert stats["count"] == 1
