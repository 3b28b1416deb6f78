"""
Application service container.

Wires the core components to a set of storage collaborators.  Built once
at startup (or per test) and held on ``app.state.services``.
"""
from __future__ import annotations

from dataclasses import dataclass

from cleanerdispatch.config import Settings, settings as default_settings
from cleanerdispatch.core.dispatch.engine import DispatchEngine
from cleanerdispatch.core.dispatch.job_store import JobStore
from cleanerdispatch.core.dispatch.proximity import ProximityIndex
from cleanerdispatch.core.dispatch.registry import WorkerRegistry
from cleanerdispatch.core.ports import (
    AsyncJobRepository,
    AsyncWaitlistRepository,
    AsyncWorkerRepository,
)
from cleanerdispatch.core.waitlist import WaitlistStore


@dataclass
class DispatchServices:
    registry: WorkerRegistry
    jobs: JobStore
    engine: DispatchEngine
    waitlist: WaitlistStore


def build_services(
    workers: AsyncWorkerRepository,
    jobs: AsyncJobRepository,
    waitlist: AsyncWaitlistRepository,
    *,
    config: Settings | None = None,
) -> DispatchServices:
    cfg = config or default_settings
    timeout = cfg.storage_timeout_seconds

    registry = WorkerRegistry(workers, timeout=timeout)
    job_store = JobStore(
        jobs,
        hourly_rate=cfg.hourly_rate,
        exclusive_workers=cfg.dispatch_exclusive_workers,
        timeout=timeout,
    )
    engine = DispatchEngine(
        registry=registry,
        proximity=ProximityIndex(max_radius_km=cfg.dispatch_max_radius_km),
        jobs=job_store,
    )
    return DispatchServices(
        registry=registry,
        jobs=job_store,
        engine=engine,
        waitlist=WaitlistStore(waitlist, timeout=timeout),
    )
