# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cleanerdispatch.config import Settings  # noqa: E402
from cleanerdispatch.core.services import build_services  # noqa: E402
from cleanerdispatch.infra.metrics import get_metrics_collector  # noqa: E402
from tests.fakes import (  # noqa: E402
    InMemoryJobRepository,
    InMemoryWaitlistRepository,
    InMemoryWorkerRepository,
)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Metrics are process-global; start every test from zero"""
    get_metrics_collector().reset()
    yield


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file"""
    return Settings(_env_file=None, app_env="dev", storage_timeout_seconds=0.2)


@pytest.fixture
def worker_repo():
    return InMemoryWorkerRepository()


@pytest.fixture
def job_repo():
    return InMemoryJobRepository()


@pytest.fixture
def waitlist_repo():
    return InMemoryWaitlistRepository()


@pytest.fixture
def services(worker_repo, job_repo, waitlist_repo, test_settings):
    """Fully wired dispatch services over in-memory storage"""
    return build_services(worker_repo, job_repo, waitlist_repo, config=test_settings)


@pytest.fixture
def job_payload():
    """Downtown job request body"""
    return {
        "name": "Ana",
        "phone": "+1 555 010 0001",
        "address": "1 Main St",
        "lat": 40.7128,
        "lng": -74.0060,
        "minutes": 120,
    }
