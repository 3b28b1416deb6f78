from __future__ import annotations
import time
from typing import Dict, Any
from enum import Enum

from cleanerdispatch.infra.db_async import Database
from cleanerdispatch.infra.db_resilience_async import safe_conn
from cleanerdispatch.infra.logging_config import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES = ("workers", "jobs", "waitlist_entries")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class AsyncHealthCheck:
    """Base class for async health checks"""

    def __init__(self, name: str, critical: bool = True):
        self.name = name
        self.critical = critical

    async def check(self) -> Dict[str, Any]:
        """
        Perform health check.
        Returns dict with 'status', 'details', and optionally 'error'
        """
        raise NotImplementedError


class AsyncDatabaseHealthCheck(AsyncHealthCheck):
    """Check database connectivity and that the dispatch tables exist"""

    def __init__(self, db: Database):
        super().__init__("database", critical=True)
        self.db = db

    async def check(self) -> Dict[str, Any]:
        start = time.time()

        try:
            async with safe_conn(self.db) as conn:
                result = await conn.fetchval("SELECT 1")

                if result != 1:
                    return {
                        "status": HealthStatus.UNHEALTHY,
                        "details": "Unexpected query result",
                        "error": f"Expected 1, got {result}"
                    }

                missing_tables = []
                for table in REQUIRED_TABLES:
                    table_exists = await conn.fetchval("SELECT to_regclass($1)", table)
                    if table_exists is None:
                        missing_tables.append(table)

                if missing_tables:
                    return {
                        "status": HealthStatus.UNHEALTHY,
                        "details": "Missing required tables",
                        "error": f"Missing: {', '.join(missing_tables)}"
                    }

                duration = time.time() - start
                if duration > 1.0:
                    return {
                        "status": HealthStatus.DEGRADED,
                        "details": f"Slow database response: {duration:.3f}s",
                        "response_time": duration
                    }

                return {
                    "status": HealthStatus.HEALTHY,
                    "details": "Database operational",
                    "response_time": duration
                }

        except Exception as exc:
            logger.error("Database health check failed", exc_info=True)
            return {
                "status": HealthStatus.UNHEALTHY,
                "details": "Database connection failed",
                "error": str(exc)[:200]
            }


class AsyncDispatchPoolHealthCheck(AsyncHealthCheck):
    """Report how many cleaners are dispatchable and how many jobs wait"""

    def __init__(self, db: Database):
        super().__init__("dispatch_pool", critical=False)
        self.db = db

    async def check(self) -> Dict[str, Any]:
        try:
            async with safe_conn(self.db) as conn:
                online = await conn.fetchval(
                    "SELECT COUNT(*) FROM workers "
                    "WHERE online AND lat IS NOT NULL AND lng IS NOT NULL"
                )
                waiting = await conn.fetchval(
                    "SELECT COUNT(*) FROM jobs WHERE status = 'requested'"
                )

            status = HealthStatus.HEALTHY
            if waiting and not online:
                status = HealthStatus.DEGRADED

            return {
                "status": status,
                "details": "Dispatch pool readable",
                "cleaners_online": online,
                "jobs_waiting": waiting,
            }

        except Exception as exc:
            logger.error("Dispatch pool health check failed", exc_info=True)
            return {
                "status": HealthStatus.DEGRADED,
                "details": "Dispatch pool check failed",
                "error": str(exc)[:200]
            }


class AsyncHealthChecker:
    """Aggregate async health checks"""

    def __init__(self, checks: list[AsyncHealthCheck]):
        self.checks = checks

    @classmethod
    def for_database(cls, db: Database) -> "AsyncHealthChecker":
        return cls([
            AsyncDatabaseHealthCheck(db),
            AsyncDispatchPoolHealthCheck(db),
        ])

    async def run_checks(self, include_non_critical: bool = True) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            {
                "status": "healthy" | "degraded" | "unhealthy",
                "checks": {...},
                "timestamp": float
            }
        """
        results = {}
        overall_status = HealthStatus.HEALTHY

        for check in self.checks:
            if not include_non_critical and not check.critical:
                continue

            result = await check.check()
            results[check.name] = result

            if result["status"] == HealthStatus.UNHEALTHY and check.critical:
                overall_status = HealthStatus.UNHEALTHY
            elif result["status"] == HealthStatus.DEGRADED and overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        return {
            "status": overall_status.value,
            "checks": results,
            "timestamp": time.time()
        }
