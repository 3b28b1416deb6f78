"""
HTTP application for the dispatch service.

Thin adapter over the dispatch core: parse request → call service →
map DispatchError → return JSON.  No matching logic lives here.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cleanerdispatch.config import Settings, settings
from cleanerdispatch.core.domain import JobIntake, OutcomeKind, WaitlistKind
from cleanerdispatch.core.errors import DispatchError, NotFoundError, StorageError, ValidationError
from cleanerdispatch.core.services import DispatchServices, build_services
from cleanerdispatch.infra.db_async import Database
from cleanerdispatch.infra.health_checks_async import AsyncHealthChecker
from cleanerdispatch.infra.logging_config import setup_logging, get_logger
from cleanerdispatch.infra.metrics import get_metrics_collector
from cleanerdispatch.infra.pg_job_repo_async import AsyncPostgresJobRepository
from cleanerdispatch.infra.pg_waitlist_repo_async import AsyncPostgresWaitlistRepository
from cleanerdispatch.infra.pg_worker_repo_async import AsyncPostgresWorkerRepository
from cleanerdispatch.infra.schema_validator import validate_schema_version
from cleanerdispatch.transport.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    ErrorHandlingMiddleware,
    SecurityHeadersMiddleware,
)
from cleanerdispatch.transport.schemas import (
    CleanerOut,
    CleanerPresenceIn,
    JobIn,
    JobOut,
    WaitlistEntryOut,
    WaitlistIn,
)

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_services(request: Request) -> DispatchServices:
    """Get dispatch services from app state"""
    return request.app.state.services


def get_config(request: Request) -> Settings:
    """Settings the app was built with"""
    return request.app.state.config


# ============================================================================
# LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: storage handle created at startup, closed at shutdown"""

    if getattr(fastapi_app.state, "services", None) is not None:
        # Services were injected; their storage lifecycle belongs to the caller.
        logger.info("Starting with injected services")
        yield
        return

    config: Settings = fastapi_app.state.config
    logger.info(f"Starting application: env={config.app_env}")

    if config.is_production and config.log_level.upper() == "DEBUG":
        logger.critical("LOG_LEVEL=DEBUG is not allowed in production")
        raise RuntimeError("LOG_LEVEL=DEBUG in production")

    db = Database.from_settings(config)
    await db.connect()
    logger.info("Database pool initialized")

    try:
        # Validate schema version (does NOT run migrations)
        try:
            schema_result = await validate_schema_version(db, config.expected_schema_version)
            logger.info(f"Schema validated: {schema_result['current_version']}")
        except Exception:
            logger.critical(
                "Schema validation failed. Run migrations first: python -m cleanerdispatch.infra.migrate",
                exc_info=True
            )
            raise

        fastapi_app.state.db = db
        fastapi_app.state.health_checker = AsyncHealthChecker.for_database(db)
        fastapi_app.state.services = build_services(
            AsyncPostgresWorkerRepository(db),
            AsyncPostgresJobRepository(db),
            AsyncPostgresWaitlistRepository(db),
            config=config,
        )

        logger.info(
            f"Dispatch settings: hourly_rate={config.hourly_rate}, "
            f"max_radius_km={config.dispatch_max_radius_km}, "
            f"exclusive_workers={config.dispatch_exclusive_workers}, "
            f"storage_timeout={config.storage_timeout_seconds}s"
        )
        logger.info("Application startup complete")

        yield

        logger.info("Shutting down application")
    finally:
        fastapi_app.state.services = None
        await db.close()
        logger.info("Application shutdown complete")


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

async def dispatch_error_handler(request: Request, exc: DispatchError):
    """Map the domain error taxonomy to JSON responses"""
    if isinstance(exc, StorageError):
        logger.error(
            f"Storage unavailable: {exc.detail}",
            extra={"request_id": getattr(request.state, "request_id", None)},
            exc_info=exc,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code},
            headers={"Retry-After": "1"},
        )

    content: dict = {"error": exc.code, "detail": exc.detail}
    if isinstance(exc, ValidationError) and exc.fields:
        content["fields"] = exc.fields
    return JSONResponse(status_code=exc.status_code, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed body fields are a 400, not FastAPI's 422"""
    fields: list[str] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        name = ".".join(loc) or "body"
        if name not in fields:
            fields.append(name)

    return JSONResponse(
        status_code=400,
        content={"error": ValidationError.code, "fields": fields},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions, including unmatched routes"""
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "not_found"})
    if exc.status_code == 405:
        return JSONResponse(status_code=405, content={"error": "method_not_allowed"})
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def public_error_detail(exc: Exception, is_production: bool) -> str:
    """Exception text is shown outside production only"""
    if is_production:
        return "An internal error occurred"
    return f"{exc.__class__.__name__}: {exc}"


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "detail": public_error_detail(exc, get_config(request).is_production),
        },
    )


# ============================================================================
# ROUTES
# ============================================================================

router = APIRouter()


@router.get("/health")
def health(request: Request):
    """
    Liveness check - PUBLIC endpoint.
    Does not touch storage.
    """
    config = get_config(request)
    return {
        "ok": True,
        "time": datetime.now(timezone.utc).isoformat(),
        "service": config.service_name,
        "version": config.service_version,
    }


@router.get("/ready")
async def readiness(request: Request):
    """Readiness check: critical storage checks only"""
    health_checker: AsyncHealthChecker | None = getattr(request.app.state, "health_checker", None)
    if health_checker is None:
        return {"status": "healthy"}

    result = await health_checker.run_checks(include_non_critical=False)
    if result["status"] == "unhealthy":
        return JSONResponse(status_code=503, content={"status": "unhealthy"})

    return {"status": "healthy"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """
    Detailed health check, including non-critical checks (dispatch pool).
    Exposed together with /metrics.
    """
    if not get_config(request).enable_metrics:
        raise HTTPException(status_code=404, detail="Not found")

    health_checker: AsyncHealthChecker | None = getattr(request.app.state, "health_checker", None)
    if health_checker is None:
        return {"status": "healthy", "checks": {}}

    return await health_checker.run_checks(include_non_critical=True)


@router.get("/metrics")
def metrics(request: Request):
    """In-process counters and histograms"""
    if not get_config(request).enable_metrics:
        raise HTTPException(status_code=404, detail="Not found")
    return get_metrics_collector().get_metrics()


@router.post("/jobs", status_code=201)
async def create_job(body: JobIn, request: Request):
    services = get_services(request)
    job = await services.jobs.create(
        JobIntake(
            name=body.name,
            phone=body.phone,
            address=body.address,
            minutes=body.minutes,
            lat=body.lat,
            lng=body.lng,
            notes=body.notes or None,
        )
    )
    return {"ok": True, "job": JobOut.model_validate(job)}


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, request: Request):
    services = get_services(request)
    job = await services.jobs.get(job_id)
    return {"ok": True, "job": JobOut.model_validate(job)}


@router.post("/jobs/{job_id}/assign-nearest")
async def assign_nearest(job_id: str, request: Request):
    """
    Match the job to the nearest online cleaner.

    Losing a race to a concurrent dispatch is not an error for the caller:
    it is reported as ``already_assigned``.
    """
    services = get_services(request)
    outcome = await services.engine.assign_nearest(job_id)

    if outcome.kind == OutcomeKind.NOT_FOUND:
        raise NotFoundError(f"Job '{job_id}' not found", code="job_not_found")

    job = JobOut.model_validate(outcome.job) if outcome.job is not None else None

    if outcome.kind == OutcomeKind.NO_MATCH:
        return {"ok": True, "message": "no_cleaners_online", "job": job}

    if outcome.kind == OutcomeKind.ALREADY_ASSIGNED:
        return {"ok": True, "message": "already_assigned", "job": job}

    return {
        "ok": True,
        "job": job,
        "assigned_cleaner": CleanerOut.model_validate(outcome.worker),
        "distance_km": round(outcome.distance_km, 3),
    }


@router.post("/cleaner/online")
async def cleaner_online(body: CleanerPresenceIn, request: Request):
    services = get_services(request)
    worker = await services.registry.set_presence(
        name=body.name,
        phone=body.phone,
        online=body.online,
        lat=body.lat,
        lng=body.lng,
    )
    return {"ok": True, "cleaner": CleanerOut.model_validate(worker)}


async def _join_waitlist(kind: WaitlistKind, body: WaitlistIn, request: Request) -> dict:
    services = get_services(request)
    entry = await services.waitlist.join(
        kind,
        body.name,
        email=body.email,
        phone=body.phone,
        city=body.city,
        notes=body.notes,
    )
    return {"ok": True, "entry": WaitlistEntryOut.model_validate(entry)}


@router.post("/waitlist/customer", status_code=201)
async def waitlist_customer(body: WaitlistIn, request: Request):
    return await _join_waitlist(WaitlistKind.CUSTOMER, body, request)


@router.post("/waitlist/cleaner", status_code=201)
async def waitlist_cleaner(body: WaitlistIn, request: Request):
    return await _join_waitlist(WaitlistKind.CLEANER, body, request)


# ============================================================================
# CREATE APP
# ============================================================================

def create_app(
    services: DispatchServices | None = None,
    *,
    config: Settings = settings,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built services (tests, embedding). When omitted the
            lifespan connects to PostgreSQL and builds them.
        config: Settings for middleware, routes, storage and docs exposure;
            kept on ``app.state.config``
    """
    fastapi_app = FastAPI(
        title="Cleaner Dispatch",
        description="Matches cleaning jobs to the nearest online cleaner",
        version=config.service_version,
        lifespan=lifespan,
        docs_url=None if config.is_production else "/docs",
        redoc_url=None if config.is_production else "/redoc",
        openapi_url=None if config.is_production else "/openapi.json",
    )
    fastapi_app.state.config = config
    fastapi_app.state.services = services
    fastapi_app.state.health_checker = None

    if config.is_production or config.is_staging:
        fastapi_app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins if config.allowed_origins != ["*"] else [],
            allow_credentials=False,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type", "Authorization"],
        )
    else:
        fastapi_app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    fastapi_app.add_middleware(SecurityHeadersMiddleware)
    fastapi_app.add_middleware(ErrorHandlingMiddleware)
    fastapi_app.add_middleware(RequestLoggingMiddleware, enabled=config.enable_request_logging)
    fastapi_app.add_middleware(RequestIDMiddleware)

    fastapi_app.add_exception_handler(DispatchError, dispatch_error_handler)
    fastapi_app.add_exception_handler(RequestValidationError, request_validation_handler)
    fastapi_app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    fastapi_app.add_exception_handler(Exception, general_exception_handler)

    fastapi_app.include_router(router)
    return fastapi_app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cleanerdispatch.transport.http_app:app",
        host="0.0.0.0",
        port=8099,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,  # Disable in prod (use middleware logging)
        server_header=False,
        date_header=False,
    )
