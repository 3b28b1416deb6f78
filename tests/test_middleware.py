# tests/test_middleware.py
"""Tests for cleanerdispatch/transport/middleware.py: request ID, latency, error handling, headers."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from cleanerdispatch.transport.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    ErrorHandlingMiddleware,
    SecurityHeadersMiddleware,
)
from cleanerdispatch.infra.metrics import get_metrics_collector
from cleanerdispatch.transport.http_app import public_error_detail


def _build_app(raise_for: set[str] | None = None, log_requests: bool = True):
    """Build a minimal FastAPI app with middleware for testing."""
    app = FastAPI()
    # Order matters: ErrorHandling wraps RequestLogging, RequestID wraps both
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware, enabled=log_requests)
    app.add_middleware(RequestIDMiddleware)

    raise_for = raise_for or set()

    @app.get("/test")
    def test_endpoint():
        if "/test" in raise_for:
            raise RuntimeError("boom")
        return {"ok": True}

    @app.get("/cached")
    def cached_endpoint():
        return JSONResponse({"ok": True}, headers={"Cache-Control": "max-age=60"})

    @app.post("/jobs/{job_id}/assign-nearest")
    def assign_endpoint(job_id: str):
        if "/assign" in raise_for:
            raise RuntimeError("dispatch boom")
        return {"ok": True, "job_id": job_id}

    return app


# ============================================================================
# RequestIDMiddleware
# ============================================================================

class TestRequestIDMiddleware:
    def test_generates_request_id(self):
        client = TestClient(_build_app())
        resp = client.get("/test")
        assert resp.status_code == 200
        assert "X-Request-ID" in resp.headers
        # Should be a UUID-style string
        assert len(resp.headers["X-Request-ID"]) >= 32

    def test_preserves_existing_request_id(self):
        client = TestClient(_build_app())
        custom_id = "my-custom-request-id-123"
        resp = client.get("/test", headers={"X-Request-ID": custom_id})
        assert resp.status_code == 200
        assert resp.headers["X-Request-ID"] == custom_id


# ============================================================================
# ErrorHandlingMiddleware
# ============================================================================

class TestErrorHandlingMiddleware:
    def test_normal_request_passes_through(self):
        client = TestClient(_build_app(), raise_server_exceptions=False)
        resp = client.post("/jobs/j1/assign-nearest")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "job_id": "j1"}

    def test_unhandled_error_returns_500_with_request_id(self):
        client = TestClient(_build_app(raise_for={"/assign"}), raise_server_exceptions=False)
        resp = client.post("/jobs/j1/assign-nearest", headers={"X-Request-ID": "req-42"})
        assert resp.status_code == 500
        data = resp.json()
        assert data["error"] == "internal_error"
        assert data["request_id"] == "req-42"

    def test_error_body_does_not_leak_exception_text(self):
        client = TestClient(_build_app(raise_for={"/test"}), raise_server_exceptions=False)
        resp = client.get("/test")
        assert resp.status_code == 500
        assert "boom" not in resp.text

    def test_logging_disabled_still_serves(self):
        client = TestClient(_build_app(log_requests=False))
        assert client.get("/test").status_code == 200


# ============================================================================
# SecurityHeadersMiddleware
# ============================================================================

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        client = TestClient(_build_app())
        resp = client.get("/test")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["Cache-Control"] == "no-store"

    def test_route_header_not_overridden(self):
        client = TestClient(_build_app())
        resp = client.get("/cached")
        assert resp.headers["Cache-Control"] == "max-age=60"
        assert resp.headers["X-Frame-Options"] == "DENY"


# ============================================================================
# RequestLoggingMiddleware
# ============================================================================

class TestRequestLatency:
    def test_latency_keyed_by_route_template(self):
        client = TestClient(_build_app())
        client.post("/jobs/job-123/assign-nearest")

        histograms = get_metrics_collector().get_metrics()["histograms"]
        key = "http_request_seconds{method=POST,route=/jobs/{job_id}/assign-nearest,status=200}"
        assert histograms[key]["count"] == 1
        assert not any("job-123" in name for name in histograms)

    def test_unmatched_route_label(self):
        client = TestClient(_build_app())
        client.get("/nowhere")

        histograms = get_metrics_collector().get_metrics()["histograms"]
        assert "http_request_seconds{method=GET,route=unmatched,status=404}" in histograms

    def test_logging_disabled_records_nothing(self):
        client = TestClient(_build_app(log_requests=False))
        client.get("/test")

        assert get_metrics_collector().get_metrics()["histograms"] == {}


# ============================================================================
# public_error_detail
# ============================================================================

class TestPublicErrorDetail:
    def test_dev_shows_detail(self):
        assert public_error_detail(ValueError("lat is NaN"), is_production=False) == "ValueError: lat is NaN"

    def test_prod_hides_detail(self):
        assert public_error_detail(RuntimeError("pool closed"), is_production=True) == "An internal error occurred"
