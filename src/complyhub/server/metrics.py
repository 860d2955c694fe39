"""
Prometheus metrics for ComplyHub server monitoring.

This module provides:
- HTTP request metrics (count, latency, in-progress)
- Database connection pool metrics
- Domain counters: policy uploads, scan runs, evidence submissions
- A /metrics endpoint for Prometheus scraping

Usage:
    from complyhub.server.metrics import (
        setup_metrics,
        metrics_router,
        PrometheusMiddleware,
    )

    setup_metrics()
    app.add_middleware(PrometheusMiddleware)
    app.include_router(metrics_router)
"""

import logging
import os
import time
from collections.abc import Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

logger = logging.getLogger(__name__)


# =============================================================================
# Metric Definitions
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "complyhub_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "complyhub_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "complyhub_http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
)

DB_POOL_CHECKED_OUT = Gauge(
    "complyhub_db_pool_checked_out",
    "Number of database connections currently checked out of the pool",
)

DB_POOL_OVERFLOW = Gauge(
    "complyhub_db_pool_overflow",
    "Current number of overflow connections",
)

POLICY_UPLOADS_TOTAL = Counter(
    "complyhub_policy_uploads_total",
    "Policy PDFs processed by bulk upload",
    ["outcome"],
)

SCAN_RUNS_TOTAL = Counter(
    "complyhub_cloud_scan_runs_total",
    "Cloud security scan runs by final status",
    ["provider", "status"],
)

SCAN_RUN_DURATION_SECONDS = Histogram(
    "complyhub_cloud_scan_run_duration_seconds",
    "Cloud security scan run duration in seconds",
    ["provider"],
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 900),
)

EVIDENCE_SUBMISSIONS_TOTAL = Counter(
    "complyhub_evidence_submissions_total",
    "Evidence form submissions by form type",
    ["form_type"],
)

APP_INFO = Info(
    "complyhub",
    "ComplyHub application information",
)


# Excluded from request metrics to keep label cardinality low
EXCLUDED_PATHS = {
    "/metrics",
    "/health",
    "/favicon.ico",
}


def get_path_template(request: Request) -> str:
    """Route template (``/api/v1/policies/{policy_id}``) for a request."""
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return route.path if hasattr(route, "path") else request.url.path
    return request.url.path


# =============================================================================
# Prometheus Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect request count, latency and in-progress gauges."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        method = request.method
        endpoint = get_path_template(request)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method,
                endpoint=endpoint,
            ).observe(time.perf_counter() - start_time)
            HTTP_REQUESTS_TOTAL.labels(
                method=method,
                endpoint=endpoint,
                status_code=str(status_code),
            ).inc()
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).dec()


# =============================================================================
# Metric Collection Functions
# =============================================================================

def collect_db_pool_metrics() -> None:
    """Read pool gauges from the active engine, if any."""
    from complyhub.server.db import get_engine

    engine = get_engine()
    if engine is None:
        return

    pool = engine.sync_engine.pool
    # SQLite pools do not expose these counters
    if hasattr(pool, "checkedout"):
        DB_POOL_CHECKED_OUT.set(pool.checkedout())
    if hasattr(pool, "overflow"):
        DB_POOL_OVERFLOW.set(pool.overflow())


def setup_metrics() -> None:
    """Set application info."""
    from complyhub import __version__

    APP_INFO.info({
        "version": __version__,
        "name": "complyhub",
    })
    logger.info("Prometheus metrics initialized")


# =============================================================================
# Metrics Router
# =============================================================================

metrics_router = APIRouter(tags=["Metrics"])


@metrics_router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    response_class=Response,
    include_in_schema=False,
)
async def metrics_endpoint() -> Response:
    """Prometheus text format. Not behind identity headers."""
    collect_db_pool_metrics()

    # gunicorn with several workers writes to a shared directory
    if "PROMETHEUS_MULTIPROC_DIR" in os.environ:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        output = generate_latest(registry)
    else:
        output = generate_latest(REGISTRY)

    return Response(content=output, media_type=CONTENT_TYPE_LATEST)


# =============================================================================
# Helper Functions for Recording Metrics
# =============================================================================

def record_policy_upload(outcome: str) -> None:
    """Count one bulk-upload item (``succeeded`` or ``failed``)."""
    POLICY_UPLOADS_TOTAL.labels(outcome=outcome).inc()


def record_scan_run(
    provider: str,
    status: str,
    duration_seconds: float | None = None,
) -> None:
    """
    Record the end of a cloud scan run.

    Args:
        provider: Integration provider (aws, ...)
        status: Final status (completed, failed, canceled)
        duration_seconds: Optional run duration
    """
    SCAN_RUNS_TOTAL.labels(provider=provider, status=status).inc()
    if duration_seconds is not None:
        SCAN_RUN_DURATION_SECONDS.labels(provider=provider).observe(duration_seconds)


def record_evidence_submission(form_type: str) -> None:
    EVIDENCE_SUBMISSIONS_TOTAL.labels(form_type=form_type).inc()
