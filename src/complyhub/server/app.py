"""
FastAPI application for the ComplyHub server.

Security features:
- CORS configured from settings (not wildcard)
- Rate limiting on bulk upload and scan trigger endpoints
- Request size limits
- Security headers

API Versioning:
- All API endpoints are available at /api/v1/*
- Unversioned endpoints: /health, /metrics, /api/docs
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from fastapi import FastAPI

from complyhub import __version__
from complyhub.server.config import get_settings
from complyhub.server.db import close_db, create_tables, get_session_factory, init_db
from complyhub.server.error_handlers import register_error_handlers
from complyhub.server.logging import setup_logging
from complyhub.server.metrics import metrics_router, setup_metrics
from complyhub.server.middleware import limiter, register_middleware
from complyhub.server.routes import health, v1
from complyhub.server.scan_runner import ScanRunner
from complyhub.storage import build_object_store

API_V1_PREFIX = "/api/v1"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown handlers."""
    settings = get_settings()

    setup_logging(
        level=settings.logging.level,
        json_format=not settings.server.debug,
        log_file=settings.logging.file,
    )
    setup_metrics()

    await init_db(settings.database.url)
    if settings.database.create_tables:
        await create_tables()

    app.state.object_store = build_object_store(settings.storage)
    if app.state.object_store is None:
        logger.warning("File storage is not configured; uploads and exports are disabled")

    app.state.scan_runner = ScanRunner(get_session_factory(), settings)

    logger.info(f"ComplyHub v{__version__} starting up")
    yield

    await app.state.scan_runner.stop_all()
    await close_db()
    logger.info("ComplyHub shutting down")


def create_app() -> FastAPI:
    """Build the application with middleware, handlers and routers."""
    application = FastAPI(
        title="ComplyHub API",
        description="Compliance automation: policies, evidence forms, integrations and cloud security.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    application.state.limiter = limiter

    register_middleware(application)
    register_error_handlers(application)

    application.include_router(health.router, tags=["Health"])
    application.include_router(metrics_router)
    application.include_router(v1.router, prefix=API_V1_PREFIX)
    return application


app = create_app()
