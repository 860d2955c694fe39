"""
Health endpoints for load balancers and orchestrators.

``/health`` answers as long as the process is up; ``/health/ready`` also
checks the database.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from complyhub import __version__
from complyhub.server.dependencies import DbSessionDep

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str


class ReadinessResponse(BaseModel):
    status: str  # ready, not_ready
    db: str
    storage_configured: bool
    active_scan_runs: int


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness probe."""
    return HealthResponse(status="healthy", version=__version__)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request, session: DbSessionDep):
    """Readiness probe; 503 when the database is unreachable."""
    db_status = "healthy"
    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
    except (SQLAlchemyError, ConnectionError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        db_status = "error"

    runner = getattr(request.app.state, "scan_runner", None)
    body = ReadinessResponse(
        status="ready" if db_status == "healthy" else "not_ready",
        db=db_status,
        storage_configured=getattr(request.app.state, "object_store", None) is not None,
        active_scan_runs=runner.active_runs if runner is not None else 0,
    )
    if db_status != "healthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
