"""
Cloud security API endpoints.

Provides:
- Synchronous scan of a connection
- Background scan runs: trigger, poll status, cancel, history
- Stored findings per connection

Clients normally trigger a run and poll ``/runs/{run_id}`` until
``completed`` is true.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from complyhub.exceptions import BadRequestError, ComplyHubError
from complyhub.server.dependencies import CloudSecurityServiceDep, ScanRunnerDep
from complyhub.server.middleware.rate_limit import limiter, scan_trigger_limit
from complyhub.server.services.cloud_security_service import serialize_finding, serialize_run

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Response models ─────────────────────────────────────────────────


class ScanResponse(BaseModel):
    success: bool
    provider: str
    findings_count: int
    scanned_at: str


class TriggerResponse(BaseModel):
    run_id: str


class RunStatusResponse(BaseModel):
    run_id: str
    status: str  # queued, running, completed, failed, canceled
    completed: bool
    success: bool
    output: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class FindingResponse(BaseModel):
    id: str
    check_id: str
    title: str
    description: Optional[str] = None
    severity: str
    status: str
    resource_id: Optional[str] = None
    remediation: Optional[str] = None
    scanned_at: Optional[str] = None


def _require_connection_id(connection_id: Optional[UUID]) -> UUID:
    if connection_id is None:
        raise BadRequestError("connectionId query parameter is required")
    return connection_id


# ── Scans ───────────────────────────────────────────────────────────


@router.post("/scan/{connection_id}", response_model=ScanResponse)
async def scan_connection(connection_id: UUID, svc: CloudSecurityServiceDep):
    """
    Scan a connection and wait for the result.

    A failed scan answers 500 with ``{message, provider}``.
    """
    result = await svc.scan(connection_id)
    if not result["success"]:
        raise HTTPException(
            status_code=500,
            detail={"message": result.get("error") or "Scan failed", "provider": result["provider"]},
        )
    return ScanResponse(
        success=True,
        provider=result["provider"],
        findings_count=len(result["findings"]),
        scanned_at=result["scanned_at"],
    )


@router.post("/trigger/{connection_id}", response_model=TriggerResponse)
@limiter.limit(scan_trigger_limit)
async def trigger_scan(
    request: Request,
    connection_id: UUID,
    svc: CloudSecurityServiceDep,
    runner: ScanRunnerDep,
):
    """Queue a background scan run. Any failure to start it answers 400."""
    try:
        return await svc.trigger_scan(connection_id, runner)
    except ComplyHubError as e:
        logger.info(f"Scan trigger rejected for {connection_id}: {e.message}")
        raise BadRequestError(e.message) from e


# ── Runs ────────────────────────────────────────────────────────────


@router.get("/runs/{run_id}", response_model=RunStatusResponse)
async def get_run_status(
    run_id: UUID,
    svc: CloudSecurityServiceDep,
    connection_id: Optional[UUID] = Query(None, alias="connectionId"),
):
    """Status of a run; ``connectionId`` must name the scanned connection."""
    return await svc.get_run_status(run_id, _require_connection_id(connection_id))


@router.post("/runs/{run_id}/cancel", response_model=RunStatusResponse)
async def cancel_run(
    run_id: UUID,
    svc: CloudSecurityServiceDep,
    runner: ScanRunnerDep,
    connection_id: Optional[UUID] = Query(None, alias="connectionId"),
):
    """Cancel a queued or running scan (409 once it finished)."""
    return await svc.cancel_run(run_id, _require_connection_id(connection_id), runner)


@router.get("/connections/{connection_id}/runs", response_model=list[RunStatusResponse])
async def list_runs(
    connection_id: UUID,
    svc: CloudSecurityServiceDep,
    limit: int = Query(20, ge=1, le=100),
):
    """Most recent runs of a connection, newest first."""
    return [serialize_run(r) for r in await svc.list_runs(connection_id, limit=limit)]


# ── Findings ────────────────────────────────────────────────────────


@router.get("/findings/{connection_id}", response_model=list[FindingResponse])
async def list_findings(
    connection_id: UUID,
    svc: CloudSecurityServiceDep,
    status: Optional[Literal["passed", "failed"]] = Query(None),
):
    return [serialize_finding(f) for f in await svc.list_findings(connection_id, status)]
