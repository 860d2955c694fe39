"""
Cloud security service for ComplyHub server.

Provides business logic for cloud-security scanning:
- Synchronous scans of one connection
- Background scan runs (trigger, status, cancel)
- Stored findings per connection
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID

from sqlalchemy import delete, select

from complyhub.cloud import get_scanner
from complyhub.exceptions import ConflictError, ConnectionNotFoundError, NotFoundError
from complyhub.server.models import CloudFinding, CloudScanRun, IntegrationConnection
from complyhub.server.services.base import BaseService

if TYPE_CHECKING:
    from complyhub.server.scan_runner import ScanRunner

TERMINAL_RUN_STATUSES = frozenset({"completed", "failed", "canceled"})


def scan_output(result: dict[str, Any]) -> dict[str, Any]:
    """Run output stored for a finished scan."""
    output = {
        "success": result["success"],
        "findings_count": len(result["findings"]),
        "provider": result["provider"],
        "scanned_at": result["scanned_at"],
    }
    if result.get("error"):
        output["error"] = result["error"]
    return output


def serialize_run(run: CloudScanRun) -> dict[str, Any]:
    """Status view polled by clients."""
    return {
        "run_id": str(run.id),
        "status": run.status,
        "completed": run.status in TERMINAL_RUN_STATUSES,
        "success": run.status == "completed",
        "output": run.output,
        "error": run.error,
    }


def serialize_finding(finding: CloudFinding) -> dict[str, Any]:
    return {
        "id": str(finding.id),
        "check_id": finding.check_id,
        "title": finding.title,
        "description": finding.description,
        "severity": finding.severity,
        "status": finding.status,
        "resource_id": finding.resource_id,
        "remediation": finding.remediation,
        "scanned_at": finding.scanned_at.isoformat() if finding.scanned_at else None,
    }


class CloudSecurityService(BaseService):
    """Scans connected cloud accounts for the current organization."""

    async def get_connection(self, connection_id: UUID) -> IntegrationConnection:
        """
        Raises:
            ConnectionNotFoundError: If the connection is not in the organization
        """
        result = await self.session.execute(
            select(IntegrationConnection).where(
                IntegrationConnection.id == connection_id,
                IntegrationConnection.organization_id == self.organization_id,
            )
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            raise ConnectionNotFoundError(str(connection_id))
        return connection

    # ── Synchronous scan ────────────────────────────────────────────────

    async def scan(self, connection_id: UUID) -> dict[str, Any]:
        """
        Scan one connection and replace its stored findings.

        Provider and scanner failures are reported in the result rather
        than raised.

        Returns:
            ``{success, provider, findings, scanned_at, error?}``

        Raises:
            ConnectionNotFoundError: If the connection is not in the organization
        """
        connection = await self.get_connection(connection_id)
        provider = connection.provider
        scanned_at = datetime.now(timezone.utc)

        try:
            scanner = get_scanner(provider)
            findings = await scanner.scan(connection.credentials or {}, connection.variables or {})
        except Exception as e:  # reported to the caller as a failed scan
            self._log_error(f"Cloud scan failed for {provider}: {e}", connection_id=str(connection_id))
            return {
                "success": False,
                "provider": provider,
                "findings": [],
                "scanned_at": scanned_at.isoformat(),
                "error": getattr(e, "message", None) or str(e),
            }

        await self.session.execute(
            delete(CloudFinding).where(CloudFinding.connection_id == connection.id)
        )
        self.session.add_all(
            CloudFinding(
                organization_id=self.organization_id,
                connection_id=connection.id,
                check_id=f.check_id,
                title=f.title,
                description=f.description,
                severity=f.severity,
                status=f.status,
                resource_id=f.resource_id,
                remediation=f.remediation,
                scanned_at=scanned_at,
            )
            for f in findings
        )
        connection.last_scanned_at = scanned_at
        await self.flush()

        failed = sum(1 for f in findings if not f.passed)
        self._log_info(
            f"Cloud scan finished for {provider}: {len(findings)} findings, {failed} failing",
            connection_id=str(connection_id),
        )
        return {
            "success": True,
            "provider": provider,
            "findings": [f.to_dict() for f in findings],
            "scanned_at": scanned_at.isoformat(),
        }

    # ── Background runs ─────────────────────────────────────────────────

    async def trigger_scan(self, connection_id: UUID, runner: "ScanRunner") -> dict[str, str]:
        """
        Queue a background scan run and start it.

        Raises:
            ConnectionNotFoundError: If the connection is not in the organization
            UnsupportedProviderError: If no scanner handles the provider
        """
        connection = await self.get_connection(connection_id)
        get_scanner(connection.provider)

        async with self.transaction():
            run = CloudScanRun(
                organization_id=self.organization_id,
                connection_id=connection.id,
                status="queued",
                triggered_by_id=self.member_id,
            )
            self.session.add(run)

        runner.start(run.id, self.organization_id)
        self._log_info(f"Cloud scan run queued for {connection.provider}", run_id=str(run.id))
        return {"run_id": str(run.id)}

    async def _get_run(self, run_id: UUID, connection_id: UUID) -> CloudScanRun:
        connection = await self.get_connection(connection_id)
        result = await self.session.execute(
            select(CloudScanRun)
            .where(
                CloudScanRun.id == run_id,
                CloudScanRun.connection_id == connection.id,
                CloudScanRun.organization_id == self.organization_id,
            )
            .execution_options(populate_existing=True)
        )
        run = result.scalar_one_or_none()
        if run is None:
            raise NotFoundError(message="Run not found", resource_type="CloudScanRun", resource_id=str(run_id))
        return run

    async def get_run_status(self, run_id: UUID, connection_id: UUID) -> dict[str, Any]:
        """
        Raises:
            ConnectionNotFoundError: If the connection is not in the organization
            NotFoundError: If the run does not belong to the connection
        """
        return serialize_run(await self._get_run(run_id, connection_id))

    async def cancel_run(
        self,
        run_id: UUID,
        connection_id: UUID,
        runner: "ScanRunner",
    ) -> dict[str, Any]:
        """
        Cancel a queued or running scan.

        Raises:
            ConflictError: If the run already finished
        """
        run = await self._get_run(run_id, connection_id)
        if run.status in TERMINAL_RUN_STATUSES:
            raise ConflictError(f"Run is already {run.status}", conflicting_field="status")

        await runner.cancel(run.id)
        run = await self._get_run(run_id, connection_id)
        if run.status not in TERMINAL_RUN_STATUSES:
            # No task here (lost on restart) or canceled before it started
            run.status = "canceled"
            run.error = "Scan run was canceled"
            run.completed_at = datetime.now(timezone.utc)
            await self.flush()

        self._log_info("Cloud scan run canceled", run_id=str(run_id))
        return serialize_run(run)

    async def list_runs(self, connection_id: UUID, limit: int = 20) -> list[CloudScanRun]:
        connection = await self.get_connection(connection_id)
        result = await self.session.execute(
            select(CloudScanRun)
            .where(CloudScanRun.connection_id == connection.id)
            .order_by(CloudScanRun.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # ── Findings ────────────────────────────────────────────────────────

    async def list_findings(
        self,
        connection_id: UUID,
        status: Optional[str] = None,
    ) -> list[CloudFinding]:
        """Stored findings of the last successful scan."""
        connection = await self.get_connection(connection_id)
        query = select(CloudFinding).where(CloudFinding.connection_id == connection.id)
        if status:
            query = query.where(CloudFinding.status == status)
        result = await self.session.execute(
            query.order_by(CloudFinding.status, CloudFinding.check_id, CloudFinding.resource_id)
        )
        return list(result.scalars().all())
