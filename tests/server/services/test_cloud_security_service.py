"""Tests for CloudSecurityService against the test database."""

from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from complyhub.exceptions import (
    ConflictError,
    ConnectionNotFoundError,
    NotFoundError,
    ScanError,
    UnsupportedProviderError,
)
from complyhub.server.models import CloudScanRun, IntegrationConnection
from complyhub.server.scan_runner import ScanRunner
from complyhub.server.services.cloud_security_service import (
    CloudSecurityService,
    scan_output,
    serialize_finding,
    serialize_run,
)


@pytest.fixture
def service(test_db, admin_context, settings):
    return CloudSecurityService(test_db, admin_context, settings)


@pytest.fixture
async def runner(session_factory, settings):
    runner = ScanRunner(session_factory, settings)
    yield runner
    await runner.stop_all()


class TestScan:
    async def test_stores_findings(self, service, cloud_connection, fake_scanner, test_db):
        result = await service.scan(cloud_connection)

        assert result["success"] is True
        assert result["provider"] == "fake-cloud"
        assert [f["check_id"] for f in result["findings"]] == ["fake-mfa", "fake-bucket"]
        assert fake_scanner.calls == [({"token": "secret"}, {"region": "moon-1"})]

        connection = await test_db.get(IntegrationConnection, cloud_connection)
        assert connection.last_scanned_at is not None

    async def test_rescan_replaces_findings(self, service, cloud_connection):
        await service.scan(cloud_connection)
        await service.scan(cloud_connection)

        assert len(await service.list_findings(cloud_connection)) == 2

    async def test_scanner_error_reported(self, service, cloud_connection, fake_scanner):
        fake_scanner.error = ScanError("Fake cloud unreachable")

        result = await service.scan(cloud_connection)

        assert result["success"] is False
        assert result["error"] == "Fake cloud unreachable"
        assert result["findings"] == []
        assert await service.list_findings(cloud_connection) == []

    async def test_unknown_connection(self, service):
        with pytest.raises(ConnectionNotFoundError):
            await service.scan(uuid4())

    async def test_other_organization(self, test_db, settings, cloud_connection):
        from complyhub.server.models import Organization
        from complyhub.server.services.base import OrgContext

        other = Organization(name="Other Org")
        test_db.add(other)
        await test_db.commit()
        service = CloudSecurityService(test_db, OrgContext(organization_id=other.id), settings)

        with pytest.raises(ConnectionNotFoundError):
            await service.scan(cloud_connection)


class TestFindings:
    async def test_filter_by_status(self, service, cloud_connection):
        await service.scan(cloud_connection)

        failed = await service.list_findings(cloud_connection, status="failed")

        assert len(failed) == 1
        data = serialize_finding(failed[0])
        assert data["check_id"] == "fake-bucket"
        assert data["resource_id"] == "public-assets"
        assert data["remediation"] == "Block public access."


class TestTriggerScan:
    async def test_run_completes(self, service, runner, cloud_connection):
        result = await service.trigger_scan(cloud_connection, runner)
        run_id = result["run_id"]

        await runner.join(UUID(run_id))
        status = await service.get_run_status(UUID(run_id), cloud_connection)

        assert status["status"] == "completed"
        assert status["completed"] is True
        assert status["success"] is True
        assert status["output"]["findings_count"] == 2
        assert status["error"] is None

    async def test_unsupported_provider(self, service, runner, test_db, test_org):
        connection = IntegrationConnection(
            organization_id=test_org.id, provider="jumpcloud", name="Directory"
        )
        test_db.add(connection)
        await test_db.commit()

        with pytest.raises(UnsupportedProviderError):
            await service.trigger_scan(connection.id, runner)

        runs = await test_db.execute(select(CloudScanRun))
        assert runs.scalars().all() == []

    async def test_run_of_other_connection(self, service, cloud_connection):
        with pytest.raises(NotFoundError, match="Run not found"):
            await service.get_run_status(uuid4(), cloud_connection)


class TestCancelRun:
    async def test_cancel_in_flight(self, service, runner, cloud_connection, fake_scanner):
        fake_scanner.delay = 30
        run_id = UUID((await service.trigger_scan(cloud_connection, runner))["run_id"])

        status = await service.cancel_run(run_id, cloud_connection, runner)

        assert status["status"] == "canceled"
        assert status["completed"] is True
        assert status["success"] is False
        assert runner.active_runs == 0

    async def test_cancel_without_task(self, service, runner, test_db, test_org, cloud_connection):
        run = CloudScanRun(organization_id=test_org.id, connection_id=cloud_connection, status="running")
        test_db.add(run)
        await test_db.commit()

        status = await service.cancel_run(run.id, cloud_connection, runner)

        assert status["status"] == "canceled"

    async def test_cancel_finished_run(self, service, runner, cloud_connection):
        run_id = UUID((await service.trigger_scan(cloud_connection, runner))["run_id"])
        await runner.join(run_id)

        with pytest.raises(ConflictError, match="Run is already completed"):
            await service.cancel_run(run_id, cloud_connection, runner)


class TestListRuns:
    async def test_newest_first(self, service, test_db, test_org, cloud_connection):
        from datetime import datetime, timedelta, timezone

        now = datetime.now(timezone.utc)
        for minutes, status in [(2, "completed"), (1, "failed")]:
            test_db.add(
                CloudScanRun(
                    organization_id=test_org.id,
                    connection_id=cloud_connection,
                    status=status,
                    created_at=now - timedelta(minutes=minutes),
                )
            )
        await test_db.commit()

        runs = await service.list_runs(cloud_connection)

        assert [r.status for r in runs] == ["failed", "completed"]


class TestSerializers:
    def test_scan_output(self):
        output = scan_output(
            {"success": False, "provider": "aws", "findings": [], "scanned_at": "t", "error": "denied"}
        )
        assert output == {
            "success": False,
            "findings_count": 0,
            "provider": "aws",
            "scanned_at": "t",
            "error": "denied",
        }

    @pytest.mark.parametrize(
        "status,completed,success",
        [
            ("queued", False, False),
            ("running", False, False),
            ("completed", True, True),
            ("failed", True, False),
            ("canceled", True, False),
        ],
    )
    def test_serialize_run(self, status, completed, success):
        run = CloudScanRun(id=uuid4(), status=status)
        data = serialize_run(run)
        assert data["completed"] is completed
        assert data["success"] is success
