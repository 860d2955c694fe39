"""Tests for background scan run execution."""

import asyncio
from uuid import uuid4

import pytest

from complyhub.server.config import CloudSecuritySettings, Settings
from complyhub.server.models import CloudScanRun
from complyhub.server.scan_runner import ScanRunner
from complyhub.server.services.cloud_security_service import CloudSecurityService


async def queue_run(session_factory, organization_id, connection_id):
    async with session_factory() as session:
        run = CloudScanRun(organization_id=organization_id, connection_id=connection_id, status="queued")
        session.add(run)
        await session.commit()
        return run.id


async def load_run(session_factory, run_id) -> CloudScanRun:
    async with session_factory() as session:
        return await session.get(CloudScanRun, run_id)


async def wait_for_status(session_factory, run_id, status, attempts=200):
    for _ in range(attempts):
        if (await load_run(session_factory, run_id)).status == status:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"run never reached {status}")


@pytest.fixture
async def runner(session_factory):
    runner = ScanRunner(session_factory, Settings())
    yield runner
    await runner.stop_all()


class TestLifecycle:
    async def test_completed(self, runner, session_factory, test_org, cloud_connection):
        run_id = await queue_run(session_factory, test_org.id, cloud_connection)

        runner.start(run_id, test_org.id)
        await runner.join(run_id)

        run = await load_run(session_factory, run_id)
        assert run.status == "completed"
        assert run.started_at is not None
        assert run.completed_at is not None
        assert run.output["success"] is True
        assert run.output["findings_count"] == 2
        assert run.output["provider"] == "fake-cloud"

    async def test_failed_scan_still_completes(
        self, runner, session_factory, test_org, cloud_connection, fake_scanner
    ):
        fake_scanner.error = RuntimeError("credentials rejected")
        run_id = await queue_run(session_factory, test_org.id, cloud_connection)

        runner.start(run_id, test_org.id)
        await runner.join(run_id)

        run = await load_run(session_factory, run_id)
        assert run.status == "completed"
        assert run.output["success"] is False
        assert run.output["error"] == "credentials rejected"

    async def test_unexpected_error_fails_run(
        self, runner, session_factory, test_org, cloud_connection, monkeypatch
    ):
        async def broken_scan(self, connection_id):
            raise RuntimeError("database went away")

        monkeypatch.setattr(CloudSecurityService, "scan", broken_scan)
        run_id = await queue_run(session_factory, test_org.id, cloud_connection)

        runner.start(run_id, test_org.id)
        await runner.join(run_id)

        run = await load_run(session_factory, run_id)
        assert run.status == "failed"
        assert run.error == "RuntimeError: database went away"

    async def test_timeout_fails_run(self, session_factory, test_org, cloud_connection, fake_scanner):
        fake_scanner.delay = 5
        runner = ScanRunner(
            session_factory, Settings(cloud_security=CloudSecuritySettings(run_timeout_seconds=0))
        )
        run_id = await queue_run(session_factory, test_org.id, cloud_connection)

        runner.start(run_id, test_org.id)
        await runner.join(run_id)

        run = await load_run(session_factory, run_id)
        assert run.status == "failed"
        assert run.error == "Scan timed out after 0 seconds"

    async def test_missing_run_is_ignored(self, runner, test_org):
        run_id = uuid4()
        runner.start(run_id, test_org.id)
        await runner.join(run_id)
        assert runner.active_runs == 0


class TestCancellation:
    async def test_cancel_running(self, runner, session_factory, test_org, cloud_connection, fake_scanner):
        fake_scanner.delay = 30
        run_id = await queue_run(session_factory, test_org.id, cloud_connection)

        runner.start(run_id, test_org.id)
        await wait_for_status(session_factory, run_id, "running")
        assert runner.active_runs == 1

        assert await runner.cancel(run_id) is True

        run = await load_run(session_factory, run_id)
        assert run.status == "canceled"
        assert run.error == "Scan run was canceled"
        assert runner.active_runs == 0

    async def test_cancel_unknown(self, runner):
        assert await runner.cancel(uuid4()) is False

    async def test_canceled_elsewhere_stays_canceled(
        self, runner, session_factory, test_org, cloud_connection, fake_scanner
    ):
        fake_scanner.delay = 0.2
        run_id = await queue_run(session_factory, test_org.id, cloud_connection)

        runner.start(run_id, test_org.id)
        await wait_for_status(session_factory, run_id, "running")
        async with session_factory() as session:
            run = await session.get(CloudScanRun, run_id)
            run.status = "canceled"
            run.error = "Scan run was canceled"
            await session.commit()
        await runner.join(run_id)

        run = await load_run(session_factory, run_id)
        assert run.status == "canceled"
        assert run.error == "Scan run was canceled"
        assert run.output is None

    async def test_stop_all(self, runner, session_factory, test_org, cloud_connection, fake_scanner):
        fake_scanner.delay = 30
        run_id = await queue_run(session_factory, test_org.id, cloud_connection)
        runner.start(run_id, test_org.id)
        await wait_for_status(session_factory, run_id, "running")

        await runner.stop_all()

        assert (await load_run(session_factory, run_id)).status == "canceled"
        assert runner.active_runs == 0
