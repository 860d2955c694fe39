"""Background cloud-scan runs.

Provides ``ScanRunner``: starts one ``asyncio.Task`` per queued
``CloudScanRun`` and moves the run through its lifecycle::

    queued -> running -> completed | failed | canceled

A run whose scan returns ``success: false`` still ends ``completed``; its
output carries the error. ``failed`` means the run itself broke (timeout,
unexpected exception).

Usage inside ``lifespan``::

    runner = ScanRunner(get_session_factory(), settings)
    app.state.scan_runner = runner
    yield
    await runner.stop_all()
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from complyhub.server.config import Settings
from complyhub.server.metrics import record_scan_run
from complyhub.server.models import CloudScanRun
from complyhub.server.services.cloud_security_service import TERMINAL_RUN_STATUSES

logger = logging.getLogger(__name__)


class ScanRunner:
    """Registry of in-flight scan run tasks for this process."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._tasks: dict[UUID, asyncio.Task] = {}

    @property
    def active_runs(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    def start(self, run_id: UUID, organization_id: UUID) -> asyncio.Task:
        """Start executing a queued run."""
        task = asyncio.create_task(
            self._execute(run_id, organization_id),
            name=f"cloud-scan-{run_id}",
        )
        self._tasks[run_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(run_id, None))
        return task

    async def join(self, run_id: UUID) -> None:
        """Wait for a run's task to finish (no-op when it is not running here)."""
        task = self._tasks.get(run_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def cancel(self, run_id: UUID) -> bool:
        """Cancel a run's task and wait for it. False when no task exists."""
        task = self._tasks.get(run_id)
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return True

    async def stop_all(self, timeout: float = 10.0) -> None:
        """Cancel every in-flight run (their status becomes canceled)."""
        running = [t for t in self._tasks.values() if not t.done()]
        for task in running:
            task.cancel()
        if running:
            await asyncio.wait(running, timeout=timeout)
            logger.info("Canceled %d in-flight scan runs on shutdown", len(running))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _execute(self, run_id: UUID, organization_id: UUID) -> None:
        from complyhub.server.services.base import OrgContext
        from complyhub.server.services.cloud_security_service import (
            CloudSecurityService,
            scan_output,
        )

        timeout = self._settings.cloud_security.run_timeout_seconds
        started = time.perf_counter()
        provider = "unknown"

        try:
            async with self._session_factory() as session:
                run = await session.get(CloudScanRun, run_id)
                if run is None:
                    logger.warning("Scan run %s vanished before it started", run_id)
                    return
                run.status = "running"
                run.started_at = datetime.now(timezone.utc)
                await session.commit()

                service = CloudSecurityService(
                    session, OrgContext.system_context(organization_id), self._settings
                )
                connection = await service.get_connection(run.connection_id)
                provider = connection.provider

                result = await asyncio.wait_for(service.scan(run.connection_id), timeout=timeout)
                await session.commit()

            await self._finish(run_id, "completed", output=scan_output(result))
            record_scan_run(provider, "completed", time.perf_counter() - started)

        except asyncio.CancelledError:
            await self._finish(run_id, "canceled", error="Scan run was canceled")
            record_scan_run(provider, "canceled")
            raise
        except asyncio.TimeoutError:
            logger.error("Scan run %s timed out after %ss", run_id, timeout)
            await self._finish(run_id, "failed", error=f"Scan timed out after {timeout} seconds")
            record_scan_run(provider, "failed", time.perf_counter() - started)
        except Exception as exc:
            logger.exception("Scan run %s failed", run_id)
            await self._finish(run_id, "failed", error=f"{type(exc).__name__}: {exc}")
            record_scan_run(provider, "failed", time.perf_counter() - started)

    async def _finish(
        self,
        run_id: UUID,
        status: str,
        output: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        async with self._session_factory() as session:
            run = await session.get(CloudScanRun, run_id)
            if run is None:
                return
            if run.status in TERMINAL_RUN_STATUSES:
                # Canceled elsewhere, e.g. by a request served in another process
                logger.info("Scan run %s already %s; not marking %s", run_id, run.status, status)
                return
            run.status = status
            run.output = output
            run.error = error
            run.completed_at = datetime.now(timezone.utc)
            await session.commit()
        logger.info("Scan run %s %s", run_id, status)
