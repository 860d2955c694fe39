"""Tests for the async API client."""

import json
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import httpx
import pytest

from complyhub.client import ComplyHubClient, PlatformScanOutcome
from complyhub.client.client import error_message

ORG_ID = str(uuid4())
CONNECTION_ID = str(uuid4())
RUN_ID = str(uuid4())


def make_client(handler, **kwargs) -> ComplyHubClient:
    return ComplyHubClient(
        "http://complyhub.test/",
        organization_id=ORG_ID,
        user_id="user-admin",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def scan_handler(statuses, trigger_status=200):
    """Answers the trigger call, then one run status per poll."""
    polls = iter(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == f"/api/v1/cloud-security/trigger/{CONNECTION_ID}":
            if trigger_status != 200:
                return httpx.Response(trigger_status, json={"error": "BAD_REQUEST", "message": "Connection not found"})
            return httpx.Response(200, json={"run_id": RUN_ID})
        assert request.url.path == f"/api/v1/cloud-security/runs/{RUN_ID}"
        assert request.url.params["connectionId"] == CONNECTION_ID
        poll = next(polls)
        if isinstance(poll, httpx.Response):
            return poll
        return httpx.Response(200, json=poll)

    return handler


def run_status(status, success=False, output=None):
    return {
        "run_id": RUN_ID,
        "status": status,
        "completed": status in ("completed", "failed", "canceled"),
        "success": success,
        "output": output,
        "error": None,
    }


class TestRequests:
    async def test_identity_headers_and_base_url(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["org"] = request.headers["X-Organization-Id"]
            seen["user"] = request.headers["X-User-Id"]
            return httpx.Response(200, json={"items": [], "total": 0})

        async with make_client(handler) as client:
            await client.list_policies(search="privacy", status="draft")

        assert seen["url"].startswith("http://complyhub.test/api/v1/policies?")
        assert "search=privacy" in seen["url"]
        assert seen["org"] == ORG_ID
        assert seen["user"] == "user-admin"

    async def test_bulk_upload_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        files = [{"file_name": "a.pdf", "file_type": "application/pdf", "file_data": "JVBERg=="}]
        async with make_client(handler) as client:
            await client.bulk_upload_policies(files)

        assert seen["body"] == {"files": files}

    async def test_delete_returns_none(self):
        async with make_client(lambda request: httpx.Response(204)) as client:
            assert await client.delete_connection(CONNECTION_ID) is None

    async def test_health_is_unversioned(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/health"
            return httpx.Response(200, json={"status": "healthy", "version": "0.1.0"})

        async with make_client(handler) as client:
            assert (await client.health())["status"] == "healthy"


class TestRetry:
    async def test_retries_gateway_errors(self):
        responses = iter([httpx.Response(503), httpx.Response(502), httpx.Response(200, json=["it"])])

        with patch("complyhub.client.client.asyncio.sleep", new=AsyncMock()) as sleep:
            async with make_client(lambda request: next(responses)) as client:
                assert await client.list_departments() == ["it"]

        assert [c.args[0] for c in sleep.await_args_list] == [1, 2]

    async def test_retries_transport_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with patch("complyhub.client.client.asyncio.sleep", new=AsyncMock()):
            async with make_client(handler, max_retries=2) as client:
                with pytest.raises(httpx.ConnectError):
                    await client.list_departments()

        assert len(calls) == 3

    async def test_client_errors_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, json={"message": "Policy not found"})

        async with make_client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_policy(uuid4())

        assert len(calls) == 1


class TestErrorMessage:
    def test_json_message(self):
        request = httpx.Request("GET", "http://x")
        response = httpx.Response(409, json={"message": "Run is already completed"}, request=request)
        exc = httpx.HTTPStatusError("conflict", request=request, response=response)
        assert error_message(exc) == "Run is already completed"

    def test_status_code_fallback(self):
        request = httpx.Request("GET", "http://x")
        response = httpx.Response(500, content=b"<html>", request=request)
        exc = httpx.HTTPStatusError("boom", request=request, response=response)
        assert error_message(exc) == "HTTP 500"


class TestRunPlatformScan:
    async def test_success(self):
        statuses = [
            run_status("queued"),
            run_status("running"),
            run_status(
                "completed",
                success=True,
                output={"success": True, "findings_count": 5, "provider": "aws", "scanned_at": "2026-03-01T00:00:00+00:00"},
            ),
        ]
        seen = []

        async with make_client(scan_handler(statuses)) as client:
            outcome = await client.run_platform_scan(
                CONNECTION_ID, poll_interval=0, on_poll=lambda attempt, status: seen.append(attempt)
            )

        assert outcome == PlatformScanOutcome(
            success=True, findings_count=5, provider="aws", scanned_at="2026-03-01T00:00:00+00:00"
        )
        assert seen == [1, 2, 3]

    async def test_trigger_rejected(self):
        async with make_client(scan_handler([], trigger_status=400)) as client:
            outcome = await client.run_platform_scan(CONNECTION_ID, poll_interval=0)

        assert outcome.to_dict() == {"success": False, "error": "Connection not found"}

    async def test_trigger_without_run_id(self):
        async with make_client(lambda request: httpx.Response(200, json={})) as client:
            outcome = await client.run_platform_scan(CONNECTION_ID, poll_interval=0)

        assert outcome.error == "Failed to trigger scan"

    async def test_run_canceled(self):
        async with make_client(scan_handler([run_status("canceled")])) as client:
            outcome = await client.run_platform_scan(CONNECTION_ID, poll_interval=0)

        assert outcome.error == "Scan task failed or was canceled"

    async def test_scan_reported_failure(self):
        statuses = [run_status("completed", success=True, output={"success": False, "error": "AWS scan failed"})]
        async with make_client(scan_handler(statuses)) as client:
            outcome = await client.run_platform_scan(CONNECTION_ID, poll_interval=0)

        assert outcome.success is False
        assert outcome.error == "AWS scan failed"

    async def test_scan_failure_without_message(self):
        statuses = [run_status("completed", success=True, output={"success": False})]
        async with make_client(scan_handler(statuses)) as client:
            outcome = await client.run_platform_scan(CONNECTION_ID, poll_interval=0)

        assert outcome.error == "Scan completed with errors"

    async def test_gives_up(self):
        async with make_client(scan_handler([run_status("running")] * 3)) as client:
            outcome = await client.run_platform_scan(CONNECTION_ID, max_attempts=3, poll_interval=0)

        assert outcome.error == "Scan is taking longer than expected. Results will appear when complete."

    async def test_status_error(self):
        failing = httpx.Response(404, json={"error": "NOT_FOUND", "message": "Run not found"})
        async with make_client(scan_handler([run_status("running"), failing])) as client:
            outcome = await client.run_platform_scan(CONNECTION_ID, poll_interval=0)

        assert outcome.to_dict() == {"success": False, "error": "Run not found"}

    async def test_status_not_json(self):
        garbled = httpx.Response(200, content=b"<html>gateway</html>")
        async with make_client(scan_handler([garbled])) as client:
            outcome = await client.run_platform_scan(CONNECTION_ID, poll_interval=0)

        assert outcome.success is False
        assert outcome.error


class TestPlatformScanOutcome:
    def test_to_dict_drops_none(self):
        assert PlatformScanOutcome(success=True, findings_count=0).to_dict() == {
            "success": True,
            "findings_count": 0,
        }
