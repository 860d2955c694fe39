"""
Python SDK client for the ComplyHub API.

Provides a persistent async HTTP client with:
- Connection pooling via a single ``httpx.AsyncClient``
- Automatic retry with exponential backoff on transient failures
- Identity headers for the calling organization member
- ``run_platform_scan``: trigger a background cloud scan and poll it

Example::

    async with ComplyHubClient("http://localhost:8000", organization_id=org, user_id=user) as client:
        policies = await client.list_policies(search="privacy")
        outcome = await client.run_platform_scan(connection_id)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional
from uuid import UUID

import httpx
from httpx import HTTPStatusError, TransportError

logger = logging.getLogger(__name__)

# HTTP status codes that are safe to retry
_RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})

MAX_POLL_ATTEMPTS = 150  # 5 minutes at the default interval
POLL_INTERVAL_SECONDS = 2.0


@dataclass
class PlatformScanOutcome:
    """Result of ``run_platform_scan``."""

    success: bool
    error: Optional[str] = None
    findings_count: Optional[int] = None
    provider: Optional[str] = None
    scanned_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def error_message(exc: Exception) -> str:
    """Human-readable message for a failed request."""
    if isinstance(exc, HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {exc.response.status_code}"
    return str(exc) or type(exc).__name__


class ComplyHubClient:
    """Async Python client for the ComplyHub API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        organization_id: UUID | str | None = None,
        user_id: UUID | str | None = None,
        api_version: str = "v1",
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.organization_id = str(organization_id) if organization_id else None
        self.user_id = str(user_id) if user_id else None
        self.api_version = api_version
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # Connection lifecycle
    @property
    def api_base(self) -> str:
        return f"{self.base_url}/api/{self.api_version}"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.organization_id:
            headers["X-Organization-Id"] = self.organization_id
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_base,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    # Core request with retry
    async def _request(
        self,
        method: str,
        url: str,
        *,
        max_retries: int | None = None,
        **kwargs,
    ) -> httpx.Response:
        """Make a request with automatic retry on transient failures."""
        client = await self._get_client()
        retries = max_retries if max_retries is not None else self.max_retries
        last_error: Exception | None = None

        for attempt in range(retries + 1):
            try:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except TransportError as e:
                last_error = e
                if attempt < retries:
                    delay = 2 ** attempt
                    logger.warning(
                        "Transport error on %s %s (attempt %d/%d), retrying in %ds: %s",
                        method, url, attempt + 1, retries + 1, delay, e,
                    )
                    await asyncio.sleep(delay)
            except HTTPStatusError as e:
                if e.response.status_code in _RETRYABLE_STATUS_CODES and attempt < retries:
                    last_error = e
                    delay = 2 ** attempt
                    logger.warning(
                        "HTTP %d on %s %s (attempt %d/%d), retrying in %ds",
                        e.response.status_code, method, url,
                        attempt + 1, retries + 1, delay,
                    )
                    await asyncio.sleep(delay)
                else:
                    raise

        raise last_error  # type: ignore[misc]

    async def _json(self, method: str, url: str, **kwargs) -> Any:
        """Shorthand: make request and return parsed JSON."""
        resp = await self._request(method, url, **kwargs)
        if resp.status_code == 204:
            return None
        return resp.json()

    # Health
    async def health(self) -> dict:
        """GET /health -- basic health check (root-level, not versioned)."""
        client = await self._get_client()
        resp = await client.get(f"{self.base_url}/health")
        resp.raise_for_status()
        return resp.json()

    # Policies
    async def list_policies(
        self,
        search: str | None = None,
        status: str | None = None,
        department: str | None = None,
        sort: str = "updated_at",
        order: str = "desc",
        page: int = 1,
        page_size: int = 50,
    ) -> dict:
        """GET /policies"""
        params: dict[str, Any] = {"sort": sort, "order": order, "page": page, "page_size": page_size}
        if search:
            params["search"] = search
        if status:
            params["status"] = status
        if department:
            params["department"] = department
        return await self._json("GET", "/policies", params=params)

    async def list_departments(self) -> list[str]:
        """GET /policies/departments"""
        return await self._json("GET", "/policies/departments")

    async def get_policy(self, policy_id: UUID | str) -> dict:
        """GET /policies/{policy_id}"""
        return await self._json("GET", f"/policies/{policy_id}")

    async def bulk_upload_policies(self, files: list[dict[str, str]]) -> dict:
        """POST /policies/bulk-upload

        ``files`` entries hold ``file_name``, ``file_type`` and base64 ``file_data``.
        """
        return await self._json("POST", "/policies/bulk-upload", json={"files": files})

    async def bulk_delete_policies(self, policy_ids: list[UUID | str]) -> dict:
        """POST /policies/bulk-delete"""
        return await self._json(
            "POST", "/policies/bulk-delete",
            json={"policy_ids": [str(p) for p in policy_ids]},
        )

    async def download_all_policies(self) -> dict:
        """GET /policies/download-all"""
        return await self._json("GET", "/policies/download-all")

    # Evidence forms
    async def list_forms(self, include_hidden: bool = False) -> list[dict]:
        """GET /evidence-forms"""
        return await self._json(
            "GET", "/evidence-forms", params={"include_hidden": str(include_hidden).lower()},
        )

    async def get_form_statuses(self) -> dict:
        """GET /evidence-forms/statuses"""
        return await self._json("GET", "/evidence-forms/statuses")

    async def get_form(self, form_type: str, search: str | None = None) -> dict:
        """GET /evidence-forms/{form_type}"""
        params = {"search": search} if search else None
        return await self._json("GET", f"/evidence-forms/{form_type}", params=params)

    async def submit_form(self, form_type: str, data: dict[str, Any]) -> dict:
        """POST /evidence-forms/{form_type}/submissions"""
        return await self._json("POST", f"/evidence-forms/{form_type}/submissions", json=data)

    async def upload_form_file(
        self, form_type: str, file_name: str, file_type: str, file_data: str,
    ) -> dict:
        """POST /evidence-forms/uploads"""
        return await self._json(
            "POST", "/evidence-forms/uploads",
            json={
                "formType": form_type,
                "fileName": file_name,
                "fileType": file_type,
                "fileData": file_data,
            },
        )

    async def review_access_request(self, submission_id: UUID | str, status: str) -> dict:
        """PATCH /evidence-forms/access-request/submissions/{submission_id}/review"""
        return await self._json(
            "PATCH", f"/evidence-forms/access-request/submissions/{submission_id}/review",
            json={"status": status},
        )

    async def export_form_csv(self, form_type: str) -> str:
        """GET /evidence-forms/{form_type}/export.csv"""
        resp = await self._request("GET", f"/evidence-forms/{form_type}/export.csv")
        return resp.text

    # Integrations
    async def list_manifests(self) -> list[dict]:
        """GET /integrations/manifests"""
        return await self._json("GET", "/integrations/manifests")

    async def list_connections(self, provider: str | None = None) -> list[dict]:
        """GET /integrations/connections"""
        params = {"provider": provider} if provider else None
        return await self._json("GET", "/integrations/connections", params=params)

    async def create_connection(self, provider: str, name: str, **kwargs) -> dict:
        """POST /integrations/connections"""
        return await self._json(
            "POST", "/integrations/connections",
            json={"provider": provider, "name": name, **kwargs},
        )

    async def delete_connection(self, connection_id: UUID | str) -> None:
        """DELETE /integrations/connections/{connection_id}"""
        await self._request("DELETE", f"/integrations/connections/{connection_id}")

    # Cloud security
    async def scan_connection(self, connection_id: UUID | str) -> dict:
        """POST /cloud-security/scan/{connection_id}"""
        return await self._json("POST", f"/cloud-security/scan/{connection_id}", max_retries=0)

    async def trigger_scan(self, connection_id: UUID | str) -> dict:
        """POST /cloud-security/trigger/{connection_id}"""
        return await self._json("POST", f"/cloud-security/trigger/{connection_id}", max_retries=0)

    async def get_run_status(self, run_id: str, connection_id: UUID | str) -> dict:
        """GET /cloud-security/runs/{run_id}"""
        return await self._json(
            "GET", f"/cloud-security/runs/{run_id}",
            params={"connectionId": str(connection_id)},
        )

    async def cancel_run(self, run_id: str, connection_id: UUID | str) -> dict:
        """POST /cloud-security/runs/{run_id}/cancel"""
        return await self._json(
            "POST", f"/cloud-security/runs/{run_id}/cancel",
            params={"connectionId": str(connection_id)},
        )

    async def list_findings(self, connection_id: UUID | str, status: str | None = None) -> list[dict]:
        """GET /cloud-security/findings/{connection_id}"""
        params = {"status": status} if status else None
        return await self._json("GET", f"/cloud-security/findings/{connection_id}", params=params)

    async def run_platform_scan(
        self,
        connection_id: UUID | str,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        on_poll: Callable[[int, dict], None] | None = None,
    ) -> PlatformScanOutcome:
        """
        Trigger a background scan of a connection and wait for it.

        Polls the run status every ``poll_interval`` seconds, at most
        ``max_attempts`` times. Never raises for API failures; they come
        back as an unsuccessful outcome.

        Args:
            connection_id: Connection to scan
            max_attempts: Number of status polls before giving up
            poll_interval: Seconds between polls
            on_poll: Called with (attempt, status) after every poll
        """
        try:
            triggered = await self.trigger_scan(connection_id)
        except (HTTPStatusError, TransportError, ValueError) as e:
            logger.warning("Failed to trigger scan for %s: %s", connection_id, e)
            return PlatformScanOutcome(success=False, error=error_message(e))

        run_id = (triggered or {}).get("run_id")
        if not run_id:
            return PlatformScanOutcome(success=False, error="Failed to trigger scan")

        for attempt in range(max_attempts):
            try:
                status = await self.get_run_status(run_id, connection_id)
            except (HTTPStatusError, TransportError, ValueError) as e:
                logger.warning("Failed to poll scan run %s: %s", run_id, e)
                return PlatformScanOutcome(success=False, error=error_message(e))

            if on_poll is not None:
                on_poll(attempt + 1, status)

            if status.get("completed"):
                if not status.get("success"):
                    return PlatformScanOutcome(success=False, error="Scan task failed or was canceled")

                output = status.get("output") or {}
                if output.get("success") is False:
                    return PlatformScanOutcome(
                        success=False,
                        error=output.get("error") or "Scan completed with errors",
                    )
                return PlatformScanOutcome(
                    success=True,
                    findings_count=output.get("findings_count"),
                    provider=output.get("provider"),
                    scanned_at=output.get("scanned_at"),
                )

            await asyncio.sleep(poll_interval)

        return PlatformScanOutcome(
            success=False,
            error="Scan is taking longer than expected. Results will appear when complete.",
        )
