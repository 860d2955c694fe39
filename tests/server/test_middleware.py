"""Tests for HTTP middleware and rate limit keys."""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from complyhub.server.config import SecuritySettings, get_settings
from complyhub.server.logging import get_request_id
from complyhub.server.middleware.rate_limit import get_client_ip, rate_limit_key
from complyhub.server.middleware.stack import (
    add_request_id,
    add_security_headers,
    body_limit_mb,
    limit_request_size,
)


def build_app() -> FastAPI:
    app = FastAPI()

    @app.api_route("/echo", methods=["GET", "POST"])
    async def echo():
        return {"request_id": get_request_id()}

    @app.post("/api/v1/policies/bulk-upload")
    async def upload():
        return {"ok": True}

    register = app.middleware("http")
    register(limit_request_size)
    register(add_security_headers)
    register(add_request_id)
    return app


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as ac:
        yield ac


def fake_request(headers: dict[str, str], host: str | None = "10.0.0.9"):
    request = MagicMock()
    request.headers = headers
    request.client = MagicMock(host=host) if host else None
    return request


class TestRequestId:
    async def test_generated_when_missing(self, client):
        resp = await client.get("/echo")
        request_id = resp.headers["X-Request-ID"]
        assert len(request_id) == 8
        assert resp.json()["request_id"] == request_id

    async def test_client_value_sanitized(self, client):
        resp = await client.get("/echo", headers={"X-Request-ID": "abc<script>-1_2"})
        assert resp.headers["X-Request-ID"] == "abcscript-1_2"

    async def test_truncated_to_64(self, client):
        resp = await client.get("/echo", headers={"X-Request-ID": "a" * 100})
        assert resp.headers["X-Request-ID"] == "a" * 64

    async def test_only_unsafe_characters_replaced_with_new_id(self, client):
        resp = await client.get("/echo", headers={"X-Request-ID": "<>!!"})
        assert len(resp.headers["X-Request-ID"]) == 8


class TestSecurityHeaders:
    async def test_headers_present(self, client):
        resp = await client.get("/echo")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" not in resp.headers

    async def test_hsts_in_production(self, client, monkeypatch):
        monkeypatch.setattr(get_settings().server, "environment", "production")
        resp = await client.get("/echo")
        assert resp.headers["Strict-Transport-Security"].startswith("max-age=31536000")


class TestRequestSize:
    async def test_oversized_body_rejected(self, client, monkeypatch):
        monkeypatch.setattr(get_settings().security, "max_request_size_mb", 1)
        resp = await client.post("/echo", content=b"x" * (1024 * 1024 + 1))

        assert resp.status_code == 413
        assert resp.json()["error"] == "REQUEST_TOO_LARGE"
        assert resp.json()["details"] == {"max_size_mb": 1}

    async def test_small_body_allowed(self, client):
        resp = await client.post("/echo", content=b"{}")
        assert resp.status_code == 200

    async def test_upload_endpoint_uses_upload_limit(self, client, monkeypatch):
        security = get_settings().security
        monkeypatch.setattr(security, "max_request_size_mb", 1)
        monkeypatch.setattr(security, "max_upload_size_mb", 3)
        body = b"x" * (2 * 1024 * 1024)

        assert (await client.post("/echo", content=body)).status_code == 413
        assert (await client.post("/api/v1/policies/bulk-upload", content=body)).status_code == 200

    async def test_upload_endpoint_over_upload_limit(self, client, monkeypatch):
        monkeypatch.setattr(get_settings().security, "max_upload_size_mb", 1)
        resp = await client.post("/api/v1/policies/bulk-upload", content=b"x" * (1024 * 1024 + 1))

        assert resp.status_code == 413
        assert resp.json()["message"] == "Request body exceeds 1MB limit"


class TestBodyLimit:
    @pytest.mark.parametrize(
        "path",
        [
            "/api/v1/policies/bulk-upload",
            "/api/v1/evidence-forms/uploads",
            "/api/v1/evidence-forms/network-diagram/upload-submission/",
        ],
    )
    def test_upload_paths(self, path):
        security = SecuritySettings(max_request_size_mb=5, max_upload_size_mb=50)
        assert body_limit_mb(path, security) == 50

    @pytest.mark.parametrize("path", ["/api/v1/policies", "/api/v1/policies/bulk-delete", "/health"])
    def test_other_paths(self, path):
        security = SecuritySettings(max_request_size_mb=5, max_upload_size_mb=50)
        assert body_limit_mb(path, security) == 5


class TestRateLimitKey:
    def test_organization_header(self):
        assert rate_limit_key(fake_request({"X-Organization-Id": "org-1"})) == "org:org-1"

    def test_falls_back_to_ip(self):
        assert rate_limit_key(fake_request({})) == "ip:10.0.0.9"


class TestClientIp:
    def test_forwarded_for_first_hop(self):
        request = fake_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})
        assert get_client_ip(request) == "203.0.113.5"

    def test_real_ip(self):
        assert get_client_ip(fake_request({"X-Real-IP": " 198.51.100.7 "})) == "198.51.100.7"

    def test_no_client(self):
        assert get_client_ip(fake_request({}, host=None)) == "127.0.0.1"
