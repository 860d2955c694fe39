"""Rate limiting for expensive endpoints.

Bulk uploads and scan triggers are limited per organization (falling back
to the client IP when no organization header is present):

    @router.post("/bulk-upload")
    @limiter.limit(bulk_upload_limit)
    async def bulk_upload(request: Request, ...): ...
"""

from __future__ import annotations

from fastapi import Request
from slowapi import Limiter

from complyhub.server.config import get_settings


def get_client_ip(request: Request) -> str:
    """
    Real client IP address, honoring proxy headers.

    X-Forwarded-For can be spoofed by clients; the reverse proxy must
    overwrite it.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host
    return "127.0.0.1"


def rate_limit_key(request: Request) -> str:
    organization_id = request.headers.get("X-Organization-Id")
    if organization_id:
        return f"org:{organization_id}"
    return f"ip:{get_client_ip(request)}"


def bulk_upload_limit() -> str:
    return get_settings().rate_limit.bulk_upload_limit


def scan_trigger_limit() -> str:
    return get_settings().rate_limit.scan_trigger_limit


limiter = Limiter(
    key_func=rate_limit_key,
    enabled=get_settings().rate_limit.enabled,
)
