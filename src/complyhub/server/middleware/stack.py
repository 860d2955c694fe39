"""HTTP middleware for the ComplyHub API.

``register_middleware`` is the only thing ``app.py`` calls; the function
middlewares are module-level so tests can mount them on a bare app.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi.middleware import SlowAPIMiddleware

from complyhub.server.config import SecuritySettings, get_settings
from complyhub.server.logging import get_request_id, set_request_id
from complyhub.server.metrics import PrometheusMiddleware

logger = logging.getLogger(__name__)

_CallNext = Callable[[Request], Coroutine[Any, Any, Response]]

_UNSAFE_REQUEST_ID = re.compile(r"[^a-zA-Z0-9_-]")

# Endpoints whose JSON bodies carry base64 file data
UPLOAD_PATH_SUFFIXES = ("/policies/bulk-upload", "/evidence-forms/uploads", "/upload-submission")


def _new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def body_limit_mb(path: str, security: SecuritySettings) -> int:
    """Body size limit for a request path, in MB."""
    if path.rstrip("/").endswith(UPLOAD_PATH_SUFFIXES):
        return security.max_upload_size_mb
    return security.max_request_size_mb


async def add_request_id(request: Request, call_next: _CallNext) -> Response:
    """Use the caller's X-Request-ID (sanitized, max 64 chars) or a fresh one."""
    supplied = _UNSAFE_REQUEST_ID.sub("", request.headers.get("X-Request-ID", ""))[:64]
    request_id = supplied or _new_request_id()
    set_request_id(request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


async def limit_request_size(request: Request, call_next: _CallNext) -> Response:
    limit_mb = body_limit_mb(request.url.path, get_settings().security)
    try:
        length = int(request.headers.get("content-length") or 0)
    except ValueError:
        length = 0

    if length <= limit_mb * 1024 * 1024:
        return await call_next(request)

    logger.warning("Rejected %s %s: body of %d bytes", request.method, request.url.path, length)
    body: dict[str, Any] = {
        "error": "REQUEST_TOO_LARGE",
        "message": f"Request body exceeds {limit_mb}MB limit",
        "details": {"max_size_mb": limit_mb},
    }
    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=413, content=body)


async def add_security_headers(request: Request, call_next: _CallNext) -> Response:
    response = await call_next(request)

    if get_settings().server.environment in ("production", "staging"):
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    # JSON API only; nothing here is meant to be rendered
    response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
    return response


def register_middleware(app: FastAPI) -> None:
    """
    Mount the middleware stack.

    Starlette runs middleware in reverse registration order, so the request
    id is registered last to wrap everything else, including the 413 reply.
    """
    settings = get_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.allowed_origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
        expose_headers=["X-Request-ID"],
    )
    if settings.rate_limit.enabled:
        app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(PrometheusMiddleware)

    for middleware in (limit_request_size, add_security_headers, add_request_id):
        app.middleware("http")(middleware)
