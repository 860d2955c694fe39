"""
Exception handlers for the FastAPI application.

Every error leaves the API in one shape:

    {"error": CODE, "message": ..., "details"?: {...}, "request_id"?: ...}

Domain exceptions from ``complyhub.exceptions`` are mapped to a status
code through ``_DOMAIN_ERROR_STATUS``; anything unexpected becomes a 500
whose text is only exposed when ``server.debug`` is on.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from complyhub.exceptions import (
    APIError,
    AuthError,
    ComplyHubError,
    ConflictError,
    ConnectionNotFoundError,
    ForbiddenError,
    NotFoundError,
    ScanError,
    StorageError,
    StorageNotConfiguredError,
    UnsupportedProviderError,
    ValidationError,
)
from complyhub.server.config import get_settings
from complyhub.server.logging import get_request_id

logger = logging.getLogger(__name__)

# Looked up along the MRO, so a subclass entry wins over its parent's
_DOMAIN_ERROR_STATUS: dict[type[ComplyHubError], tuple[int, str]] = {
    ForbiddenError: (403, "FORBIDDEN"),
    AuthError: (401, "UNAUTHORIZED"),
    StorageNotConfiguredError: (503, "STORAGE_NOT_CONFIGURED"),
    StorageError: (502, "STORAGE_ERROR"),
    ConnectionNotFoundError: (404, "NOT_FOUND"),
    UnsupportedProviderError: (400, "UNSUPPORTED_PROVIDER"),
    ScanError: (502, "SCAN_ERROR"),
    NotFoundError: (404, "NOT_FOUND"),
    ConflictError: (409, "CONFLICT"),
    ValidationError: (400, "VALIDATION_ERROR"),
}

_STATUS_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "REQUEST_TOO_LARGE",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMIT_EXCEEDED",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}

_MAX_ECHOED_INPUT = 100


def domain_error_status(exc: ComplyHubError) -> tuple[int, str]:
    """(status_code, error_code) for a domain exception."""
    for cls in type(exc).__mro__:
        if cls in _DOMAIN_ERROR_STATUS:
            return _DOMAIN_ERROR_STATUS[cls]
    return 500, "INTERNAL_ERROR"


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    """JSON error reply carrying the current request id."""
    body: dict[str, Any] = {"error": error, "message": message, **extra}
    if details:
        body["details"] = details
    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content=body, headers=dict(headers) if headers else None)


def _where(request: Request, **fields: Any) -> dict[str, Any]:
    return {"path": request.url.path, "method": request.method, **fields}


def _validation_issue(error: Mapping[str, Any]) -> dict[str, Any]:
    issue: dict[str, Any] = {
        "field": ".".join(str(part) for part in error.get("loc", ())),
        "message": error.get("msg", "Validation error"),
        "type": error.get("type", "value_error"),
    }
    value = error.get("input")
    if isinstance(value, str) and len(value) > _MAX_ECHOED_INPUT:
        value = value[:_MAX_ECHOED_INPUT] + "..."
    # Only scalars are echoed back; bodies may hold base64 files
    if isinstance(value, (str, int, float, bool)):
        issue["input"] = value
    return issue


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on *app*."""

    @app.exception_handler(RateLimitExceeded)
    async def rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        logger.info("Rate limit hit: %s", exc.detail, extra=_where(request))
        return error_response(
            429,
            "RATE_LIMIT_EXCEEDED",
            "Rate limit exceeded. Please try again later.",
            details={"limit": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(APIError)
    async def api_error(request: Request, exc: APIError) -> JSONResponse:
        log = logger.warning if exc.status_code >= 500 else logger.info
        log(
            "API error: %s - %s", exc.error_code, exc.message,
            extra=_where(request, status_code=exc.status_code, error_code=exc.error_code),
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(request_id=get_request_id()))

    @app.exception_handler(ComplyHubError)
    async def domain_error(request: Request, exc: ComplyHubError) -> JSONResponse:
        status_code, error_code = domain_error_status(exc)
        log = logger.warning if status_code >= 500 else logger.info
        log("Domain error: %s - %s", error_code, exc.message, extra=_where(request, status_code=status_code))
        return error_response(status_code, error_code, exc.message, details=exc.details)

    @app.exception_handler(HTTPException)
    async def http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(
                "HTTP exception: %s - %s", exc.status_code, exc.detail,
                extra=_where(request, status_code=exc.status_code),
            )

        error_code = _STATUS_ERROR_CODES.get(exc.status_code, "ERROR")
        if isinstance(exc.detail, dict):
            # A dict detail is merged into the body, e.g. {message, provider}
            fields = {"error": error_code, "message": "Request failed", **exc.detail}
            error_code = fields.pop("error")
            message = fields.pop("message")
            return error_response(exc.status_code, error_code, message, headers=exc.headers, **fields)
        return error_response(exc.status_code, error_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        issues = [_validation_issue(error) for error in exc.errors()]
        logger.info(
            "Validation error: %d field(s) failed validation", len(issues),
            extra=_where(request, error_count=len(issues)),
        )
        return error_response(
            422, "VALIDATION_ERROR", "Request validation failed",
            details={"validation_errors": issues},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error: %s: %s", type(exc).__name__, exc, extra=_where(request))
        return error_response(500, "INTERNAL_ERROR", "A database error occurred")

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled exception: %s", exc,
            extra=_where(request, exception_type=type(exc).__name__),
        )
        if get_settings().server.debug:
            return error_response(
                500, "INTERNAL_ERROR", str(exc),
                details={"exception_type": type(exc).__name__},
            )
        return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")
