"""
Unified exception hierarchy for ComplyHub.

All exception classes live here. No per-module exception files.

Hierarchy:
    ComplyHubError (base)
    ├── AuthError
    │   └── ForbiddenError
    ├── StorageError
    │   └── StorageNotConfiguredError
    ├── ScanError
    │   ├── ConnectionNotFoundError
    │   └── UnsupportedProviderError
    ├── NotFoundError
    ├── ConflictError
    ├── ValidationError
    └── APIError
        └── BadRequestError

Usage:
    from complyhub.exceptions import NotFoundError, StorageError
"""

from __future__ import annotations

from typing import Any

# =============================================================================
# ROOT
# =============================================================================


class ComplyHubError(Exception):
    """
    Base exception for all ComplyHub errors.

    Attributes:
        message: Human-readable error description
        context: Additional context about what was being done
        details: Technical details (ids, keys, field names, etc.)
    """

    def __init__(
        self,
        message: str,
        context: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.context = context
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append(f"Context: {self.context}")
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            parts.append(f"Details: {detail_str}")
        return ". ".join(parts)


# =============================================================================
# AUTH
# =============================================================================


class AuthError(ComplyHubError):
    """Caller identity is missing or cannot be resolved."""


class ForbiddenError(AuthError):
    """Caller is known but not allowed to perform the operation."""

    def __init__(
        self,
        message: str = "Not authorized",
        required_role: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if required_role:
            details["required_role"] = required_role
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# STORAGE
# =============================================================================


class StorageError(ComplyHubError):
    """Raised when an object storage operation fails."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        operation: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details, **kwargs)
        self.key = key
        self.operation = operation


class StorageNotConfiguredError(StorageError):
    """No object storage backend is configured."""

    def __init__(self, message: str = "File storage is not configured.", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# CLOUD SECURITY
# =============================================================================


class ScanError(ComplyHubError):
    """Cloud security scan failure."""

    def __init__(
        self,
        message: str,
        connection_id: str | None = None,
        provider: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if connection_id:
            details["connection_id"] = connection_id
        if provider:
            details["provider"] = provider
        super().__init__(message, details=details, **kwargs)
        self.connection_id = connection_id
        self.provider = provider


class ConnectionNotFoundError(ScanError):
    """Integration connection does not exist in the organization."""

    def __init__(self, connection_id: str, **kwargs: Any):
        super().__init__("Connection not found", connection_id=connection_id, **kwargs)


class UnsupportedProviderError(ScanError):
    """No cloud scanner is registered for the connection's provider."""

    def __init__(self, provider: str, **kwargs: Any):
        super().__init__(
            f"Cloud security scanning is not supported for provider '{provider}'",
            provider=provider,
            **kwargs,
        )


# =============================================================================
# DOMAIN ERRORS (not API-specific, but used across server and other modules)
# =============================================================================


class NotFoundError(ComplyHubError):
    """Requested resource not found."""

    def __init__(
        self,
        message: str = "The requested resource was not found",
        resource_type: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, details=details, **kwargs)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(ComplyHubError):
    """Resource conflict (duplicate, invalid state transition)."""

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        conflicting_field: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if conflicting_field:
            details["conflicting_field"] = conflicting_field
        super().__init__(message, details=details, **kwargs)


class ValidationError(ComplyHubError):
    """Input validation error."""

    def __init__(
        self,
        message: str = "Request validation failed",
        field: str | None = None,
        reason: str | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if reason:
            details["reason"] = reason
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# API-LAYER EXCEPTIONS (used by server error handlers)
# =============================================================================


class APIError(ComplyHubError):
    """
    Base for API-specific errors with HTTP status code.

    The server error handler catches APIError and uses status_code,
    error_code, and to_dict() to build the HTTP response.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
    ):
        if error_code is not None:
            self.error_code = error_code
        super().__init__(message, details=details)

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        """Convert to dictionary suitable for ErrorResponse."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if request_id is not None:
            result["request_id"] = request_id
        return result


class BadRequestError(APIError):
    """400 Bad Request."""

    status_code = 400
    error_code = "BAD_REQUEST"

    def __init__(
        self,
        message: str = "The request could not be processed",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, details=details)

