"""
Error response schema shared by every endpoint.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """
    Body of every non-2xx response.

    Attributes:
        error: Error code in SCREAMING_SNAKE_CASE (e.g. "NOT_FOUND")
        message: Human-readable message suitable for display
        details: Optional context (field issues, resource ids)
        request_id: Correlation id of the request
    """

    error: str = Field(..., examples=["VALIDATION_ERROR", "NOT_FOUND"])
    message: str = Field(..., examples=["No policies found"])
    details: dict[str, Any] | None = None
    request_id: str | None = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": "VALIDATION_ERROR",
            "message": "Invalid form data",
            "details": {"issues": [{"path": "date", "message": "Meeting date is required"}]},
            "request_id": "abc123ef",
        }
    })
