"""
Offset pagination shared by every list endpoint.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel, Field
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Page of results plus navigation metadata.

        @router.get("", response_model=PaginatedResponse[PolicyResponse])
    """

    items: list[T]
    total: int = Field(..., description="Total number of items matching the query")
    page: int = Field(..., ge=1, description="Current page number (1-indexed)")
    page_size: int = Field(..., ge=1, description="Number of items per page")
    total_pages: int = Field(..., ge=0, description="Total number of pages")
    has_next: bool
    has_previous: bool


class PaginationParams:
    """``page`` and ``page_size`` query parameters (page_size capped at 100)."""

    def __init__(
        self,
        page: int = Query(1, ge=1, le=10000, description="Page number (1-indexed)"),
        page_size: int = Query(50, ge=1, le=100, description="Items per page (max 100)"),
    ):
        self.page = page
        self.page_size = page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


def create_paginated_response(
    items: Sequence[Any],
    total: int,
    page: int,
    page_size: int,
) -> dict[str, Any]:
    """Pagination dict for items that were already fetched."""
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1
    return {
        "items": list(items),
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


async def paginate_query(
    session: AsyncSession,
    query: Select,
    pagination: PaginationParams,
    transformer: Callable[[Any], Any] | None = None,
) -> dict[str, Any]:
    """
    Count and slice ``query`` (which must not carry offset/limit yet).

        result = await paginate_query(session, query, pagination, PolicyResponse.model_validate)
        return PaginatedResponse[PolicyResponse](**result)
    """
    total = (await session.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    result = await session.execute(query.offset(pagination.offset).limit(pagination.limit))
    items: list[Any] = list(result.scalars().all())
    if transformer:
        items = [transformer(item) for item in items]

    return create_paginated_response(items, total, pagination.page, pagination.page_size)
