"""
Shared API response schemas.
"""

from complyhub.server.schemas.error import ErrorResponse
from complyhub.server.schemas.pagination import (
    PaginatedResponse,
    PaginationParams,
    create_paginated_response,
    paginate_query,
)

__all__ = [
    "ErrorResponse",
    "PaginatedResponse",
    "PaginationParams",
    "create_paginated_response",
    "paginate_query",
]
