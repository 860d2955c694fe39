"""
Policy management API endpoints.

Provides:
- Paginated, filterable policy list and the departments in use
- Policy detail with versions
- Bulk PDF upload (one draft policy per file)
- Bulk delete
- Zip export of every uploaded policy PDF
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from complyhub.exceptions import BadRequestError
from complyhub.server.dependencies import PolicyServiceDep, SettingsDep
from complyhub.server.middleware.rate_limit import bulk_upload_limit, limiter
from complyhub.server.schemas.pagination import (
    PaginatedResponse,
    PaginationParams,
    create_paginated_response,
)
from complyhub.server.services.policy_service import UploadFile

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_BULK_FILES = 50


# ── Request / Response models ───────────────────────────────────────


class PolicyResponse(BaseModel):
    """Policy row as shown in the policy table."""

    id: UUID
    name: str
    description: Optional[str] = None
    status: str
    department: str
    frequency: Optional[str] = None
    display_format: str
    assignee_id: Optional[UUID] = None
    pdf_url: Optional[str] = None
    current_version_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PolicyVersionResponse(BaseModel):
    id: UUID
    version: int
    pdf_url: Optional[str] = None
    published_by_id: Optional[UUID] = None
    changelog: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PolicyDetailResponse(PolicyResponse):
    content: list[Any]
    draft_content: list[Any]
    versions: list[PolicyVersionResponse]


class BulkUploadFileEntry(BaseModel):
    """One file, base64 encoded."""

    file_name: str = Field(..., min_length=1, examples=["data-privacy-policy.pdf"])
    file_type: str = Field(..., min_length=1, examples=["application/pdf"])
    file_data: str = Field(..., min_length=1, description="Base64-encoded file content")


class BulkUploadRequest(BaseModel):
    files: list[BulkUploadFileEntry] = Field(..., min_length=1, max_length=MAX_BULK_FILES)


class BulkUploadItemResult(BaseModel):
    file_name: str
    policy_id: str
    success: bool
    error: Optional[str] = None


class BulkUploadSummary(BaseModel):
    total: int
    succeeded: int
    failed: int


class BulkUploadResponse(BaseModel):
    success: bool
    results: list[BulkUploadItemResult]
    summary: BulkUploadSummary


class BulkDeleteRequest(BaseModel):
    policy_ids: list[UUID] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    success: bool
    deleted_count: int


class DownloadAllResponse(BaseModel):
    name: str
    download_url: str
    policy_count: int


# ── Collection endpoints ────────────────────────────────────────────


@router.get("", response_model=PaginatedResponse[PolicyResponse])
async def list_policies(
    svc: PolicyServiceDep,
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, max_length=255),
    status: Optional[Literal["draft", "published", "needs_review"]] = Query(None),
    department: Optional[str] = Query(None, max_length=20),
    sort: Literal["name", "status", "updated_at"] = Query("updated_at"),
    order: Literal["asc", "desc"] = Query("desc"),
):
    """List policies for the current organization."""
    items, total = await svc.list_policies(
        search=search,
        status=status,
        department=department,
        sort=sort,
        order=order,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return PaginatedResponse[PolicyResponse](
        **create_paginated_response(
            items=[PolicyResponse.model_validate(p) for p in items],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )
    )


@router.post("/bulk-upload", response_model=BulkUploadResponse)
@limiter.limit(bulk_upload_limit)
async def bulk_upload_policies(
    request: Request,
    body: BulkUploadRequest,
    svc: PolicyServiceDep,
    settings: SettingsDep,
):
    """Create one draft policy per uploaded PDF. Failed files do not abort the batch."""
    if len(body.files) > settings.policies.max_bulk_files:
        raise BadRequestError(
            f"At most {settings.policies.max_bulk_files} files can be uploaded at once"
        )
    result = await svc.bulk_upload(
        [UploadFile(f.file_name, f.file_type, f.file_data) for f in body.files]
    )
    return BulkUploadResponse(**result)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_policies(
    body: BulkDeleteRequest,
    svc: PolicyServiceDep,
):
    """Delete policies and their stored PDFs."""
    result = await svc.bulk_delete(body.policy_ids)
    return BulkDeleteResponse(**result)


# ── Static sub-paths (must come BEFORE /{policy_id}) ────────────────


@router.get("/departments", response_model=list[str])
async def list_departments(svc: PolicyServiceDep):
    """Departments that have at least one policy."""
    return await svc.list_departments()


@router.get("/download-all", response_model=DownloadAllResponse)
async def download_all_policies(svc: PolicyServiceDep):
    """Zip every policy PDF and return a download link for the archive."""
    result = await svc.download_all()
    return DownloadAllResponse(**result)


# ── Per-policy endpoints (/{policy_id} must come LAST) ──────────────


@router.get("/{policy_id}", response_model=PolicyDetailResponse)
async def get_policy(policy_id: UUID, svc: PolicyServiceDep):
    """Get a policy with its versions."""
    policy = await svc.get_policy(policy_id)
    return PolicyDetailResponse.model_validate(policy)
