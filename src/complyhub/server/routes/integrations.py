"""
Integration API endpoints.

Provides:
- Provider manifests with their configurable variables
- Connection CRUD (credentials are write-only)
- Dynamic variable options fetched from the provider
- Employee sync preview
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from complyhub.integrations import DirectoryUser
from complyhub.server.dependencies import AdminContextDep, IntegrationServiceDep
from complyhub.server.services.integration_service import list_manifests, serialize_connection

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request / Response models ───────────────────────────────────────


class ConnectionResponse(BaseModel):
    id: str
    provider: str
    name: str
    status: str
    variables: dict[str, Any]
    has_credentials: bool
    last_scanned_at: Optional[str] = None
    created_at: Optional[str] = None


class ConnectionCreate(BaseModel):
    provider: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    variables: dict[str, Any] = Field(default_factory=dict)
    credentials: dict[str, Any] = Field(default_factory=dict)


class ConnectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[Literal["active", "disconnected"]] = None
    variables: Optional[dict[str, Any]] = None
    credentials: Optional[dict[str, Any]] = None


class OptionResponse(BaseModel):
    value: str
    label: str


class DirectoryUserModel(BaseModel):
    email: str
    suspended: bool = False
    department: Optional[str] = None
    org_unit_path: str = "/"


class SyncPreviewRequest(BaseModel):
    users: list[DirectoryUserModel] = Field(..., max_length=10000)
    variables: Optional[dict[str, Any]] = None


class SyncPreviewResponse(BaseModel):
    total: int
    kept: int
    users: list[DirectoryUserModel]


# ── Manifests ───────────────────────────────────────────────────────


@router.get("/manifests")
async def get_manifests() -> list[dict[str, Any]]:
    """Supported providers and the variables each one accepts."""
    return list_manifests()


# ── Connections ─────────────────────────────────────────────────────


@router.get("/connections", response_model=list[ConnectionResponse])
async def list_connections(
    svc: IntegrationServiceDep,
    provider: Optional[str] = Query(None, max_length=50),
):
    return [serialize_connection(c) for c in await svc.list_connections(provider)]


@router.post("/connections", response_model=ConnectionResponse, status_code=201)
async def create_connection(
    body: ConnectionCreate,
    _admin: AdminContextDep,
    svc: IntegrationServiceDep,
):
    """Connect a provider. Variable values are checked against its manifest."""
    connection = await svc.create_connection(
        provider=body.provider,
        name=body.name,
        variables=body.variables,
        credentials=body.credentials,
    )
    return serialize_connection(connection)


@router.get("/connections/{connection_id}", response_model=ConnectionResponse)
async def get_connection(connection_id: UUID, svc: IntegrationServiceDep):
    return serialize_connection(await svc.get_connection(connection_id))


@router.patch("/connections/{connection_id}", response_model=ConnectionResponse)
async def update_connection(
    connection_id: UUID,
    body: ConnectionUpdate,
    _admin: AdminContextDep,
    svc: IntegrationServiceDep,
):
    connection = await svc.update_connection(connection_id, body.model_dump(exclude_unset=True))
    return serialize_connection(connection)


@router.delete("/connections/{connection_id}", status_code=204)
async def delete_connection(
    connection_id: UUID,
    _admin: AdminContextDep,
    svc: IntegrationServiceDep,
):
    """Remove a connection together with its scan runs and findings."""
    await svc.delete_connection(connection_id)


# ── Variables / sync ────────────────────────────────────────────────


@router.get(
    "/connections/{connection_id}/variables/{variable_id}/options",
    response_model=list[OptionResponse],
)
async def get_variable_options(
    connection_id: UUID,
    variable_id: str,
    svc: IntegrationServiceDep,
):
    """Choices for a select variable, fetched live for dynamic ones."""
    options = await svc.get_variable_options(connection_id, variable_id)
    return [OptionResponse(value=o.value, label=o.label) for o in options]


@router.post("/connections/{connection_id}/sync-preview", response_model=SyncPreviewResponse)
async def preview_sync(
    connection_id: UUID,
    body: SyncPreviewRequest,
    svc: IntegrationServiceDep,
):
    """Which of the given directory users an employee sync would keep."""
    users = [DirectoryUser(**u.model_dump()) for u in body.users]
    kept = await svc.preview_sync(connection_id, users, body.variables)
    return SyncPreviewResponse(
        total=len(users),
        kept=len(kept),
        users=[DirectoryUserModel(**vars(u)) for u in kept],
    )
