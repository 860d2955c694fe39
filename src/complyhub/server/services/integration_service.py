"""
Integration connection service for ComplyHub server.

Connections hold the provider credentials and the admin's variable
choices. Credentials are write-only: nothing this service returns for the
API includes them.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

import httpx
from sqlalchemy import delete, select

from complyhub.exceptions import ValidationError
from complyhub.integrations import (
    INTEGRATION_MANIFESTS,
    SYNC_FILTERS,
    DirectoryUser,
    HttpFetchContext,
    VariableOption,
    get_manifest,
    resolve_options,
    validate_variable_values,
)
from complyhub.server.models import CloudFinding, CloudScanRun, IntegrationConnection
from complyhub.server.services.base import BaseService


def serialize_connection(connection: IntegrationConnection) -> dict[str, Any]:
    """API view of a connection, without credentials."""
    return {
        "id": str(connection.id),
        "provider": connection.provider,
        "name": connection.name,
        "status": connection.status,
        "variables": connection.variables,
        "has_credentials": bool(connection.credentials),
        "last_scanned_at": connection.last_scanned_at.isoformat() if connection.last_scanned_at else None,
        "created_at": connection.created_at.isoformat() if connection.created_at else None,
    }


def list_manifests() -> list[dict[str, Any]]:
    return [
        {
            "provider": manifest.provider,
            "name": manifest.name,
            "variables": [v.to_dict() for v in manifest.variables],
        }
        for manifest in INTEGRATION_MANIFESTS.values()
    ]


class IntegrationService(BaseService):
    """CRUD for integration connections, scoped to the organization."""

    async def list_connections(self, provider: str | None = None) -> list[IntegrationConnection]:
        query = select(IntegrationConnection).where(
            IntegrationConnection.organization_id == self.organization_id
        )
        if provider:
            query = query.where(IntegrationConnection.provider == provider)
        result = await self.session.execute(query.order_by(IntegrationConnection.created_at))
        return list(result.scalars().all())

    async def get_connection(self, connection_id: UUID) -> IntegrationConnection:
        return await self.get_org_entity(IntegrationConnection, connection_id, "Connection")

    async def create_connection(
        self,
        provider: str,
        name: str,
        variables: Optional[dict[str, Any]] = None,
        credentials: Optional[dict[str, Any]] = None,
    ) -> IntegrationConnection:
        """
        Create a connection after checking its variables against the manifest.

        Raises:
            ValidationError: Unknown provider, unknown variable or bad value
        """
        cleaned = validate_variable_values(provider, variables or {})
        connection = IntegrationConnection(
            organization_id=self.organization_id,
            provider=provider,
            name=name,
            status="active",
            variables=cleaned,
            credentials=credentials or {},
        )
        self.session.add(connection)
        await self.flush()
        self._log_info(f"Integration connected: {provider}", connection_id=str(connection.id))
        return connection

    async def update_connection(self, connection_id: UUID, data: dict[str, Any]) -> IntegrationConnection:
        """Partial update; ``variables`` replaces the stored set after validation."""
        connection = await self.get_connection(connection_id)

        if "name" in data and data["name"] is not None:
            connection.name = data["name"]
        if "status" in data and data["status"] is not None:
            connection.status = data["status"]
        if "variables" in data and data["variables"] is not None:
            connection.variables = validate_variable_values(connection.provider, data["variables"])
        if "credentials" in data and data["credentials"] is not None:
            connection.credentials = data["credentials"]

        await self.flush()
        self._log_info(f"Integration updated: {connection.provider}", connection_id=str(connection_id))
        return connection

    async def delete_connection(self, connection_id: UUID) -> None:
        """Delete a connection with its scan runs and findings."""
        connection = await self.get_connection(connection_id)
        await self.session.execute(delete(CloudFinding).where(CloudFinding.connection_id == connection.id))
        await self.session.execute(delete(CloudScanRun).where(CloudScanRun.connection_id == connection.id))
        await self.session.delete(connection)
        await self.flush()
        self._log_info(f"Integration removed: {connection.provider}", connection_id=str(connection_id))

    async def get_variable_options(
        self,
        connection_id: UUID,
        variable_id: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> list[VariableOption]:
        """Options of one variable, fetched from the provider when dynamic."""
        connection = await self.get_connection(connection_id)
        manifest = get_manifest(connection.provider)
        ctx = HttpFetchContext(
            base_url=manifest.base_url or "",
            access_token=(connection.credentials or {}).get("access_token"),
            transport=transport,
        )
        return await resolve_options(connection.provider, variable_id, ctx)

    async def preview_sync(
        self,
        connection_id: UUID,
        users: list[DirectoryUser],
        variables: Optional[dict[str, Any]] = None,
    ) -> list[DirectoryUser]:
        """
        Which of ``users`` an employee sync would keep.

        ``variables`` overrides the stored values, so an admin can try
        settings before saving them.

        Raises:
            ValidationError: If the provider does not sync employees
        """
        connection = await self.get_connection(connection_id)
        sync_filter = SYNC_FILTERS.get(connection.provider)
        if sync_filter is None:
            raise ValidationError(
                f"Employee sync is not available for '{connection.provider}'",
                field="provider",
            )

        effective = dict(connection.variables or {})
        if variables:
            effective = validate_variable_values(connection.provider, {**effective, **variables})
        return sync_filter(users, effective)
