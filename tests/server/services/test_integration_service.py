"""Tests for IntegrationService against the test database."""

from uuid import uuid4

import httpx
import pytest
from sqlalchemy import func, select

from complyhub.exceptions import NotFoundError, ValidationError
from complyhub.integrations import DirectoryUser
from complyhub.server.models import CloudFinding, CloudScanRun
from complyhub.server.services.integration_service import (
    IntegrationService,
    list_manifests,
    serialize_connection,
)


@pytest.fixture
def service(test_db, admin_context, settings):
    return IntegrationService(test_db, admin_context, settings)


class TestManifests:
    def test_list(self):
        providers = {m["provider"]: m for m in list_manifests()}
        assert set(providers) == {"google-workspace", "jumpcloud", "aws"}
        assert providers["jumpcloud"]["name"] == "JumpCloud"


class TestCreateConnection:
    async def test_defaults_applied(self, service):
        connection = await service.create_connection(
            "google-workspace", "Workspace", credentials={"access_token": "tok"}
        )

        assert connection.status == "active"
        assert connection.variables == {"include_suspended": "false", "sync_user_filter_mode": "all"}

    async def test_serialized_without_credentials(self, service):
        connection = await service.create_connection(
            "aws", "Production", credentials={"access_key_id": "AKIA", "secret_access_key": "s"}
        )

        data = serialize_connection(connection)

        assert data["has_credentials"] is True
        assert "credentials" not in data
        assert "AKIA" not in str(data)
        assert data["last_scanned_at"] is None

    async def test_invalid_variables(self, service):
        with pytest.raises(ValidationError):
            await service.create_connection("jumpcloud", "JC", variables={"color": "blue"})

    async def test_unknown_provider(self, service):
        with pytest.raises(ValidationError):
            await service.create_connection("okta", "Okta")


class TestUpdateConnection:
    async def test_partial_update(self, service):
        connection = await service.create_connection("aws", "Production")

        updated = await service.update_connection(connection.id, {"name": "Prod", "status": None})

        assert updated.name == "Prod"
        assert updated.status == "active"
        assert updated.variables == {"region": "us-east-1"}

    async def test_variables_validated(self, service):
        connection = await service.create_connection("google-workspace", "Workspace")

        with pytest.raises(ValidationError):
            await service.update_connection(connection.id, {"variables": {"sync_user_filter_mode": "some"}})

    async def test_credentials_replaced(self, service):
        connection = await service.create_connection("aws", "Production")
        updated = await service.update_connection(connection.id, {"credentials": {"access_key_id": "new"}})
        assert updated.credentials == {"access_key_id": "new"}

    async def test_missing(self, service):
        with pytest.raises(NotFoundError, match="Connection not found"):
            await service.update_connection(uuid4(), {"name": "x"})


class TestDeleteConnection:
    async def test_removes_runs_and_findings(self, service, test_db, test_org):
        connection = await service.create_connection("aws", "Production")
        test_db.add_all([
            CloudScanRun(organization_id=test_org.id, connection_id=connection.id, status="completed"),
            CloudFinding(
                organization_id=test_org.id,
                connection_id=connection.id,
                check_id="aws-iam-root-mfa",
                title="Root MFA",
                status="passed",
            ),
        ])
        await test_db.flush()

        await service.delete_connection(connection.id)

        assert await service.list_connections() == []
        for model in (CloudScanRun, CloudFinding):
            count = await test_db.execute(select(func.count()).select_from(model))
            assert count.scalar() == 0


class TestListConnections:
    async def test_filter_by_provider(self, service):
        await service.create_connection("aws", "Production")
        await service.create_connection("jumpcloud", "Directory")

        connections = await service.list_connections(provider="jumpcloud")

        assert [c.name for c in connections] == ["Directory"]


class TestVariableOptions:
    async def test_dynamic_options_use_stored_token(self, service):
        connection = await service.create_connection(
            "google-workspace", "Workspace", credentials={"access_token": "tok-9"}
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer tok-9"
            return httpx.Response(200, json={"organizationUnits": [{"orgUnitPath": "/Ops", "name": "Ops"}]})

        options = await service.get_variable_options(
            connection.id, "target_org_units", transport=httpx.MockTransport(handler)
        )

        assert [o.value for o in options] == ["/Ops"]


class TestPreviewSync:
    async def test_uses_stored_variables(self, service):
        connection = await service.create_connection(
            "jumpcloud", "Directory", variables={"sync_excluded_emails": "svc-"}
        )
        users = [DirectoryUser("ada@acme.com"), DirectoryUser("svc-ci@acme.com")]

        kept = await service.preview_sync(connection.id, users)

        assert [u.email for u in kept] == ["ada@acme.com"]

    async def test_override_variables(self, service):
        connection = await service.create_connection("google-workspace", "Workspace")
        users = [DirectoryUser("ada@acme.com"), DirectoryUser("bo@other.io")]

        kept = await service.preview_sync(
            connection.id, users, {"sync_user_filter_mode": "include", "sync_included_emails": "@acme.com"}
        )

        assert [u.email for u in kept] == ["ada@acme.com"]

    async def test_provider_without_sync(self, service):
        connection = await service.create_connection("aws", "Production")
        with pytest.raises(ValidationError, match="Employee sync is not available for 'aws'"):
            await service.preview_sync(connection.id, [])
