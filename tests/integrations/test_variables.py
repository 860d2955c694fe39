"""Tests for integration manifests, variable validation and dynamic options."""

import httpx
import pytest

from complyhub.exceptions import ValidationError
from complyhub.integrations import (
    INTEGRATION_MANIFESTS,
    HttpFetchContext,
    VariableOption,
    get_manifest,
    resolve_options,
    validate_variable_values,
)
from complyhub.integrations.variables import GOOGLE_ORG_UNITS_PATH, ROOT_ORG_UNIT


def google_context(handler) -> HttpFetchContext:
    return HttpFetchContext(
        base_url="https://admin.googleapis.com",
        access_token="token-123",
        transport=httpx.MockTransport(handler),
    )


class TestManifests:
    def test_providers(self):
        assert set(INTEGRATION_MANIFESTS) == {"google-workspace", "jumpcloud", "aws"}

    def test_unknown_provider(self):
        with pytest.raises(ValidationError) as exc_info:
            get_manifest("okta")
        assert exc_info.value.details["field"] == "provider"

    def test_variable_to_dict_flags_dynamic_options(self):
        variable = get_manifest("google-workspace").get_variable("target_org_units")
        data = variable.to_dict()
        assert data["has_dynamic_options"] is True
        assert data["options"] is None

    def test_static_options_serialized(self):
        data = get_manifest("jumpcloud").get_variable("include_suspended").to_dict()
        assert data["options"][0] == {"value": "false", "label": "No - Active users only"}
        assert data["has_dynamic_options"] is False


class TestValidateVariableValues:
    def test_defaults_filled_in(self):
        cleaned = validate_variable_values("google-workspace", {})
        assert cleaned == {"include_suspended": "false", "sync_user_filter_mode": "all"}

    def test_given_values_kept(self):
        cleaned = validate_variable_values(
            "google-workspace",
            {"sync_user_filter_mode": "include", "sync_included_emails": ["@acme.com"]},
        )
        assert cleaned["sync_user_filter_mode"] == "include"
        assert cleaned["sync_included_emails"] == ["@acme.com"]

    def test_unknown_variable(self):
        with pytest.raises(ValidationError, match="Unknown variable 'color' for JumpCloud"):
            validate_variable_values("jumpcloud", {"color": "blue"})

    def test_select_value_outside_options(self):
        with pytest.raises(ValidationError, match="Invalid value for 'Employee Sync Mode'"):
            validate_variable_values("google-workspace", {"sync_user_filter_mode": "some"})

    def test_multi_select_accepts_string(self):
        cleaned = validate_variable_values("jumpcloud", {"sync_excluded_emails": "a@x.com, b@x.com"})
        assert cleaned["sync_excluded_emails"] == "a@x.com, b@x.com"

    def test_multi_select_rejects_number(self):
        with pytest.raises(ValidationError):
            validate_variable_values("jumpcloud", {"sync_excluded_emails": 7})

    def test_text_rejects_non_string(self):
        with pytest.raises(ValidationError):
            validate_variable_values("aws", {"region": ["us-east-1"]})

    def test_aws_region_default(self):
        assert validate_variable_values("aws", {}) == {"region": "us-east-1"}


class TestGoogleOrgUnits:
    async def test_fetches_org_units(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.raw_path.decode()
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(
                200,
                json={
                    "organizationUnits": [
                        {"orgUnitPath": "/Engineering", "name": "Engineering"},
                        {"orgUnitPath": "/Sales", "name": "Sales"},
                    ]
                },
            )

        options = await resolve_options("google-workspace", "target_org_units", google_context(handler))

        assert options == [
            VariableOption("/Engineering", "/Engineering (Engineering)"),
            VariableOption("/Sales", "/Sales (Sales)"),
        ]
        assert seen["path"] == GOOGLE_ORG_UNITS_PATH
        assert seen["auth"] == "Bearer token-123"

    async def test_api_error_falls_back_to_root(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"error": "forbidden"})

        options = await resolve_options("google-workspace", "target_org_units", google_context(handler))
        assert options == [ROOT_ORG_UNIT]

    async def test_empty_list_falls_back_to_root(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"kind": "admin#directory#orgUnits"})

        options = await resolve_options("google-workspace", "target_org_units", google_context(handler))
        assert options == [ROOT_ORG_UNIT]

    async def test_invalid_json_falls_back_to_root(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        options = await resolve_options("google-workspace", "target_org_units", google_context(handler))
        assert options == [ROOT_ORG_UNIT]

    async def test_malformed_unit_falls_back_to_root(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"organizationUnits": [{"orgUnitPath": "/Eng"}]})

        options = await resolve_options("google-workspace", "target_org_units", google_context(handler))
        assert options == [ROOT_ORG_UNIT]


class TestResolveOptions:
    async def test_static_options(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("static options must not call the provider")

        options = await resolve_options("jumpcloud", "include_suspended", google_context(handler))
        assert [o.value for o in options] == ["false", "true"]

    async def test_text_variable_has_no_options(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("unexpected request")

        assert await resolve_options("aws", "region", google_context(handler)) == []

    async def test_unknown_variable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("unexpected request")

        with pytest.raises(ValidationError):
            await resolve_options("jumpcloud", "nope", google_context(handler))
