"""
Configurable variables exposed by each integration.

A variable is a setting an admin chooses when connecting an integration
(which org units to check, whether to sync suspended users, ...). Some
variables load their choices from the provider's API at runtime through
``fetch_options``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol

import httpx

from complyhub.exceptions import ValidationError

logger = logging.getLogger(__name__)

VariableType = Literal["text", "select", "multi-select"]


@dataclass(frozen=True)
class VariableOption:
    value: str
    label: str


class FetchContext(Protocol):
    """Authenticated access to a provider API, relative to its base URL."""

    async def fetch(self, path: str) -> dict[str, Any]: ...


class HttpFetchContext:
    """FetchContext backed by an httpx client and a bearer token."""

    def __init__(
        self,
        base_url: str,
        access_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, path: str) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            response = await client.get(path, headers=headers)
            response.raise_for_status()
            return response.json()


OptionsFetcher = Callable[[FetchContext], Awaitable[list[VariableOption]]]


@dataclass(frozen=True)
class CheckVariable:
    id: str
    label: str
    type: VariableType
    required: bool = False
    default: Optional[str] = None
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    options: Optional[tuple[VariableOption, ...]] = None
    fetch_options: Optional[OptionsFetcher] = field(default=None, compare=False)

    @property
    def has_dynamic_options(self) -> bool:
        return self.fetch_options is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "required": self.required,
            "default": self.default,
            "placeholder": self.placeholder,
            "help_text": self.help_text,
            "options": (
                [{"value": o.value, "label": o.label} for o in self.options]
                if self.options
                else None
            ),
            "has_dynamic_options": self.has_dynamic_options,
        }


@dataclass(frozen=True)
class IntegrationManifest:
    provider: str
    name: str
    base_url: Optional[str]
    variables: tuple[CheckVariable, ...]

    def get_variable(self, variable_id: str) -> Optional[CheckVariable]:
        return next((v for v in self.variables if v.id == variable_id), None)


# =============================================================================
# GOOGLE WORKSPACE
# =============================================================================

GOOGLE_ORG_UNITS_PATH = "/admin/directory/v1/customer/my_customer/orgunits?type=all"
ROOT_ORG_UNIT = VariableOption(value="/", label="/ (Root)")

_SYNC_PATTERN_HELP = (
    "Add full emails, domains (@company.com or company.com), or partial text. "
    "Press Enter after each value."
)


async def fetch_google_org_units(ctx: FetchContext) -> list[VariableOption]:
    """Org units of the customer; the root unit when the API fails or has none."""
    try:
        response = await ctx.fetch(GOOGLE_ORG_UNITS_PATH)
        units = response.get("organizationUnits") if isinstance(response, dict) else None
        if not units:
            return [ROOT_ORG_UNIT]
        return [
            VariableOption(value=unit["orgUnitPath"], label=f"{unit['orgUnitPath']} ({unit['name']})")
            for unit in units
        ]
    except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
        logger.warning("Failed to fetch Google Workspace org units: %s", e)
        return [ROOT_ORG_UNIT]


GOOGLE_WORKSPACE_VARIABLES: tuple[CheckVariable, ...] = (
    CheckVariable(
        id="target_org_units",
        label="Organizational Units",
        help_text="Select which organizational units to include in checks (leave empty for all)",
        type="multi-select",
        fetch_options=fetch_google_org_units,
    ),
    CheckVariable(
        id="include_suspended",
        label="Include Suspended Users",
        help_text="Include suspended users in security checks",
        type="select",
        default="false",
        options=(
            VariableOption("false", "No - Only active users"),
            VariableOption("true", "Yes - Include suspended users"),
        ),
    ),
    CheckVariable(
        id="sync_user_filter_mode",
        label="Employee Sync Mode",
        help_text="Choose which Google Workspace users to sync",
        type="select",
        default="all",
        options=(
            VariableOption("all", "Sync all users"),
            VariableOption("exclude", "Sync all except matching users"),
            VariableOption("include", "Sync only matching users"),
        ),
    ),
    CheckVariable(
        id="sync_excluded_emails",
        label="Exclude from Sync",
        help_text=f"{_SYNC_PATTERN_HELP} Matching users stay active and are skipped during sync.",
        type="multi-select",
        placeholder="Type a value and press Enter",
    ),
    CheckVariable(
        id="sync_included_emails",
        label="Include in Sync",
        help_text=(
            f"{_SYNC_PATTERN_HELP} Only matching users are imported/reactivated. "
            "If empty, sync falls back to all users."
        ),
        type="multi-select",
        placeholder="Type a value and press Enter",
    ),
)

# =============================================================================
# JUMPCLOUD
# =============================================================================

JUMPCLOUD_VARIABLES: tuple[CheckVariable, ...] = (
    CheckVariable(
        id="include_suspended",
        label="Include suspended users",
        type="select",
        default="false",
        help_text="Include suspended users in the employee list",
        options=(
            VariableOption("false", "No - Active users only"),
            VariableOption("true", "Yes - Include suspended users"),
        ),
    ),
    CheckVariable(
        id="department_filter",
        label="Filter by department",
        type="text",
        placeholder="e.g., Engineering",
        help_text="Only include users from this department (leave empty for all)",
    ),
    CheckVariable(
        id="sync_excluded_emails",
        label="Exclude from Sync",
        type="multi-select",
        placeholder="Type a value and press Enter",
        help_text=(
            "Add full emails, domains (@company.com or company.com), or partial text. "
            "Matching users are skipped during JumpCloud employee sync. "
            "Suspended/deleted users can still be deactivated."
        ),
    ),
)

# =============================================================================
# AWS
# =============================================================================

AWS_VARIABLES: tuple[CheckVariable, ...] = (
    CheckVariable(
        id="region",
        label="Region",
        type="text",
        default="us-east-1",
        placeholder="e.g., us-east-1",
        help_text="Region used for regional API calls during cloud security scans",
    ),
)


INTEGRATION_MANIFESTS: dict[str, IntegrationManifest] = {
    "google-workspace": IntegrationManifest(
        provider="google-workspace",
        name="Google Workspace",
        base_url="https://admin.googleapis.com",
        variables=GOOGLE_WORKSPACE_VARIABLES,
    ),
    "jumpcloud": IntegrationManifest(
        provider="jumpcloud",
        name="JumpCloud",
        base_url="https://console.jumpcloud.com/api",
        variables=JUMPCLOUD_VARIABLES,
    ),
    "aws": IntegrationManifest(
        provider="aws",
        name="Amazon Web Services",
        base_url=None,
        variables=AWS_VARIABLES,
    ),
}


def get_manifest(provider: str) -> IntegrationManifest:
    try:
        return INTEGRATION_MANIFESTS[provider]
    except KeyError:
        raise ValidationError(
            f"Unknown integration provider '{provider}'", field="provider"
        ) from None


def validate_variable_values(provider: str, values: dict[str, Any]) -> dict[str, Any]:
    """
    Check submitted variable values against the provider's manifest.

    Unknown variable ids, select values outside the options and missing
    required variables are rejected. Defaults are filled in for variables
    that were not given.
    """
    manifest = get_manifest(provider)
    cleaned: dict[str, Any] = {}

    for variable_id, value in values.items():
        variable = manifest.get_variable(variable_id)
        if variable is None:
            raise ValidationError(
                f"Unknown variable '{variable_id}' for {manifest.name}", field=variable_id
            )
        if variable.type == "select" and variable.options:
            allowed = {o.value for o in variable.options}
            if value not in allowed:
                raise ValidationError(
                    f"Invalid value for '{variable.label}'",
                    field=variable_id,
                    reason=f"expected one of {sorted(allowed)}",
                )
        if variable.type == "multi-select" and not isinstance(value, (list, str)):
            raise ValidationError(
                f"Invalid value for '{variable.label}'",
                field=variable_id,
                reason="expected a list or a comma-separated string",
            )
        if variable.type == "text" and value is not None and not isinstance(value, str):
            raise ValidationError(
                f"Invalid value for '{variable.label}'", field=variable_id, reason="expected text"
            )
        cleaned[variable_id] = value

    for variable in manifest.variables:
        if variable.id in cleaned:
            continue
        if variable.required and variable.default is None:
            raise ValidationError(f"'{variable.label}' is required", field=variable.id)
        if variable.default is not None:
            cleaned[variable.id] = variable.default

    return cleaned


async def resolve_options(
    provider: str, variable_id: str, ctx: FetchContext
) -> list[VariableOption]:
    """Static options of a variable, or its dynamically fetched ones."""
    manifest = get_manifest(provider)
    variable = manifest.get_variable(variable_id)
    if variable is None:
        raise ValidationError(
            f"Unknown variable '{variable_id}' for {manifest.name}", field=variable_id
        )
    if variable.fetch_options is not None:
        return await variable.fetch_options(ctx)
    return list(variable.options or ())
