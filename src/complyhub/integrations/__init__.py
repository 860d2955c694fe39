"""
Integration manifests, configurable variables and employee sync filtering.
"""

from complyhub.integrations.sync_filter import (
    SYNC_FILTERS,
    DirectoryUser,
    apply_sync_mode,
    matches_pattern,
    parse_multi_value,
)
from complyhub.integrations.variables import (
    INTEGRATION_MANIFESTS,
    CheckVariable,
    FetchContext,
    HttpFetchContext,
    IntegrationManifest,
    VariableOption,
    get_manifest,
    resolve_options,
    validate_variable_values,
)

__all__ = [
    "INTEGRATION_MANIFESTS",
    "SYNC_FILTERS",
    "CheckVariable",
    "DirectoryUser",
    "FetchContext",
    "HttpFetchContext",
    "IntegrationManifest",
    "VariableOption",
    "apply_sync_mode",
    "get_manifest",
    "matches_pattern",
    "parse_multi_value",
    "resolve_options",
    "validate_variable_values",
]
