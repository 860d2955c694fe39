"""
Employee sync filtering for directory integrations.

Admins list patterns that decide which directory users are synced as
employees. A pattern is one of:

- a full email (``jane@acme.com``): exact match
- a domain (``@acme.com`` or ``acme.com``): the email's domain
- any other text (``contractor``): substring of the email

Matching ignores case. Multi-value settings arrive either as lists or as
comma/newline separated strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Optional

SyncFilterMode = Literal["all", "exclude", "include"]

_SEPARATORS = re.compile(r"[,\n\r]+")


@dataclass
class DirectoryUser:
    """A user as seen in a provider directory."""

    email: str
    suspended: bool = False
    department: Optional[str] = None
    org_unit_path: str = "/"


def parse_multi_value(value: Any) -> list[str]:
    """Normalize a list or a separated string into lowercase, non-empty patterns."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = _SEPARATORS.split(value)
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        return []
    return [str(item).strip().lower() for item in items if str(item).strip()]


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def matches_pattern(email: str, pattern: str) -> bool:
    email = email.strip().lower()
    pattern = pattern.strip().lower()
    if not email or not pattern:
        return False

    local, _, domain = email.rpartition("@")
    if pattern.startswith("@"):
        return domain == pattern[1:]
    if "@" in pattern:
        return email == pattern
    if "." in pattern and " " not in pattern:
        # Bare domain, or dotted text inside the mailbox name
        return domain == pattern or pattern in local
    return pattern in email


def matches_any(email: str, patterns: Iterable[str]) -> bool:
    return any(matches_pattern(email, pattern) for pattern in patterns)


def apply_sync_mode(
    users: list[DirectoryUser],
    mode: str,
    excluded: Any = None,
    included: Any = None,
) -> list[DirectoryUser]:
    """
    Keep the users a sync should import.

    ``include`` with no patterns falls back to every user, so a half
    configured integration never silently syncs nobody.
    """
    if mode == "exclude":
        patterns = parse_multi_value(excluded)
        return [u for u in users if not matches_any(u.email, patterns)]
    if mode == "include":
        patterns = parse_multi_value(included)
        if not patterns:
            return list(users)
        return [u for u in users if matches_any(u.email, patterns)]
    return list(users)


def _in_org_units(user: DirectoryUser, units: list[str]) -> bool:
    path = user.org_unit_path.lower()
    for unit in units:
        if unit == "/":
            return True
        prefix = unit.rstrip("/")
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def filter_google_workspace_users(
    users: list[DirectoryUser], variables: dict[str, Any]
) -> list[DirectoryUser]:
    """Apply Google Workspace variables: suspension, org units, then sync mode."""
    kept = users
    if not _as_bool(variables.get("include_suspended", "false")):
        kept = [u for u in kept if not u.suspended]

    units = parse_multi_value(variables.get("target_org_units"))
    if units:
        kept = [u for u in kept if _in_org_units(u, units)]

    return apply_sync_mode(
        kept,
        mode=variables.get("sync_user_filter_mode") or "all",
        excluded=variables.get("sync_excluded_emails"),
        included=variables.get("sync_included_emails"),
    )


def filter_jumpcloud_users(
    users: list[DirectoryUser], variables: dict[str, Any]
) -> list[DirectoryUser]:
    """Apply JumpCloud variables: suspension, department, exclusions."""
    kept = users
    if not _as_bool(variables.get("include_suspended", "false")):
        kept = [u for u in kept if not u.suspended]

    department = (variables.get("department_filter") or "").strip().lower()
    if department:
        kept = [u for u in kept if (u.department or "").strip().lower() == department]

    return apply_sync_mode(kept, mode="exclude", excluded=variables.get("sync_excluded_emails"))


SYNC_FILTERS = {
    "google-workspace": filter_google_workspace_users,
    "jumpcloud": filter_jumpcloud_users,
}
