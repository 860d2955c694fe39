"""
Evidence form types and their database spelling.

The API speaks hyphenated values (``board-meeting``); the database enum
uses underscores (``board_meeting``).
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class EvidenceFormType(str, Enum):
    """Every evidence form the platform knows about."""

    BOARD_MEETING = "board-meeting"
    IT_LEADERSHIP_MEETING = "it-leadership-meeting"
    RISK_COMMITTEE_MEETING = "risk-committee-meeting"
    MEETING = "meeting"
    ACCESS_REQUEST = "access-request"
    WHISTLEBLOWER_REPORT = "whistleblower-report"
    PENETRATION_TEST = "penetration-test"
    RBAC_MATRIX = "rbac-matrix"
    INFRASTRUCTURE_INVENTORY = "infrastructure-inventory"
    EMPLOYEE_PERFORMANCE_EVALUATION = "employee-performance-evaluation"
    NETWORK_DIAGRAM = "network-diagram"
    TABLETOP_EXERCISE = "tabletop-exercise"
    SECURITY_INCIDENT_TRACKER = "security-incident-tracker"


MEETING_SUB_TYPES: tuple[dict[str, str], ...] = (
    {"label": "Board Meeting", "value": EvidenceFormType.BOARD_MEETING.value},
    {"label": "IT Leadership Meeting", "value": EvidenceFormType.IT_LEADERSHIP_MEETING.value},
    {"label": "Risk Committee Meeting", "value": EvidenceFormType.RISK_COMMITTEE_MEETING.value},
)

MEETING_SUB_TYPE_VALUES: tuple[str, ...] = tuple(m["value"] for m in MEETING_SUB_TYPES)

EXTERNAL_TO_DB_FORM_TYPE: dict[str, str] = {
    form_type.value: form_type.value.replace("-", "_") for form_type in EvidenceFormType
}

DB_TO_EXTERNAL_FORM_TYPE: dict[str, str] = {
    db_value: external for external, db_value in EXTERNAL_TO_DB_FORM_TYPE.items()
}

DB_EVIDENCE_FORM_TYPES: tuple[str, ...] = tuple(EXTERNAL_TO_DB_FORM_TYPE.values())


def parse_form_type(value: str) -> EvidenceFormType:
    """Parse an external form type, raising ValueError for unknown values."""
    return EvidenceFormType(value)


def to_db_form_type(form_type: EvidenceFormType | str) -> str:
    """Map an external form type to its database value."""
    return EXTERNAL_TO_DB_FORM_TYPE[EvidenceFormType(form_type).value]


def to_external_form_type(db_form_type: Optional[str]) -> Optional[str]:
    """Map a database form type back to the API value. None passes through."""
    if not db_form_type:
        return None
    return DB_TO_EXTERNAL_FORM_TYPE[db_form_type]
