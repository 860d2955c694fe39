"""Short one-line descriptions used on overview cards and in the CLI."""

from complyhub.evidence_forms.definitions import get_definition
from complyhub.evidence_forms.form_types import EvidenceFormType

CONCISE_FORM_DESCRIPTIONS: dict[str, str] = {
    EvidenceFormType.MEETING.value: "Record board, IT leadership, or risk committee meeting minutes.",
    EvidenceFormType.BOARD_MEETING.value: "Hold a board meeting and capture minutes.",
    EvidenceFormType.IT_LEADERSHIP_MEETING.value: "Run an IT leadership meeting and document outcomes.",
    EvidenceFormType.RISK_COMMITTEE_MEETING.value: "Conduct a risk committee meeting and record decisions.",
    EvidenceFormType.ACCESS_REQUEST.value: (
        "Track and retain user access requests. Employees can request access to systems "
        "through the employee portal."
    ),
    EvidenceFormType.WHISTLEBLOWER_REPORT.value: "Submit a confidential whistleblower report.",
    EvidenceFormType.PENETRATION_TEST.value: "Upload a third-party penetration test report.",
    EvidenceFormType.RBAC_MATRIX.value: "Document role-based access by system, role, and approval.",
    EvidenceFormType.INFRASTRUCTURE_INVENTORY.value: "Track infrastructure assets, ownership, and review dates.",
    EvidenceFormType.EMPLOYEE_PERFORMANCE_EVALUATION.value: (
        "Capture structured employee review outcomes and sign-off."
    ),
    EvidenceFormType.NETWORK_DIAGRAM.value: "Upload or link to a current network diagram.",
    EvidenceFormType.TABLETOP_EXERCISE.value: (
        "Conduct a tabletop exercise and document findings, attendees, and action items."
    ),
    EvidenceFormType.SECURITY_INCIDENT_TRACKER.value: (
        "Log and track security incidents with severity, ownership, and a chronological "
        "response timeline."
    ),
}


def concise_description(form_type: str) -> str:
    """Short description, falling back to the full definition text."""
    if form_type in CONCISE_FORM_DESCRIPTIONS:
        return CONCISE_FORM_DESCRIPTIONS[form_type]

    return get_definition(form_type).description
