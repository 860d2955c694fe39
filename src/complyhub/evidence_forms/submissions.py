"""
Submission schemas for every evidence form type.

Submitted ``data`` objects use camelCase keys (the field keys of the form
definitions). Each schema reports problems with the human-readable
messages the front-end shows next to the field, e.g.
``"Meeting date is required"``. Unknown keys are dropped.

Usage:
    from complyhub.evidence_forms.submissions import validate_submission

    clean = validate_submission(EvidenceFormType.RBAC_MATRIX, payload)
"""

from typing import Annotated, Any, Optional, get_args, get_origin

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from complyhub.evidence_forms.form_types import EvidenceFormType
from complyhub.exceptions import ValidationError

# =============================================================================
# FIELD HELPERS
# =============================================================================


def _required(label: str | None = None, trim: bool = False) -> Any:
    """Non-empty string. ``trim`` strips whitespace before the check."""
    message = f"{label} is required" if label else "This field is required"

    def check(value: Any) -> str:
        if not isinstance(value, str):
            raise PydanticCustomError("required", message)
        if trim:
            value = value.strip()
        if not value:
            raise PydanticCustomError("required", message)
        return value

    return Annotated[Optional[str], BeforeValidator(check)]


def _choice(values: tuple[str, ...], message: str) -> Any:
    def check(value: Any) -> str:
        if value not in values:
            raise PydanticCustomError("invalid_choice", message)
        return value

    return Annotated[Optional[str], BeforeValidator(check)]


def _strip_optional(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


OptionalTrimmed = Annotated[Optional[str], BeforeValidator(_strip_optional)]


def _rows(message: str) -> BeforeValidator:
    """A matrix needs at least one row."""

    def check(value: Any) -> Any:
        if not isinstance(value, list) or not value:
            raise PydanticCustomError("too_short", message)
        return value

    return BeforeValidator(check)


def _required_file(label: str) -> BeforeValidator:
    def check(value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("required", f"{label} is required")
        return value

    return BeforeValidator(check)


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        extra="ignore",
    )


class EvidenceFormFile(_Schema):
    """Reference to an uploaded file in object storage."""

    file_name: str = Field(min_length=1)
    file_key: str = Field(min_length=1)
    file_type: str
    file_size: int = Field(ge=0)


class _SubmissionSchema(_Schema):
    submission_date: _required("Submission date") = None


# =============================================================================
# SCHEMAS
# =============================================================================


class MeetingSubmission(_SubmissionSchema):
    attendees: _required("Attendees") = None
    date: _required("Meeting date") = None
    meeting_minutes: _required("Meeting minutes") = None
    meeting_minutes_approved_by: _required("Approved by") = None
    approved_date: _required("Approved date") = None


class AccessRequestSubmission(_SubmissionSchema):
    user_name: _required("User name") = None
    accounts_needed: _required("Accounts needed") = None
    permissions_needed: _choice(
        ("read", "write", "admin"), "Please select a permissions level"
    ) = None
    reason_for_request: _required("Reason for request") = None
    access_granted_by: _required("Access granted by") = None
    date_access_granted: _required("Date access granted") = None


class WhistleblowerReportSubmission(_SubmissionSchema):
    incident_date: _required("Incident date") = None
    complaint_details: _required("Complaint details") = None
    individuals_involved: _required("Individuals involved") = None
    evidence: _required("Evidence") = None
    evidence_file: Optional[EvidenceFormFile] = None


class PenetrationTestSubmission(_SubmissionSchema):
    test_date: _required("Test date") = None
    vendor_name: _required("Vendor name") = None
    summary: _required("Summary of findings") = None
    pentest_report: Annotated[Optional[EvidenceFormFile], _required_file("Pentest report")] = None


class RbacMatrixRow(_Schema):
    system: _required("System", trim=True) = None
    role_name: _required("Role name", trim=True) = None
    permissions_scope: _required("Permissions / Scope", trim=True) = None
    approved_by: _required("Approved by", trim=True) = None
    last_reviewed: _required("Last reviewed", trim=True) = None


class RbacMatrixSubmission(_SubmissionSchema):
    matrix_rows: Annotated[
        Optional[list[RbacMatrixRow]], _rows("At least one RBAC entry is required")
    ] = None


class InfrastructureInventoryRow(_Schema):
    asset_id: _required("Asset ID", trim=True) = None
    system_type: _required("System type", trim=True) = None
    environment: _required("Environment", trim=True) = None
    location: OptionalTrimmed = None
    assigned_owner: _required("Assigned owner", trim=True) = None
    last_reviewed: _required("Last reviewed", trim=True) = None


class InfrastructureInventorySubmission(_SubmissionSchema):
    inventory_rows: Annotated[
        Optional[list[InfrastructureInventoryRow]],
        _rows("At least one infrastructure asset is required"),
    ] = None


class EmployeePerformanceEvaluationSubmission(_SubmissionSchema):
    employee_name: _required("Employee name", trim=True) = None
    manager: _required("Manager", trim=True) = None
    review_period_to: _required("Review period end date") = None
    overall_rating: _choice(
        ("needs-improvement", "meets-expectations", "exceeds-expectations"),
        "Please select an overall rating",
    ) = None
    manager_comments: _required("Manager comments", trim=True) = None
    manager_signature: _required("Manager signature", trim=True) = None
    manager_signature_date: _required("Manager signature date") = None


class NetworkDiagramSubmission(_SubmissionSchema):
    diagram_url: OptionalTrimmed = None
    diagram_file: Optional[EvidenceFormFile] = None

    @field_validator("diagram_file")
    @classmethod
    def require_link_or_file(
        cls, value: Optional[EvidenceFormFile], info: ValidationInfo
    ) -> Optional[EvidenceFormFile]:
        if value is None and not info.data.get("diagram_url"):
            raise PydanticCustomError(
                "link_or_file", "Provide either a link to the diagram or upload a file"
            )
        return value


class TabletopAttendeeRow(_Schema):
    name: _required("Name", trim=True) = None
    role_title: _required("Role / Title", trim=True) = None
    department: _required("Department", trim=True) = None


class TabletopActionItemRow(_Schema):
    finding: _required("Finding", trim=True) = None
    improvement_action: _required("Improvement action", trim=True) = None
    assigned_owner: _required("Assigned owner", trim=True) = None
    due_date: _required("Due date", trim=True) = None


TABLETOP_SCENARIO_TYPES = (
    "data-breach",
    "ransomware",
    "insider-threat",
    "phishing",
    "ddos",
    "third-party-breach",
    "natural-disaster",
    "custom",
)


class TabletopExerciseSubmission(_SubmissionSchema):
    exercise_date: _required("Exercise date") = None
    facilitator: _required("Facilitator", trim=True) = None
    scenario_type: _choice(TABLETOP_SCENARIO_TYPES, "Please select a scenario type") = None
    scenario_description: _required("Scenario description") = None
    attendees: Annotated[
        Optional[list[TabletopAttendeeRow]], _rows("At least one attendee is required")
    ] = None
    session_notes: _required("Session notes") = None
    action_items: Annotated[
        Optional[list[TabletopActionItemRow]],
        _rows("At least one after-action finding is required"),
    ] = None
    evidence_file: Optional[EvidenceFormFile] = None


class IncidentTimelineRow(_Schema):
    timestamp: _required("Timestamp", trim=True) = None
    action_event: _required("Action / Event", trim=True) = None
    author: _required("Author", trim=True) = None
    notes_links: OptionalTrimmed = None


class SecurityIncidentTrackerSubmission(_SubmissionSchema):
    incident_id: _required("Incident ID", trim=True) = None
    severity_level: _choice(
        ("sev-0", "sev-1", "sev-2", "sev-3"), "Please select a severity level"
    ) = None
    incident_commander: _required("Incident Commander", trim=True) = None
    scribe: OptionalTrimmed = None
    incident_status: _choice(
        ("investigating", "identified", "monitoring", "resolved"), "Please select a status"
    ) = None
    timeline_entries: Annotated[
        Optional[list[IncidentTimelineRow]], _rows("At least one timeline entry is required")
    ] = None


SUBMISSION_SCHEMAS: dict[EvidenceFormType, type[_Schema]] = {
    EvidenceFormType.MEETING: MeetingSubmission,
    EvidenceFormType.BOARD_MEETING: MeetingSubmission,
    EvidenceFormType.IT_LEADERSHIP_MEETING: MeetingSubmission,
    EvidenceFormType.RISK_COMMITTEE_MEETING: MeetingSubmission,
    EvidenceFormType.ACCESS_REQUEST: AccessRequestSubmission,
    EvidenceFormType.WHISTLEBLOWER_REPORT: WhistleblowerReportSubmission,
    EvidenceFormType.PENETRATION_TEST: PenetrationTestSubmission,
    EvidenceFormType.RBAC_MATRIX: RbacMatrixSubmission,
    EvidenceFormType.INFRASTRUCTURE_INVENTORY: InfrastructureInventorySubmission,
    EvidenceFormType.EMPLOYEE_PERFORMANCE_EVALUATION: EmployeePerformanceEvaluationSubmission,
    EvidenceFormType.NETWORK_DIAGRAM: NetworkDiagramSubmission,
    EvidenceFormType.TABLETOP_EXERCISE: TabletopExerciseSubmission,
    EvidenceFormType.SECURITY_INCIDENT_TRACKER: SecurityIncidentTrackerSubmission,
}


def _nested_model(annotation: Any) -> Optional[type[BaseModel]]:
    if get_origin(annotation) is None and isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    for arg in get_args(annotation):
        found = _nested_model(arg)
        if found is not None:
            return found
    return None


def _alias_path(schema: type[BaseModel], loc: tuple[Any, ...]) -> str:
    """Rewrite a pydantic ``loc`` with the camelCase field keys clients send."""
    parts: list[str] = []
    model: Optional[type[BaseModel]] = schema
    for part in loc:
        if isinstance(part, str) and model is not None:
            name = part if part in model.model_fields else next(
                (n for n, f in model.model_fields.items() if f.alias == part), None
            )
            if name is not None:
                field_info = model.model_fields[name]
                parts.append(field_info.alias or name)
                model = _nested_model(field_info.annotation)
                continue
        parts.append(str(part))
    return ".".join(parts)


def format_issues(schema: type[BaseModel], exc: PydanticValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``[{"path": "matrixRows.0.system", "message": ...}]``."""
    return [
        {
            "path": _alias_path(schema, tuple(error["loc"])),
            "message": error["msg"],
        }
        for error in exc.errors(include_url=False)
    ]


def validate_submission(form_type: EvidenceFormType | str, data: Any) -> dict[str, Any]:
    """
    Validate submitted form data against the schema for ``form_type``.

    Returns the cleaned data keyed by field key, with trimmed values and
    unknown keys removed.

    Raises:
        ValidationError: with ``details["issues"]`` listing every problem.
    """
    schema = SUBMISSION_SCHEMAS[EvidenceFormType(form_type)]
    if not isinstance(data, dict):
        raise ValidationError(
            "Invalid form data",
            details={"issues": [{"path": "", "message": "Form data must be an object"}]},
        )
    try:
        model = schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid form data", details={"issues": format_issues(schema, e)}) from e
    return model.model_dump(by_alias=True, exclude_none=True)
