"""
Evidence form definition catalog.

Each form type has a definition describing its title, category, how the
submission date is chosen and the ordered list of fields the front-end
renders. Field keys are the keys of the submitted ``data`` object.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Optional

from complyhub.evidence_forms.form_types import EvidenceFormType
from complyhub.evidence_forms.placeholders import (
    BOARD_MEETING_MINUTES_PLACEHOLDER,
    IT_LEADERSHIP_MINUTES_PLACEHOLDER,
    RISK_COMMITTEE_MINUTES_PLACEHOLDER,
)

FieldType = Literal["text", "textarea", "date", "select", "file", "matrix", "member-select"]
SubmissionDateMode = Literal["auto", "custom"]


def _listing_dict(items: list[tuple[str, Any]]) -> dict[str, Any]:
    """``asdict`` factory that turns tuple fields into JSON-friendly lists."""
    return {key: list(value) if isinstance(value, tuple) else value for key, value in items}


@dataclass(frozen=True)
class FieldOption:
    label: str
    value: str


@dataclass(frozen=True)
class MatrixColumn:
    """One column of a matrix (repeating row) field."""

    key: str
    label: str
    required: bool = False
    placeholder: Optional[str] = None


@dataclass(frozen=True)
class FormField:
    key: str
    label: str
    type: FieldType
    required: bool = False
    description: Optional[str] = None
    placeholder: Optional[str] = None
    options: Optional[tuple[FieldOption, ...]] = None
    accept: Optional[str] = None
    add_row_label: Optional[str] = None
    columns: Optional[tuple[MatrixColumn, ...]] = None


@dataclass(frozen=True)
class EvidenceFormDefinition:
    type: EvidenceFormType
    title: str
    description: str
    category: str
    submission_date_mode: SubmissionDateMode
    portal_accessible: bool
    fields: tuple[FormField, ...] = field(default_factory=tuple)
    hidden: bool = False
    optional: bool = False

    def field_by_key(self, key: str) -> Optional[FormField]:
        return next((f for f in self.fields if f.key == key), None)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self, dict_factory=_listing_dict)
        data["type"] = self.type.value
        return data


def _options(*pairs: tuple[str, str]) -> tuple[FieldOption, ...]:
    return tuple(FieldOption(label=label, value=value) for label, value in pairs)


def meeting_fields(minutes_placeholder: str) -> tuple[FormField, ...]:
    """Fields shared by every meeting-minutes form."""
    return (
        FormField(
            key="attendees",
            label="Attendees",
            type="textarea",
            required=True,
            description="Names and roles of everyone who attended",
            placeholder="e.g. Jane Doe (CEO), John Smith (CTO), Alex Lee (Board Member)",
        ),
        FormField(
            key="date",
            label="Meeting date",
            type="date",
            required=True,
            description="Date the meeting took place",
        ),
        FormField(
            key="meetingMinutes",
            label="Meeting minutes",
            type="textarea",
            required=True,
            description="Summary of topics discussed, decisions made and action items",
            placeholder=minutes_placeholder,
        ),
        FormField(
            key="meetingMinutesApprovedBy",
            label="Approved by",
            type="text",
            required=True,
            description="Name of the person who approved the minutes",
        ),
        FormField(
            key="approvedDate",
            label="Approved date",
            type="date",
            required=True,
            description="Date the minutes were approved",
        ),
    )


MEETING_MINUTES_PLACEHOLDERS: dict[str, str] = {
    EvidenceFormType.BOARD_MEETING.value: BOARD_MEETING_MINUTES_PLACEHOLDER,
    EvidenceFormType.IT_LEADERSHIP_MEETING.value: IT_LEADERSHIP_MINUTES_PLACEHOLDER,
    EvidenceFormType.RISK_COMMITTEE_MEETING.value: RISK_COMMITTEE_MINUTES_PLACEHOLDER,
}

_TABLETOP_SCENARIO_PLACEHOLDER = """Scenario: Ransomware attack via phishing email

Timeline:
- 09:00 An employee in the finance department clicks a link in a phishing email and unknowingly downloads malware.
- 09:15 The malware begins encrypting files on the employee's workstation and mapped network drives.
- 09:30 IT helpdesk receives reports of inaccessible files from multiple users.
- 09:45 Security team identifies ransomware indicators and initiates incident response.
- 10:00 A ransom note is discovered demanding payment in cryptocurrency.

Affected systems: Finance file server, shared network drives, employee workstations
Threat vector: Phishing email with malicious attachment
Injects: At 10:30, media contacts the company about the incident."""

_TABLETOP_NOTES_PLACEHOLDER = """1. Initial Detection and Triage
- IT helpdesk escalated to security team within 15 minutes of first report.
- Security analyst confirmed ransomware indicators using EDR tooling.
- Incident Commander was notified and activated the IR plan.

2. Containment
- Decision made to isolate affected network segment immediately.
- Team agreed on network isolation to preserve forensic evidence.

3. Communication
- Internal: incident channel created for coordination; VP of Engineering notified.
- External: Legal counsel advised on breach notification requirements.

4. Recovery
- Backup restoration timeline estimated at 4-6 hours.

5. Observations
- Gap identified: No documented procedure for media inquiries during an incident."""


EVIDENCE_FORM_DEFINITIONS: dict[EvidenceFormType, EvidenceFormDefinition] = {
    EvidenceFormType.MEETING: EvidenceFormDefinition(
        type=EvidenceFormType.MEETING,
        title="Meeting Minutes",
        description="Record meeting minutes for board, IT leadership, or risk committee meetings.",
        category="Governance",
        submission_date_mode="custom",
        portal_accessible=False,
        fields=meeting_fields(BOARD_MEETING_MINUTES_PLACEHOLDER),
    ),
    EvidenceFormType.BOARD_MEETING: EvidenceFormDefinition(
        type=EvidenceFormType.BOARD_MEETING,
        title="Board Meeting",
        description=(
            "Create a company board that meets twice a year to discuss the company's "
            "direction. Conduct at least 1 meeting."
        ),
        category="Governance",
        submission_date_mode="custom",
        portal_accessible=False,
        hidden=True,
        fields=meeting_fields(BOARD_MEETING_MINUTES_PLACEHOLDER),
    ),
    EvidenceFormType.IT_LEADERSHIP_MEETING: EvidenceFormDefinition(
        type=EvidenceFormType.IT_LEADERSHIP_MEETING,
        title="IT Leadership Meeting",
        description=(
            "Create an IT leadership committee that meets monthly to discuss tech "
            "development. Conduct at least 1 meeting."
        ),
        category="Governance",
        submission_date_mode="custom",
        portal_accessible=False,
        hidden=True,
        fields=meeting_fields(IT_LEADERSHIP_MINUTES_PLACEHOLDER),
    ),
    EvidenceFormType.RISK_COMMITTEE_MEETING: EvidenceFormDefinition(
        type=EvidenceFormType.RISK_COMMITTEE_MEETING,
        title="Risk Committee Meeting",
        description=(
            "Create a risk committee that meets twice a year to discuss risks to your "
            "company. Conduct at least 1 meeting."
        ),
        category="Governance",
        submission_date_mode="custom",
        portal_accessible=False,
        hidden=True,
        fields=meeting_fields(RISK_COMMITTEE_MINUTES_PLACEHOLDER),
    ),
    EvidenceFormType.ACCESS_REQUEST: EvidenceFormDefinition(
        type=EvidenceFormType.ACCESS_REQUEST,
        title="Access Request",
        description="Track and retain user access requests with justification.",
        category="Security",
        submission_date_mode="custom",
        portal_accessible=True,
        fields=(
            FormField(
                key="userName",
                label="User Name",
                type="text",
                required=True,
                description="Full name of the person requesting access",
            ),
            FormField(
                key="accountsNeeded",
                label="Accounts Needed",
                type="textarea",
                required=True,
                description="Systems or platforms access is needed for",
                placeholder="e.g. AWS Console (read-only), Salesforce (Sales role), GitHub (org: engineering)",
            ),
            FormField(
                key="permissionsNeeded",
                label="Permissions Needed",
                type="select",
                required=True,
                description="Level of access required",
                options=_options(("Read", "read"), ("Write", "write"), ("Admin", "admin")),
            ),
            FormField(
                key="reasonForRequest",
                label="Reason For Request",
                type="textarea",
                required=True,
                description="Business justification for access request",
                placeholder=(
                    "e.g. New hire joining the Sales team; needs access to CRM and email to "
                    "perform account management duties. Access requested by hiring manager."
                ),
            ),
            FormField(
                key="accessGrantedBy",
                label="Access Granted By",
                type="text",
                required=True,
                description="Name of person who approved and granted access",
            ),
            FormField(
                key="dateAccessGranted",
                label="Date Access Granted",
                type="date",
                required=True,
                description="Date when access was provided",
            ),
        ),
    ),
    EvidenceFormType.WHISTLEBLOWER_REPORT: EvidenceFormDefinition(
        type=EvidenceFormType.WHISTLEBLOWER_REPORT,
        title="Whistleblower Report",
        description="Submit an anonymous whistleblower report. Submissions are confidential.",
        category="Security",
        submission_date_mode="auto",
        portal_accessible=True,
        optional=True,
        fields=(
            FormField(
                key="incidentDate",
                label="Incident date",
                type="date",
                required=True,
                description="Date the incident occurred",
            ),
            FormField(
                key="complaintDetails",
                label="Complaint Details",
                type="textarea",
                required=True,
                description="Detailed description of the complaint or concern",
                placeholder=(
                    "Describe what happened, when and where it occurred, and the nature of "
                    "the concern. Include any relevant facts or circumstances."
                ),
            ),
            FormField(
                key="individualsInvolved",
                label="Individuals Involved",
                type="textarea",
                required=True,
                description="Names or roles of people involved in the incident",
                placeholder=(
                    "e.g. John Smith (Manager, Sales), Jane Doe (HR), or describe by role "
                    "if names are unknown"
                ),
            ),
            FormField(
                key="evidence",
                label="Evidence",
                type="textarea",
                required=True,
                description="Any supporting evidence or documentation",
                placeholder=(
                    "Describe any documents, emails, messages, or other materials that "
                    "support this report. You may also attach files below."
                ),
            ),
            FormField(
                key="evidenceFile",
                label="Supporting file",
                type="file",
                accept=".pdf,.doc,.docx,.txt,.png,.jpg,.jpeg",
                description="Optional file attachment to support your report",
            ),
        ),
    ),
    EvidenceFormType.PENETRATION_TEST: EvidenceFormDefinition(
        type=EvidenceFormType.PENETRATION_TEST,
        title="Penetration Test",
        description=(
            "Upload a third-party penetration test report to satisfy security testing "
            "evidence requirements."
        ),
        category="Security",
        submission_date_mode="custom",
        portal_accessible=False,
        fields=(
            FormField(
                key="testDate",
                label="Test date",
                type="date",
                required=True,
                description="Date the penetration test was conducted",
            ),
            FormField(
                key="vendorName",
                label="Vendor / testing firm",
                type="text",
                required=True,
                description="Name of the third-party firm that performed the test",
            ),
            FormField(
                key="summary",
                label="Summary of findings",
                type="textarea",
                required=True,
                description="High-level summary of test scope, findings, and remediation status",
                placeholder=(
                    "Scope: e.g. External perimeter, web application, API endpoints.\n"
                    "Findings: Summarize critical/high findings and how they were identified.\n"
                    "Remediation: Status of fixes (e.g. 3 of 5 critical findings remediated; "
                    "2 in progress with target dates)."
                ),
            ),
            FormField(
                key="pentestReport",
                label="Pentest report (PDF)",
                type="file",
                required=True,
                accept=".pdf",
                description="Upload the full third-party penetration test report",
            ),
        ),
    ),
    EvidenceFormType.RBAC_MATRIX: EvidenceFormDefinition(
        type=EvidenceFormType.RBAC_MATRIX,
        title="RBAC Matrix",
        description=(
            "Track role-based access control by documenting systems, roles, permissions "
            "scope, assignees, and approval records."
        ),
        category="Security",
        submission_date_mode="custom",
        portal_accessible=False,
        fields=(
            FormField(
                key="matrixRows",
                label="RBAC entries",
                type="matrix",
                required=True,
                description="Audit-minimum role access evidence.",
                add_row_label="Add RBAC row",
                columns=(
                    MatrixColumn("system", "System", True, "e.g. AWS"),
                    MatrixColumn("roleName", "Role Name", True, "e.g. prod:operator"),
                    MatrixColumn(
                        "permissionsScope",
                        "Permissions / Scope",
                        True,
                        "Assume role; read logs/metrics; no IAM:admin",
                    ),
                    MatrixColumn("approvedBy", "Approved By", True, "name, role"),
                    MatrixColumn("lastReviewed", "Last Reviewed", True, "YYYY-MM-DD"),
                ),
            ),
        ),
    ),
    EvidenceFormType.INFRASTRUCTURE_INVENTORY: EvidenceFormDefinition(
        type=EvidenceFormType.INFRASTRUCTURE_INVENTORY,
        title="Infrastructure Inventory",
        description=(
            "Maintain an infrastructure inventory across cloud and on-prem assets with "
            "ownership, platform details, and review cadence."
        ),
        category="Security",
        submission_date_mode="custom",
        portal_accessible=False,
        fields=(
            FormField(
                key="inventoryRows",
                label="Infrastructure assets",
                type="matrix",
                required=True,
                description="Audit-minimum infrastructure evidence.",
                add_row_label="Add asset row",
                columns=(
                    MatrixColumn("assetId", "Asset ID", True, "e.g. 001"),
                    MatrixColumn("systemType", "System Type", True, "e.g. EC2 Instance"),
                    MatrixColumn("environment", "Environment", True, "e.g. Production"),
                    MatrixColumn("location", "Location", False, "e.g. AWS ap-south-1 / on-prem"),
                    MatrixColumn("assignedOwner", "Assigned Owner", True, "e.g. DevOps Team"),
                    MatrixColumn("lastReviewed", "Last Reviewed", True, "YYYY-MM-DD"),
                ),
            ),
        ),
    ),
    EvidenceFormType.EMPLOYEE_PERFORMANCE_EVALUATION: EvidenceFormDefinition(
        type=EvidenceFormType.EMPLOYEE_PERFORMANCE_EVALUATION,
        title="Employee Performance Evaluation",
        description="Capture a lightweight performance review record for audit evidence.",
        category="People",
        submission_date_mode="custom",
        portal_accessible=False,
        fields=(
            FormField(
                key="employeeName",
                label="Employee name",
                type="text",
                required=True,
                description="Full name of the employee being reviewed",
            ),
            FormField(
                key="manager",
                label="Manager",
                type="text",
                required=True,
                description="Name of the reviewing manager",
            ),
            FormField(
                key="reviewPeriodTo",
                label="Review period end date",
                type="date",
                required=True,
                description="End date of the review period",
            ),
            FormField(
                key="overallRating",
                label="Overall Rating",
                type="select",
                required=True,
                description="Manager's overall performance rating",
                options=_options(
                    ("Needs Improvement", "needs-improvement"),
                    ("Meets Expectations", "meets-expectations"),
                    ("Exceeds Expectations", "exceeds-expectations"),
                ),
            ),
            FormField(
                key="managerSignature",
                label="Manager signature (name)",
                type="text",
                required=True,
                description="Typed name of the manager as signature",
            ),
            FormField(
                key="managerSignatureDate",
                label="Manager signature date",
                type="date",
                required=True,
                description="Date the manager signed the review",
            ),
            FormField(
                key="managerComments",
                label="Manager Comments",
                type="textarea",
                required=True,
                description="Manager's written performance feedback and observations",
                placeholder=(
                    "Summarize strengths, areas for improvement, and key accomplishments "
                    "during the review period. Include specific examples where helpful."
                ),
            ),
        ),
    ),
    EvidenceFormType.NETWORK_DIAGRAM: EvidenceFormDefinition(
        type=EvidenceFormType.NETWORK_DIAGRAM,
        title="Network Diagram",
        description=(
            "Provide either a link to your network diagram or upload a file (at least one "
            "required). Optional: include if you have a current diagram of your infrastructure."
        ),
        category="Security",
        submission_date_mode="custom",
        portal_accessible=False,
        fields=(
            FormField(
                key="diagramUrl",
                label="Link to diagram (optional if you upload a file)",
                type="text",
                description="URL to a hosted diagram (e.g. Lucidchart, draw.io, Confluence)",
                placeholder="https://...",
            ),
            FormField(
                key="diagramFile",
                label="Or upload file (optional if you add a link above)",
                type="file",
                accept=".pdf,.png,.jpg,.jpeg,.svg,.vsdx",
                description="PDF, image, or Visio file",
            ),
        ),
    ),
    EvidenceFormType.TABLETOP_EXERCISE: EvidenceFormDefinition(
        type=EvidenceFormType.TABLETOP_EXERCISE,
        title="Incident Response Tabletop Exercise",
        description=(
            "Conduct a periodic tabletop exercise to test the effectiveness of your incident "
            "response plan. Simulate a security incident to ensure all team members understand "
            "their roles, communication channels, and procedures during a real event."
        ),
        category="Security",
        submission_date_mode="custom",
        portal_accessible=False,
        fields=(
            FormField(
                key="exerciseDate",
                label="Exercise date",
                type="date",
                required=True,
                description="Date the tabletop exercise was conducted",
            ),
            FormField(
                key="facilitator",
                label="Facilitator",
                type="text",
                required=True,
                description="Name and title of the person who facilitated the exercise",
                placeholder="e.g. Jane Doe, CISO",
            ),
            FormField(
                key="scenarioType",
                label="Scenario type",
                type="select",
                required=True,
                description="Category of the simulated incident",
                options=_options(
                    ("Data Breach", "data-breach"),
                    ("Ransomware", "ransomware"),
                    ("Insider Threat", "insider-threat"),
                    ("Phishing Attack", "phishing"),
                    ("DDoS Attack", "ddos"),
                    ("Third-Party / Supply Chain Breach", "third-party-breach"),
                    ("Natural Disaster / BCP", "natural-disaster"),
                    ("Custom", "custom"),
                ),
            ),
            FormField(
                key="scenarioDescription",
                label="Scenario description",
                type="textarea",
                required=True,
                description=(
                    "Describe the simulated incident scenario in detail. Include the threat "
                    "vector, affected systems, timeline of events, and any injects (new "
                    "information introduced during the exercise)."
                ),
                placeholder=_TABLETOP_SCENARIO_PLACEHOLDER,
            ),
            FormField(
                key="attendees",
                label="Attendees",
                type="matrix",
                required=True,
                description=(
                    "List all participants with their name, role or title, and department. "
                    "Include anyone who would be involved in a real incident response."
                ),
                add_row_label="Add attendee",
                columns=(
                    MatrixColumn("name", "Name", True, "e.g. Jane Doe"),
                    MatrixColumn("roleTitle", "Role / Title", True, "e.g. Incident Commander"),
                    MatrixColumn("department", "Department", True, "e.g. Information Security"),
                ),
            ),
            FormField(
                key="sessionNotes",
                label="Session notes",
                type="textarea",
                required=True,
                description=(
                    "Document the key discussion points, decisions made, communication steps "
                    "taken, and observations during the exercise. Note how each team member "
                    "responded to the scenario."
                ),
                placeholder=_TABLETOP_NOTES_PLACEHOLDER,
            ),
            FormField(
                key="actionItems",
                label="After-action report",
                type="matrix",
                required=True,
                description=(
                    "List findings from the exercise with improvement actions, assigned "
                    "owners, and target due dates."
                ),
                add_row_label="Add finding",
                columns=(
                    MatrixColumn("finding", "Finding", True, "e.g. No documented media response procedure"),
                    MatrixColumn(
                        "improvementAction",
                        "Improvement Action",
                        True,
                        "e.g. Create media response playbook",
                    ),
                    MatrixColumn("assignedOwner", "Assigned Owner", True, "e.g. Jane Doe, Comms Lead"),
                    MatrixColumn("dueDate", "Due Date", True, "YYYY-MM-DD"),
                ),
            ),
            FormField(
                key="evidenceFile",
                label="Supporting evidence",
                type="file",
                accept=".pdf,.doc,.docx,.png,.jpg,.jpeg",
                description=(
                    "Optionally upload additional evidence such as slides, agendas, or "
                    "sign-in sheets"
                ),
            ),
        ),
    ),
    EvidenceFormType.SECURITY_INCIDENT_TRACKER: EvidenceFormDefinition(
        type=EvidenceFormType.SECURITY_INCIDENT_TRACKER,
        title="Security Incident Tracker",
        description=(
            "Log and track security incidents from detection through resolution. Capture "
            "metadata, severity, ownership, and a chronological timeline of response actions."
        ),
        category="Security",
        submission_date_mode="custom",
        portal_accessible=False,
        optional=True,
        fields=(
            FormField(
                key="incidentId",
                label="Incident ID",
                type="text",
                required=True,
                description="A unique identifier for this incident",
                placeholder="e.g. INC-2026-042",
            ),
            FormField(
                key="severityLevel",
                label="Severity Level",
                type="select",
                required=True,
                description="Categorize the severity of the incident",
                options=_options(
                    ("SEV-0 (Critical)", "sev-0"),
                    ("SEV-1 (High)", "sev-1"),
                    ("SEV-2 (Medium)", "sev-2"),
                    ("SEV-3 (Low)", "sev-3"),
                ),
            ),
            FormField(
                key="incidentCommander",
                label="Incident Commander (IC)",
                type="member-select",
                required=True,
                description="The person leading the incident response",
                placeholder="Search or type a name...",
            ),
            FormField(
                key="scribe",
                label="Scribe",
                type="member-select",
                description="The person dedicated to updating the incident log",
                placeholder="Search or type a name...",
            ),
            FormField(
                key="incidentStatus",
                label="Status",
                type="select",
                required=True,
                description="Current status of the incident",
                options=_options(
                    ("Investigating", "investigating"),
                    ("Identified", "identified"),
                    ("Monitoring", "monitoring"),
                    ("Resolved", "resolved"),
                ),
            ),
            FormField(
                key="timelineEntries",
                label="Chronological Timeline",
                type="matrix",
                required=True,
                description=(
                    "Log every action and event with a UTC timestamp. This is the heart of "
                    "the incident record."
                ),
                add_row_label="Add timeline entry",
                columns=(
                    MatrixColumn("timestamp", "Timestamp (UTC)", True, "e.g. 2026-02-26 14:05"),
                    MatrixColumn(
                        "actionEvent",
                        "Action / Event",
                        True,
                        "e.g. Alert triggered: 500 errors spiking in us-east-1",
                    ),
                    MatrixColumn("author", "Author", True, "e.g. @JaneDoe or System"),
                    MatrixColumn(
                        "notesLinks",
                        "Notes / Links",
                        False,
                        "e.g. Link to Grafana dashboard, Slack channel #inc-123",
                    ),
                ),
            ),
        ),
    ),
}


def get_definition(form_type: EvidenceFormType | str) -> EvidenceFormDefinition:
    """Look up a definition; raises ValueError for an unknown form type."""
    return EVIDENCE_FORM_DEFINITIONS[EvidenceFormType(form_type)]


def list_definitions(include_hidden: bool = False) -> list[EvidenceFormDefinition]:
    """Definitions in catalog order, hidden meeting sub-types excluded by default."""
    return [
        definition
        for definition in EVIDENCE_FORM_DEFINITIONS.values()
        if include_hidden or not definition.hidden
    ]
