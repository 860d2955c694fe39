"""
SQLAlchemy database models for ComplyHub.

Design principles:
- Every tenant-owned row carries organization_id and is queried through it
- Portable column types (Uuid, JSONB-or-JSON, non-native-safe Enum) so the
  same metadata runs on PostgreSQL and on SQLite in tests
- Explicit indexes for the list/filter queries the API serves
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID as PyUUID
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from complyhub.evidence_forms.form_types import DB_EVIDENCE_FORM_TYPES
from complyhub.server.db import Base


class JSONB(TypeDecorator):
    """JSONB on PostgreSQL, plain JSON elsewhere."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_JSONB())
        return dialect.type_descriptor(JSON())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUM TYPES
# =============================================================================

MemberRoleEnum = Enum("owner", "admin", "auditor", "employee", name="member_role")

PolicyStatusEnum = Enum("draft", "published", "needs_review", name="policy_status")

DepartmentEnum = Enum("none", "admin", "gov", "hr", "it", "itsm", "qms", name="department")

FrequencyEnum = Enum("monthly", "quarterly", "yearly", name="policy_frequency")

DisplayFormatEnum = Enum("EDITOR", "PDF", name="policy_display_format")

EvidenceFormTypeEnum = Enum(*DB_EVIDENCE_FORM_TYPES, name="evidence_form_type")

SubmissionStatusEnum = Enum(
    "submitted", "pending", "approved", "rejected",
    name="evidence_submission_status",
)

ConnectionStatusEnum = Enum("active", "disconnected", "error", name="connection_status")

ScanRunStatusEnum = Enum(
    "queued", "running", "completed", "failed", "canceled",
    name="scan_run_status",
)

FindingStatusEnum = Enum("passed", "failed", name="finding_status")

SeverityEnum = Enum("info", "low", "medium", "high", "critical", name="finding_severity")


# =============================================================================
# TENANCY
# =============================================================================


class Organization(Base):
    """Tenant."""

    __tablename__ = "organizations"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    members: Mapped[list["Member"]] = relationship(back_populates="organization")


class Member(Base):
    """A user's membership in one organization."""

    __tablename__ = "members"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[PyUUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)  # upstream identity provider id
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(MemberRoleEnum, default="employee", nullable=False)
    deactivated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    organization: Mapped["Organization"] = relationship(back_populates="members")

    __table_args__ = (
        Index("ix_members_org_user", "organization_id", "user_id", unique=True),
    )


# =============================================================================
# POLICIES
# =============================================================================


class Policy(Base):
    """A security policy document owned by an organization."""

    __tablename__ = "policies"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[PyUUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(PolicyStatusEnum, default="draft", nullable=False)
    department: Mapped[str] = mapped_column(DepartmentEnum, default="none", nullable=False)
    frequency: Mapped[Optional[str]] = mapped_column(FrequencyEnum)
    display_format: Mapped[str] = mapped_column(DisplayFormatEnum, default="EDITOR", nullable=False)
    content: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    draft_content: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    assignee_id: Mapped[Optional[PyUUID]] = mapped_column(ForeignKey("members.id"))
    pdf_url: Mapped[Optional[str]] = mapped_column(Text)  # object storage key
    # Not a foreign key: versions already reference their policy.
    current_version_id: Mapped[Optional[PyUUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    versions: Mapped[list["PolicyVersion"]] = relationship(
        back_populates="policy",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PolicyVersion.version",
    )

    __table_args__ = (
        Index("ix_policies_org_status", "organization_id", "status"),
        Index("ix_policies_org_department", "organization_id", "department"),
        Index("ix_policies_org_updated", "organization_id", "updated_at"),
    )


class PolicyVersion(Base):
    """Immutable published revision of a policy."""

    __tablename__ = "policy_versions"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    policy_id: Mapped[PyUUID] = mapped_column(
        ForeignKey("policies.id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    pdf_url: Mapped[Optional[str]] = mapped_column(Text)
    published_by_id: Mapped[Optional[PyUUID]] = mapped_column(ForeignKey("members.id"))
    changelog: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    policy: Mapped["Policy"] = relationship(back_populates="versions")

    __table_args__ = (
        Index("ix_policy_versions_policy_version", "policy_id", "version", unique=True),
    )


# =============================================================================
# EVIDENCE FORMS
# =============================================================================


class EvidenceSubmission(Base):
    """One submitted evidence form."""

    __tablename__ = "evidence_submissions"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[PyUUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    form_type: Mapped[str] = mapped_column(EvidenceFormTypeEnum, nullable=False)  # DB spelling
    submitted_by_id: Mapped[Optional[PyUUID]] = mapped_column(ForeignKey("members.id"))
    submission_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    data: Mapped[dict] = mapped_column(JSONB, nullable=False)
    status: Mapped[str] = mapped_column(SubmissionStatusEnum, default="submitted", nullable=False)
    reviewed_by_id: Mapped[Optional[PyUUID]] = mapped_column(ForeignKey("members.id"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_evidence_submissions_org_type_date", "organization_id", "form_type", "submission_date"),
    )


# =============================================================================
# INTEGRATIONS & CLOUD SECURITY
# =============================================================================


class IntegrationConnection(Base):
    """A configured third-party integration (directory, cloud account)."""

    __tablename__ = "integration_connections"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[PyUUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    provider: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(ConnectionStatusEnum, default="active", nullable=False)
    variables: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    credentials: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)  # never serialized
    last_scanned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_integration_connections_org_provider", "organization_id", "provider"),
    )


class CloudScanRun(Base):
    """One background execution of a cloud-security scan."""

    __tablename__ = "cloud_scan_runs"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[PyUUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    connection_id: Mapped[PyUUID] = mapped_column(
        ForeignKey("integration_connections.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(ScanRunStatusEnum, default="queued", nullable=False)
    output: Mapped[Optional[dict]] = mapped_column(JSONB)
    error: Mapped[Optional[str]] = mapped_column(Text)
    triggered_by_id: Mapped[Optional[PyUUID]] = mapped_column(ForeignKey("members.id"))
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_cloud_scan_runs_connection_created", "connection_id", "created_at"),
    )


class CloudFinding(Base):
    """Result of one check against one cloud resource."""

    __tablename__ = "cloud_findings"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[PyUUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    connection_id: Mapped[PyUUID] = mapped_column(
        ForeignKey("integration_connections.id", ondelete="CASCADE"), nullable=False
    )
    check_id: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    severity: Mapped[str] = mapped_column(SeverityEnum, default="medium", nullable=False)
    status: Mapped[str] = mapped_column(FindingStatusEnum, nullable=False)
    resource_id: Mapped[Optional[str]] = mapped_column(Text)
    remediation: Mapped[Optional[str]] = mapped_column(Text)
    scanned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_cloud_findings_connection_status", "connection_id", "status"),
    )
