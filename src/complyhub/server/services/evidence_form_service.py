"""
Evidence form service for ComplyHub server.

Provides business logic for evidence forms:
- Definition catalog and per-type submission status
- Submitting, searching and reviewing submissions
- File uploads referenced from form fields
- CSV export of a form type's submissions
"""

from __future__ import annotations

import base64
import csv
import io
import json
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from complyhub.evidence_forms import (
    EvidenceFormDefinition,
    EvidenceFormFile,
    EvidenceFormType,
    get_definition,
    list_definitions,
    to_db_form_type,
    to_external_form_type,
    validate_submission,
)
from complyhub.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageNotConfiguredError,
    ValidationError,
)
from complyhub.server.config import Settings
from complyhub.server.metrics import record_evidence_submission
from complyhub.server.models import EvidenceSubmission, Member
from complyhub.server.services.base import BaseService, OrgContext
from complyhub.storage import ObjectStore, epoch_ms, sanitize_file_name

REVIEWABLE_FORM_TYPE = EvidenceFormType.ACCESS_REQUEST
REVIEW_DECISIONS = ("approved", "rejected")
UPLOADED_FILE_KEY = "uploadedFile"


def _initial_status(form_type: EvidenceFormType) -> str:
    return "pending" if form_type == REVIEWABLE_FORM_TYPE else "submitted"


def _decode_file(file_data: str) -> bytes:
    try:
        return base64.b64decode(file_data, validate=True)
    except ValueError as e:
        raise ValidationError("Invalid file data", field="fileData", reason=str(e)) from e


def _cell(value: Any) -> str:
    """CSV cell for a stored field value."""
    if value is None:
        return ""
    if isinstance(value, dict) and "fileName" in value:
        return str(value["fileName"])
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


class EvidenceFormService(BaseService):
    """Service for evidence form submissions.

    All methods automatically filter by ``organization_id``.
    """

    def __init__(
        self,
        session: AsyncSession,
        org: OrgContext,
        settings: Settings,
        store: Optional[ObjectStore] = None,
    ):
        super().__init__(session, org, settings)
        self._store = store

    # ── Catalog ─────────────────────────────────────────────────────────

    def list_forms(self, include_hidden: bool = False) -> list[EvidenceFormDefinition]:
        return list_definitions(include_hidden=include_hidden)

    async def get_statuses(self) -> dict[str, dict[str, Optional[str]]]:
        """``{form_type: {"last_submitted_at": iso-or-None}}`` for every type."""
        result = await self.session.execute(
            select(EvidenceSubmission.form_type, func.max(EvidenceSubmission.submission_date))
            .where(EvidenceSubmission.organization_id == self.organization_id)
            .group_by(EvidenceSubmission.form_type)
        )
        latest = {to_external_form_type(db_type): ts for db_type, ts in result.all()}

        return {
            form_type.value: {
                "last_submitted_at": latest[form_type.value].isoformat()
                if latest.get(form_type.value) else None
            }
            for form_type in EvidenceFormType
        }

    # ── Submissions ─────────────────────────────────────────────────────

    async def list_submissions(
        self,
        form_type: EvidenceFormType,
        search: str | None = None,
    ) -> list[EvidenceSubmission]:
        """
        Submissions of one form type, newest first.

        ``search`` is a case-insensitive substring match over the
        submitted data.
        """
        result = await self.session.execute(
            select(EvidenceSubmission)
            .where(
                EvidenceSubmission.organization_id == self.organization_id,
                EvidenceSubmission.form_type == to_db_form_type(form_type),
            )
            .order_by(EvidenceSubmission.submission_date.desc())
        )
        submissions = list(result.scalars().all())

        needle = (search or "").strip().lower()
        if needle:
            submissions = [
                s for s in submissions
                if needle in json.dumps(s.data, default=str).lower()
            ]
        return submissions

    async def get_form(
        self,
        form_type: EvidenceFormType,
        search: str | None = None,
    ) -> dict[str, Any]:
        """Definition plus serialized submissions."""
        submissions = await self.list_submissions(form_type, search)
        members = await self._members_by_id(s.submitted_by_id for s in submissions)
        return {
            "form": get_definition(form_type).to_dict(),
            "submissions": [self.serialize(s, members) for s in submissions],
            "total": len(submissions),
        }

    async def get_submission(self, form_type: EvidenceFormType, submission_id: UUID) -> EvidenceSubmission:
        submission = await self.get_org_entity(EvidenceSubmission, submission_id, "Submission")
        if submission.form_type != to_db_form_type(form_type):
            raise NotFoundError(
                message="Submission not found",
                resource_type="EvidenceSubmission",
                resource_id=str(submission_id),
            )
        return submission

    async def submit(self, form_type: EvidenceFormType, data: Any) -> EvidenceSubmission:
        """
        Validate and store a submission.

        Raises:
            ForbiddenError: Employee submitting a form not open to the portal
            ValidationError: Data does not satisfy the form's schema
        """
        definition = get_definition(form_type)
        self._check_can_submit(definition)

        now = datetime.now(timezone.utc)
        if definition.submission_date_mode == "auto" and isinstance(data, dict):
            data = {**data, "submissionDate": now.isoformat()}
        cleaned = validate_submission(form_type, data)

        submission = self._add_submission(form_type, cleaned, now)
        await self.flush()

        record_evidence_submission(form_type.value)
        self._log_info(f"Evidence submitted: {form_type.value}", submission_id=str(submission.id))
        return submission

    async def submit_uploaded_file(
        self,
        form_type: EvidenceFormType,
        file_name: str,
        file_type: str,
        file_data: str,
    ) -> EvidenceSubmission:
        """Store a file as a submission of its own (no form fields)."""
        definition = get_definition(form_type)
        self._check_can_submit(definition)

        file = await self.upload_file(form_type, file_name, file_type, file_data)
        now = datetime.now(timezone.utc)
        submission = self._add_submission(
            form_type,
            {UPLOADED_FILE_KEY: file.model_dump(by_alias=True), "submissionDate": now.isoformat()},
            now,
        )
        await self.flush()

        record_evidence_submission(form_type.value)
        self._log_info(f"Evidence file submitted: {form_type.value}", submission_id=str(submission.id))
        return submission

    async def review(self, submission_id: UUID, decision: str) -> EvidenceSubmission:
        """
        Approve or reject a pending access request.

        Raises:
            ValidationError: Unknown decision
            NotFoundError: No access request with that id
            ConflictError: Submission is not pending
        """
        if decision not in REVIEW_DECISIONS:
            raise ValidationError(
                "Status must be approved or rejected", field="status", reason=decision
            )

        submission = await self.get_submission(REVIEWABLE_FORM_TYPE, submission_id)
        if submission.status != "pending":
            raise ConflictError(
                f"Submission has already been {submission.status}",
                conflicting_field="status",
            )

        submission.status = decision
        submission.reviewed_by_id = self.member_id
        submission.reviewed_at = datetime.now(timezone.utc)
        await self.flush()

        self._log_info(f"Access request {decision}", submission_id=str(submission_id))
        return submission

    def _check_can_submit(self, definition: EvidenceFormDefinition) -> None:
        if self.org.member_role == "employee" and not definition.portal_accessible:
            raise ForbiddenError()

    def _add_submission(
        self,
        form_type: EvidenceFormType,
        data: dict[str, Any],
        submitted_at: datetime,
    ) -> EvidenceSubmission:
        submission = EvidenceSubmission(
            organization_id=self.organization_id,
            form_type=to_db_form_type(form_type),
            submitted_by_id=self.member_id,
            submission_date=submitted_at,
            data=data,
            status=_initial_status(form_type),
        )
        self.session.add(submission)
        return submission

    # ── Files ───────────────────────────────────────────────────────────

    async def upload_file(
        self,
        form_type: EvidenceFormType,
        file_name: str,
        file_type: str,
        file_data: str,
    ) -> EvidenceFormFile:
        """
        Store a file for a form field and return its file object.

        Raises:
            StorageNotConfiguredError: If no object store is configured
            ValidationError: If ``file_data`` is not valid base64
        """
        if self._store is None:
            raise StorageNotConfiguredError()

        body = _decode_file(file_data)
        key = (
            f"{self.organization_id}/evidence-forms/{to_db_form_type(form_type)}/"
            f"{epoch_ms()}-{sanitize_file_name(file_name)}"
        )
        await self._store.put_object(key, body, file_type)

        self._log_info(f"Evidence file stored for {form_type.value}", key=key)
        return EvidenceFormFile(
            file_name=file_name,
            file_key=key,
            file_type=file_type,
            file_size=len(body),
        )

    # ── Export ──────────────────────────────────────────────────────────

    async def export_csv(self, form_type: EvidenceFormType) -> str:
        """
        CSV of every submission of ``form_type``.

        Raises:
            ValidationError: If there is nothing to export
        """
        submissions = await self.list_submissions(form_type)
        if not submissions:
            raise ValidationError("No submissions available to export")

        definition = get_definition(form_type)
        members = await self._members_by_id(s.submitted_by_id for s in submissions)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(
            ["Submission Date", "Submitted By", "Status"]
            + [f.label for f in definition.fields]
        )
        for submission in submissions:
            member = members.get(submission.submitted_by_id)
            writer.writerow(
                [
                    submission.submission_date.isoformat(),
                    (member.name or member.email) if member else "",
                    submission.status,
                ]
                + [_cell(submission.data.get(f.key)) for f in definition.fields]
            )
        return buffer.getvalue()

    # ── Serialization ───────────────────────────────────────────────────

    async def _members_by_id(self, ids) -> dict[UUID, Member]:
        wanted = {i for i in ids if i is not None}
        if not wanted:
            return {}
        result = await self.session.execute(select(Member).where(Member.id.in_(wanted)))
        return {m.id: m for m in result.scalars().all()}

    @staticmethod
    def serialize(
        submission: EvidenceSubmission,
        members: dict[UUID, Member] | None = None,
    ) -> dict[str, Any]:
        member = (members or {}).get(submission.submitted_by_id)
        return {
            "id": str(submission.id),
            "form_type": to_external_form_type(submission.form_type),
            "submitted_at": submission.submission_date.isoformat(),
            "status": submission.status,
            "data": submission.data,
            "submitted_by": {"name": member.name, "email": member.email} if member else None,
            "reviewed_at": submission.reviewed_at.isoformat() if submission.reviewed_at else None,
        }
