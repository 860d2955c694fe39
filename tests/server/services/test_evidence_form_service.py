"""Tests for EvidenceFormService against the test database."""

import csv
import io
from uuid import uuid4

import pytest

from complyhub.evidence_forms import EvidenceFormType
from complyhub.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageNotConfiguredError,
    ValidationError,
)
from complyhub.server.services.evidence_form_service import EvidenceFormService
from conftest import PDF_BYTES, b64


def access_request(**overrides):
    data = {
        "submissionDate": "2026-03-01",
        "userName": "Sam Lee",
        "accountsNeeded": "GitHub, AWS",
        "permissionsNeeded": "write",
        "reasonForRequest": "New hire onboarding",
        "accessGrantedBy": "Ada Admin",
        "dateAccessGranted": "2026-03-02",
    }
    data.update(overrides)
    return data


def meeting(**overrides):
    data = {
        "submissionDate": "2026-03-01",
        "attendees": "Jane Doe (CEO), John Smith (CTO)",
        "date": "2026-02-27",
        "meetingMinutes": "1. Call to order",
        "meetingMinutesApprovedBy": "Jane Doe",
        "approvedDate": "2026-03-01",
    }
    data.update(overrides)
    return data


WHISTLEBLOWER = {
    "incidentDate": "2026-02-10",
    "complaintDetails": "Expense reports altered",
    "individualsInvolved": "Finance team lead",
    "evidence": "Email thread",
}


@pytest.fixture
def service(test_db, admin_context, settings, object_store):
    return EvidenceFormService(test_db, admin_context, settings, object_store)


@pytest.fixture
def employee_service(test_db, employee_context, settings, object_store):
    return EvidenceFormService(test_db, employee_context, settings, object_store)


class TestSubmit:
    async def test_stores_cleaned_data(self, service, test_org):
        submission = await service.submit(EvidenceFormType.BOARD_MEETING, meeting(extra="dropped"))

        assert submission.form_type == "board_meeting"
        assert submission.status == "submitted"
        assert submission.submitted_by_id == test_org.admin_id
        assert "extra" not in submission.data

    async def test_access_request_starts_pending(self, service):
        submission = await service.submit(EvidenceFormType.ACCESS_REQUEST, access_request())
        assert submission.status == "pending"

    async def test_auto_submission_date(self, service):
        submission = await service.submit(EvidenceFormType.WHISTLEBLOWER_REPORT, dict(WHISTLEBLOWER))
        assert submission.data["submissionDate"].startswith(
            submission.submission_date.date().isoformat()
        )

    async def test_invalid_data(self, service):
        with pytest.raises(ValidationError):
            await service.submit(EvidenceFormType.MEETING, meeting(attendees=""))

    async def test_employee_limited_to_portal_forms(self, employee_service):
        with pytest.raises(ForbiddenError):
            await employee_service.submit(EvidenceFormType.MEETING, meeting())

    async def test_employee_can_submit_portal_forms(self, employee_service, test_org):
        submission = await employee_service.submit(EvidenceFormType.ACCESS_REQUEST, access_request())
        assert submission.submitted_by_id == test_org.employee_id


class TestReview:
    async def test_approve(self, service, test_org):
        submission = await service.submit(EvidenceFormType.ACCESS_REQUEST, access_request())

        reviewed = await service.review(submission.id, "approved")

        assert reviewed.status == "approved"
        assert reviewed.reviewed_by_id == test_org.admin_id
        assert reviewed.reviewed_at is not None

    async def test_unknown_decision(self, service):
        with pytest.raises(ValidationError, match="approved or rejected"):
            await service.review(uuid4(), "maybe")

    async def test_already_reviewed(self, service):
        submission = await service.submit(EvidenceFormType.ACCESS_REQUEST, access_request())
        await service.review(submission.id, "rejected")

        with pytest.raises(ConflictError, match="Submission has already been rejected"):
            await service.review(submission.id, "approved")

    async def test_only_access_requests(self, service):
        submission = await service.submit(EvidenceFormType.MEETING, meeting())
        with pytest.raises(NotFoundError):
            await service.review(submission.id, "approved")


class TestListing:
    async def test_search_over_data(self, service):
        await service.submit(EvidenceFormType.ACCESS_REQUEST, access_request(userName="Sam Lee"))
        await service.submit(EvidenceFormType.ACCESS_REQUEST, access_request(userName="Riya Patel"))

        found = await service.list_submissions(EvidenceFormType.ACCESS_REQUEST, search="riya")

        assert [s.data["userName"] for s in found] == ["Riya Patel"]

    async def test_get_form(self, service, test_org):
        await service.submit(EvidenceFormType.ACCESS_REQUEST, access_request())

        result = await service.get_form(EvidenceFormType.ACCESS_REQUEST)

        assert result["form"]["type"] == "access-request"
        assert result["total"] == 1
        submission = result["submissions"][0]
        assert submission["form_type"] == "access-request"
        assert submission["status"] == "pending"
        assert submission["submitted_by"] == {"name": "Ada Admin", "email": test_org.admin_email}
        assert submission["reviewed_at"] is None

    async def test_types_do_not_mix(self, service):
        await service.submit(EvidenceFormType.BOARD_MEETING, meeting())
        assert await service.list_submissions(EvidenceFormType.MEETING) == []

    async def test_get_submission_wrong_type(self, service):
        submission = await service.submit(EvidenceFormType.BOARD_MEETING, meeting())
        with pytest.raises(NotFoundError):
            await service.get_submission(EvidenceFormType.IT_LEADERSHIP_MEETING, submission.id)


class TestStatuses:
    async def test_every_type_reported(self, service):
        await service.submit(EvidenceFormType.MEETING, meeting())

        statuses = await service.get_statuses()

        assert set(statuses) == {t.value for t in EvidenceFormType}
        assert statuses["meeting"]["last_submitted_at"] is not None
        assert statuses["rbac-matrix"] == {"last_submitted_at": None}


class TestFiles:
    async def test_upload_file(self, service, object_store, test_org):
        file = await service.upload_file(
            EvidenceFormType.PENETRATION_TEST, "Pentest Report.pdf", "application/pdf", b64(PDF_BYTES)
        )

        data = file.model_dump(by_alias=True)
        assert data["fileName"] == "Pentest Report.pdf"
        assert data["fileSize"] == len(PDF_BYTES)
        assert data["fileKey"].startswith(f"{test_org.id}/evidence-forms/penetration_test/")
        assert data["fileKey"].endswith("-Pentest_Report.pdf")
        assert await object_store.get_object(file.file_key) == PDF_BYTES

    async def test_invalid_base64(self, service):
        with pytest.raises(ValidationError, match="Invalid file data"):
            await service.upload_file(EvidenceFormType.NETWORK_DIAGRAM, "d.pdf", "application/pdf", "%%%")

    async def test_requires_storage(self, test_db, admin_context, settings):
        service = EvidenceFormService(test_db, admin_context, settings, None)
        with pytest.raises(StorageNotConfiguredError):
            await service.upload_file(EvidenceFormType.NETWORK_DIAGRAM, "d.pdf", "application/pdf", "")

    async def test_submit_uploaded_file(self, service):
        submission = await service.submit_uploaded_file(
            EvidenceFormType.INFRASTRUCTURE_INVENTORY, "inventory.pdf", "application/pdf", b64(PDF_BYTES)
        )
        assert submission.data["uploadedFile"]["fileName"] == "inventory.pdf"
        assert "submissionDate" in submission.data


class TestExportCsv:
    async def test_rows(self, service):
        await service.submit(EvidenceFormType.ACCESS_REQUEST, access_request())

        rows = list(csv.reader(io.StringIO(await service.export_csv(EvidenceFormType.ACCESS_REQUEST))))

        assert rows[0][:4] == ["Submission Date", "Submitted By", "Status", "User Name"]
        assert rows[1][1] == "Ada Admin"
        assert rows[1][2] == "pending"
        assert rows[1][3] == "Sam Lee"

    async def test_nothing_to_export(self, service):
        with pytest.raises(ValidationError, match="No submissions available to export"):
            await service.export_csv(EvidenceFormType.TABLETOP_EXERCISE)
