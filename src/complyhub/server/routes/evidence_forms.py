"""
Evidence form API endpoints.

Form types appear in paths in their hyphenated form (``board-meeting``).
Unknown types answer 404.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Query
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from complyhub.evidence_forms import EvidenceFormType, parse_form_type
from complyhub.exceptions import NotFoundError
from complyhub.server.dependencies import AdminContextDep, EvidenceFormServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


def _form_type_or_404(value: str) -> EvidenceFormType:
    try:
        return parse_form_type(value)
    except ValueError:
        raise NotFoundError(
            message="Evidence form not found",
            resource_type="EvidenceForm",
            resource_id=value,
        ) from None


# ── Request / Response models ───────────────────────────────────────


class FileUploadBody(BaseModel):
    """Base64 file payload; accepts camelCase keys as sent by the web app."""

    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., min_length=1, max_length=255, alias="fileName")
    file_type: str = Field("application/octet-stream", min_length=1, alias="fileType")
    file_data: str = Field(..., min_length=1, alias="fileData")


class FormFileUploadRequest(FileUploadBody):
    form_type: str = Field(..., alias="formType")


class ReviewRequest(BaseModel):
    status: Literal["approved", "rejected"]


class SubmissionResponse(BaseModel):
    id: str
    form_type: str
    submitted_at: str
    status: str
    data: dict[str, Any]
    submitted_by: Optional[dict[str, Optional[str]]] = None
    reviewed_at: Optional[str] = None


class FormStatus(BaseModel):
    last_submitted_at: Optional[str] = None


# ── Catalog ─────────────────────────────────────────────────────────


@router.get("")
async def list_forms(
    svc: EvidenceFormServiceDep,
    include_hidden: bool = Query(False),
) -> list[dict[str, Any]]:
    """Form definitions, hidden ones only on request."""
    return [d.to_dict() for d in svc.list_forms(include_hidden=include_hidden)]


@router.get("/statuses", response_model=dict[str, FormStatus])
async def get_form_statuses(svc: EvidenceFormServiceDep):
    """When each form type was last submitted."""
    return await svc.get_statuses()


@router.post("/uploads")
async def upload_form_file(body: FormFileUploadRequest, svc: EvidenceFormServiceDep) -> dict[str, Any]:
    """Store a file for a file field and return the object to put in the submission."""
    form_type = _form_type_or_404(body.form_type)
    file = await svc.upload_file(form_type, body.file_name, body.file_type, body.file_data)
    return file.model_dump(by_alias=True)


# ── Access request review (before the /{form_type} routes) ──────────


@router.patch(
    "/access-request/submissions/{submission_id}/review",
    response_model=SubmissionResponse,
)
async def review_access_request(
    submission_id: UUID,
    body: ReviewRequest,
    _admin: AdminContextDep,
    svc: EvidenceFormServiceDep,
):
    """Approve or reject a pending access request."""
    submission = await svc.review(submission_id, body.status)
    return svc.serialize(submission)


# ── Per form type ───────────────────────────────────────────────────


@router.get("/{form_type}")
async def get_form(
    form_type: str,
    svc: EvidenceFormServiceDep,
    search: Optional[str] = Query(None, max_length=255),
) -> dict[str, Any]:
    """Definition plus the organization's submissions, newest first."""
    return await svc.get_form(_form_type_or_404(form_type), search=search)


@router.post("/{form_type}/submissions", response_model=SubmissionResponse, status_code=201)
async def submit_form(
    form_type: str,
    svc: EvidenceFormServiceDep,
    data: dict[str, Any] = Body(...),
):
    """Validate and store a submission. The body is the form data itself."""
    submission = await svc.submit(_form_type_or_404(form_type), data)
    return svc.serialize(submission)


@router.post("/{form_type}/upload-submission", response_model=SubmissionResponse, status_code=201)
async def submit_uploaded_file(
    form_type: str,
    body: FileUploadBody,
    svc: EvidenceFormServiceDep,
):
    """Submit an evidence document as a file, without filling the form."""
    submission = await svc.submit_uploaded_file(
        _form_type_or_404(form_type), body.file_name, body.file_type, body.file_data
    )
    return svc.serialize(submission)


@router.get("/{form_type}/export.csv")
async def export_submissions_csv(form_type: str, svc: EvidenceFormServiceDep):
    """Every submission of the form as CSV."""
    parsed = _form_type_or_404(form_type)
    content = await svc.export_csv(parsed)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{parsed.value}-submissions.csv"'},
    )


@router.get("/{form_type}/submissions/{submission_id}", response_model=SubmissionResponse)
async def get_submission(form_type: str, submission_id: UUID, svc: EvidenceFormServiceDep):
    submission = await svc.get_submission(_form_type_or_404(form_type), submission_id)
    return svc.serialize(submission)
