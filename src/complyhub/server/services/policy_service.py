"""
Policy service for ComplyHub server.

Provides business logic for policy management:
- Bulk PDF upload, one draft policy per file
- Bulk delete with best-effort object cleanup
- Listing with search, filters and sorting
- Zip export of every uploaded policy PDF
"""

from __future__ import annotations

import asyncio
import base64
import io
import re
import zipfile
from dataclasses import dataclass
from typing import Any, Literal, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from complyhub.exceptions import NotFoundError, StorageError, StorageNotConfiguredError
from complyhub.server.config import Settings
from complyhub.server.metrics import record_policy_upload
from complyhub.server.models import Policy, PolicyVersion
from complyhub.server.services.base import BaseService, OrgContext
from complyhub.storage import ObjectStore, epoch_ms, sanitize_file_name

SortField = Literal["name", "status", "updated_at"]
SortOrder = Literal["asc", "desc"]

UPLOAD_FAILED_MESSAGE = "Failed to create policy"
INITIAL_CHANGELOG = "Initial version (uploaded PDF)"

_EXTENSION = re.compile(r"\.[^.]+$")
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_SEPARATORS = re.compile(r"[_\-+.]+")
_WHITESPACE = re.compile(r"\s+")

_SORT_COLUMNS = {
    "name": Policy.name,
    "status": Policy.status,
    "updated_at": Policy.updated_at,
}


def format_policy_name(file_name: str) -> str:
    """
    Turn an uploaded file name into a policy title.

        >>> format_policy_name("data-privacy_policy.pdf")
        'Data Privacy Policy'
        >>> format_policy_name("AccessControlPolicy.PDF")
        'Access Control Policy'
    """
    stem = _EXTENSION.sub("", file_name)
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", stem)
    spaced = _SEPARATORS.sub(" ", spaced)
    spaced = _WHITESPACE.sub(" ", spaced).strip()
    return " ".join(word[:1].upper() + word[1:].lower() for word in spaced.split(" "))


def initial_content() -> list[dict[str, Any]]:
    """Editor document with one empty paragraph."""
    return [{"type": "paragraph", "content": [{"type": "text", "text": ""}]}]


@dataclass
class UploadFile:
    """One file of a bulk upload request (base64 payload)."""

    file_name: str
    file_type: str
    file_data: str


class PolicyService(BaseService):
    """Service for managing policies.

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

    def _require_store(self) -> ObjectStore:
        if self._store is None:
            raise StorageNotConfiguredError()
        return self._store

    # ── Queries ─────────────────────────────────────────────────────────

    async def list_policies(
        self,
        *,
        search: str | None = None,
        status: str | None = None,
        department: str | None = None,
        sort: SortField = "updated_at",
        order: SortOrder = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Policy], int]:
        """List policies for the current organization with optional filters."""
        query = select(Policy).where(Policy.organization_id == self.organization_id)
        if search:
            query = query.where(func.lower(Policy.name).contains(search.lower()))
        if status:
            query = query.where(Policy.status == status)
        if department:
            query = query.where(Policy.department == department)

        column = _SORT_COLUMNS[sort]
        query = query.order_by(column.asc() if order == "asc" else column.desc(), Policy.id)

        return await self.paginate(query, limit=limit, offset=offset)

    async def list_departments(self) -> list[str]:
        """Distinct departments in use, sorted."""
        result = await self.session.execute(
            select(Policy.department)
            .where(Policy.organization_id == self.organization_id)
            .distinct()
        )
        return sorted(result.scalars().all())

    async def get_policy(self, policy_id: UUID) -> Policy:
        """Fetch a policy with its versions (organization-isolated)."""
        result = await self.session.execute(
            select(Policy)
            .options(selectinload(Policy.versions))
            .where(Policy.id == policy_id, Policy.organization_id == self.organization_id)
        )
        policy = result.scalar_one_or_none()
        if policy is None:
            raise NotFoundError(
                message="Policy not found",
                resource_type="Policy",
                resource_id=str(policy_id),
            )
        return policy

    # ── Bulk upload ─────────────────────────────────────────────────────

    async def bulk_upload(self, files: list[UploadFile]) -> dict[str, Any]:
        """
        Create one draft policy per uploaded PDF.

        Files are processed one after another. A failing file is logged,
        reported with ``success: false`` and skipped; the rest of the batch
        still runs.

        Raises:
            StorageNotConfiguredError: If no object store is configured
        """
        store = self._require_store()
        results: list[dict[str, Any]] = []

        for file in files:
            try:
                policy_id = await self._upload_one(store, file)
            except Exception as e:  # one bad file must not abort the batch
                self._log_error(
                    f"Failed to create policy for {file.file_name}: {e}",
                    file_name=file.file_name,
                )
                record_policy_upload("failed")
                results.append({
                    "file_name": file.file_name,
                    "policy_id": "",
                    "success": False,
                    "error": UPLOAD_FAILED_MESSAGE,
                })
                continue

            record_policy_upload("succeeded")
            results.append({
                "file_name": file.file_name,
                "policy_id": str(policy_id),
                "success": True,
            })

        succeeded = sum(1 for r in results if r["success"])
        failed = len(results) - succeeded
        self._log_info(f"Bulk upload finished: {succeeded} succeeded, {failed} failed")

        return {
            "success": failed == 0,
            "results": results,
            "summary": {"total": len(files), "succeeded": succeeded, "failed": failed},
        }

    async def _upload_one(self, store: ObjectStore, file: UploadFile) -> UUID:
        body = base64.b64decode(file.file_data, validate=True)

        async with self.transaction():
            policy, version = await self._create_draft(file.file_name)
        policy_id = policy.id

        key = (
            f"{self.organization_id}/policies/{policy_id}/"
            f"v1-{epoch_ms()}-{sanitize_file_name(file.file_name)}"
        )
        try:
            await store.put_object(key, body, file.file_type)
        except Exception:
            await self._discard_draft(policy_id)
            raise

        try:
            async with self.transaction():
                policy.pdf_url = key
                version.pdf_url = key
        except Exception:
            await self._delete_orphan(store, key)
            await self._discard_draft(policy_id)
            raise

        self._log_info(f"Policy uploaded: {policy.name}", policy_id=str(policy_id))
        return policy_id

    async def _create_draft(self, file_name: str) -> tuple[Policy, PolicyVersion]:
        content = initial_content()
        policy = Policy(
            organization_id=self.organization_id,
            name=format_policy_name(file_name),
            description=f"Uploaded from {file_name}",
            assignee_id=self.member_id,
            department="none",
            frequency="monthly",
            status="draft",
            content=content,
            draft_content=content,
            display_format="PDF",
        )
        self.session.add(policy)
        await self.flush()

        version = PolicyVersion(
            policy_id=policy.id,
            version=1,
            content=content,
            published_by_id=self.member_id,
            changelog=INITIAL_CHANGELOG,
        )
        self.session.add(version)
        await self.flush()

        policy.current_version_id = version.id
        return policy, version

    async def _delete_orphan(self, store: ObjectStore, key: str) -> None:
        """Remove a stored PDF whose policy could not be linked to it."""
        try:
            await store.delete_object(key)
        except StorageError as e:
            self._log_warning(f"Failed to delete object {key}: {e}", key=key)

    async def _discard_draft(self, policy_id: UUID) -> None:
        """Remove a draft whose PDF never made it to storage."""
        async with self.transaction():
            await self.session.execute(delete(PolicyVersion).where(PolicyVersion.policy_id == policy_id))
            await self.session.execute(delete(Policy).where(Policy.id == policy_id))
        self._log_warning("Discarded draft policy without PDF", policy_id=str(policy_id))

    # ── Bulk delete ─────────────────────────────────────────────────────

    async def bulk_delete(self, policy_ids: list[UUID]) -> dict[str, Any]:
        """
        Delete policies of the current organization and their stored PDFs.

        Object deletions run concurrently and are settled: a failed delete
        is logged and does not stop the database delete.

        Raises:
            NotFoundError: If none of the ids belongs to the organization
        """
        result = await self.session.execute(
            select(Policy)
            .options(selectinload(Policy.versions))
            .where(Policy.id.in_(policy_ids), Policy.organization_id == self.organization_id)
        )
        policies = list(result.scalars().all())
        if not policies:
            raise NotFoundError(message="No policies found", resource_type="Policy")

        if self._store is not None:
            keys: list[str] = []
            for policy in policies:
                candidates = [policy.pdf_url] + [v.pdf_url for v in policy.versions]
                keys.extend(k for k in candidates if k and k not in keys)
            await self._delete_objects(self._store, keys)

        ids = [p.id for p in policies]
        await self.session.execute(delete(PolicyVersion).where(PolicyVersion.policy_id.in_(ids)))
        await self.session.execute(
            delete(Policy).where(Policy.id.in_(ids), Policy.organization_id == self.organization_id)
        )
        self._log_info(f"Deleted {len(ids)} policies")
        return {"success": True, "deleted_count": len(ids)}

    async def _delete_objects(self, store: ObjectStore, keys: list[str]) -> None:
        outcomes = await asyncio.gather(
            *(store.delete_object(key) for key in keys),
            return_exceptions=True,
        )
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, Exception):
                self._log_warning(f"Failed to delete object {key}: {outcome}", key=key)

    # ── Export ──────────────────────────────────────────────────────────

    async def download_all(self) -> dict[str, Any]:
        """
        Zip every policy PDF into one stored archive.

        Raises:
            StorageNotConfiguredError: If no object store is configured
            NotFoundError: If no policy has an uploaded PDF
        """
        store = self._require_store()

        result = await self.session.execute(
            select(Policy)
            .where(Policy.organization_id == self.organization_id, Policy.pdf_url.is_not(None))
            .order_by(Policy.name)
        )
        policies = list(result.scalars().all())
        if not policies:
            raise NotFoundError(message="No policies with PDFs found", resource_type="Policy")

        buffer = io.BytesIO()
        used_names: set[str] = set()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for policy in policies:
                data = await store.get_object(policy.pdf_url)
                archive.writestr(_unique_name(sanitize_file_name(policy.name), used_names), data)

        name = f"policies-{epoch_ms()}.zip"
        key = f"{self.organization_id}/exports/{name}"
        await store.put_object(key, buffer.getvalue(), "application/zip")
        url = await store.presigned_url(key, self.settings.storage.presign_expiry_seconds)

        self._log_info(f"Exported {len(policies)} policy PDFs", key=key)
        return {"name": name, "download_url": url, "policy_count": len(policies)}


def _unique_name(stem: str, used: set[str]) -> str:
    candidate = f"{stem}.pdf"
    counter = 2
    while candidate in used:
        candidate = f"{stem}-{counter}.pdf"
        counter += 1
    used.add(candidate)
    return candidate


__all__ = [
    "PolicyService",
    "UploadFile",
    "format_policy_name",
    "initial_content",
]
