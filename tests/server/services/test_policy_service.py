"""Tests for PolicyService against the test database."""

import io
import zipfile
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from sqlalchemy import func, select

from complyhub.exceptions import NotFoundError, StorageError, StorageNotConfiguredError
from complyhub.server.models import Policy, PolicyVersion
from complyhub.server.services.policy_service import (
    PolicyService,
    UploadFile,
    format_policy_name,
    initial_content,
)
from conftest import PDF_BYTES, b64


def pdf(name: str) -> UploadFile:
    return UploadFile(file_name=name, file_type="application/pdf", file_data=b64(PDF_BYTES))


@pytest.fixture
def service(test_db, admin_context, settings, object_store):
    return PolicyService(test_db, admin_context, settings, object_store)


async def count_policies(session, organization_id) -> int:
    result = await session.execute(
        select(func.count()).select_from(Policy).where(Policy.organization_id == organization_id)
    )
    return result.scalar()


class TestFormatPolicyName:
    @pytest.mark.parametrize(
        "file_name,expected",
        [
            ("data-privacy_policy.pdf", "Data Privacy Policy"),
            ("AccessControlPolicy.PDF", "Access Control Policy"),
            ("incident  response.v2.pdf", "Incident Response V2"),
            ("BCP.pdf", "Bcp"),
        ],
    )
    def test_titles(self, file_name, expected):
        assert format_policy_name(file_name) == expected


class TestInitialContent:
    def test_one_empty_paragraph(self):
        assert initial_content() == [{"type": "paragraph", "content": [{"type": "text", "text": ""}]}]


class TestBulkUpload:
    async def test_creates_draft_per_file(self, service, test_db, test_org, object_store):
        result = await service.bulk_upload([pdf("data-privacy_policy.pdf"), pdf("AccessControl.pdf")])

        assert result["success"] is True
        assert result["summary"] == {"total": 2, "succeeded": 2, "failed": 0}

        policy = await service.get_policy(UUID(result["results"][0]["policy_id"]))
        assert policy.name == "Data Privacy Policy"
        assert policy.status == "draft"
        assert policy.department == "none"
        assert policy.display_format == "PDF"
        assert policy.assignee_id == test_org.admin_id
        assert policy.pdf_url.startswith(f"{test_org.id}/policies/{policy.id}/v1-")
        assert policy.pdf_url.endswith("-data-privacy_policy.pdf")

        assert len(policy.versions) == 1
        version = policy.versions[0]
        assert version.version == 1
        assert version.changelog == "Initial version (uploaded PDF)"
        assert version.pdf_url == policy.pdf_url
        assert policy.current_version_id == version.id

        assert await object_store.get_object(policy.pdf_url) == PDF_BYTES

    async def test_bad_file_does_not_abort_batch(self, service, test_db, test_org):
        bad = UploadFile(file_name="broken.pdf", file_type="application/pdf", file_data="not base64!!")

        result = await service.bulk_upload([bad, pdf("good.pdf")])

        assert result["success"] is False
        assert result["summary"] == {"total": 2, "succeeded": 1, "failed": 1}
        assert result["results"][0] == {
            "file_name": "broken.pdf",
            "policy_id": "",
            "success": False,
            "error": "Failed to create policy",
        }
        assert result["results"][1]["success"] is True
        assert await count_policies(test_db, test_org.id) == 1

    async def test_storage_failure_discards_draft(self, test_db, admin_context, settings, test_org):
        store = MagicMock()
        store.put_object = AsyncMock(side_effect=StorageError("put failed", operation="put"))
        service = PolicyService(test_db, admin_context, settings, store)

        result = await service.bulk_upload([pdf("policy.pdf")])

        assert result["summary"]["failed"] == 1
        assert await count_policies(test_db, test_org.id) == 0
        versions = await test_db.execute(select(func.count()).select_from(PolicyVersion))
        assert versions.scalar() == 0

    async def test_link_failure_removes_stored_pdf(self, service, test_db, test_org, tmp_path, monkeypatch):
        real_commit = service.commit
        commits = []

        async def commit():
            commits.append(1)
            # Second commit links the stored PDF to the draft
            if len(commits) == 2:
                raise RuntimeError("database went away")
            await real_commit()

        monkeypatch.setattr(service, "commit", commit)

        result = await service.bulk_upload([pdf("policy.pdf")])

        assert result["summary"]["failed"] == 1
        assert await count_policies(test_db, test_org.id) == 0
        assert list((tmp_path / "objects").rglob("*.pdf")) == []

    async def test_requires_storage(self, test_db, admin_context, settings):
        service = PolicyService(test_db, admin_context, settings, None)
        with pytest.raises(StorageNotConfiguredError):
            await service.bulk_upload([pdf("policy.pdf")])


class TestListPolicies:
    @pytest.fixture
    async def seeded(self, test_db, test_org):
        for name, status, department in [
            ("Access Control Policy", "published", "it"),
            ("Data Privacy Policy", "draft", "admin"),
            ("Incident Response Policy", "draft", "it"),
        ]:
            test_db.add(Policy(organization_id=test_org.id, name=name, status=status, department=department))
        await test_db.commit()

    async def test_search_is_case_insensitive(self, service, seeded):
        policies, total = await service.list_policies(search="PRIVACY")
        assert total == 1
        assert policies[0].name == "Data Privacy Policy"

    async def test_filters(self, service, seeded):
        policies, total = await service.list_policies(status="draft", department="it")
        assert total == 1
        assert policies[0].name == "Incident Response Policy"

    async def test_sort_by_name(self, service, seeded):
        policies, _ = await service.list_policies(sort="name", order="asc")
        assert [p.name for p in policies] == [
            "Access Control Policy",
            "Data Privacy Policy",
            "Incident Response Policy",
        ]

    async def test_limit_and_offset(self, service, seeded):
        policies, total = await service.list_policies(sort="name", order="desc", limit=1, offset=1)
        assert total == 3
        assert [p.name for p in policies] == ["Data Privacy Policy"]

    async def test_departments(self, service, seeded):
        assert await service.list_departments() == ["admin", "it"]


class TestGetPolicy:
    async def test_other_org_not_found(self, service, test_db):
        from complyhub.server.models import Organization

        other = Organization(name="Other")
        test_db.add(other)
        await test_db.flush()
        policy = Policy(organization_id=other.id, name="Theirs")
        test_db.add(policy)
        await test_db.commit()

        with pytest.raises(NotFoundError, match="Policy not found"):
            await service.get_policy(policy.id)


class TestBulkDelete:
    async def test_deletes_policies_and_objects(self, service, test_db, test_org, object_store):
        uploaded = await service.bulk_upload([pdf("a.pdf"), pdf("b.pdf")])
        ids = [UUID(r["policy_id"]) for r in uploaded["results"]]
        policy = await service.get_policy(ids[0])
        key = policy.pdf_url

        result = await service.bulk_delete(ids + [uuid4()])

        assert result == {"success": True, "deleted_count": 2}
        assert await count_policies(test_db, test_org.id) == 0
        with pytest.raises(StorageError):
            await object_store.get_object(key)

    async def test_nothing_matching(self, service):
        with pytest.raises(NotFoundError, match="No policies found"):
            await service.bulk_delete([uuid4()])

    async def test_object_delete_failure_is_logged(self, test_db, admin_context, settings, test_org):
        policy = Policy(organization_id=test_org.id, name="P", pdf_url=f"{test_org.id}/policies/x/v1.pdf")
        test_db.add(policy)
        await test_db.commit()

        store = MagicMock()
        store.delete_object = AsyncMock(side_effect=StorageError("delete failed"))
        service = PolicyService(test_db, admin_context, settings, store)

        result = await service.bulk_delete([policy.id])

        assert result["deleted_count"] == 1
        store.delete_object.assert_awaited_once_with(f"{test_org.id}/policies/x/v1.pdf")


class TestDownloadAll:
    async def test_zip_of_every_pdf(self, service, object_store, test_org):
        await service.bulk_upload([pdf("security.pdf"), pdf("Security.pdf"), pdf("vendor.pdf")])

        result = await service.download_all()

        assert result["policy_count"] == 3
        assert result["name"].startswith("policies-") and result["name"].endswith(".zip")
        assert result["download_url"].startswith("file://")

        data = await object_store.get_object(f"{test_org.id}/exports/{result['name']}")
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = sorted(archive.namelist())
            assert names == ["Security-2.pdf", "Security.pdf", "Vendor.pdf"]
            assert archive.read("Vendor.pdf") == PDF_BYTES

    async def test_no_pdfs(self, service, test_db, test_org):
        test_db.add(Policy(organization_id=test_org.id, name="Editor only"))
        await test_db.commit()

        with pytest.raises(NotFoundError, match="No policies with PDFs found"):
            await service.download_all()

    async def test_requires_storage(self, test_db, admin_context, settings):
        with pytest.raises(StorageNotConfiguredError):
            await PolicyService(test_db, admin_context, settings, None).download_all()
