"""
Shared test configuration for ComplyHub.

Route and service tests run against a real database: PostgreSQL when
TEST_DATABASE_URL is set, otherwise a throwaway SQLite file per test.
"""

import asyncio
import base64
import os
import random
import string
from types import SimpleNamespace

import pytest

ADMIN_USER_ID = "user-admin"
EMPLOYEE_USER_ID = "user-employee"
FAKE_PROVIDER = "fake-cloud"

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


# =============================================================================
# HELPERS
# =============================================================================


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def pdf_base64():
    """A tiny PDF, base64 encoded the way the web app sends it."""
    return b64(PDF_BYTES)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def database_url(tmp_path):
    """PostgreSQL from TEST_DATABASE_URL, else a SQLite file in tmp_path."""
    return os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def test_engine(database_url):
    from sqlalchemy.ext.asyncio import create_async_engine

    from complyhub.server import models  # noqa: F401
    from complyhub.server.db import Base

    engine = create_async_engine(database_url, echo=False)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:
        await engine.dispose()
        pytest.fail(f"Test database not reachable: {exc}")

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    """A session on the test database."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def test_org(test_db):
    """
    An organization with an owner and an employee member.

    Uses randomized names so parallel runs against a shared PostgreSQL
    database do not collide.
    """
    from complyhub.server.models import Member, Organization

    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))

    org = Organization(name=f"Test Org {suffix}", slug=f"test-org-{suffix}")
    test_db.add(org)
    await test_db.flush()

    admin = Member(
        organization_id=org.id,
        user_id=ADMIN_USER_ID,
        email=f"admin-{suffix}@example.com",
        name="Ada Admin",
        role="owner",
    )
    employee = Member(
        organization_id=org.id,
        user_id=EMPLOYEE_USER_ID,
        email=f"employee-{suffix}@example.com",
        name="Eli Employee",
        role="employee",
    )
    test_db.add_all([admin, employee])
    await test_db.commit()

    # Plain values: a rollback in a failing request expires ORM instances.
    return SimpleNamespace(
        id=org.id,
        admin_id=admin.id,
        admin_email=admin.email,
        employee_id=employee.id,
        employee_email=employee.email,
    )


@pytest.fixture
def admin_headers(test_org):
    return {"X-Organization-Id": str(test_org.id), "X-User-Id": ADMIN_USER_ID}


@pytest.fixture
def employee_headers(test_org):
    return {"X-Organization-Id": str(test_org.id), "X-User-Id": EMPLOYEE_USER_ID}


@pytest.fixture
def admin_context(test_org):
    from complyhub.server.services.base import OrgContext

    return OrgContext(
        organization_id=test_org.id,
        member_id=test_org.admin_id,
        member_email=test_org.admin_email,
        member_role="owner",
    )


@pytest.fixture
def employee_context(test_org):
    from complyhub.server.services.base import OrgContext

    return OrgContext(
        organization_id=test_org.id,
        member_id=test_org.employee_id,
        member_email=test_org.employee_email,
        member_role="employee",
    )


# =============================================================================
# SETTINGS / STORAGE
# =============================================================================


@pytest.fixture
def settings():
    from complyhub.server.config import Settings

    return Settings()


@pytest.fixture
def object_store(tmp_path):
    from complyhub.storage.filesystem import FilesystemObjectStore

    return FilesystemObjectStore(tmp_path / "objects")


# =============================================================================
# CLOUD SECURITY
# =============================================================================


@pytest.fixture
def fake_scanner():
    """
    A scanner registered for FAKE_PROVIDER.

    Tests steer it through class attributes: ``error`` is raised from
    scan(), ``delay`` makes it sleep first.
    """
    from complyhub.cloud import CloudScanner, Finding, register_scanner, unregister_scanner

    @register_scanner(FAKE_PROVIDER)
    class FakeScanner(CloudScanner):
        findings = [
            Finding(check_id="fake-mfa", title="MFA enabled", status="passed", severity="high"),
            Finding(
                check_id="fake-bucket",
                title="Bucket is private",
                status="failed",
                resource_id="public-assets",
                remediation="Block public access.",
            ),
        ]
        error = None
        delay = 0.0
        calls = []

        async def scan(self, credentials, variables):
            self.calls.append((credentials, variables))
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return list(self.findings)

    yield FakeScanner
    unregister_scanner(FAKE_PROVIDER)


@pytest.fixture
async def cloud_connection(test_db, test_org, fake_scanner):
    """Id of a FAKE_PROVIDER connection in the test organization."""
    from complyhub.server.models import IntegrationConnection

    connection = IntegrationConnection(
        organization_id=test_org.id,
        provider=FAKE_PROVIDER,
        name="Fake Cloud",
        variables={"region": "moon-1"},
        credentials={"token": "secret"},
    )
    test_db.add(connection)
    await test_db.commit()
    return connection.id


# =============================================================================
# API CLIENT
# =============================================================================


@pytest.fixture
async def test_client(test_db, session_factory, object_store, admin_headers):
    """
    HTTP client for the API, acting as the organization owner.

    The request session is the test session (committed after each request
    so background scan runs see the rows). ASGITransport does not run the
    lifespan, so the object store and scan runner are put on app.state here.
    """
    from httpx import ASGITransport, AsyncClient

    from complyhub.server.app import app
    from complyhub.server.config import get_settings
    from complyhub.server.db import get_session
    from complyhub.server.middleware import limiter
    from complyhub.server.scan_runner import ScanRunner

    async def override_get_session():
        try:
            yield test_db
            await test_db.commit()
        except Exception:
            await test_db.rollback()
            raise

    app.dependency_overrides[get_session] = override_get_session

    runner = ScanRunner(session_factory, get_settings())
    app.state.object_store = object_store
    app.state.scan_runner = runner

    # Disable rate limiting for tests
    original_state = limiter.enabled
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=admin_headers) as client:
        yield client

    await runner.stop_all()
    limiter.enabled = original_state
    app.dependency_overrides.clear()
    app.state.object_store = None
    app.state.scan_runner = None
