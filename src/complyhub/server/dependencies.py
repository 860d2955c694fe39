"""
FastAPI dependency injection module for ComplyHub.

Dependencies are organized into categories:
- Settings: Application configuration
- Database: Session management
- Identity: Member and organization context
- Infrastructure: Object store and scan runner from app state
- Services: Business logic services

Usage:
    from complyhub.server.dependencies import PolicyServiceDep

    @router.get("/policies")
    async def list_policies(svc: PolicyServiceDep):
        ...

The request session comes from ``complyhub.server.db.get_session``; the
identity dependency uses the same callable, so FastAPI hands both the same
session. Tests override ``get_session`` once.
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from complyhub.auth.dependencies import CurrentMember, get_current_member, require_admin
from complyhub.server.config import Settings, get_settings
from complyhub.server.db import get_session
from complyhub.server.scan_runner import ScanRunner
from complyhub.server.services.base import OrgContext
from complyhub.server.services.cloud_security_service import CloudSecurityService
from complyhub.server.services.evidence_form_service import EvidenceFormService
from complyhub.server.services.integration_service import IntegrationService
from complyhub.server.services.policy_service import PolicyService
from complyhub.storage import ObjectStore

logger = logging.getLogger(__name__)


# =============================================================================
# SETTINGS / DATABASE
# =============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings)]

DbSessionDep = Annotated[AsyncSession, Depends(get_session)]


# =============================================================================
# IDENTITY
# =============================================================================

CurrentMemberDep = Annotated[CurrentMember, Depends(get_current_member)]
AdminMemberDep = Annotated[CurrentMember, Depends(require_admin)]


async def get_org_context(member: CurrentMemberDep) -> OrgContext:
    return OrgContext.from_member(member)


async def require_admin_context(member: AdminMemberDep) -> OrgContext:
    """Organization context for owners and admins only (403 otherwise)."""
    return OrgContext.from_member(member)


OrgContextDep = Annotated[OrgContext, Depends(get_org_context)]
AdminContextDep = Annotated[OrgContext, Depends(require_admin_context)]


# =============================================================================
# INFRASTRUCTURE
# =============================================================================


def get_object_store(request: Request) -> Optional[ObjectStore]:
    """Configured object store, or None when storage is disabled."""
    return getattr(request.app.state, "object_store", None)


def get_scan_runner(request: Request) -> ScanRunner:
    runner = getattr(request.app.state, "scan_runner", None)
    if runner is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scan runner is not available",
        )
    return runner


ObjectStoreDep = Annotated[Optional[ObjectStore], Depends(get_object_store)]
ScanRunnerDep = Annotated[ScanRunner, Depends(get_scan_runner)]


# =============================================================================
# SERVICE PROVIDERS
# =============================================================================


async def get_policy_service(
    db: DbSessionDep,
    org: OrgContextDep,
    settings: SettingsDep,
    store: ObjectStoreDep,
) -> PolicyService:
    return PolicyService(db, org, settings, store)


async def get_evidence_form_service(
    db: DbSessionDep,
    org: OrgContextDep,
    settings: SettingsDep,
    store: ObjectStoreDep,
) -> EvidenceFormService:
    return EvidenceFormService(db, org, settings, store)


async def get_integration_service(
    db: DbSessionDep,
    org: OrgContextDep,
    settings: SettingsDep,
) -> IntegrationService:
    return IntegrationService(db, org, settings)


async def get_cloud_security_service(
    db: DbSessionDep,
    org: OrgContextDep,
    settings: SettingsDep,
) -> CloudSecurityService:
    return CloudSecurityService(db, org, settings)


PolicyServiceDep = Annotated[PolicyService, Depends(get_policy_service)]
EvidenceFormServiceDep = Annotated[EvidenceFormService, Depends(get_evidence_form_service)]
IntegrationServiceDep = Annotated[IntegrationService, Depends(get_integration_service)]
CloudSecurityServiceDep = Annotated[CloudSecurityService, Depends(get_cloud_security_service)]
