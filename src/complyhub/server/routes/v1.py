"""
API v1 router - aggregates all v1 API routes.

Mounted by the application under the /api/v1 prefix.
"""

from fastapi import APIRouter

from complyhub.server.routes import (
    cloud_security,
    evidence_forms,
    integrations,
    policies,
)

router = APIRouter()

router.include_router(policies.router, prefix="/policies", tags=["Policies"])
router.include_router(evidence_forms.router, prefix="/evidence-forms", tags=["Evidence Forms"])
router.include_router(integrations.router, prefix="/integrations", tags=["Integrations"])
router.include_router(cloud_security.router, prefix="/cloud-security", tags=["Cloud Security"])
