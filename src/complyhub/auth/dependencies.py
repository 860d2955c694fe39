"""
FastAPI dependencies for request identity and role checks.

Authentication happens upstream (the dashboard's session layer or an API
gateway). The upstream forwards the active organization and the
authenticated user as trusted headers:

    X-Organization-Id: <organization uuid>
    X-User-Id: <identity provider user id>

This module resolves those headers to an active membership.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from complyhub.server.db import get_session
from complyhub.server.models import Member

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = "X-Organization-Id"
USER_HEADER = "X-User-Id"

ADMIN_ROLES = ("owner", "admin")


class CurrentMember(BaseModel):
    """The caller's membership in the active organization."""

    id: UUID
    organization_id: UUID
    user_id: str
    email: str
    name: str | None
    role: str

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def _parse_organization_id(value: str | None) -> UUID:
    if not value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Organization ID required")
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Organization ID required"
        ) from None


async def get_current_member(
    x_organization_id: str | None = Header(default=None, alias=ORGANIZATION_HEADER),
    x_user_id: str | None = Header(default=None, alias=USER_HEADER),
    session: AsyncSession = Depends(get_session),
) -> CurrentMember:
    """Resolve the caller to an active member of the requested organization."""
    organization_id = _parse_organization_id(x_organization_id)

    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")

    result = await session.execute(
        select(Member).where(
            Member.organization_id == organization_id,
            Member.user_id == x_user_id,
            Member.deactivated.is_(False),
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        logger.debug("No active membership for user %s in organization %s", x_user_id, organization_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")

    return CurrentMember.model_validate(member)


_RoleDep = Callable[..., Coroutine[Any, Any, CurrentMember]]


def require_role(*allowed_roles: str) -> _RoleDep:
    """Dependency factory that enforces a member role."""

    async def _check_role(
        member: CurrentMember = Depends(get_current_member),
    ) -> CurrentMember:
        if member.role not in allowed_roles:
            logger.debug(
                "RBAC denied: member %s (role=%s) needs one of %s",
                member.email, member.role, allowed_roles,
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
        return member

    return _check_role


require_admin: _RoleDep = require_role(*ADMIN_ROLES)
