"""
Base service class for ComplyHub server.

Provides common functionality for all services:
- Database session management with explicit transaction control
- Organization isolation via OrgContext
- Settings access
- Logging setup
"""

from abc import ABC
from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from complyhub.exceptions import NotFoundError
from complyhub.server.config import Settings

if TYPE_CHECKING:
    from complyhub.auth.dependencies import CurrentMember

T = TypeVar("T")


class OrgContext(BaseModel):
    """
    Organization context for service operations.

    Constructed from CurrentMember in route handlers and passed to
    services. Background scan runs use ``system_context``.

    Attributes:
        organization_id: UUID of the active organization
        member_id: UUID of the acting member (None for system operations)
        member_email: Email of the acting member
        member_role: Role of the acting member
    """

    organization_id: UUID
    member_id: Optional[UUID] = None
    member_email: Optional[str] = None
    member_role: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_member(cls, member: "CurrentMember") -> "OrgContext":
        return cls(
            organization_id=member.organization_id,
            member_id=member.id,
            member_email=member.email,
            member_role=member.role,
        )

    @classmethod
    def system_context(cls, organization_id: UUID) -> "OrgContext":
        """Context without a member, for background runs."""
        return cls(organization_id=organization_id)

    @property
    def is_admin(self) -> bool:
        return self.member_role in ("owner", "admin")


class BaseService(ABC):
    """
    Abstract base class for all services.

    Transaction Management:
        Services do NOT auto-commit. The request session commits once the
        route handler returns. Operations that need several independent
        commits (bulk upload, background runs) use ``transaction()``:

            async with service.transaction():
                policy = await service.create_draft(...)
                # Commits on success, rolls back on exception
    """

    def __init__(
        self,
        session: AsyncSession,
        org: OrgContext,
        settings: Settings,
    ):
        self._session = session
        self._org = org
        self._settings = settings
        self._logger = logging.getLogger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession:
        return self._session

    @property
    def organization_id(self) -> UUID:
        """UUID of the organization every query is scoped to."""
        return self._org.organization_id

    @property
    def member_id(self) -> Optional[UUID]:
        """Acting member, or None for system operations."""
        return self._org.member_id

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def org(self) -> OrgContext:
        return self._org

    async def commit(self) -> None:
        await self._session.commit()

    async def flush(self) -> None:
        """Flush pending changes, e.g. to get generated ids before commit."""
        await self._session.flush()

    async def rollback(self) -> None:
        await self._session.rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Explicit transaction boundary context manager.

        Commits on successful exit, rolls back on exception.

        Raises:
            Exception: Re-raises any exception after rollback
        """
        try:
            yield
            await self.commit()
        except Exception:
            await self.rollback()
            raise

    async def get_org_entity(
        self,
        model_class: type[T],
        entity_id: UUID,
        entity_name: str = "Resource",
    ) -> T:
        """
        Fetch an entity by ID with organization isolation.

        Raises:
            NotFoundError: If entity doesn't exist or belongs to another organization
        """
        entity = await self._session.get(model_class, entity_id)
        if not entity or getattr(entity, "organization_id", None) != self.organization_id:
            raise NotFoundError(
                message=f"{entity_name} not found",
                resource_type=model_class.__name__,
                resource_id=str(entity_id),
            )
        return entity

    async def paginate(
        self,
        query: Select,
        *,
        limit: int,
        offset: int,
    ) -> tuple[list[Any], int]:
        """Run ``query`` with offset/limit and return (rows, total)."""
        total = (
            await self._session.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        result = await self._session.execute(query.offset(offset).limit(limit))
        return list(result.scalars().all()), total

    def _log_debug(self, message: str, **kwargs) -> None:
        """Log a debug message with context."""
        self._logger.debug(
            f"[org={self.organization_id}] {message}",
            extra={"organization_id": str(self.organization_id), **kwargs},
        )

    def _log_info(self, message: str, **kwargs) -> None:
        """Log an info message with context."""
        self._logger.info(
            f"[org={self.organization_id}] {message}",
            extra={"organization_id": str(self.organization_id), **kwargs},
        )

    def _log_warning(self, message: str, **kwargs) -> None:
        """Log a warning message with context."""
        self._logger.warning(
            f"[org={self.organization_id}] {message}",
            extra={"organization_id": str(self.organization_id), **kwargs},
        )

    def _log_error(self, message: str, **kwargs) -> None:
        """Log an error message with context."""
        self._logger.error(
            f"[org={self.organization_id}] {message}",
            extra={"organization_id": str(self.organization_id), **kwargs},
        )
