"""
Database engine and session management.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db(database_url: str) -> None:
    """
    Create the engine and session factory.

    Pool options come from settings (``COMPLYHUB_DATABASE__POOL_SIZE`` and
    friends) and only apply to server databases; SQLite uses its own pool.
    """
    global _engine, _session_factory

    from complyhub.server.config import get_settings

    db_settings = get_settings().database
    engine_kwargs: dict = {"echo": False}

    if make_url(database_url).get_backend_name() != "sqlite":
        engine_kwargs.update(
            pool_size=db_settings.pool_size,
            max_overflow=db_settings.max_overflow,
            pool_recycle=db_settings.pool_recycle,
            pool_pre_ping=db_settings.pool_pre_ping,
        )
        logger.info(
            "Initializing database connection pool: pool_size=%d, max_overflow=%d, pool_recycle=%ds",
            db_settings.pool_size,
            db_settings.max_overflow,
            db_settings.pool_recycle,
        )

    _engine = create_async_engine(database_url, **engine_kwargs)
    _session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables() -> None:
    """Create every table known to the ORM metadata."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    # Register models on the metadata before create_all.
    from complyhub.server import models  # noqa: F401

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db() -> None:
    """Dispose of the engine."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
    _session_factory = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits on success, rolls back on error."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:  # rollback on any error before re-raising
            logger.debug("Session error, rolling back: %s", e)
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Session as an async context manager, for work outside a request."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:  # rollback on any error before re-raising
            logger.debug("Session error, rolling back: %s", e)
            await session.rollback()
            raise


def get_engine() -> AsyncEngine | None:
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for background scan runs and tests."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
