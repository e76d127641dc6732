"""
Database engine and session management (SQLAlchemy 2.0 async).

Two ways to get a session, both transactional:
- get_db_session(): FastAPI dependency, one session per request
- session_scope(): async context manager for scripts and batch jobs

Either commits when the caller finishes cleanly and rolls back when it
raises. Services never commit; they flush and leave the boundary here.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from src.config import Settings, get_settings

log = structlog.get_logger(__name__)

_NOT_INITIALIZED = "Database not initialized. Call init_db() first."


class Base(DeclarativeBase):
    """Declarative base; Alembic autogenerate reads Base.metadata."""

    type_annotation_map: dict[Any, Any] = {}


def _redact_url(url: str) -> str:
    """Host/port/dbname part of a database URL, without credentials."""
    return url.rpartition("@")[2]


def _engine_options(settings: Settings, *, one_shot: bool) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.db_echo_sql}
    if one_shot:
        # CLI runs open a handful of sessions and exit
        options["poolclass"] = NullPool
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=300,
    )
    return options


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db(settings: Settings | None = None, *, one_shot: bool = False) -> None:
    """Create the engine and session factory for this process.

    The API calls this from its lifespan; the batch job passes
    ``one_shot=True`` to skip connection pooling.
    """
    global _engine, _session_factory
    settings = settings or get_settings()

    _engine = create_async_engine(
        settings.database_url, **_engine_options(settings, one_shot=one_shot)
    )
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    log.info(
        "database.initialized",
        url=_redact_url(settings.database_url),
        pooled=not one_shot,
    )


async def close_db() -> None:
    """Dispose the engine; safe to call when init_db() never ran."""
    global _engine, _session_factory
    engine, _engine, _session_factory = _engine, None, None
    if engine is None:
        return
    await engine.dispose()
    log.info("database.closed")


def get_engine() -> AsyncEngine:
    """The process engine (health probes open their own sessions on it)."""
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Transactional session for code outside a request.

    Usage:
        async with session_scope() as db:
            await DataRightsService(db, settings).process_access_request(rid)
    """
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)

    async with _session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency wrapping session_scope()."""
    async with session_scope() as session:
        yield session
