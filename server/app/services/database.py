"""Database connection and read-only session management.

The bridge only ever reads from the care-coordination store. This module makes
that an enforced property rather than a convention:

1. ``READONLY_DATABASE_URL`` (a SELECT-only role) is preferred when configured.
2. PostgreSQL connections are opened with ``default_transaction_read_only`` and
   a ``statement_timeout``.
3. Every session is a :class:`ReadOnlySession`, which rejects non-SELECT
   statements and flushes carrying pending changes.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from app.config import settings
from app.services.errors import ReadOnlyViolationError
from sqlalchemy import event, literal, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None


class ReadOnlySession(Session):
    """ORM session that refuses to write."""


@event.listens_for(ReadOnlySession, "do_orm_execute")
def _reject_non_select(orm_execute_state):
    if not orm_execute_state.is_select:
        raise ReadOnlyViolationError(
            f"Refusing non-SELECT statement on read-only session: {orm_execute_state.statement}"
        )


@event.listens_for(ReadOnlySession, "before_flush")
def _reject_pending_changes(session, flush_context, instances):
    if session.new or session.dirty or session.deleted:
        raise ReadOnlyViolationError("Refusing to flush changes on read-only session")


def _connect_args(url: str) -> dict:
    """Connection arguments that pin the server side to read-only mode."""
    if url.startswith("postgresql+asyncpg"):
        timeout_ms = int(settings.DATABASE_QUERY_TIMEOUT_SECONDS * 1000)
        return {
            "server_settings": {
                "default_transaction_read_only": "on",
                "statement_timeout": str(timeout_ms),
            }
        }
    return {}


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Create a session factory producing read-only sessions bound to ``bind``."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        sync_session_class=ReadOnlySession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db():
    """Initialize the read-only database engine.

    Schema is owned by the care-coordination application; tables are never
    created or migrated from here.
    """
    global engine, async_session_maker

    url = settings.READONLY_DATABASE_URL or settings.DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL (or READONLY_DATABASE_URL) must be set")
    if not settings.READONLY_DATABASE_URL:
        logger.warning(
            "READONLY_DATABASE_URL not set; relying on session guards for read-only access"
        )

    engine = create_async_engine(
        url,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        connect_args=_connect_args(url),
    )
    async_session_maker = build_session_factory(engine)
    logger.info("Read-only database engine initialized")


async def close_db():
    """Close database engine."""
    global engine, async_session_maker
    if engine:
        await engine.dispose()
    engine = None
    async_session_maker = None


@asynccontextmanager
async def query_session() -> AsyncIterator[AsyncSession]:
    """Open a short-lived read-only session."""
    if async_session_maker is None:
        raise RuntimeError("Database not initialized - call init_db() first")
    async with async_session_maker() as session:
        yield session


async def get_db() -> AsyncIterator[AsyncSession]:
    """Get read-only database session (FastAPI dependency)."""
    async with query_session() as session:
        yield session


def get_session_factory():
    """Read-only session factory for handlers that open their own sessions (FastAPI dependency)."""
    return query_session


async def ping(session: AsyncSession) -> None:
    """Round-trip a trivial SELECT."""
    await session.execute(select(literal(1)))
