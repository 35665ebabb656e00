"""
Database Infrastructure
=======================

Manages database connections, session lifecycle, and engine configuration.

Uses SQLAlchemy 2.0 async sessions (asyncpg in production, aiosqlite for
development and tests).
"""

from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event, inspect
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    SQLAlchemy 2.0 style using DeclarativeBase. Besides the mapping, every
    model can render itself as a flat, JSON-safe snapshot of its column
    values, which is what the audit trail stores.
    """

    def to_snapshot(self) -> Dict[str, Any]:
        """Current column values, including unflushed changes."""
        mapper = inspect(type(self))
        return {
            attr.key: _json_safe(getattr(self, attr.key))
            for attr in mapper.column_attrs
        }

    def persisted_snapshot(self) -> Dict[str, Any]:
        """
        Column values as last loaded from the database.

        Pending (not yet flushed) modifications are ignored, so calling this
        before a save yields the state the save is about to overwrite.
        """
        state = inspect(self)
        snapshot = {}
        for attr in state.mapper.column_attrs:
            history = state.attrs[attr.key].history
            if history.deleted:
                value = history.deleted[0]
            elif history.unchanged:
                value = history.unchanged[0]
            else:
                value = getattr(self, attr.key)
            snapshot[attr.key] = _json_safe(value)
        return snapshot


# Global engine and session maker
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If engine has not been initialized
    """
    global _engine
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_database() first.")
    return _engine


def enable_sqlite_savepoints(engine: AsyncEngine) -> AsyncEngine:
    """
    Let SQLAlchemy, not the sqlite3 driver, issue BEGIN.

    The driver's own transaction handling breaks SAVEPOINT, which the audit
    recorder relies on.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_database(database_url: Optional[str] = None, **engine_options: Any) -> AsyncEngine:
    """
    Initialize the database engine and session maker.

    Should be called during application startup. ``engine_options`` replace
    the pool settings derived from configuration (tests pass a StaticPool).

    Returns:
        AsyncEngine: The initialized engine
    """
    global _engine, _session_maker

    url = database_url or settings.database_url

    if not engine_options and not url.startswith("sqlite"):
        engine_options = {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_pre_ping": True,  # Verify connections before using
        }

    _engine = create_async_engine(url, echo=settings.debug, **engine_options)
    if url.startswith("sqlite"):
        enable_sqlite_savepoints(_engine)

    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading after commit
        autoflush=False,
    )

    return _engine


async def close_database() -> None:
    """
    Close the database engine and dispose of connections.

    Should be called during application shutdown.
    """
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async generator for database sessions.

    For use with FastAPI's Depends() - the session is committed when the
    request handler returns and rolled back when it raises.

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    global _session_maker

    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for database sessions.

    For use in background tasks such as the periodic sweep.

    Usage:
        async with get_session_context() as session:
            result = await session.execute(select(StoryModel))
    """
    global _session_maker

    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """
    Create all database tables.

    This should only be used for development/testing.
    """
    # Register every model with Base.metadata
    import src.audit.infrastructure.models  # noqa: F401
    import src.notifications.infrastructure.models  # noqa: F401
    import src.workflow.infrastructure.models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
