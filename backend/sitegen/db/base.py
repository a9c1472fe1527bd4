"""Declarative base, process-wide async engine, and session factory.

Postgres (asyncpg) in deployment; tests and local runs can point
``DATABASE_URL`` at ``sqlite+aiosqlite://``.
"""

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from sitegen.core.config import get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Engine with options suited to the backend in ``url``."""
    if make_url(url).get_backend_name() == "sqlite":
        return create_async_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_async_engine(url, echo=echo, pool_pre_ping=True, pool_size=10, max_overflow=10)


async def init_db(url: str | None = None, create_tables: bool | None = None) -> None:
    """Create the engine and session factory once per process.

    ``create_tables`` defaults to ``settings.database_create_tables``; turn it
    off where alembic manages the schema.
    """
    global _engine, _session_factory

    if _engine is not None:
        return

    settings = get_settings()
    _engine = build_engine(url or settings.database_url, echo=settings.debug)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)

    if create_tables is None:
        create_tables = settings.database_create_tables
    if create_tables:
        import sitegen.db.models  # noqa: F401

        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("db_tables_ensured", tables=sorted(Base.metadata.tables))


async def close_db() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process session factory.

    Raises:
        RuntimeError: If ``init_db()`` has not run
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def ping_database(session_factory: async_sessionmaker[AsyncSession] | None = None) -> bool:
    """``SELECT 1`` through a fresh session. False (and logged) on any failure."""
    try:
        async with (session_factory or get_session_factory())() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("readiness_database_failed", error=str(exc), error_type=type(exc).__name__)
        return False
    return True
