"""
Database configuration.
Implements connection pooling, async sessions and table initialization.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy.exc import PendingRollbackError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool
from sqlmodel import SQLModel

from .config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str) -> AsyncEngine:
    """
    Create the async engine.

    Pool sizing and asyncpg connect args only apply to PostgreSQL; SQLite
    URLs (tests, local tooling) get the dialect defaults.
    """
    kwargs = {
        "echo": bool(settings.database.echo or settings.logging.enable_query_logging),
        "future": True,
    }
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_pre_ping=False,
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
            pool_timeout=settings.database.pool_timeout,
            pool_recycle=settings.database.pool_recycle,
            poolclass=AsyncAdaptedQueuePool,
            connect_args={
                "server_settings": {
                    "application_name": settings.api.app_name,
                },
                "command_timeout": 60,
                "timeout": 30,
            },
        )
    return create_async_engine(url, **kwargs)


engine = build_engine(str(settings.database.url))

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Prevent additional queries after commit
    autoflush=False,
    autocommit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.
    Implements proper session lifecycle management.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            # Only commit if session is in a valid state
            if session.in_transaction():
                try:
                    await session.commit()
                except PendingRollbackError:
                    await session.rollback()
                    raise
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """
    Dependency returning the session factory.

    Long-lived consumers (the dashboard channel) open one short session per
    tick instead of holding a request-scoped session open.
    """
    return AsyncSessionLocal


async def init_db() -> None:
    """
    Initialize database tables.
    Should be called on application startup. Existing tables are left as-is.
    """
    import db.models  # noqa: F401  (registers the complaint tables)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables verified")


async def close_db() -> None:
    """
    Close database connections.
    Should be called on application shutdown.
    """
    await engine.dispose()
