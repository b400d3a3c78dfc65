"""Database client and connection management with SQLAlchemy."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ledgergate.config.settings import settings

logger = logging.getLogger(__name__)

# Global SQLAlchemy engine
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the SQLAlchemy async session factory."""
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _async_session_factory


@asynccontextmanager
async def session_scope(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Open a session from `session_factory`, commit on success and roll back on error.

    Usage:
        async with session_scope(factory) as session:
            await session.execute(update(ApiKey).values(...))
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession]:
    """Get an async database session from the global factory."""
    async with session_scope(get_session_factory()) as session:
        yield session


def _engine_options(url: str) -> dict:
    # SQLite (local runs) does not take the queue-pool sizing arguments
    if url.startswith("sqlite"):
        return {"echo": settings.database_echo}

    return {
        "echo": settings.database_echo,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_timeout": settings.database_pool_timeout,
        "pool_recycle": settings.database_pool_recycle,
        "pool_pre_ping": True,  # Verify connections before using
    }


async def init_db() -> None:
    """Initialize the database connection.

    This function:
    1. Creates the async engine
    2. Creates the session factory
    3. Verifies connection
    """
    global _engine, _async_session_factory

    try:
        logger.info(f"Connecting to database at {settings.database_url.split('@')[-1]}")

        _engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

        _async_session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("Database initialization complete")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def close_db() -> None:
    """Close the database connection gracefully."""
    global _engine, _async_session_factory

    if _engine is not None:
        logger.info("Closing database connection")
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connection closed")
