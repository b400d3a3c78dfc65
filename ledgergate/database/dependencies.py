"""Database dependencies."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgergate.database.client import get_session, get_session_factory


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """Get the request-scoped database session."""
    async with get_session() as session:
        yield session


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory, for work that must run in its own transaction.

    Background bookkeeping (e.g. API key `last_used_at`) opens a separate
    session so it never holds locks in, or fails, the request's transaction.
    """
    return get_session_factory()
