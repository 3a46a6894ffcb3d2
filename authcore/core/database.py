"""Async database engine, session factory, and transaction boundary.

Every public authentication operation runs inside one transaction_scope so
multi-step mutations (rotate, verify-email, reset-password) commit or roll
back as a unit.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from authcore.core.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine with connection health checks."""
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory used by the authentication engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def transaction_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open a session and commit on success, roll back on any exception.

    Cancellation (CancelledError) also rolls back: a request abandoned
    mid-way leaves no partial multi-step mutation behind.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise
