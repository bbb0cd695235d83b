"""
Database session management.

WHY: Async database sessions are required for FastAPI's async/await pattern.
One session per request is the unit of work: every service call in the
request commits together or rolls back together.
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from helpdesk.core.config import settings


# pool_pre_ping recycles stale connections in long-running processes
engine = create_async_engine(
    settings.async_database_url,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# expire_on_commit=False keeps loaded attributes usable after commit
# (response serialization, post-commit notifications).
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.

    Commits when the request handler returns and rolls back if it raises,
    so a ticket mutation and its audit entry are persisted together or
    not at all.

    Yields:
        AsyncSession: Database session for the request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
