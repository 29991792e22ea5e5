"""
Async engine and session factories

Request handlers get one session per request through get_db. The payout
processor, the reconciliation sweep and the Celery tasks take a session
factory instead, because they open a fresh session for every unit of work.
"""

import os
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from cricfantasy.core.config import settings


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory whose objects stay readable after commit."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Pool sizing can be overridden per process (API workers vs Celery workers)
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=int(os.getenv("DB_POOL_SIZE", settings.db_pool_size)),
    max_overflow=int(os.getenv("DB_MAX_OVERFLOW", settings.db_max_overflow)),
    pool_pre_ping=True,
    pool_recycle=3600,
)

AsyncSessionLocal = create_session_factory(async_engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; rolled back if the handler raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """Session factory dependency for routes that finalize or sweep."""
    return AsyncSessionLocal
