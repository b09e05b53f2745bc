"""Async database engine and session management.

Configures the SQLAlchemy async engine with connection pooling and provides
dependency injection for database sessions.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from profilelink.core.config import settings
from profilelink.core.errors import APIError

engine = create_async_engine(
    settings.database_url,
    echo=settings.environment == "development",
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session.

    Commits on success. APIError is a domain outcome raised after the writes
    that record it (audit entries, cleanup of an expired attempt), so those
    writes are committed too; store operations run in savepoints, so a failed
    one has already been rolled back. Anything else rolls back.
    """
    async with async_session_factory() as session:
        try:
            yield session
        except APIError:
            await session.commit()
            raise
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()
