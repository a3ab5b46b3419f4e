"""
Database connection and session management.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from estate_api.core.config import settings

from .base import Base

engine_options: dict = {"echo": settings.database.echo}

# SQLite (local development) does not take pool sizing arguments
if not settings.database.url.startswith("sqlite"):
    engine_options.update(
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.pool_overflow,
        pool_timeout=settings.database.pool_timeout,
    )

# Create async engine
engine = create_async_engine(settings.database.url, **engine_options)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Initialize database (create tables)."""
    # Register feature flag table on the shared metadata
    from estate_api.core.features import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
