"""
Database Session Management

Provides the async engine and session factory.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fitsync.config import settings


def _get_async_url(url: str) -> str:
    """Convert sync database URL to async version."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    elif url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    return url


# Create async engine
_async_url = _get_async_url(settings.database_url)

if _async_url.startswith("sqlite"):
    async_engine = create_async_engine(
        _async_url,
        connect_args={"check_same_thread": False}
    )
elif _async_url.startswith("postgresql"):
    # PostgreSQL with connection pool settings
    async_engine = create_async_engine(
        _async_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,  # 30 minutes
    )
else:
    async_engine = create_async_engine(_async_url)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependency for code that outlives the request (background tasks).

    Background tasks run after the response is sent, so they open their
    own session instead of borrowing the request-scoped one.
    """
    return AsyncSessionLocal


# =============================================================================
# Initialization
# =============================================================================

async def init_db() -> None:
    """Create tables that do not exist yet (development databases)."""
    from fitsync.models import Base  # registers all models

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
