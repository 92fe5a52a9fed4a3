"""
Shared fixtures.

Database tests run against an in-memory SQLite database with the full
schema created from the models.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy.pool import StaticPool

from fitsync.models import Base
from fitsync.features.users import User
from fitsync.features.integrations import (
    STRAVA_PROVIDER,
    IntegrationAutoSync,
    IntegrationConnection,
)
from fitsync.features.strava import StravaRateLimiter, TokenVault


TEST_ENCRYPTION_KEY = "0123456789abcdef" * 4
STRAVA_ATHLETE_ID = 67890


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def vault():
    return TokenVault(TEST_ENCRYPTION_KEY)


@pytest.fixture
def rate_limiter():
    return StravaRateLimiter()


@pytest_asyncio.fixture
async def user(session_factory):
    async with session_factory() as db:
        user = User(email="athlete@example.com", name="Test Athlete")
        db.add(user)
        await db.commit()
        return user


@pytest_asyncio.fixture
async def strava_connection(session_factory, vault, user):
    """Active Strava connection for athlete 67890 with a token valid for 6 hours."""
    async with session_factory() as db:
        connection = IntegrationConnection(
            user_id=user.id,
            provider=STRAVA_PROVIDER,
            provider_user_id=str(STRAVA_ATHLETE_ID),
            access_token_encrypted=vault.encrypt_token("access-token"),
            refresh_token_encrypted=vault.encrypt_token("refresh-token"),
            token_expires_at=datetime.now(timezone.utc) + timedelta(hours=6),
        )
        db.add(connection)
        db.add(IntegrationAutoSync(user_id=user.id, provider=STRAVA_PROVIDER, is_enabled=True))
        await db.commit()
        return connection
