"""
Pytest Configuration and Fixtures

Shared fixtures for unit and integration tests.
"""

import os
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

# Rate limit counters stay in process for the test run
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import sportclub.db.models  # noqa: F401  (register tables)
from sportclub.api.deps import get_db, get_redis
from sportclub.config import settings
from sportclub.core.ratelimit import limiter
from sportclub.db.base import Base
from sportclub.db.models import (
    Athlete,
    Club,
    MembershipApplication,
    Profile,
    TrainingSession,
    UserRole,
)
from sportclub.main import app


# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CLUB_ID = "club-1"
SESSION_ID = "abc"


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Start every test with empty rate limit windows."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create mock Redis client."""
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    mock.exists = AsyncMock(return_value=0)
    mock.incr = AsyncMock(return_value=1)
    mock.expire = AsyncMock(return_value=True)
    mock.ttl = AsyncMock(return_value=60)
    mock.eval = AsyncMock(return_value=1)
    mock.ping = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    return mock


@pytest_asyncio.fixture
async def async_client(test_db: AsyncSession, mock_redis: MagicMock) -> AsyncGenerator:
    """Create async test client with overridden dependencies."""

    async def override_get_db():
        yield test_db

    async def override_get_redis():
        yield mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def make_token(user_id: str, expires_in: int = 3600, **claims) -> str:
    """Sign a JWT the way the hosted auth platform does."""
    payload = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user_id: str, **extra: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}", **extra}


async def seed_user(
    db: AsyncSession,
    user_id: str,
    role: Optional[str] = "athlete",
    membership_status: Optional[str] = None,
) -> None:
    """Insert role and profile rows for a user. ``role=None`` leaves no role row."""
    if role is not None:
        db.add(UserRole(user_id=user_id, role=role))
    db.add(Profile(id=user_id, full_name=f"User {user_id}", membership_status=membership_status))
    await db.commit()


async def seed_club(db: AsyncSession, club_id: str = CLUB_ID, name: str = "Riverside Swim Club") -> Club:
    club = Club(id=club_id, name=name, sport_type="swimming")
    db.add(club)
    await db.commit()
    return club


async def seed_application(
    db: AsyncSession,
    user_id: str,
    status: str,
    club_id: str = CLUB_ID,
    rejection_reason: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> MembershipApplication:
    application = MembershipApplication(
        user_id=user_id,
        club_id=club_id,
        status=status,
        rejection_reason=rejection_reason,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(application)
    await db.commit()
    return application


async def seed_athlete(
    db: AsyncSession,
    user_id: str,
    session_id: str = SESSION_ID,
    session_status: str = "scheduled",
) -> Athlete:
    """Active athlete in a club with one training session."""
    await seed_user(db, user_id, role="athlete", membership_status="active")
    if await db.get(Club, CLUB_ID) is None:
        await seed_club(db)
    athlete = Athlete(user_id=user_id, club_id=CLUB_ID, first_name="Dana", last_name="Reyes")
    db.add(athlete)
    if await db.get(TrainingSession, session_id) is None:
        db.add(TrainingSession(
            id=session_id,
            club_id=CLUB_ID,
            title="Morning endurance",
            session_date=date(2026, 10, 19),
            status=session_status,
        ))
    await db.commit()
    return athlete
