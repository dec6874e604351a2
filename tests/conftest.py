"""Shared test fixtures: in-memory SQLite engine, HTTP client, auth helpers."""

from __future__ import annotations

import os

# Set env vars BEFORE importing app modules (settings are cached on first use)
os.environ["COMENTOR_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["COMENTOR_REDIS_URL"] = ""
os.environ["COMENTOR_JWT_SECRET"] = "test-secret-key-for-progression-tests"
os.environ["COMENTOR_LOG_FORMAT"] = "console"

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from comentor.competition.league_service import list_leagues
from comentor.config import get_settings
from comentor.database import get_session
from comentor.db.base import Base
from comentor.db.models import League, User
from comentor.gamification.seed import seed_leagues
from comentor.locks import UserLockRegistry
from comentor.main import create_app

get_settings.cache_clear()

UserFactory = Callable[..., Awaitable[User]]


def make_token(user_id: int, role: str | None = None, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Mint an access token the way the platform auth service does."""
    settings = get_settings()
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iss": settings.jwt_issuer,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _auth_headers(user_id: int, role: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build a bearer header for a user id (optionally with a role claim)."""
    return _auth_headers


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory database per test with the full schema."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service calls and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def leagues(db: AsyncSession) -> list[League]:
    """The five canonical league bands."""
    await seed_leagues(db)
    await db.commit()
    return await list_leagues(db)


@pytest.fixture
def make_user(db: AsyncSession) -> UserFactory:
    """Factory for committed users."""
    counter = {"n": 0}

    async def _make(
        name: str | None = None,
        total_xp: int = 0,
        current_streak: int = 0,
        school_name: str | None = None,
        grade_level: int | None = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"Student{counter['n']}",
            surname="Test",
            total_xp=total_xp,
            current_streak=current_streak,
            school_name=school_name,
            grade_level=grade_level,
            created_at=datetime.now(timezone.utc),
        )
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def locks() -> UserLockRegistry:
    """In-process lock registry (no Redis)."""
    return UserLockRegistry()


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the session dependency pointed at the test database."""
    app = create_app()

    async def _override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
