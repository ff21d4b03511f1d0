"""
Shared pytest configuration for academy tests.

Service tests run against an in-memory SQLite database (aiosqlite) built
from the models with ``Base.metadata.create_all``. Route tests use
``TestClient`` with authentication and services monkeypatched, and a dummy
database session, so they never touch a real database.
"""

import os

os.environ["ENV"] = "test"
os.environ["REDIS_ENABLED"] = "false"
os.environ.setdefault("ENABLE_EMAIL", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from academy.database.db import Base, get_db_session
from academy.database.models import AccountStatus, UserRole

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        from academy.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own session (init_defaults, scripts) uses the test engine
    from academy.database import db

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    async_session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest_asyncio.fixture
async def manual_flush_session(test_engine):
    """Session configured like production: no autoflush before queries."""
    async_session_maker = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ---------------------------------------------------------------------------
# Data fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def coach_user(db_session):
    """An approved coach account."""
    from academy.services import user_service

    return await user_service.create_user(
        db_session,
        email="coach@academy.test",
        password_hash="hashed_password",
        name="Test Coach",
        role=UserRole.COACH.value,
        account_status=AccountStatus.APPROVED.value,
        requested_role=UserRole.COACH.value,
    )


@pytest_asyncio.fixture
async def parent_user(db_session):
    """An approved parent account."""
    from academy.services import user_service

    return await user_service.create_user(
        db_session,
        email="parent@academy.test",
        password_hash="hashed_password",
        name="Test Parent",
        role=UserRole.PARENT.value,
        account_status=AccountStatus.APPROVED.value,
        requested_role=UserRole.PARENT.value,
    )


@pytest_asyncio.fixture
async def team(db_session):
    from academy.services import team_service

    return await team_service.create_team(db_session, "Academy U14", "U14")


@pytest_asyncio.fixture
async def player(db_session, team):
    """A midfielder on the U14 team."""
    from academy.services import player_service

    return await player_service.create_player(
        db_session,
        first_name="Sami",
        last_name="Haddad",
        date_of_birth=date(2012, 5, 14),
        position="midfielder",
        team_id=team["id"],
    )


# ---------------------------------------------------------------------------
# Route helpers
# ---------------------------------------------------------------------------


def make_user(user_id=1, role=UserRole.COACH.value, account_status=AccountStatus.APPROVED.value, **extra):
    user = {
        "id": user_id,
        "email": f"user{user_id}@academy.test",
        "name": "Test User",
        "phone": None,
        "whatsapp_phone": None,
        "whatsapp_notifications": False,
        "role": role,
        "account_status": account_status,
        "requested_role": role,
        "avatar_url": None,
        "onboarding_completed": True,
        "last_signed_in": None,
        "created_at": "2026-01-01T00:00:00+00:00",
    }
    user.update(extra)
    return user


async def _fake_db_session():
    session = AsyncMock()
    # begin_nested() is used as a synchronous call returning an async context manager
    session.begin_nested = MagicMock(return_value=AsyncMock())
    yield session


@pytest.fixture
def auth_client(monkeypatch):
    """
    Factory for a TestClient authenticated as a given user.

    Usage:
        client, headers = auth_client(role="parent")
    """
    from academy.api.main import app
    from academy.services import auth_service, user_service

    def _make(user_id=1, role=UserRole.COACH.value, account_status=AccountStatus.APPROVED.value, **extra):
        user = make_user(user_id, role, account_status, **extra)

        def fake_verify_token(token):
            return {"user_id": user["id"], "role": user["role"]}

        async def fake_get_user_by_id(session, uid):
            return user if uid == user["id"] else None

        monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
        monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)
        app.dependency_overrides[get_db_session] = _fake_db_session
        return TestClient(app), {"Authorization": "Bearer dummy"}

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client():
    from academy.api.main import app

    app.dependency_overrides[get_db_session] = _fake_db_session
    yield TestClient(app)
    app.dependency_overrides.clear()
