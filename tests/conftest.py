"""Root conftest - test infrastructure for all backend tests.

Provides:
- Fresh in-memory SQLite database per test (schema from SQLModel metadata)
- Test user fixtures
- API client with dependency overrides and an ``act_as`` user switch
- Reset of the in-process commit history cache between tests
"""

from __future__ import annotations

import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.config.settings import settings

from tests.helpers.auth import TEST_JWT_SECRET


# ─────────────────────────────────────────────────────────────────────────────
# Database
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine; one connection shared by every session."""
    import app.models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return sessionmaker(  # type: ignore[call-overload]
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_maker):
    """Database session on the per-test database.

    Application code may call commit() freely; the database is discarded
    when the test ends.
    """
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_history_cache():
    """Cached commit stores must not leak between tests."""
    from app.services.history.service import history_service

    history_service.clear()
    yield
    history_service.clear()


# ─────────────────────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────────────────────


async def _create_user(db_session: AsyncSession, username: str):
    from app.domain.user_operations import user_ops

    return await user_ops.create(
        db_session,
        obj_in={
            "id": uuid.uuid4(),
            "username": username,
            "email": f"{username}@example.com",
            "display_name": username.title(),
        },
    )


@pytest.fixture
async def test_user(db_session: AsyncSession):
    """The default authenticated user."""
    user = await _create_user(db_session, f"tester-{uuid.uuid4().hex[:6]}")
    await db_session.commit()
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession):
    """A second user, for ownership and visibility checks."""
    user = await _create_user(db_session, f"other-{uuid.uuid4().hex[:6]}")
    await db_session.commit()
    return user


# ─────────────────────────────────────────────────────────────────────────────
# Auth helpers
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def jwt_settings(monkeypatch):
    """Point token verification at a known test secret."""
    monkeypatch.setattr(settings, "jwt_secret", TEST_JWT_SECRET)
    monkeypatch.setattr(settings, "jwt_algorithm", "HS256")
    monkeypatch.setattr(settings, "jwt_audience", "authenticated")
    return settings


# ─────────────────────────────────────────────────────────────────────────────
# API Client
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def act_as():
    """Switch the user the API client is authenticated as (None = anonymous)."""
    from app.api.deps.auth import get_current_user, get_current_user_optional
    from app.main import app

    def _act_as(user) -> None:
        if user is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_current_user_optional] = lambda: user

    return _act_as


@pytest.fixture
async def api_client(db_session: AsyncSession, test_user, act_as):
    """HTTP client that bypasses JWT auth and uses the per-test database.

    Overrides: get_current_user, get_current_user_optional, get_db
    """
    from app.core.database import get_db
    from app.main import app

    act_as(test_user)

    async def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
