"""
Shared fixtures: an in-memory SQLite record store, a dict-backed Redis mock,
bearer token helpers and an HTTP client bound to a fresh app.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import create_jwt
from app.core.config import get_settings
from app.core.database import get_session
from app.main import create_app
from app.models.note import Note
from app.models.profile import UserProfile


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
async def engine():
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
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def redis_store():
    """Dict-backed stand-in for the Redis revocation list."""
    store: dict[str, str] = {}

    async def _get(key):
        return store.get(key)

    async def _setex(key, ttl, value):
        store[key] = value

    mock_redis = AsyncMock()
    mock_redis.get = AsyncMock(side_effect=_get)
    mock_redis.setex = AsyncMock(side_effect=_setex)
    mock_redis.ping = AsyncMock(return_value=True)
    mock_redis.store = store

    with patch("app.core.auth.get_redis", return_value=mock_redis):
        yield mock_redis


@pytest.fixture
def auth_headers():
    """Factory: Authorization header carrying a locally signed token."""

    def _make(subject: str, **claims) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_jwt(subject, **claims)}"}

    return _make


@pytest.fixture
def seed(session_factory):
    """Factory: persist profiles and notes in their own committed session."""

    async def _seed(*rows) -> None:
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()

    return _seed


def _make_notes(user_id: str, count: int, **fields) -> list[Note]:
    fields.setdefault("created_at", datetime.now(timezone.utc))
    return [
        Note(user_id=user_id, prompt=f"prompt {i}", options={"style": "brief"}, **fields)
        for i in range(count)
    ]


def _make_profile(user_id: str, *, premium: bool = False) -> UserProfile:
    return UserProfile(id=user_id, email=f"{user_id}@example.com", is_premium=premium)


@pytest.fixture
def make_notes():
    return _make_notes


@pytest.fixture
def make_profile():
    return _make_profile


@pytest.fixture
async def client(session_factory, redis_store):
    test_app = create_app()

    async def _session_override():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    test_app.dependency_overrides[get_session] = _session_override

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac
