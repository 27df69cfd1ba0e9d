"""Shared test fixtures.

Every test gets a fresh SQLite database file (through aiosqlite) with the
schema created from the ORM metadata. Redis is never initialized, so the
rate limiter lets requests through unless a test installs a fake.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ.setdefault("TICKQUEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TICKQUEST_REDIS_URL", "")
os.environ.setdefault("TICKQUEST_JWT_SECRET", "test-secret-that-is-long-enough-for-hs256")
os.environ.setdefault("TICKQUEST_LOG_FORMAT", "console")

from tickquest.config import Settings, get_settings  # noqa: E402
from tickquest.database import close_db, get_engine, get_session, init_db  # noqa: E402
from tickquest.db.base import Base  # noqa: E402
from tickquest.db.models import User  # noqa: E402
from tickquest.main import create_app  # noqa: E402

TEST_PASSWORD = "correct-horse-1"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a per-test SQLite file."""
    get_settings.cache_clear()
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tickquest.db'}",
        redis_url="",
        jwt_secret="test-secret-that-is-long-enough-for-hs256",
        log_format="console",
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[None, None]:
    """Initialize the engine and create all tables."""
    await init_db(settings.database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test setup and assertions."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def client(settings: Settings, database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to a fresh app (lifespan is not run by ASGITransport)."""
    app = create_app(settings)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_user(
    db: AsyncSession,
    username: str,
    role: str = "developer",
    name: str | None = None,
) -> User:
    """Insert a user row directly, bypassing password hashing."""
    now = datetime.now(timezone.utc)
    user = User(
        name=name or username.title(),
        username=username,
        password_hash="not-a-real-hash",
        role=role,
        badges=["Initiate"],
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.commit()
    return user


async def register(
    client: AsyncClient,
    username: str = "alice",
    password: str = TEST_PASSWORD,
    role: str | None = None,
) -> dict:
    """Register through the API and return ids and tokens."""
    body: dict = {"name": username.title(), "username": username, "password": password}
    if role is not None:
        body["role"] = role
    response = await client.post("/api/v1/auth/register", json=body)
    assert response.status_code == 201, response.text
    data = response.json()
    return {
        "username": username,
        "password": password,
        "user_id": data["user"]["id"],
        "token": data["token"],
        "refresh_token": data["refreshToken"],
    }


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def registered_user(client: AsyncClient) -> dict:
    """A developer registered through the API."""
    return await register(client)


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, registered_user: dict) -> AsyncClient:
    """Client carrying the registered user's access token."""
    client.headers.update(bearer(registered_user["token"]))
    return client
