"""Shared test fixtures.

Tests run against an in-memory SQLite database (aiosqlite, one shared
connection) with Redis left unconfigured, so the economy runs without
broadcasts or rate limiting.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

os.environ["JSA_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JSA_REDIS_URL"] = ""
os.environ["JSA_ADMIN_SECRET"] = "test-admin-secret"
os.environ["JSA_CRON_SECRET"] = "test-cron-secret"
os.environ["JSA_JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123456789"
os.environ["JSA_LOG_FORMAT"] = "console"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession  # noqa: E402

from jsa.auth.jwt import create_access_token  # noqa: E402
from jsa.config import get_settings  # noqa: E402
from jsa.database import close_db, get_engine, get_session, init_db  # noqa: E402
from jsa.db.base import Base  # noqa: E402
from jsa.db import models  # noqa: E402,F401

get_settings.cache_clear()

ADMIN_SECRET = "test-admin-secret"
CRON_SECRET = "test-cron-secret"
USER_A = "11111111-1111-4111-8111-111111111111"
USER_B = "22222222-2222-4222-8222-222222222222"
USER_C = "33333333-3333-4333-8333-333333333333"


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """A session that is closed (and its transaction released) on exit."""
    gen = get_session()
    session = await anext(gen)
    try:
        yield session
    finally:
        await gen.aclose()


async def seed(*rows: object) -> None:
    """Insert rows in their own committed transaction."""
    async with session_scope() as session:
        session.add_all(rows)
        await session.commit()


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_SECRET}"}


def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory schema per test."""
    get_settings.cache_clear()
    await init_db(get_settings().database_url)
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await close_db()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service-level tests."""
    async with session_scope() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine: AsyncEngine) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the ASGI app (lifespan not run; DB set up by db_engine)."""
    from jsa.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user_a_headers() -> dict[str, str]:
    return auth_headers(USER_A)


@pytest.fixture
def user_b_headers() -> dict[str, str]:
    return auth_headers(USER_B)
