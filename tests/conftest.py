"""Shared test fixtures.

Route tests run the real app over ``httpx.ASGITransport`` with the database
session replaced by an ``AsyncMock`` and, where needed, the current user
replaced by an in-memory ``User``. Service tests that need Postgres use
``db_session`` and skip when it is unreachable.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Iterator
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.config import get_settings
from behaviormarket.database import get_session
from behaviormarket.db.base import Base
from behaviormarket.db.models import User
from behaviormarket.main import create_app


def make_user(**overrides: Any) -> User:
    """Build a transient User with sensible defaults."""
    fields: dict[str, Any] = {
        "id": 1,
        "email": "test@example.com",
        "password_hash": "not-a-real-hash",
        "first_name": "Test",
        "last_name": "User",
        "role": "user",
        "subscription_tier": "free",
        "total_earnings": Decimal("0"),
        "demographics": {},
        "preferences": {},
        "is_active": True,
        "email_verified": False,
        "company_id": None,
    }
    fields.update(overrides)
    return User(**fields)


@pytest.fixture
def mock_db() -> AsyncMock:
    """AsyncSession stand-in. ``execute`` returns a MagicMock result by default."""
    db = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    db.execute.return_value = MagicMock()
    return db


@pytest.fixture
def app(mock_db: AsyncMock) -> Iterator[FastAPI]:
    application = create_app()

    async def _session() -> AsyncGenerator[AsyncMock, None]:
        yield mock_db

    application.dependency_overrides[get_session] = _session
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def as_user(app: FastAPI) -> Callable[..., User]:
    """Authenticate every request as a fresh user built from ``overrides``."""

    def _login(**overrides: Any) -> User:
        user = make_user(**overrides)

        async def _current() -> User:
            return user

        app.dependency_overrides[get_current_user] = _current
        return user

    return _login


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app without running its lifespan."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on a live Postgres, inside a transaction that is rolled back.

    Skips when ``BM_DATABASE_URL`` is unreachable. Service commits only
    release a savepoint.
    """
    engine = create_async_engine(get_settings().database_url, poolclass=NullPool, connect_args={"timeout": 3})
    try:
        conn = await engine.connect()
    except (OSError, TimeoutError, SQLAlchemyError) as e:
        await engine.dispose()
        pytest.skip(f"Postgres unavailable: {e}")

    trans = await conn.begin()
    await conn.run_sync(Base.metadata.create_all)
    session = AsyncSession(bind=conn, expire_on_commit=False, join_transaction_mode="create_savepoint")
    try:
        yield session
    finally:
        await session.close()
        await trans.rollback()
        await conn.close()
        await engine.dispose()
