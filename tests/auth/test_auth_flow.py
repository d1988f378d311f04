"""Login lockout and refresh-token rotation."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from behaviormarket.auth.jwt import create_access_token, create_refresh_token, verify_token
from behaviormarket.auth.service import (
    AccountLockedError,
    authenticate_user,
    revoke_all_tokens,
    rotate_refresh_token,
)
from behaviormarket.db.models import RefreshToken
from behaviormarket.dependencies import get_redis_dep

from conftest import make_user

CREATED = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _stored(token: str, token_id: str, **overrides) -> RefreshToken:
    fields = {
        "id": token_id,
        "user_id": 1,
        "token_hash": hashlib.sha256(token.encode()).hexdigest(),
        "issued_at": CREATED,
        "expires_at": datetime.now(timezone.utc) + timedelta(days=7),
        "is_revoked": False,
    }
    fields.update(overrides)
    return RefreshToken(**fields)


@pytest.fixture
def redis() -> AsyncMock:
    fake = AsyncMock()
    fake.get.return_value = None
    fake.incr.return_value = 1
    return fake


@pytest.fixture
def with_redis(app: FastAPI, redis: AsyncMock) -> Iterator[AsyncMock]:
    async def _redis():
        yield redis

    app.dependency_overrides[get_redis_dep] = _redis
    yield redis


class TestLockout:
    async def test_locked_account_raises_before_password_check(self, mock_db: AsyncMock, redis: AsyncMock) -> None:
        mock_db.execute.return_value = _result(make_user())
        redis.get.return_value = "10"

        with pytest.raises(AccountLockedError):
            await authenticate_user(mock_db, redis, "test@example.com", "whatever")
        redis.incr.assert_not_awaited()

    async def test_first_failure_starts_window(self, mock_db: AsyncMock, redis: AsyncMock) -> None:
        mock_db.execute.return_value = _result(make_user(id=3))

        with pytest.raises(ValueError, match="Invalid email or password"):
            await authenticate_user(mock_db, redis, "test@example.com", "wrong")

        redis.incr.assert_awaited_once_with("login_attempts:3")
        redis.expire.assert_awaited_once_with("login_attempts:3", 15 * 60)

    async def test_later_failures_keep_window(self, mock_db: AsyncMock, redis: AsyncMock) -> None:
        mock_db.execute.return_value = _result(make_user(id=3))
        redis.incr.return_value = 4

        with pytest.raises(ValueError):
            await authenticate_user(mock_db, redis, "test@example.com", "wrong")
        redis.expire.assert_not_awaited()

    async def test_login_route_returns_429(
        self, client: AsyncClient, mock_db: AsyncMock, with_redis: AsyncMock
    ) -> None:
        mock_db.execute.return_value = _result(make_user())
        with_redis.get.return_value = "12"

        response = await client.post("/api/auth/login", json={"email": "test@example.com", "password": "Secret123"})

        assert response.status_code == 429
        assert response.json()["detail"] == "Account temporarily locked. Try again later."
        mock_db.commit.assert_not_awaited()

    async def test_wrong_password_is_401(
        self, client: AsyncClient, mock_db: AsyncMock, with_redis: AsyncMock
    ) -> None:
        mock_db.execute.return_value = _result(make_user())
        response = await client.post("/api/auth/login", json={"email": "test@example.com", "password": "Secret123"})
        assert response.status_code == 401


class TestRotation:
    async def test_rotate_links_old_and_new(self, mock_db: AsyncMock) -> None:
        old = _stored("old", "tid-old")
        new = await rotate_refresh_token(
            mock_db, old, "tid-new", "hash-new", datetime.now(timezone.utc) + timedelta(days=7), user_agent="x" * 600
        )

        assert old.is_revoked is True
        assert old.revoked_at is not None
        assert old.replaced_by == "tid-new"
        assert new.id == "tid-new"
        assert new.user_id == old.user_id
        assert len(new.user_agent) == 512
        mock_db.add.assert_called_once_with(new)

    async def test_revoke_all_returns_rowcount(self, mock_db: AsyncMock) -> None:
        mock_db.execute.return_value.rowcount = 3
        assert await revoke_all_tokens(mock_db, 1) == 3
        mock_db.flush.assert_awaited_once()

    async def test_refresh_route_rotates(self, client: AsyncClient, mock_db: AsyncMock) -> None:
        token = create_refresh_token(user_id=1, role="user", tier="free", token_id="tid-old")
        old = _stored(token, "tid-old")
        mock_db.execute.side_effect = [_result(old), _result(make_user(created_at=CREATED))]

        response = await client.post("/api/auth/refresh", json={"refresh_token": token})

        assert response.status_code == 200
        body = response.json()
        new_jti = verify_token(body["refresh_token"], expected_type="refresh")["jti"]
        assert new_jti != "tid-old"
        assert old.is_revoked is True
        assert old.replaced_by == new_jti
        stored = mock_db.add.call_args[0][0]
        assert isinstance(stored, RefreshToken)
        assert stored.token_hash == hashlib.sha256(body["refresh_token"].encode()).hexdigest()
        mock_db.commit.assert_awaited_once()

    async def test_reused_token_revokes_every_session(self, client: AsyncClient, mock_db: AsyncMock) -> None:
        token = create_refresh_token(user_id=1, role="user", tier="free", token_id="tid-used")
        revoke_result = MagicMock(rowcount=2)
        mock_db.execute.side_effect = [_result(_stored(token, "tid-used", is_revoked=True)), revoke_result]

        response = await client.post("/api/auth/refresh", json={"refresh_token": token})

        assert response.status_code == 401
        assert response.json()["detail"] == "Refresh token has been revoked"
        assert mock_db.execute.await_count == 2
        mock_db.commit.assert_awaited_once()
        mock_db.add.assert_not_called()

    async def test_hash_mismatch_is_401(self, client: AsyncClient, mock_db: AsyncMock) -> None:
        token = create_refresh_token(user_id=1, role="user", tier="free", token_id="tid-x")
        mock_db.execute.return_value = _result(_stored("another-token", "tid-x"))

        response = await client.post("/api/auth/refresh", json={"refresh_token": token})

        assert response.status_code == 401
        assert response.json()["detail"] == "Refresh token not found"

    async def test_access_token_cannot_refresh(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/auth/refresh", json={"refresh_token": create_access_token(user_id=1, role="user", tier="free")}
        )
        assert response.status_code == 401
