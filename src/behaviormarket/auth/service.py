"""
Authentication business logic.

Handles account creation, credential checks, login lockout and refresh
token bookkeeping. Functions raise ValueError / PermissionError; the router
maps those to HTTP status codes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, update

from behaviormarket.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from behaviormarket.config import get_settings
from behaviormarket.db.models import Company, RefreshToken, Subscription, User

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


class AccountLockedError(PermissionError):
    """Too many failed logins within the lockout window."""


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str = "user",
    company_name: str | None = None,
    industry: str | None = None,
    company_size: str = "startup",
) -> User:
    """
    Create a user, their free subscription and, for companies, the Company.

    Raises:
        PasswordStrengthError: Weak password.
        ValueError: Email already registered or role not self-assignable.
    """
    if role not in ("user", "company"):
        msg = "Role must be 'user' or 'company'"
        raise ValueError(msg)

    validate_password_strength(password)

    email = email.lower().strip()
    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ValueError(msg)

    company: Company | None = None
    if role == "company":
        existing = await db.execute(select(Company.id).where(func.lower(Company.email) == email))
        if existing.scalar_one_or_none() is not None:
            msg = "Email already registered"
            raise ValueError(msg)
        company = Company(
            name=company_name or f"{first_name} {last_name}",
            email=email,
            industry=industry,
            size=company_size,
        )
        db.add(company)
        await db.flush()

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        subscription_tier="free",
        company_id=company.id if company else None,
        demographics={},
        preferences={},
    )
    db.add(user)
    await db.flush()

    db.add(Subscription(user_id=user.id, tier="free", status="active", features={}))
    await db.flush()

    logger.info("user_registered", user_id=user.id, role=role, company_id=user.company_id)
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, redis: Redis, email: str, password: str) -> User:
    """
    Check email + password and record the login.

    Raises:
        ValueError: Unknown email or wrong password.
        AccountLockedError: Too many recent failures.
        PermissionError: Account deactivated.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        msg = "Invalid email or password"
        raise ValueError(msg)

    if await check_account_lockout(redis, user.id):
        msg = "Account temporarily locked. Try again later."
        raise AccountLockedError(msg)

    if not verify_password(password, user.password_hash):
        attempts = await increment_failed_login(redis, user.id)
        logger.info("login_failed", user_id=user.id, attempts=attempts)
        msg = "Invalid email or password"
        raise ValueError(msg)

    if not user.is_active:
        msg = "Account is deactivated"
        raise PermissionError(msg)

    await clear_failed_login(redis, user.id)

    user.last_login_at = datetime.now(timezone.utc)
    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)
    await db.flush()
    return user


# ---------------------------------------------------------------------------
# Account lockout
# ---------------------------------------------------------------------------


def _attempts_key(user_id: int) -> str:
    return f"login_attempts:{user_id}"


async def check_account_lockout(redis: Redis, user_id: int) -> bool:
    settings = get_settings()
    count = await redis.get(_attempts_key(user_id))
    return count is not None and int(count) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Redis, user_id: int) -> int:
    """Bump the failure counter; the first failure starts the lockout window."""
    settings = get_settings()
    key = _attempts_key(user_id)
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    return int(count)


async def clear_failed_login(redis: Redis, user_id: int) -> None:
    await redis.delete(_attempts_key(user_id))


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


async def store_refresh_token(
    db: AsyncSession,
    user_id: int,
    token_id: str,
    token_hash: str,
    expires_at: datetime,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RefreshToken:
    token = RefreshToken(
        id=token_id,
        user_id=user_id,
        token_hash=token_hash,
        issued_at=datetime.now(timezone.utc),
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    db.add(token)
    await db.flush()
    return token


async def get_refresh_token(db: AsyncSession, token_id: str) -> RefreshToken | None:
    result = await db.execute(select(RefreshToken).where(RefreshToken.id == token_id))
    return result.scalar_one_or_none()


async def rotate_refresh_token(
    db: AsyncSession,
    old_token: RefreshToken,
    new_token_id: str,
    new_token_hash: str,
    new_expires_at: datetime,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RefreshToken:
    """Revoke ``old_token`` and store its replacement, linking the two."""
    old_token.is_revoked = True
    old_token.revoked_at = datetime.now(timezone.utc)
    old_token.replaced_by = new_token_id
    return await store_refresh_token(
        db,
        user_id=old_token.user_id,
        token_id=new_token_id,
        token_hash=new_token_hash,
        expires_at=new_expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )


async def revoke_refresh_token(db: AsyncSession, token_id: str) -> bool:
    """Revoke a single refresh token. Returns False if it does not exist."""
    token = await get_refresh_token(db, token_id)
    if token is None:
        return False
    token.is_revoked = True
    token.revoked_at = datetime.now(timezone.utc)
    await db.flush()
    return True


async def revoke_all_tokens(db: AsyncSession, user_id: int) -> int:
    """Revoke every live refresh token of a user. Returns the count revoked."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id)
        .where(RefreshToken.is_revoked == False)  # noqa: E712
        .values(is_revoked=True, revoked_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount  # type: ignore[attr-defined,no-any-return]
