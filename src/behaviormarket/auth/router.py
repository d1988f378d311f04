"""Authentication router: /api/auth/*."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.auth.jwt import create_access_token, create_refresh_token, verify_token
from behaviormarket.auth.password import PasswordStrengthError
from behaviormarket.auth.schemas import (
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from behaviormarket.auth.service import (
    AccountLockedError,
    authenticate_user,
    get_refresh_token,
    get_user_by_id,
    register_user,
    revoke_all_tokens,
    revoke_refresh_token,
    rotate_refresh_token,
    store_refresh_token,
)
from behaviormarket.config import get_settings
from behaviormarket.database import get_session
from behaviormarket.db.models import User
from behaviormarket.dependencies import get_redis_dep

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _client_meta(request: Request) -> dict[str, str | None]:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


def _refresh_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=get_settings().jwt_refresh_token_expire_days)


def _token_response(user: User, access_token: str, refresh_token: str) -> TokenResponse:
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=get_settings().jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


async def _issue_tokens(db: AsyncSession, user: User, request: Request) -> TokenResponse:
    """Mint an access/refresh pair, persist the refresh hash and commit."""
    token_id = str(uuid.uuid4())
    access_token = create_access_token(user.id, user.role, user.subscription_tier)
    refresh_token = create_refresh_token(user.id, user.role, user.subscription_tier, token_id=token_id)

    await store_refresh_token(
        db,
        user_id=user.id,
        token_id=token_id,
        token_hash=_hash_token(refresh_token),
        expires_at=_refresh_expiry(),
        **_client_meta(request),
    )
    await db.commit()
    return _token_response(user, access_token, refresh_token)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Create an account (user or company) and sign it in."""
    try:
        user = await register_user(
            db,
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            role=body.role,
            company_name=body.company_name,
            industry=body.industry,
            company_size=body.company_size,
        )
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        detail = str(e)
        if "already registered" in detail.lower():
            raise HTTPException(status_code=409, detail=detail) from e
        raise HTTPException(status_code=400, detail=detail) from e

    return await _issue_tokens(db, user, request)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_dep),
) -> TokenResponse:
    try:
        user = await authenticate_user(db, redis, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except AccountLockedError as e:
        raise HTTPException(status_code=429, detail=str(e)) from e
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e

    logger.info("user_logged_in", user_id=user.id)
    return await _issue_tokens(db, user, request)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Rotate a refresh token. Presenting a revoked token revokes the whole family."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except pyjwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    jti = payload.get("jti")
    if not jti:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    old_token = await get_refresh_token(db, jti)
    if old_token is None or old_token.token_hash != _hash_token(body.refresh_token):
        raise HTTPException(status_code=401, detail="Refresh token not found")
    if old_token.is_revoked:
        revoked = await revoke_all_tokens(db, old_token.user_id)
        await db.commit()
        logger.warning("refresh_token_reuse", user_id=old_token.user_id, revoked=revoked)
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    user = await get_user_by_id(db, old_token.user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")

    new_token_id = str(uuid.uuid4())
    access_token = create_access_token(user.id, user.role, user.subscription_tier)
    refresh_token = create_refresh_token(user.id, user.role, user.subscription_tier, token_id=new_token_id)
    await rotate_refresh_token(
        db,
        old_token=old_token,
        new_token_id=new_token_id,
        new_token_hash=_hash_token(refresh_token),
        new_expires_at=_refresh_expiry(),
        **_client_meta(request),
    )
    await db.commit()
    return _token_response(user, access_token, refresh_token)


@router.post("/logout")
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Revoke the given refresh token. Invalid tokens are ignored."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except pyjwt.InvalidTokenError:
        return {"status": "logged_out"}

    jti = payload.get("jti")
    if jti and await revoke_refresh_token(db, jti):
        await db.commit()
    return {"status": "logged_out"}


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)
