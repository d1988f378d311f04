"""FastAPI authentication and authorization dependencies."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import jwt
from fastapi import Depends, Header, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.api_keys import key_prefix, looks_like_api_key, verify_api_key
from behaviormarket.auth.jwt import verify_token
from behaviormarket.auth.service import get_user_by_id
from behaviormarket.database import get_session
from behaviormarket.db.models import Company, User

# auto_error=False so a missing header is a 401, not Starlette's default 403
_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the bearer token to an active User. 401 on bad token, 403 if deactivated."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Access token required")
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await get_user_by_id(db, int(payload["sub"]))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    return user


def require_role(*roles: str) -> Callable[..., Awaitable[User]]:
    """Dependency factory: the current user must hold one of ``roles``."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return _check


require_admin = require_role("admin")
require_company = require_role("company")


async def get_api_company(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_session),
) -> Company | None:
    """Resolve an ``X-API-Key`` header to its Company, or None when absent.

    A present but invalid key is a 401.
    """
    if not x_api_key:
        return None
    if not looks_like_api_key(x_api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")

    result = await db.execute(
        select(Company).where(Company.api_key_prefix == key_prefix(x_api_key), Company.is_active.is_(True))
    )
    company = result.scalar_one_or_none()
    if company is None or not company.api_key_hash or not verify_api_key(x_api_key, company.api_key_hash):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return company


@dataclass
class MarketplaceCaller:
    """Who is reading marketplace insights, and at which pricing tier."""

    tier: str
    user: User | None = None
    company: Company | None = None


async def get_marketplace_caller(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    api_company: Company | None = Depends(get_api_company),
    db: AsyncSession = Depends(get_session),
) -> MarketplaceCaller:
    """Accept either a company API key or a company/admin bearer token."""
    if api_company is not None:
        return MarketplaceCaller(tier=api_company.subscription_tier, company=api_company)

    user = await get_current_user(credentials, db)
    if user.role not in ("company", "admin"):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return MarketplaceCaller(tier=user.subscription_tier, user=user)
