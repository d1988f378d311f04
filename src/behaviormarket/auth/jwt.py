"""
HS256 JWT issuance and verification.

Access tokens carry the user's role and subscription tier so that cheap
checks (WebSocket handshake, logging) do not need a database round trip.
The database row stays authoritative for gating decisions.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Literal

import jwt

from behaviormarket.config import get_settings

TokenType = Literal["access", "refresh"]


def _encode(claims: dict[str, Any], lifetime: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, role: str, tier: str) -> str:
    """Create a short-lived access token."""
    settings = get_settings()
    return _encode(
        {"sub": str(user_id), "role": role, "tier": tier, "type": "access"},
        timedelta(minutes=settings.jwt_access_token_expire_minutes),
    )


def create_refresh_token(user_id: int, role: str, tier: str, *, token_id: str) -> str:
    """
    Create a long-lived refresh token.

    Args:
        user_id: The user's database ID.
        role: user, company or admin.
        tier: Subscription tier at issue time.
        token_id: JTI used to track rotation and revocation server-side.
    """
    settings = get_settings()
    return _encode(
        {"sub": str(user_id), "role": role, "tier": tier, "type": "refresh", "jti": token_id},
        timedelta(days=settings.jwt_refresh_token_expire_days),
    )


def verify_token(token: str, expected_type: TokenType = "access") -> dict[str, Any]:
    """
    Decode a token and check its issuer, expiry and type.

    Raises:
        jwt.InvalidTokenError: On any failure. Expiry is reported as
            "Token has expired" so callers can surface a single error type.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
