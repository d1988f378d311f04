"""
Feature gating and usage limits.

``require_subscription`` and ``check_usage_limit`` are dependency factories
used directly in route signatures::

    @router.get("/correlations", dependencies=[Depends(premium_feature("correlation_analysis"))])
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from fastapi import Depends, HTTPException
from sqlalchemy import func, select

from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.database import get_session
from behaviormarket.db.models import BehaviorLog, Prediction, User, UserChallenge
from behaviormarket.subscriptions.tiers import (
    SUBSCRIPTION_FEATURES,
    UNLIMITED,
    normalize_tier,
    tier_rank,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

LIMIT_TYPES = ("max_behavior_logs", "max_predictions", "max_challenges")

# Reporting keys for get_user_limits
_LIMIT_LABELS = {
    "max_behavior_logs": "behavior_logs",
    "max_predictions": "predictions",
    "max_challenges": "challenges",
}


def get_feature_availability(feature: str) -> list[str]:
    """Tiers in which ``feature`` is enabled, cheapest first."""
    return [tier for tier, features in SUBSCRIPTION_FEATURES.items() if features.get(feature)]


def tier_denial(current_tier: str, required_tier: str, feature: str | None = None) -> dict[str, Any] | None:
    """Return the 403 body for a gated feature, or None when access is allowed."""
    current_tier = normalize_tier(current_tier)
    if tier_rank(current_tier) < tier_rank(required_tier):
        return {
            "error": "Subscription upgrade required",
            "message": f"This feature requires {required_tier} subscription",
            "current_tier": current_tier,
            "required_tier": required_tier,
            "upgrade_url": f"/pricing?upgrade={required_tier}",
        }
    if feature and not SUBSCRIPTION_FEATURES[current_tier].get(feature):
        return {
            "error": "Feature not available",
            "message": f"{feature} is not available in your current plan",
            "current_tier": current_tier,
            "available_in": get_feature_availability(feature),
        }
    return None


def require_subscription(required_tier: str, feature: str | None = None) -> Callable[..., Awaitable[User]]:
    """Dependency factory: 403 unless the caller's tier (and feature set) qualifies."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        denial = tier_denial(user.subscription_tier, required_tier, feature)
        if denial is not None:
            raise HTTPException(status_code=403, detail=denial)
        return user

    return _check


def premium_feature(feature: str | None = None) -> Callable[..., Awaitable[User]]:
    return require_subscription("premium", feature)


def enterprise_feature(feature: str | None = None) -> Callable[..., Awaitable[User]]:
    return require_subscription("enterprise", feature)


# ---------------------------------------------------------------------------
# Usage limits
# ---------------------------------------------------------------------------


def _start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def count_usage(db: AsyncSession, user_id: int, limit_type: str, now: datetime | None = None) -> int:
    """Current usage for a limit: logs this month, predictions today, or active challenges."""
    now = now or datetime.now(timezone.utc)
    if limit_type == "max_behavior_logs":
        stmt = select(func.count(BehaviorLog.id)).where(
            BehaviorLog.user_id == user_id, BehaviorLog.created_at >= _start_of_month(now)
        )
    elif limit_type == "max_predictions":
        stmt = select(func.count(Prediction.id)).where(
            Prediction.user_id == user_id, Prediction.created_at >= _start_of_day(now)
        )
    elif limit_type == "max_challenges":
        stmt = select(func.count(UserChallenge.id)).where(
            UserChallenge.user_id == user_id, UserChallenge.status == "active"
        )
    else:
        msg = f"Unknown limit type: {limit_type}"
        raise ValueError(msg)
    return int((await db.execute(stmt)).scalar_one())


def usage_denial(tier: str, limit_type: str, current_usage: int) -> dict[str, Any] | None:
    """Return the 429 body when ``current_usage`` has reached the tier's cap."""
    tier = normalize_tier(tier)
    max_usage = int(SUBSCRIPTION_FEATURES[tier].get(limit_type, 0))
    if max_usage == UNLIMITED or current_usage < max_usage:
        return None
    return {
        "error": "Usage limit exceeded",
        "message": f"You have reached your {limit_type} limit for your current plan",
        "current_usage": current_usage,
        "max_usage": max_usage,
        "current_tier": tier,
        "upgrade_url": "/pricing",
    }


def check_usage_limit(limit_type: str) -> Callable[..., Awaitable[User]]:
    """Dependency factory: 429 once the caller has used up ``limit_type`` for their tier."""
    if limit_type not in LIMIT_TYPES:
        msg = f"Unknown limit type: {limit_type}"
        raise ValueError(msg)

    async def _check(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_session),
    ) -> User:
        tier = normalize_tier(user.subscription_tier)
        if SUBSCRIPTION_FEATURES[tier].get(limit_type) == UNLIMITED:
            return user
        usage = await count_usage(db, user.id, limit_type)
        denial = usage_denial(tier, limit_type, usage)
        if denial is not None:
            logger.info("usage_limit_exceeded", user_id=user.id, limit_type=limit_type, usage=usage)
            raise HTTPException(status_code=429, detail=denial)
        return user

    return _check


async def get_user_limits(db: AsyncSession, user_id: int, tier: str) -> dict[str, dict[str, int]]:
    """Current/max usage for every capped limit. Empty on any database error."""
    features = SUBSCRIPTION_FEATURES[normalize_tier(tier)]
    usage: dict[str, dict[str, int]] = {}
    try:
        for limit_type in LIMIT_TYPES:
            max_usage = int(features[limit_type])
            if max_usage == UNLIMITED:
                continue
            usage[_LIMIT_LABELS[limit_type]] = {
                "current": await count_usage(db, user_id, limit_type),
                "max": max_usage,
            }
    except Exception:
        logger.warning("user_limits_failed", user_id=user_id, exc_info=True)
        return {}
    return usage
