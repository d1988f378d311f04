"""Platform-wide admin queries and account overrides."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import Date, cast, func, select, text

from behaviormarket.auth.service import revoke_all_tokens
from behaviormarket.db.models import BehaviorLog, Prediction, Subscription, Transaction, User
from behaviormarket.subscriptions.tiers import TIER_ORDER

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

PERIOD_DAYS = {"7_days": 7, "30_days": 30, "90_days": 90, "1_year": 365}
REVENUE_TYPES = ("subscription_payment", "data_purchase")


def pagination(total: int, page: int, limit: int) -> dict[str, int]:
    return {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit) if limit else 0}


async def dashboard_stats(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    async def count(stmt: Any) -> int:
        return int((await db.execute(stmt)).scalar_one())

    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.type == "subscription_payment",
                Transaction.status == "completed",
                Transaction.created_at >= month_start,
            )
        )
    ).scalar_one()

    return {
        "total_users": await count(
            select(func.count(User.id)).where(User.role == "user", User.is_active.is_(True))
        ),
        "total_companies": await count(
            select(func.count(User.id)).where(User.role == "company", User.is_active.is_(True))
        ),
        "total_behaviors": await count(select(func.count(BehaviorLog.id))),
        "total_predictions": await count(select(func.count(Prediction.id))),
        "total_transactions": await count(
            select(func.count(Transaction.id)).where(Transaction.status == "completed")
        ),
        "active_subscriptions": await count(
            select(func.count(Subscription.id)).where(Subscription.status == "active", Subscription.tier != "free")
        ),
        "monthly_revenue": float(revenue),
    }


async def list_users(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    role: str | None = None,
    subscription_tier: str | None = None,
) -> tuple[list[User], int]:
    conditions = []
    if role:
        conditions.append(User.role == role)
    if subscription_tier:
        conditions.append(User.subscription_tier == subscription_tier)

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(User).where(*conditions).order_by(User.created_at.desc()).limit(limit).offset((page - 1) * limit)
    )
    return list(result.scalars().all()), total


async def list_transactions(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    type_: str | None = None,
    status: str | None = None,
) -> tuple[list[Transaction], int]:
    conditions = []
    if type_:
        conditions.append(Transaction.type == type_)
    if status:
        conditions.append(Transaction.status == status)

    total = (await db.execute(select(func.count(Transaction.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Transaction)
        .where(*conditions)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(result.scalars().all()), total


async def revenue_analytics(db: AsyncSession, period: str = "30_days", now: datetime | None = None) -> dict[str, Any]:
    if period not in PERIOD_DAYS:
        msg = f"Invalid period: {period}"
        raise ValueError(msg)
    now = now or datetime.now(timezone.utc)
    start = now - timedelta(days=PERIOD_DAYS[period])

    by_type = await db.execute(
        select(Transaction.type, func.sum(Transaction.amount), func.count(Transaction.id))
        .where(Transaction.status == "completed", Transaction.created_at >= start)
        .group_by(Transaction.type)
        .order_by(Transaction.type)
    )
    day = cast(Transaction.created_at, Date)
    daily = await db.execute(
        select(day, func.sum(Transaction.amount))
        .where(
            Transaction.status == "completed",
            Transaction.type.in_(REVENUE_TYPES),
            Transaction.created_at >= start,
        )
        .group_by(day)
        .order_by(day)
    )
    return {
        "revenue_by_type": [
            {"type": t, "total": float(total or 0), "count": n} for t, total, n in by_type.all()
        ],
        "daily_revenue": [{"date": d.isoformat(), "revenue": float(total or 0)} for d, total in daily.all()],
        "period": period,
    }


async def set_user_tier(db: AsyncSession, user_id: int, tier: str) -> User:
    """Override a user's tier. ValueError for unknown tiers, LookupError for unknown users."""
    if tier not in TIER_ORDER:
        msg = "Tier must be free, premium, or enterprise"
        raise ValueError(msg)
    user = await db.get(User, user_id)
    if user is None:
        msg = "User not found"
        raise LookupError(msg)

    user.subscription_tier = tier
    subscription = (
        await db.execute(select(Subscription).where(Subscription.user_id == user_id))
    ).scalar_one_or_none()
    if subscription is None:
        db.add(Subscription(user_id=user_id, tier=tier, status="active"))
    else:
        subscription.tier = tier
        subscription.status = "active"
    await db.flush()
    logger.info("admin_tier_override", user_id=user_id, tier=tier)
    return user


async def deactivate_user(db: AsyncSession, user_id: int) -> User:
    """Soft delete and revoke every refresh token. LookupError if missing."""
    user = await db.get(User, user_id)
    if user is None:
        msg = "User not found"
        raise LookupError(msg)
    user.is_active = False
    await revoke_all_tokens(db, user_id)
    await db.flush()
    logger.info("admin_user_deactivated", user_id=user_id)
    return user


async def system_health(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """Database round trip plus last-24h activity. Raises on database failure."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(hours=24)
    await db.execute(text("SELECT 1"))
    new_users = (await db.execute(select(func.count(User.id)).where(User.created_at >= since))).scalar_one()
    new_behaviors = (
        await db.execute(select(func.count(BehaviorLog.id)).where(BehaviorLog.timestamp >= since))
    ).scalar_one()
    return {
        "status": "healthy",
        "database": "connected",
        "recent_activity": {"new_users": new_users, "new_behaviors": new_behaviors},
        "timestamp": now.isoformat(),
    }
