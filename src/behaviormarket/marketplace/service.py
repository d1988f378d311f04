"""Aggregated insights, purchases with earnings distribution, and public stats."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select, update

from behaviormarket.db.models import BehaviorLog, Prediction, Transaction, User
from behaviormarket.marketplace.pricing import EarningsSplit, discount_percent, estimate_price, split_earnings

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from behaviormarket.db.models import Company

logger = structlog.get_logger()

TIMEFRAME_DAYS = {"7_days": 7, "30_days": 30, "90_days": 90}

# Demographic filters match this key of User.demographics
DEMOGRAPHIC_KEY = "age_group"


def _float(value: Decimal | float | None) -> float | None:
    return round(float(value), 2) if value is not None else None


async def build_insights(
    db: AsyncSession,
    *,
    category: str | None = None,
    demographic: str | None = None,
    timeframe: str = "30_days",
    tier: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Anonymized aggregate view of platform data within ``timeframe``."""
    if timeframe not in TIMEFRAME_DAYS:
        msg = f"Invalid timeframe: {timeframe}"
        raise ValueError(msg)
    now = now or datetime.now(timezone.utc)
    start = now - timedelta(days=TIMEFRAME_DAYS[timeframe])

    stmt = (
        select(
            BehaviorLog.category,
            func.count(BehaviorLog.id),
            func.avg(BehaviorLog.value),
            func.sum(BehaviorLog.value),
        )
        .where(BehaviorLog.timestamp >= start)
        .group_by(BehaviorLog.category)
        .order_by(BehaviorLog.category)
    )
    if category:
        stmt = stmt.where(BehaviorLog.category == category)
    if demographic:
        stmt = stmt.join(User, User.id == BehaviorLog.user_id).where(
            User.demographics[DEMOGRAPHIC_KEY].astext == demographic
        )
    behavior_stats = [
        {"category": cat, "count": count, "avg_value": _float(avg), "total_value": _float(total)}
        for cat, count, avg, total in (await db.execute(stmt)).all()
    ]

    prediction_rows = await db.execute(
        select(Prediction.prediction_type, func.avg(Prediction.accuracy), func.count(Prediction.id))
        .where(Prediction.created_at >= start, Prediction.accuracy.is_not(None))
        .group_by(Prediction.prediction_type)
    )
    prediction_stats = [
        {"prediction_type": t, "avg_accuracy": round(float(avg), 4), "count": count}
        for t, avg, count in prediction_rows.all()
    ]

    user_rows = await db.execute(
        select(User.subscription_tier, func.count(User.id))
        .where(User.is_active.is_(True))
        .group_by(User.subscription_tier)
    )
    user_stats = [{"subscription_tier": t, "total_users": count} for t, count in user_rows.all()]

    total = sum(s["count"] for s in behavior_stats)
    return {
        "insights": {
            "behavior_stats": behavior_stats,
            "prediction_stats": prediction_stats,
            "user_stats": user_stats,
            "timeframe": timeframe,
            "total_data_points": total,
        },
        "pricing": {
            "estimated_price": estimate_price(len(behavior_stats), tier),
            "currency": "USD",
            "data_points": total,
            "subscription_discount": discount_percent(tier),
        },
        "metadata": {
            "generated_at": now.isoformat(),
            "data_freshness": timeframe,
            "anonymized": True,
        },
    }


async def find_contributors(db: AsyncSession, category: str | None, limit: int) -> list[int]:
    """Ids of distinct active users with logs in ``category`` (any log when None)."""
    stmt = (
        select(User.id)
        .join(BehaviorLog, BehaviorLog.user_id == User.id)
        .where(User.is_active.is_(True))
        .distinct()
        .order_by(User.id)
        .limit(limit)
    )
    if category:
        stmt = stmt.where(BehaviorLog.category == category)
    return list((await db.execute(stmt)).scalars().all())


async def purchase_insights(
    db: AsyncSession,
    buyer: User,
    company: Company,
    insight_type: str,
    filters: dict[str, Any],
    amount: Decimal,
    max_contributors: int = 100,
    now: datetime | None = None,
) -> tuple[Transaction, EarningsSplit]:
    """Record the purchase and pay contributors. The caller commits.

    The insight snapshot is stored on the purchase so it can be downloaded later.
    """
    now = now or datetime.now(timezone.utc)
    category = filters.get("category")
    snapshot = await build_insights(
        db,
        category=category,
        demographic=filters.get("demographic"),
        timeframe=filters.get("timeframe", "30_days"),
        tier=company.subscription_tier,
        now=now,
    )

    purchase = Transaction(
        user_id=buyer.id,
        company_id=company.id,
        type="data_purchase",
        amount=amount,
        currency="USD",
        status="completed",
        description=f"Purchase of {insight_type} insights",
        transaction_metadata={
            "insight_type": insight_type,
            "filters": filters,
            "purchase_date": now.isoformat(),
            "snapshot": snapshot,
        },
        processed_at=now,
    )
    db.add(purchase)
    company.total_spent = (company.total_spent or Decimal("0")) + amount
    await db.flush()

    contributor_ids = await find_contributors(db, category, max_contributors)
    split = split_earnings(amount, len(contributor_ids))

    if split.share > 0:
        db.add_all(
            Transaction(
                user_id=user_id,
                type="user_earning",
                amount=split.share,
                currency="USD",
                status="completed",
                description="Earnings from data contribution",
                transaction_metadata={"source_transaction": purchase.id, "insight_type": insight_type},
                processed_at=now,
            )
            for user_id in contributor_ids
        )
        await db.execute(
            update(User)
            .where(User.id.in_(contributor_ids))
            .values(total_earnings=User.total_earnings + split.share)
        )
    if split.fee > 0:
        db.add(
            Transaction(
                user_id=buyer.id,
                company_id=company.id,
                type="marketplace_fee",
                amount=split.fee,
                currency="USD",
                status="completed",
                description="Undistributed contributor share",
                transaction_metadata={"source_transaction": purchase.id},
                processed_at=now,
            )
        )
    await db.flush()

    logger.info(
        "insights_purchased",
        company_id=company.id,
        transaction_id=purchase.id,
        amount=str(amount),
        contributors=split.contributors,
        share=str(split.share),
        fee=str(split.fee),
    )
    return purchase, split


async def get_purchase(db: AsyncSession, company_id: int, transaction_id: int) -> Transaction:
    """A data purchase made by ``company_id``. Raises LookupError otherwise."""
    result = await db.execute(
        select(Transaction).where(
            Transaction.id == transaction_id,
            Transaction.company_id == company_id,
            Transaction.type == "data_purchase",
        )
    )
    purchase = result.scalar_one_or_none()
    if purchase is None:
        msg = "Purchase not found"
        raise LookupError(msg)
    return purchase


async def list_marketplace_transactions(db: AsyncSession, user: User) -> list[Transaction]:
    """Companies see their purchases, everyone else their earnings."""
    txn_type = "data_purchase" if user.role == "company" else "user_earning"
    result = await db.execute(
        select(Transaction)
        .where(Transaction.user_id == user.id, Transaction.type == txn_type)
        .order_by(Transaction.created_at.desc())
        .limit(50)
    )
    return list(result.scalars().all())


async def platform_stats(db: AsyncSession) -> dict[str, Any]:
    async def scalar(stmt: Any) -> Any:
        return (await db.execute(stmt)).scalar_one()

    volume = await scalar(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.status == "completed", Transaction.type == "data_purchase"
        )
    )
    return {
        "total_users": await scalar(select(func.count(User.id)).where(User.is_active.is_(True))),
        "total_behaviors": await scalar(select(func.count(BehaviorLog.id))),
        "total_predictions": await scalar(select(func.count(Prediction.id))),
        "total_transactions": await scalar(
            select(func.count(Transaction.id)).where(Transaction.status == "completed")
        ),
        "total_volume": float(volume),
        "currency": "USD",
    }


async def trending(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """Top insight types by purchases and top categories by activity over 7 days."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=7)

    insight_type = Transaction.transaction_metadata["insight_type"].astext
    purchase_count = func.count(Transaction.id)
    insight_rows = await db.execute(
        select(insight_type, purchase_count, func.sum(Transaction.amount))
        .where(
            Transaction.type == "data_purchase",
            Transaction.status == "completed",
            Transaction.created_at >= since,
        )
        .group_by(insight_type)
        .order_by(purchase_count.desc())
        .limit(10)
    )

    activity = func.count(BehaviorLog.id)
    category_rows = await db.execute(
        select(BehaviorLog.category, activity)
        .where(BehaviorLog.timestamp >= since)
        .group_by(BehaviorLog.category)
        .order_by(activity.desc())
        .limit(5)
    )
    return {
        "insights": [
            {"insight_type": t, "purchase_count": count, "total_value": float(total or 0)}
            for t, count, total in insight_rows.all()
        ],
        "categories": [{"category": c, "activity_count": count} for c, count in category_rows.all()],
    }
