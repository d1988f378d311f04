"""User profile, dashboard and earnings logic."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from behaviormarket.db.models import BehaviorLog, Prediction, Transaction, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

CENT = Decimal("0.01")


async def update_profile(
    db: AsyncSession,
    user: User,
    first_name: str | None = None,
    last_name: str | None = None,
    demographics: dict[str, Any] | None = None,
    preferences: dict[str, Any] | None = None,
) -> User:
    """Apply a partial profile update. Only provided fields change."""
    if first_name is not None:
        user.first_name = first_name
    if last_name is not None:
        user.last_name = last_name
    if demographics is not None:
        user.demographics = demographics
    if preferences is not None:
        user.preferences = preferences
    await db.flush()
    return user


async def credit_earnings(
    db: AsyncSession,
    user_id: int,
    amount: Decimal,
    description: str,
    *,
    company_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> Transaction:
    """Record a completed ``user_earning`` and add it to the user's running total."""
    amount = Decimal(amount).quantize(CENT)
    now = datetime.now(timezone.utc)
    txn = Transaction(
        user_id=user_id,
        company_id=company_id,
        type="user_earning",
        amount=amount,
        currency="USD",
        status="completed",
        description=description,
        transaction_metadata=metadata or {},
        processed_at=now,
    )
    db.add(txn)

    user = await db.get(User, user_id)
    if user is not None:
        user.total_earnings = (user.total_earnings or Decimal("0")) + amount
    await db.flush()
    return txn


async def get_dashboard(db: AsyncSession, user: User) -> dict[str, Any]:
    """Counts plus the latest behaviors, predictions and transactions."""
    total_behaviors = (
        await db.execute(select(func.count(BehaviorLog.id)).where(BehaviorLog.user_id == user.id))
    ).scalar_one()
    total_predictions = (
        await db.execute(select(func.count(Prediction.id)).where(Prediction.user_id == user.id))
    ).scalar_one()

    recent_behaviors = (
        await db.execute(
            select(BehaviorLog)
            .where(BehaviorLog.user_id == user.id)
            .order_by(BehaviorLog.timestamp.desc())
            .limit(10)
        )
    ).scalars().all()
    recent_predictions = (
        await db.execute(
            select(Prediction)
            .where(Prediction.user_id == user.id)
            .order_by(Prediction.target_date.desc())
            .limit(5)
        )
    ).scalars().all()
    recent_transactions = (
        await db.execute(
            select(Transaction)
            .where(Transaction.user_id == user.id)
            .order_by(Transaction.created_at.desc())
            .limit(10)
        )
    ).scalars().all()

    return {
        "stats": {
            "total_behaviors": total_behaviors,
            "total_predictions": total_predictions,
            "total_earnings": user.total_earnings,
            "subscription_tier": user.subscription_tier,
        },
        "recent_behaviors": list(recent_behaviors),
        "recent_predictions": list(recent_predictions),
        "recent_transactions": list(recent_transactions),
    }


async def get_earnings(db: AsyncSession, user_id: int) -> tuple[list[Transaction], Decimal]:
    """Completed earnings, newest first, and their sum."""
    result = await db.execute(
        select(Transaction)
        .where(
            Transaction.user_id == user_id,
            Transaction.type == "user_earning",
            Transaction.status == "completed",
        )
        .order_by(Transaction.created_at.desc())
    )
    earnings = list(result.scalars().all())
    total = sum((t.amount for t in earnings), Decimal("0"))
    return earnings, total
