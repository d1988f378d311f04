"""Subscription lifecycle: checkout, cancel, reactivate, billing and payment methods."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from behaviormarket.db.models import Subscription, Transaction
from behaviormarket.subscriptions import stripe_client
from behaviormarket.subscriptions.tiers import PAID_TIERS, stripe_price_id

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from behaviormarket.db.models import User

logger = structlog.get_logger()


async def get_subscription(db: AsyncSession, user_id: int) -> Subscription | None:
    result = await db.execute(select(Subscription).where(Subscription.user_id == user_id))
    return result.scalar_one_or_none()


async def ensure_stripe_customer(db: AsyncSession, user: User) -> str:
    """Return the user's Stripe customer id, creating the customer on first use."""
    if user.stripe_customer_id:
        return user.stripe_customer_id
    customer_id = await stripe_client.create_customer(user.email, user.full_name, user.id)
    user.stripe_customer_id = customer_id
    # Committed now so a failed checkout call cannot orphan the customer
    await db.commit()
    logger.info("stripe_customer_created", user_id=user.id, customer_id=customer_id)
    return customer_id


async def start_checkout(db: AsyncSession, user: User, tier: str) -> dict[str, str]:
    """Create a Checkout Session for a paid tier. Raises ValueError for other tiers."""
    price_id = stripe_price_id(tier) if tier in PAID_TIERS else None
    if price_id is None:
        msg = "Tier not available for subscription"
        raise ValueError(msg)

    customer_id = await ensure_stripe_customer(db, user)
    url, session_id = await stripe_client.create_checkout_session(customer_id, price_id, user.id, tier)
    logger.info("checkout_started", user_id=user.id, tier=tier, session_id=session_id)
    return {"checkout_url": url, "session_id": session_id}


async def cancel_subscription(db: AsyncSession, user: User) -> Subscription:
    """Cancel at period end. Raises ValueError when there is nothing paid to cancel."""
    subscription = await get_subscription(db, user.id)
    if subscription is None or subscription.tier == "free":
        msg = "No paid subscription to cancel"
        raise ValueError(msg)

    if subscription.stripe_subscription_id:
        await stripe_client.set_cancel_at_period_end(subscription.stripe_subscription_id, True)
    subscription.cancel_at_period_end = True
    await db.flush()
    logger.info("subscription_cancel_scheduled", user_id=user.id, tier=subscription.tier)
    return subscription


async def reactivate_subscription(db: AsyncSession, user: User) -> Subscription:
    subscription = await get_subscription(db, user.id)
    if subscription is None or not subscription.stripe_subscription_id:
        msg = "No active subscription found"
        raise ValueError(msg)

    await stripe_client.set_cancel_at_period_end(subscription.stripe_subscription_id, False)
    subscription.cancel_at_period_end = False
    subscription.status = "active"
    await db.flush()
    logger.info("subscription_reactivated", user_id=user.id, tier=subscription.tier)
    return subscription


async def billing_history(db: AsyncSession, user_id: int, limit: int = 12) -> list[Transaction]:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.user_id == user_id, Transaction.type == "subscription_payment")
        .order_by(Transaction.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def update_payment_method(user: User, payment_method_id: str) -> None:
    if not user.stripe_customer_id:
        msg = "Stripe customer not found"
        raise ValueError(msg)
    await stripe_client.set_default_payment_method(user.stripe_customer_id, payment_method_id)
    logger.info("payment_method_updated", user_id=user.id)


def subscription_view(subscription: Subscription, tier_info: dict[str, Any] | None) -> dict[str, Any]:
    return {
        "id": subscription.id,
        "user_id": subscription.user_id,
        "tier": subscription.tier,
        "status": subscription.status,
        "stripe_subscription_id": subscription.stripe_subscription_id,
        "stripe_price_id": subscription.stripe_price_id,
        "current_period_start": subscription.current_period_start,
        "current_period_end": subscription.current_period_end,
        "cancel_at_period_end": subscription.cancel_at_period_end,
        "tier_info": tier_info,
    }
