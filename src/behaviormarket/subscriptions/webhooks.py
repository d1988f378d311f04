"""
Stripe webhook receiver: POST /api/webhooks/stripe.

The raw body is verified against ``Stripe-Signature`` before anything is
parsed. Handlers mirror Stripe state onto the local User/Subscription rows
and record subscription payments.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.config import get_settings
from behaviormarket.database import get_session
from behaviormarket.db.models import Subscription, Transaction, User
from behaviormarket.subscriptions.stripe_client import WebhookVerificationError, verify_webhook
from behaviormarket.subscriptions.tiers import PAID_TIERS, stripe_price_id

logger = structlog.get_logger()

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


def _from_unix(ts: int | None) -> datetime | None:
    return datetime.fromtimestamp(ts, tz=timezone.utc) if ts else None


async def _user_by_customer(db: AsyncSession, customer_id: str | None) -> User | None:
    if not customer_id:
        return None
    result = await db.execute(select(User).where(User.stripe_customer_id == customer_id))
    return result.scalar_one_or_none()


async def _subscription_for(db: AsyncSession, user_id: int) -> Subscription | None:
    result = await db.execute(select(Subscription).where(Subscription.user_id == user_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_checkout_completed(db: AsyncSession, session: dict[str, Any]) -> None:
    metadata = session.get("metadata") or {}
    user_id, tier = metadata.get("userId"), metadata.get("tier")
    if not user_id or tier not in PAID_TIERS:
        logger.warning("webhook_checkout_missing_metadata", session_id=session.get("id"))
        return

    try:
        uid = int(user_id)
    except (TypeError, ValueError):
        logger.warning("webhook_checkout_bad_user_id", session_id=session.get("id"), user_id=user_id)
        return

    user = await db.get(User, uid)
    if user is None:
        logger.warning("webhook_user_not_found", user_id=user_id)
        return

    now = datetime.now(timezone.utc)
    user.subscription_tier = tier
    subscription = await _subscription_for(db, user.id)
    if subscription is not None:
        subscription.tier = tier
        subscription.status = "active"
        subscription.stripe_subscription_id = session.get("subscription")
        subscription.stripe_price_id = stripe_price_id(tier)
        subscription.cancel_at_period_end = False
        subscription.current_period_start = now
        subscription.current_period_end = now + timedelta(days=30)
    logger.info("subscription_activated", user_id=user.id, tier=tier)


async def handle_payment_succeeded(db: AsyncSession, invoice: dict[str, Any]) -> None:
    user = await _user_by_customer(db, invoice.get("customer"))
    if user is None:
        logger.warning("webhook_customer_not_found", customer=invoice.get("customer"))
        return

    lines = (invoice.get("lines") or {}).get("data") or []
    line_description = lines[0].get("description") if lines else None
    amount = Decimal(invoice.get("amount_paid") or 0) / 100
    now = datetime.now(timezone.utc)
    db.add(
        Transaction(
            user_id=user.id,
            type="subscription_payment",
            amount=amount,
            currency=(invoice.get("currency") or "usd").upper(),
            status="completed",
            stripe_payment_intent_id=invoice.get("payment_intent"),
            description=f"Subscription payment for {line_description or 'subscription'}",
            transaction_metadata={"invoice_id": invoice.get("id")},
            processed_at=now,
        )
    )

    subscription = await _subscription_for(db, user.id)
    if subscription is not None:
        subscription.status = "active"
        subscription.current_period_start = _from_unix(invoice.get("period_start"))
        subscription.current_period_end = _from_unix(invoice.get("period_end"))
    logger.info("subscription_payment_recorded", user_id=user.id, amount=str(amount))


async def handle_payment_failed(db: AsyncSession, invoice: dict[str, Any]) -> None:
    user = await _user_by_customer(db, invoice.get("customer"))
    if user is None:
        logger.warning("webhook_customer_not_found", customer=invoice.get("customer"))
        return
    subscription = await _subscription_for(db, user.id)
    if subscription is not None:
        subscription.status = "past_due"
    logger.info("subscription_payment_failed", user_id=user.id)


async def handle_subscription_updated(db: AsyncSession, stripe_sub: dict[str, Any]) -> None:
    user = await _user_by_customer(db, stripe_sub.get("customer"))
    if user is None:
        logger.warning("webhook_customer_not_found", customer=stripe_sub.get("customer"))
        return
    subscription = await _subscription_for(db, user.id)
    if subscription is None:
        return

    subscription.status = stripe_sub.get("status", subscription.status)
    subscription.cancel_at_period_end = bool(stripe_sub.get("cancel_at_period_end"))
    if stripe_sub.get("current_period_start"):
        subscription.current_period_start = _from_unix(stripe_sub["current_period_start"])
    if stripe_sub.get("current_period_end"):
        subscription.current_period_end = _from_unix(stripe_sub["current_period_end"])
    logger.info("subscription_updated", user_id=user.id, status=subscription.status)


async def handle_subscription_deleted(db: AsyncSession, stripe_sub: dict[str, Any]) -> None:
    user = await _user_by_customer(db, stripe_sub.get("customer"))
    if user is None:
        logger.warning("webhook_customer_not_found", customer=stripe_sub.get("customer"))
        return

    user.subscription_tier = "free"
    subscription = await _subscription_for(db, user.id)
    if subscription is not None:
        subscription.tier = "free"
        subscription.status = "canceled"
        subscription.stripe_subscription_id = None
        subscription.stripe_price_id = None
        subscription.cancel_at_period_end = False
    logger.info("subscription_deleted", user_id=user.id)


HANDLERS: dict[str, Callable[[AsyncSession, dict[str, Any]], Awaitable[None]]] = {
    "checkout.session.completed": handle_checkout_completed,
    "invoice.payment_succeeded": handle_payment_succeeded,
    "invoice.payment_failed": handle_payment_failed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
}


async def dispatch_event(db: AsyncSession, event: dict[str, Any]) -> bool:
    """Run the handler for ``event``. Returns False for unhandled types."""
    handler = HANDLERS.get(event.get("type", ""))
    if handler is None:
        logger.info("webhook_unhandled_event", event_type=event.get("type"))
        return False
    await handler(db, event["data"]["object"])
    await db.flush()
    return True


@router.post("/stripe")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_session)) -> Any:
    payload = await request.body()
    try:
        event = verify_webhook(payload, request.headers.get("stripe-signature"), get_settings().stripe_webhook_secret)
    except WebhookVerificationError as e:
        logger.warning("webhook_signature_invalid", error=str(e))
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}") from e

    try:
        await dispatch_event(db, event)
        await db.commit()
    except Exception:
        logger.exception("webhook_handler_failed", event_type=event.get("type"), event_id=event.get("id"))
        await db.rollback()
        return JSONResponse(status_code=500, content={"detail": "Webhook handler failed"})
    return {"received": True}
