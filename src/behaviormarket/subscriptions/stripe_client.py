"""
Thin async wrapper over the Stripe SDK.

Every outbound call goes through here so routers only ever see
``PaymentProviderError`` and tests can patch a single module.
"""

from __future__ import annotations

import json
from typing import Any

import stripe
import structlog

from behaviormarket.config import get_settings

logger = structlog.get_logger()


class PaymentProviderError(Exception):
    """A Stripe API call failed."""


class WebhookVerificationError(ValueError):
    """The webhook payload or its signature is invalid."""


def _api_key() -> str:
    return get_settings().stripe_secret_key


async def create_customer(email: str, name: str, user_id: int) -> str:
    try:
        customer = await stripe.Customer.create_async(
            api_key=_api_key(),
            email=email,
            name=name,
            metadata={"userId": str(user_id)},
        )
    except stripe.StripeError as e:
        logger.error("stripe_customer_create_failed", user_id=user_id, error=str(e))
        raise PaymentProviderError(str(e)) from e
    return customer.id


async def create_checkout_session(customer_id: str, price_id: str, user_id: int, tier: str) -> tuple[str, str]:
    """Subscription-mode Checkout Session. Returns (url, session_id)."""
    frontend = get_settings().frontend_url.rstrip("/")
    try:
        session = await stripe.checkout.Session.create_async(
            api_key=_api_key(),
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=f"{frontend}/dashboard?subscription=success",
            cancel_url=f"{frontend}/pricing?subscription=cancelled",
            metadata={"userId": str(user_id), "tier": tier},
        )
    except stripe.StripeError as e:
        logger.error("stripe_checkout_failed", user_id=user_id, tier=tier, error=str(e))
        raise PaymentProviderError(str(e)) from e
    return session.url, session.id


async def set_cancel_at_period_end(subscription_id: str, cancel: bool) -> None:
    try:
        await stripe.Subscription.modify_async(
            subscription_id, api_key=_api_key(), cancel_at_period_end=cancel
        )
    except stripe.StripeError as e:
        logger.error("stripe_subscription_modify_failed", subscription_id=subscription_id, error=str(e))
        raise PaymentProviderError(str(e)) from e


async def set_default_payment_method(customer_id: str, payment_method_id: str) -> None:
    """Attach the method to the customer and make it the invoice default."""
    try:
        await stripe.PaymentMethod.attach_async(payment_method_id, api_key=_api_key(), customer=customer_id)
        await stripe.Customer.modify_async(
            customer_id,
            api_key=_api_key(),
            invoice_settings={"default_payment_method": payment_method_id},
        )
    except stripe.StripeError as e:
        logger.error("stripe_payment_method_failed", customer_id=customer_id, error=str(e))
        raise PaymentProviderError(str(e)) from e


def verify_webhook(payload: bytes, signature: str | None, secret: str) -> dict[str, Any]:
    """Check the ``Stripe-Signature`` header and return the event as a plain dict."""
    if not signature:
        msg = "No signatures found matching the expected signature for payload"
        raise WebhookVerificationError(msg)
    try:
        stripe.WebhookSignature.verify_header(payload.decode("utf-8"), signature, secret)
        return json.loads(payload)
    except (stripe.SignatureVerificationError, UnicodeDecodeError, ValueError) as e:
        raise WebhookVerificationError(str(e)) from e
