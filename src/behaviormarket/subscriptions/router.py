"""Subscription endpoints: /api/subscriptions."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.database import get_session
from behaviormarket.db.models import User
from behaviormarket.subscriptions.gating import get_user_limits
from behaviormarket.subscriptions.schemas import (
    BillingResponse,
    CheckoutRequest,
    CheckoutResponse,
    CurrentSubscriptionResponse,
    PaymentMethodRequest,
    SubscriptionChangeResponse,
    SubscriptionView,
    UsageResponse,
)
from behaviormarket.subscriptions.service import (
    billing_history,
    cancel_subscription,
    get_subscription,
    reactivate_subscription,
    start_checkout,
    subscription_view,
    update_payment_method,
)
from behaviormarket.subscriptions.stripe_client import PaymentProviderError
from behaviormarket.subscriptions.tiers import SUBSCRIPTION_FEATURES, normalize_tier, public_catalog
from behaviormarket.users.schemas import TransactionResponse

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])


def _provider_error() -> HTTPException:
    return HTTPException(status_code=502, detail="Payment provider error")


def _view(subscription: Any) -> SubscriptionView:
    return SubscriptionView(**subscription_view(subscription, public_catalog().get(subscription.tier)))


@router.get("/tiers")
async def tiers() -> dict[str, Any]:
    return {"tiers": public_catalog()}


@router.get("/current", response_model=CurrentSubscriptionResponse)
async def current(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CurrentSubscriptionResponse:
    subscription = await get_subscription(db, user.id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="No subscription found for user")
    return CurrentSubscriptionResponse(subscription=_view(subscription))


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CheckoutResponse:
    try:
        session = await start_checkout(db, user, body.tier)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PaymentProviderError as e:
        raise _provider_error() from e
    return CheckoutResponse(**session)


@router.post("/cancel", response_model=SubscriptionChangeResponse)
async def cancel(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SubscriptionChangeResponse:
    try:
        subscription = await cancel_subscription(db, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PaymentProviderError as e:
        raise _provider_error() from e
    await db.commit()
    return SubscriptionChangeResponse(
        message="Subscription will be cancelled at the end of the current billing period",
        subscription=_view(subscription),
    )


@router.post("/reactivate", response_model=SubscriptionChangeResponse)
async def reactivate(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SubscriptionChangeResponse:
    try:
        subscription = await reactivate_subscription(db, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PaymentProviderError as e:
        raise _provider_error() from e
    await db.commit()
    return SubscriptionChangeResponse(message="Subscription reactivated successfully", subscription=_view(subscription))


@router.get("/billing", response_model=BillingResponse)
async def billing(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BillingResponse:
    rows = await billing_history(db, user.id)
    return BillingResponse(billing_history=[TransactionResponse.model_validate(t) for t in rows])


@router.post("/payment-method")
async def payment_method(
    body: PaymentMethodRequest,
    user: User = Depends(get_current_user),
) -> dict[str, str]:
    try:
        await update_payment_method(user, body.payment_method_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PaymentProviderError as e:
        raise _provider_error() from e
    return {"message": "Payment method updated successfully"}


@router.get("/usage", response_model=UsageResponse)
async def usage(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UsageResponse:
    tier = normalize_tier(user.subscription_tier)
    return UsageResponse(
        tier=tier,
        features=SUBSCRIPTION_FEATURES[tier],
        limits=await get_user_limits(db, user.id, tier),
    )
