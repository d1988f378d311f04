"""Pydantic models for subscription endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from behaviormarket.users.schemas import TransactionResponse


class CheckoutRequest(BaseModel):
    tier: str = Field(..., min_length=1, max_length=32)


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str


class PaymentMethodRequest(BaseModel):
    payment_method_id: str = Field(..., min_length=1, max_length=255)


class SubscriptionView(BaseModel):
    id: int
    user_id: int
    tier: str
    status: str
    stripe_subscription_id: str | None = None
    stripe_price_id: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool
    tier_info: dict[str, Any] | None = None


class CurrentSubscriptionResponse(BaseModel):
    subscription: SubscriptionView


class SubscriptionChangeResponse(BaseModel):
    message: str
    subscription: SubscriptionView


class BillingResponse(BaseModel):
    billing_history: list[TransactionResponse]


class UsageResponse(BaseModel):
    tier: str
    features: dict[str, bool | int]
    limits: dict[str, dict[str, int]]
