"""Pydantic models for user endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from behaviormarket.auth.schemas import UserResponse
from behaviormarket.behaviors.schemas import BehaviorResponse
from behaviormarket.predictions.schemas import PredictionResponse


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)
    demographics: dict[str, Any] | None = None
    preferences: dict[str, Any] | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            msg = "name must not be blank"
            raise ValueError(msg)
        return v


class TransactionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    user_id: int
    company_id: int | None = None
    type: str
    amount: float
    currency: str
    status: str
    stripe_payment_intent_id: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="transaction_metadata")
    processed_at: datetime | None = None
    created_at: datetime | None = None


class DashboardStats(BaseModel):
    total_behaviors: int
    total_predictions: int
    total_earnings: float
    subscription_tier: str


class DashboardResponse(BaseModel):
    stats: DashboardStats
    recent_behaviors: list[BehaviorResponse]
    recent_predictions: list[PredictionResponse]
    recent_transactions: list[TransactionResponse]


class ProfileResponse(BaseModel):
    message: str = "Profile updated successfully"
    user: UserResponse


class EarningsResponse(BaseModel):
    earnings: list[TransactionResponse]
    total_earnings: float
