"""Pydantic models for marketplace endpoints."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from behaviormarket.users.schemas import TransactionResponse

InsightTimeframe = Literal["7_days", "30_days", "90_days"]


class PurchaseRequest(BaseModel):
    insight_type: str = Field(..., min_length=1, max_length=100)
    filters: dict[str, Any] = Field(default_factory=dict)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class PurchaseSummary(BaseModel):
    id: int
    amount: float
    status: str
    insight_type: str
    contributing_users: int
    distributed: float
    marketplace_fee: float


class PurchaseResponse(BaseModel):
    message: str = "Insights purchased successfully"
    transaction: PurchaseSummary
    download_url: str


class TransactionSummary(BaseModel):
    total_amount: float
    total_transactions: int
    currency: str = "USD"


class MarketplaceTransactionsResponse(BaseModel):
    transactions: list[TransactionResponse]
    summary: TransactionSummary
