"""Pydantic models for company endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

CompanySize = Literal["startup", "small", "medium", "large", "enterprise"]


class CompanyResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    email: str
    industry: str | None = None
    size: str
    subscription_tier: str
    total_spent: float
    api_key_prefix: str | None = None
    is_active: bool
    preferences: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class CompanyUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    industry: str | None = Field(None, max_length=100)
    size: CompanySize | None = None
    preferences: dict[str, Any] | None = None


class ApiKeyResponse(BaseModel):
    api_key: str
    prefix: str
    message: str = "Store this key securely; it will not be shown again"
