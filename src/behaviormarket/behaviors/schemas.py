"""Request/response schemas for behavior logs."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, get_args

from pydantic import BaseModel, Field, field_validator

BehaviorCategory = Literal[
    "purchase",
    "app_usage",
    "sleep",
    "exercise",
    "food",
    "social",
    "work",
    "entertainment",
    "health",
    "travel",
]

BEHAVIOR_CATEGORIES: tuple[str, ...] = get_args(BehaviorCategory)


class _BehaviorFields(BaseModel):
    subcategory: str | None = Field(None, max_length=100)
    value: Decimal | None = Field(None, max_digits=12, decimal_places=2)
    quantity: int | None = Field(None, ge=0)
    duration: int | None = Field(None, ge=0)
    mood_rating: int | None = Field(None, ge=1, le=10)
    energy_level: int | None = Field(None, ge=1, le=10)
    stress_level: int | None = Field(None, ge=1, le=10)
    metadata: dict[str, Any] | None = None

    @field_validator("subcategory")
    @classmethod
    def strip_subcategory(cls, v: str | None) -> str | None:
        return v.strip() if v is not None else None


class BehaviorCreate(_BehaviorFields):
    category: BehaviorCategory
    description: str = Field(..., min_length=1, max_length=500)
    timestamp: datetime | None = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "description must not be blank"
            raise ValueError(msg)
        return v


class BehaviorUpdate(_BehaviorFields):
    """Partial update. Omitted fields are left alone; category and description cannot be cleared."""

    category: BehaviorCategory | None = None
    description: str | None = Field(None, min_length=1, max_length=500)

    @field_validator("category")
    @classmethod
    def category_not_null(cls, v: str | None) -> str:
        if v is None:
            msg = "category cannot be null"
            raise ValueError(msg)
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str | None) -> str:
        if v is None:
            msg = "description cannot be null"
            raise ValueError(msg)
        v = v.strip()
        if not v:
            msg = "description must not be blank"
            raise ValueError(msg)
        return v


class BehaviorResponse(BaseModel):
    model_config = {"from_attributes": True, "populate_by_name": True}

    id: int
    user_id: int
    category: str
    subcategory: str | None = None
    description: str
    value: float | None = None
    quantity: int | None = None
    duration: int | None = None
    mood_rating: int | None = None
    energy_level: int | None = None
    stress_level: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="log_metadata")
    timestamp: datetime
    source: str
    confidence: float
    created_at: datetime | None = None


class BehaviorListResponse(BaseModel):
    behaviors: list[BehaviorResponse]
    total: int
    limit: int
    offset: int


class BehaviorCreatedResponse(BaseModel):
    message: str = "Behavior logged successfully"
    behavior: BehaviorResponse
    xp_gained: int = 0
    streak: int | None = None


class CategoryCount(BaseModel):
    category: str
    count: int


class BehaviorAnalyticsResponse(BaseModel):
    category_stats: list[CategoryCount]
    recent_behaviors: int
    period: str = "30_days"
