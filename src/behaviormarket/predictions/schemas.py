"""Request/response schemas for predictions."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from behaviormarket.predictions.engine import PredictionType, Timeframe


class GenerateRequest(BaseModel):
    prediction_type: PredictionType
    category: str = Field(..., min_length=1, max_length=100)
    timeframe: Timeframe = "1_day"


class VerifyRequest(BaseModel):
    actual_outcome: dict[str, Any]
    accuracy: float = Field(..., ge=0, le=1)


class PredictionResponse(BaseModel):
    model_config = {"from_attributes": True, "protected_namespaces": ()}

    id: int
    user_id: int
    prediction_type: str
    category: str
    prediction: dict[str, Any]
    confidence: float
    timeframe: str
    target_date: datetime
    actual_outcome: dict[str, Any] | None = None
    accuracy: float | None = None
    model_version: str
    features: dict[str, Any] = Field(default_factory=dict)
    is_verified: bool
    created_at: datetime | None = None


class PredictionListResponse(BaseModel):
    predictions: list[PredictionResponse]
    subscription_tier: str


class PredictionEnvelope(BaseModel):
    message: str
    prediction: PredictionResponse


class AccuracyResponse(BaseModel):
    overall_accuracy: float | None = None
    total_verified: int
    accuracy_by_type: dict[str, float]


class AdvancedPrediction(PredictionResponse):
    trends: dict[str, str]
    recommendations: list[str]


class AdvancedPredictionsResponse(BaseModel):
    predictions: list[AdvancedPrediction]
    analytics: dict[str, Any]


class InsightsResponse(BaseModel):
    mood: dict[str, Any]
    spending: dict[str, Any]
    next_activity: dict[str, Any]
    sleep: dict[str, Any]
    data_points: int
