"""
Heuristic prediction engine.

Forecasts are rule-based functions of a few features extracted from the
user's recent behavior logs. A small random jitter is applied to some
outputs; pass a seeded ``random.Random`` for reproducible results.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal, get_args

PredictionType = Literal[
    "purchase_likelihood",
    "app_usage_duration",
    "sleep_quality",
    "exercise_frequency",
    "decision_pattern",
    "behavior_change",
]
PREDICTION_TYPES: tuple[str, ...] = get_args(PredictionType)

Timeframe = Literal["1_day", "3_days", "1_week", "1_month"]
TIMEFRAMES: tuple[str, ...] = get_args(Timeframe)

MODEL_VERSION = "1.0"
FREE_TIER_CONFIDENCE_CAP = 0.7


def round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, ROUND_HALF_UP))


def _by_trend(trend: str, increasing: float, decreasing: float, stable: float = 1.0) -> float:
    if trend == "increasing":
        return increasing
    if trend == "decreasing":
        return decreasing
    return stable


def _avg(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def extract_features(logs: Sequence[Any], category: str, now: datetime | None = None) -> dict[str, Any]:
    """Features for one category from a user's recent logs (any order)."""
    if not logs:
        return {
            "frequency": 0,
            "avg_value": 0.0,
            "avg_duration": 0.0,
            "recent_activity": 0,
            "trend": "stable",
            "total_behaviors": 0,
        }

    now = now or datetime.now(timezone.utc)
    ordered = sorted(logs, key=lambda log: log.timestamp)
    relevant = [log for log in ordered if log.category == category]
    recent = [log for log in ordered if now - log.timestamp <= timedelta(days=7)]

    values = [float(log.value or 0) for log in relevant]
    durations = [float(log.duration or 0) for log in relevant]

    half = len(relevant) // 2
    first_avg = _avg(values[:half])
    second_avg = _avg(values[half:])
    trend = "stable"
    if second_avg > first_avg * 1.1:
        trend = "increasing"
    elif second_avg < first_avg * 0.9:
        trend = "decreasing"

    return {
        "frequency": len(relevant),
        "avg_value": round(_avg(values), 2),
        "avg_duration": round(_avg(durations), 2),
        "recent_activity": len(recent),
        "trend": trend,
        "total_behaviors": len(logs),
    }


def target_date_for(timeframe: str, now: datetime | None = None) -> datetime:
    """Forecast horizon: +1 day, +3 days, +7 days or +1 calendar month."""
    now = now or datetime.now(timezone.utc)
    if timeframe == "1_day":
        return now + timedelta(days=1)
    if timeframe == "3_days":
        return now + timedelta(days=3)
    if timeframe == "1_week":
        return now + timedelta(days=7)
    if timeframe == "1_month":
        year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
        # Clamp to the last valid day (Jan 31 -> Feb 28/29)
        for day in range(now.day, 27, -1):
            try:
                return now.replace(year=year, month=month, day=day)
            except ValueError:
                continue
        return now.replace(year=year, month=month, day=min(now.day, 28))
    msg = f"Invalid timeframe: {timeframe}"
    raise ValueError(msg)


def generate_recommendations(features: dict[str, Any], category: str) -> list[str]:
    recommendations = []
    if features["trend"] == "decreasing":
        recommendations.append(f"Consider increasing your {category} activity")
    elif features["trend"] == "increasing":
        recommendations.append(f"Great progress with {category}! Keep it up")
    if features["recent_activity"] < 2:
        recommendations.append("Try to be more consistent with logging activities")
    return recommendations


@dataclass
class PredictionResult:
    prediction: dict[str, Any]
    confidence: float
    features: dict[str, Any] = field(default_factory=dict)
    model_version: str = MODEL_VERSION


class PredictionEngine:
    """Rule-based forecaster. ``rng`` supplies all randomness."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def generate(
        self,
        prediction_type: str,
        category: str,
        logs: Sequence[Any],
        subscription_tier: str = "free",
        now: datetime | None = None,
    ) -> PredictionResult:
        now = now or datetime.now(timezone.utc)
        features = extract_features(logs, category, now)

        if prediction_type == "purchase_likelihood":
            prediction = self.predict_purchase_likelihood(features, category)
        elif prediction_type == "app_usage_duration":
            prediction = self.predict_app_usage(features, category)
        elif prediction_type == "sleep_quality":
            prediction = self.predict_sleep_quality(features)
        elif prediction_type == "exercise_frequency":
            prediction = self.predict_exercise_frequency(features)
        elif prediction_type == "decision_pattern":
            prediction = self.predict_decision_pattern(features, category, now)
        elif prediction_type == "behavior_change":
            prediction = self.predict_behavior_change(features, category)
        else:
            msg = f"Unknown prediction type: {prediction_type}"
            raise ValueError(msg)

        confidence = self.calculate_confidence(features)
        if subscription_tier == "free":
            confidence = min(confidence, FREE_TIER_CONFIDENCE_CAP)

        return PredictionResult(prediction=prediction, confidence=round(confidence, 2), features=features)

    # -- per-type rules ------------------------------------------------------

    def predict_purchase_likelihood(self, features: dict[str, Any], category: str) -> dict[str, Any]:
        base = min(features["frequency"] * 0.1, 0.8)
        boost = 0.1 if features["recent_activity"] > 2 else 0.0
        likelihood = min(base * _by_trend(features["trend"], 1.2, 0.8) + boost, 0.95)
        return {
            "likelihood": round_half_up(likelihood, 2),
            "category": category,
            "estimated_value": round(features["avg_value"] * 1.1, 2),
            "timeframe": "24_hours",
            "factors": {
                "historical_frequency": features["frequency"],
                "recent_activity": features["recent_activity"],
                "trend": features["trend"],
            },
        }

    def predict_app_usage(self, features: dict[str, Any], category: str) -> dict[str, Any]:
        base = features["avg_duration"] or 30
        return {
            "predicted_duration": int(round_half_up(base * _by_trend(features["trend"], 1.15, 0.85))),
            "category": category,
            "confidence": "medium",
            "factors": {
                "average_usage": features["avg_duration"],
                "trend": features["trend"],
                "frequency": features["frequency"],
            },
        }

    def predict_sleep_quality(self, features: dict[str, Any]) -> dict[str, Any]:
        recent = features["recent_activity"]
        impact = -0.5 if recent > 5 else 0.5 if recent < 2 else 0.0
        return {
            "predicted_quality": max(1.0, min(10.0, 7 + impact)),
            "duration": round(7.5 + (self.rng.random() - 0.5), 2),
            "factors": {"recent_activity": recent, "trend": features["trend"]},
        }

    def predict_exercise_frequency(self, features: dict[str, Any]) -> dict[str, Any]:
        return {
            "weekly_frequency": int(round_half_up(features["frequency"] * _by_trend(features["trend"], 1.1, 0.9))),
            "likelihood": round(min(features["recent_activity"] * 0.2, 0.9), 2),
            "recommended_increase": 1 if features["trend"] == "decreasing" else 0,
        }

    def predict_decision_pattern(self, features: dict[str, Any], category: str, now: datetime) -> dict[str, Any]:
        frequency = features["frequency"]
        interval_days = 7 / frequency if frequency > 0 else 7
        next_time = now + timedelta(days=round_half_up(interval_days))
        return {
            "pattern": features["trend"],
            "next_decision_time": next_time.isoformat(),
            "category": category,
            "confidence": "high" if frequency > 5 else "medium",
        }

    def predict_behavior_change(self, features: dict[str, Any], category: str) -> dict[str, Any]:
        return {
            "change_score": _by_trend(features["trend"], 0.7, 0.3, 0.5),
            "direction": features["trend"],
            "category": category,
            "timeframe": "1_week",
            "recommendations": generate_recommendations(features, category),
        }

    def calculate_confidence(self, features: dict[str, Any]) -> float:
        confidence = 0.5
        if features["total_behaviors"] > 20:
            confidence += 0.2
        elif features["total_behaviors"] > 10:
            confidence += 0.1
        if features["recent_activity"] > 3:
            confidence += 0.15
        if features["frequency"] > 5:
            confidence += 0.1
        confidence += (self.rng.random() - 0.5) * 0.1
        return max(0.3, min(0.95, confidence))
