"""Per-user analytics computed from behavior logs and predictions."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import date
from statistics import NormalDist
from typing import Any

from behaviormarket.analytics.stats import consistency, daily_counts, mean_or, pearson

DEFAULT_COLOR = "#6b7280"

CATEGORY_COLORS = {
    "sleep": "#6366f1",
    "exercise": "#10b981",
    "food": "#f59e0b",
    "work": "#3b82f6",
    "social": "#8b5cf6",
    "entertainment": "#ec4899",
    "purchase": "#06b6d4",
    "travel": "#84cc16",
    "health": "#ef4444",
    "app_usage": "#a855f7",
}

# Daily category counts correlated against mood/energy/stress
CORRELATION_FACTORS = {
    "exercise": "Exercise",
    "sleep": "Sleep Quality",
    "social": "Social Time",
    "work": "Work Hours",
    "entertainment": "Screen Time",
}

TIME_RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}

_population = NormalDist(mu=50, sigma=15)


def category_color(category: str) -> str:
    return CATEGORY_COLORS.get(category, DEFAULT_COLOR)


def format_model_name(prediction_type: str) -> str:
    return prediction_type.replace("_", " ").title()


def _avg(values: list[float]) -> float | None:
    return round(sum(values) / len(values), 2) if values else None


def behavior_trends(logs: Sequence[Any]) -> list[dict[str, Any]]:
    """Daily mean mood, energy, stress and sleep (value of sleep logs), oldest first."""
    days: dict[date, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
    for log in logs:
        bucket = days[log.timestamp.date()]
        if log.mood_rating is not None:
            bucket["mood"].append(log.mood_rating)
        if log.energy_level is not None:
            bucket["energy"].append(log.energy_level)
        if log.stress_level is not None:
            bucket["stress"].append(log.stress_level)
        if log.category == "sleep" and log.value is not None:
            bucket["sleep"].append(float(log.value))

    return [
        {
            "date": day.isoformat(),
            "mood": _avg(bucket["mood"]),
            "energy": _avg(bucket["energy"]),
            "stress": _avg(bucket["stress"]),
            "sleep": _avg(bucket["sleep"]),
        }
        for day, bucket in sorted(days.items())
    ]


def category_breakdown(logs: Sequence[Any]) -> list[dict[str, Any]]:
    counts = Counter(log.category for log in logs)
    return [
        {"name": category.replace("_", " ").title(), "category": category, "value": n, "color": category_color(category)}
        for category, n in counts.most_common()
    ]


def correlations(logs: Sequence[Any]) -> list[dict[str, Any]]:
    """Pearson r between daily factor counts and daily mean mood/energy/stress.

    Only logs carrying all three ratings are used.
    """
    rated = [
        log
        for log in logs
        if log.mood_rating is not None and log.energy_level is not None and log.stress_level is not None
    ]
    days = sorted({log.timestamp.date() for log in rated})

    ratings: dict[str, list[float]] = {}
    for attr, key in (("mood_rating", "mood"), ("energy_level", "energy"), ("stress_level", "stress")):
        per_day: dict[date, list[float]] = defaultdict(list)
        for log in rated:
            per_day[log.timestamp.date()].append(getattr(log, attr))
        ratings[key] = [sum(per_day[d]) / len(per_day[d]) for d in days]

    result = []
    for category, factor in CORRELATION_FACTORS.items():
        counts = daily_counts(rated, category)
        series = [float(counts.get(d, 0)) for d in days]
        result.append({"factor": factor, **{key: pearson(series, values) for key, values in ratings.items()}})
    return result


def _trait(name: str, score: float) -> dict[str, Any]:
    score = max(0.0, min(100.0, score))
    return {"trait": name, "score": round(score, 1), "percentile": round(_population.cdf(score) * 100, 1)}


def personality(logs: Sequence[Any]) -> dict[str, Any]:
    """Big-Five style scores derived from logging habits.

    Conscientiousness follows logging consistency and work/exercise share,
    openness category diversity, extraversion and agreeableness the social
    share, neuroticism the mean stress rating.
    """
    if not logs:
        return {"traits": [], "based_on_logs": 0}

    counts = daily_counts(logs)
    span = (max(counts) - min(counts)).days + 1
    total = len(logs)
    by_category = Counter(log.category for log in logs)
    social_share = by_category["social"] / total
    diligent_share = (by_category["work"] + by_category["exercise"]) / total
    stress = mean_or((log.stress_level for log in logs), 5.0)

    traits = [
        _trait("Conscientiousness", 30 + 50 * consistency(counts, span) + 20 * diligent_share),
        _trait("Openness", 20 + 80 * len(by_category) / len(CATEGORY_COLORS)),
        _trait("Extraversion", 20 + 160 * social_share),
        _trait("Agreeableness", 40 + 40 * social_share + 20 * (1 - stress / 10)),
        _trait("Neuroticism", stress * 10),
    ]
    return {"traits": traits, "based_on_logs": total}


def model_performance(predictions: Sequence[Any]) -> list[dict[str, Any]]:
    """Accuracy % and mean confidence per prediction type (verified predictions only)."""
    grouped: dict[str, list[Any]] = defaultdict(list)
    for prediction in predictions:
        if prediction.accuracy is not None and prediction.actual_outcome is not None:
            grouped[prediction.prediction_type].append(prediction)

    return [
        {
            "model": format_model_name(prediction_type),
            "accuracy": round(sum(p.accuracy for p in items) / len(items) * 100),
            "confidence": round(sum(p.confidence for p in items) / len(items), 2),
            "samples": len(items),
        }
        for prediction_type, items in sorted(grouped.items())
    ]
