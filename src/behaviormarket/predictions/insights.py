"""
Log-derived summaries: the lightweight insights view and the analytics
attached to the advanced predictions view.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from itertools import combinations
from typing import Any

from behaviormarket.analytics.stats import anomaly_days, consistency, daily_counts, mean_or, pearson

MIN_LOGS_FOR_INSIGHTS = 10

# Category -> activity label used by the next-activity suggestion
ACTIVITY_LABELS = {
    "work": "Work",
    "exercise": "Exercise",
    "health": "Exercise",
    "social": "Social",
    "entertainment": "Entertainment",
    "app_usage": "Entertainment",
    "sleep": "Rest",
}

ACTIVITY_SUGGESTIONS = {
    "Work": ["Take regular breaks", "Stay hydrated", "Organize your workspace"],
    "Exercise": ["Warm up properly", "Stay hydrated", "Listen to your body"],
    "Social": ["Be present in conversations", "Try a new activity together"],
    "Entertainment": ["Set a time limit", "Balance screen time with activity"],
    "Rest": ["Keep a consistent bedtime", "Avoid screens before sleep"],
}


class InsufficientDataError(ValueError):
    pass


def mood_category(score: float) -> str:
    if score >= 8:
        return "Excellent"
    if score >= 6:
        return "Good"
    if score >= 4:
        return "Fair"
    return "Poor"


def spending_category(amount: float) -> str:
    if amount >= 100:
        return "High"
    if amount >= 50:
        return "Medium"
    if amount >= 10:
        return "Low"
    return "Minimal"


def mood_tips(score: float) -> list[str]:
    if score < 5:
        return ["Take a short walk", "Practice deep breathing", "Connect with a friend"]
    return ["Keep up the positive momentum", "Share your good mood with others"]


def saving_tips(amount: float) -> list[str]:
    if amount > 50:
        return ["Consider if this purchase is necessary", "Look for discounts or alternatives"]
    return ["Great job managing your spending!"]


def sleep_recommendations(hours: float, quality: float) -> list[str]:
    recommendations = []
    if hours < 7:
        recommendations.append("Try to get at least 7 hours of sleep")
    if quality < 6:
        recommendations.append("Consider a more consistent sleep schedule")
    if hours > 9:
        recommendations.append("Too much sleep can affect energy levels")
    return recommendations


def _data_confidence(n: int, optimal: int = 50) -> float:
    return round(min(1.0, n / optimal), 2)


def generate_insights(logs: Sequence[Any]) -> dict[str, Any]:
    """Mood, spending, activity and sleep summary. Needs MIN_LOGS_FOR_INSIGHTS logs."""
    if len(logs) < MIN_LOGS_FOR_INSIGHTS:
        msg = f"Insufficient data for predictions. Need at least {MIN_LOGS_FOR_INSIGHTS} behavior logs."
        raise InsufficientDataError(msg)

    mood = round(mean_or((log.mood_rating for log in logs), 5.0), 1)

    purchases = [log for log in logs if log.category == "purchase"]
    spend_by_day = Counter()
    for log in purchases:
        spend_by_day[log.timestamp.date()] += float(log.value or 0)
    daily_spend = round(mean_or(spend_by_day.values()), 2)

    recent = sorted(logs, key=lambda log: log.timestamp, reverse=True)[:20]
    labels = Counter(ACTIVITY_LABELS[log.category] for log in recent if log.category in ACTIVITY_LABELS)
    next_activity = labels.most_common(1)[0][0] if labels else "Rest"

    sleep_logs = [log for log in logs if log.category == "sleep" and log.duration]
    sleep_hours = round(mean_or((log.duration / 60 for log in sleep_logs), 7.5), 1)
    sleep_quality = round(mean_or((log.energy_level for log in sleep_logs), mood), 1)

    return {
        "mood": {
            "score": mood,
            "category": mood_category(mood),
            "tips": mood_tips(mood),
            "confidence": _data_confidence(sum(1 for log in logs if log.mood_rating is not None)),
        },
        "spending": {
            "predicted_daily_amount": daily_spend,
            "category": spending_category(daily_spend),
            "tips": saving_tips(daily_spend),
            "confidence": _data_confidence(len(purchases), 30),
        },
        "next_activity": {
            "activity": next_activity,
            "suggestions": ACTIVITY_SUGGESTIONS[next_activity],
            "confidence": _data_confidence(sum(labels.values()), 20),
        },
        "sleep": {
            "predicted_hours": sleep_hours,
            "quality": sleep_quality,
            "recommendations": sleep_recommendations(sleep_hours, sleep_quality),
            "confidence": _data_confidence(len(sleep_logs), 14),
        },
        "data_points": len(logs),
    }


# ---------------------------------------------------------------------------
# Advanced view
# ---------------------------------------------------------------------------


def _direction(current: int, previous: int, up: str, down: str) -> str:
    if current > previous * 1.1:
        return up
    if current < previous * 0.9:
        return down
    return "stable"


def prediction_trends(category: str, logs: Sequence[Any], now: datetime | None = None) -> dict[str, str]:
    """Short/long-term activity direction and weekday/weekend skew for one category."""
    now = now or datetime.now(timezone.utc)
    ages = [(now - log.timestamp).days for log in logs if log.category == category]

    short = _direction(
        sum(1 for a in ages if a < 7), sum(1 for a in ages if 7 <= a < 14), "increasing", "decreasing"
    )
    long = _direction(
        sum(1 for a in ages if a < 30), sum(1 for a in ages if 30 <= a < 60), "improving", "declining"
    )

    weekend = sum(1 for log in logs if log.category == category and log.timestamp.weekday() >= 5)
    weekday = sum(1 for log in logs if log.category == category) - weekend
    # Per-day rates: 2 weekend days vs 5 weekdays
    weekend_rate, weekday_rate = weekend / 2, weekday / 5
    if weekend_rate > weekday_rate * 1.25:
        seasonality = "weekend-heavy"
    elif weekday_rate > weekend_rate * 1.25:
        seasonality = "weekday-heavy"
    else:
        seasonality = "none detected"

    return {"short_term": short, "long_term": long, "seasonality": seasonality}


def prediction_recommendations(prediction: Any, trends: dict[str, str]) -> list[str]:
    recommendations = []
    if prediction.confidence < 0.6:
        recommendations.append(f"Log more {prediction.category} activity to improve this forecast")
    if not prediction.is_verified:
        recommendations.append("Verify this prediction once the outcome is known")
    if trends["short_term"] == "decreasing":
        recommendations.append(f"Your {prediction.category} activity dropped this week")
    elif trends["short_term"] == "increasing":
        recommendations.append(f"Your {prediction.category} activity is picking up")
    return recommendations


def advanced_analytics(logs: Sequence[Any], predictions: Sequence[Any], days: int = 30) -> dict[str, Any]:
    """Consistency, anomalies, category correlations and verified accuracy."""
    counts = daily_counts(logs)
    span_days = sorted(counts)
    calendar = []
    if span_days:
        first = span_days[0]
        calendar = [first + timedelta(days=i) for i in range((span_days[-1] - first).days + 1)]

    per_category = {category: daily_counts(logs, category) for category in {log.category for log in logs}}
    correlations = []
    for a, b in combinations(sorted(per_category), 2):
        r = pearson(
            [per_category[a].get(day, 0) for day in calendar],
            [per_category[b].get(day, 0) for day in calendar],
        )
        if r:
            correlations.append({"categories": [a, b], "correlation": r})
    correlations.sort(key=lambda c: abs(c["correlation"]), reverse=True)

    verified = [p.accuracy for p in predictions if p.is_verified and p.accuracy is not None]
    return {
        "pattern_consistency": consistency(counts, min(days, len(calendar)) or days),
        "anomalies": [day.isoformat() for day in anomaly_days(counts)],
        "correlations": correlations[:3],
        "dominant_categories": [c for c, _ in Counter(log.category for log in logs).most_common(3)],
        "verified_accuracy": round(mean_or(verified), 3) if verified else None,
        "total_logs": len(logs),
    }
