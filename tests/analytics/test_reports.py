"""Tests for the analytics report builders and their statistics helpers."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

from behaviormarket.analytics.reports import (
    DEFAULT_COLOR,
    behavior_trends,
    category_breakdown,
    correlations,
    model_performance,
    personality,
)
from behaviormarket.analytics.stats import anomaly_days, consistency, pearson

START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def log(category: str, day: int = 0, **fields: Any) -> SimpleNamespace:
    defaults: dict[str, Any] = {"mood_rating": None, "energy_level": None, "stress_level": None, "value": None}
    defaults.update(fields)
    return SimpleNamespace(category=category, timestamp=START + timedelta(days=day), **defaults)


class TestStats:
    def test_pearson_perfect(self) -> None:
        assert pearson([1, 2, 3], [2, 4, 6]) == 1.0
        assert pearson([1, 2, 3], [3, 2, 1]) == -1.0

    def test_pearson_degenerate(self) -> None:
        assert pearson([1, 1, 1], [1, 2, 3]) == 0.0
        assert pearson([1], [1]) == 0.0
        assert pearson([1, 2], [1, 2, 3]) == 0.0

    def test_anomaly_days(self) -> None:
        counts = Counter({date(2026, 3, d): 1 for d in range(1, 11)})
        counts[date(2026, 3, 11)] = 10
        assert anomaly_days(counts) == [date(2026, 3, 11)]

    def test_anomaly_days_needs_history(self) -> None:
        assert anomaly_days(Counter({date(2026, 3, 1): 1, date(2026, 3, 2): 50})) == []

    def test_consistency(self) -> None:
        counts = Counter({date(2026, 3, 1): 1, date(2026, 3, 2): 1})
        assert consistency(counts, 2) == 1.0
        assert consistency(counts, 4) == 0.0
        assert consistency(Counter(), 7) == 0.0


class TestReports:
    def test_category_breakdown(self) -> None:
        breakdown = category_breakdown([log("sleep"), log("sleep"), log("app_usage"), log("gardening")])
        assert breakdown[0] == {"name": "Sleep", "category": "sleep", "value": 2, "color": "#6366f1"}
        assert breakdown[1]["name"] == "App Usage"
        assert breakdown[2]["color"] == DEFAULT_COLOR

    def test_behavior_trends_daily_means(self) -> None:
        trends = behavior_trends(
            [
                log("work", 1, mood_rating=6),
                log("sleep", 0, mood_rating=4, value=Decimal("7.5")),
                log("social", 0, mood_rating=8, stress_level=3),
            ]
        )
        assert [t["date"] for t in trends] == ["2026-03-01", "2026-03-02"]
        assert trends[0] == {"date": "2026-03-01", "mood": 6.0, "energy": None, "stress": 3.0, "sleep": 7.5}

    def test_correlations_cover_every_factor(self) -> None:
        logs = [
            log("exercise", d, mood_rating=5 + d, energy_level=5, stress_level=5)
            for d in range(3)
            for _ in range(d + 1)
        ]
        result = {row["factor"]: row for row in correlations(logs)}
        assert set(result) == {"Exercise", "Sleep Quality", "Social Time", "Work Hours", "Screen Time"}
        assert result["Exercise"]["mood"] == 1.0
        assert result["Exercise"]["energy"] == 0.0
        assert result["Sleep Quality"]["mood"] == 0.0

    def test_personality_empty(self) -> None:
        assert personality([]) == {"traits": [], "based_on_logs": 0}

    def test_personality_is_deterministic(self) -> None:
        logs = [log("social", d, stress_level=7) for d in range(5)] + [log("work", d) for d in range(5)]
        first, second = personality(logs), personality(logs)
        assert first == second
        traits = {t["trait"]: t for t in first["traits"]}
        assert first["based_on_logs"] == 10
        assert traits["Neuroticism"]["score"] == 70.0
        assert traits["Extraversion"]["score"] == 100.0
        assert all(0 <= t["score"] <= 100 for t in first["traits"])
        assert all(0 <= t["percentile"] <= 100 for t in first["traits"])

    def test_model_performance_uses_verified_only(self) -> None:
        predictions = [
            SimpleNamespace(prediction_type="sleep_quality", accuracy=0.8, confidence=0.7, actual_outcome={"x": 1}),
            SimpleNamespace(prediction_type="sleep_quality", accuracy=0.6, confidence=0.9, actual_outcome={"x": 2}),
            SimpleNamespace(prediction_type="mood_forecast", accuracy=None, confidence=0.5, actual_outcome=None),
        ]
        assert model_performance(predictions) == [
            {"model": "Sleep Quality", "accuracy": 70, "confidence": 0.8, "samples": 2}
        ]
