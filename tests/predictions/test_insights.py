"""Insights summary, trends and advanced analytics over behavior logs."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from behaviormarket.predictions.insights import (
    InsufficientDataError,
    advanced_analytics,
    generate_insights,
    mood_category,
    prediction_recommendations,
    prediction_trends,
    spending_category,
)

# A Wednesday
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def _log(category: str, days_ago: float = 0, **fields):
    defaults = {"value": None, "duration": None, "mood_rating": None, "energy_level": None}
    return SimpleNamespace(category=category, timestamp=NOW - timedelta(days=days_ago), **{**defaults, **fields})


class TestGenerateInsights:
    def test_requires_ten_logs(self) -> None:
        with pytest.raises(InsufficientDataError, match="at least 10"):
            generate_insights([_log("sleep")] * 9)

    def test_insufficient_data_is_a_value_error(self) -> None:
        assert issubclass(InsufficientDataError, ValueError)

    def test_sleep_heavy_history(self) -> None:
        logs = [_log("sleep", i, duration=480, mood_rating=8, energy_level=8) for i in range(10)]
        insights = generate_insights(logs)

        assert insights["data_points"] == 10
        assert insights["mood"]["score"] == 8.0
        assert insights["mood"]["category"] == "Excellent"
        assert insights["mood"]["confidence"] == 0.2
        assert insights["spending"]["predicted_daily_amount"] == 0.0
        assert insights["spending"]["category"] == "Minimal"
        assert insights["next_activity"]["activity"] == "Rest"
        assert insights["sleep"]["predicted_hours"] == 8.0
        assert insights["sleep"]["recommendations"] == []

    def test_spending_averaged_per_day(self) -> None:
        logs = [_log("purchase", 0, value=Decimal("40")), _log("purchase", 0, value=Decimal("40"))]
        logs += [_log("purchase", 1, value=Decimal("20"))]
        logs += [_log("work", i) for i in range(7)]
        insights = generate_insights(logs)
        # (80 + 20) / 2 days
        assert insights["spending"]["predicted_daily_amount"] == 50.0
        assert insights["spending"]["category"] == "Medium"
        assert insights["next_activity"]["activity"] == "Work"
        assert insights["mood"]["score"] == 5.0


class TestCategories:
    @pytest.mark.parametrize(
        ("score", "expected"), [(9, "Excellent"), (8, "Excellent"), (6.5, "Good"), (4, "Fair"), (2, "Poor")]
    )
    def test_mood_category(self, score: float, expected: str) -> None:
        assert mood_category(score) == expected

    @pytest.mark.parametrize(
        ("amount", "expected"), [(150, "High"), (50, "Medium"), (10, "Low"), (3, "Minimal")]
    )
    def test_spending_category(self, amount: float, expected: str) -> None:
        assert spending_category(amount) == expected


class TestPredictionTrends:
    def test_recent_weekday_activity(self) -> None:
        logs = [_log("exercise", d) for d in (0, 1, 2)]
        trends = prediction_trends("exercise", logs, NOW)
        assert trends == {"short_term": "increasing", "long_term": "improving", "seasonality": "weekday-heavy"}

    def test_activity_dropped_this_week(self) -> None:
        logs = [_log("exercise", d) for d in (8, 9, 10)]
        trends = prediction_trends("exercise", logs, NOW)
        assert trends["short_term"] == "decreasing"

    def test_no_logs_is_stable(self) -> None:
        trends = prediction_trends("exercise", [], NOW)
        assert trends == {"short_term": "stable", "long_term": "stable", "seasonality": "none detected"}

    def test_recommendations(self) -> None:
        prediction = SimpleNamespace(confidence=0.5, category="exercise", is_verified=False)
        recs = prediction_recommendations(prediction, {"short_term": "decreasing"})
        assert recs == [
            "Log more exercise activity to improve this forecast",
            "Verify this prediction once the outcome is known",
            "Your exercise activity dropped this week",
        ]


class TestAdvancedAnalytics:
    def test_correlated_categories(self) -> None:
        logs = []
        for days_ago, n in ((2, 1), (1, 2), (0, 3)):
            logs += [_log("work", days_ago) for _ in range(n)]
            logs += [_log("social", days_ago) for _ in range(n)]
        predictions = [
            SimpleNamespace(is_verified=True, accuracy=0.8),
            SimpleNamespace(is_verified=True, accuracy=0.6),
            SimpleNamespace(is_verified=False, accuracy=None),
        ]

        result = advanced_analytics(logs, predictions)

        assert result["total_logs"] == 12
        assert result["correlations"] == [{"categories": ["social", "work"], "correlation": 1.0}]
        assert set(result["dominant_categories"]) == {"work", "social"}
        assert result["verified_accuracy"] == 0.7
        assert result["anomalies"] == []
        assert 0.0 <= result["pattern_consistency"] <= 1.0

    def test_no_logs(self) -> None:
        result = advanced_analytics([], [])
        assert result["total_logs"] == 0
        assert result["correlations"] == []
        assert result["verified_accuracy"] is None
        assert result["pattern_consistency"] == 0.0
