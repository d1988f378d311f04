"""Heuristic prediction engine: features, per-type rules and confidence."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from behaviormarket.predictions.engine import (
    FREE_TIER_CONFIDENCE_CAP,
    PredictionEngine,
    extract_features,
    round_half_up,
    target_date_for,
)

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def _log(category: str, days_ago: float, value: float | None = None, duration: int | None = None):
    return SimpleNamespace(
        category=category,
        timestamp=NOW - timedelta(days=days_ago),
        value=Decimal(str(value)) if value is not None else None,
        duration=duration,
    )


def _fixed_rng(value: float = 0.5) -> MagicMock:
    rng = MagicMock()
    rng.random.return_value = value
    return rng


@pytest.fixture
def rising_purchases() -> list[SimpleNamespace]:
    # Newest first, the way the service loads them
    return [
        _log("purchase", 1, 20),
        _log("purchase", 2, 20),
        _log("purchase", 3, 10),
        _log("purchase", 4, 10),
    ]


class TestExtractFeatures:
    def test_empty_logs(self) -> None:
        features = extract_features([], "purchase", NOW)
        assert features == {
            "frequency": 0,
            "avg_value": 0.0,
            "avg_duration": 0.0,
            "recent_activity": 0,
            "trend": "stable",
            "total_behaviors": 0,
        }

    def test_trend_uses_chronological_order(self, rising_purchases) -> None:
        features = extract_features(rising_purchases, "purchase", NOW)
        assert features["trend"] == "increasing"
        assert features["frequency"] == 4
        assert features["avg_value"] == 15.0
        assert features["recent_activity"] == 4

    def test_decreasing_trend(self) -> None:
        logs = [_log("purchase", 1, 5), _log("purchase", 2, 5), _log("purchase", 3, 50), _log("purchase", 4, 50)]
        assert extract_features(logs, "purchase", NOW)["trend"] == "decreasing"

    def test_other_categories_count_toward_totals_only(self) -> None:
        logs = [_log("purchase", 1, 10), _log("sleep", 1, duration=420), _log("sleep", 20, duration=480)]
        features = extract_features(logs, "purchase", NOW)
        assert features["frequency"] == 1
        assert features["total_behaviors"] == 3
        assert features["recent_activity"] == 2


class TestPredictionTypes:
    def test_purchase_likelihood(self, rising_purchases) -> None:
        result = PredictionEngine(_fixed_rng()).generate("purchase_likelihood", "purchase", rising_purchases, "premium", NOW)
        assert result.prediction["likelihood"] == 0.58
        assert result.prediction["estimated_value"] == 16.5
        assert result.prediction["timeframe"] == "24_hours"
        assert result.prediction["factors"]["trend"] == "increasing"
        assert result.model_version == "1.0"

    def test_app_usage_defaults_to_thirty_minutes(self) -> None:
        result = PredictionEngine(_fixed_rng()).generate("app_usage_duration", "app_usage", [], "premium", NOW)
        assert result.prediction["predicted_duration"] == 30

    def test_sleep_quality(self, rising_purchases) -> None:
        result = PredictionEngine(_fixed_rng()).generate("sleep_quality", "sleep", rising_purchases, "premium", NOW)
        assert result.prediction["predicted_quality"] == 7.0
        assert result.prediction["duration"] == 7.5

    def test_decision_pattern_next_time(self, rising_purchases) -> None:
        result = PredictionEngine(_fixed_rng()).generate("decision_pattern", "purchase", rising_purchases, "premium", NOW)
        # 7 days / 4 occurrences rounds to 2 days
        assert result.prediction["next_decision_time"] == (NOW + timedelta(days=2)).isoformat()
        assert result.prediction["confidence"] == "medium"

    def test_behavior_change(self, rising_purchases) -> None:
        result = PredictionEngine(_fixed_rng()).generate("behavior_change", "purchase", rising_purchases, "premium", NOW)
        assert result.prediction["change_score"] == 0.7
        assert result.prediction["direction"] == "increasing"
        assert result.prediction["recommendations"] == ["Great progress with purchase! Keep it up"]

    def test_exercise_frequency(self, rising_purchases) -> None:
        result = PredictionEngine(_fixed_rng()).generate("exercise_frequency", "purchase", rising_purchases, "premium", NOW)
        assert result.prediction["weekly_frequency"] == 4
        assert result.prediction["likelihood"] == 0.8

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown prediction type"):
            PredictionEngine(_fixed_rng()).generate("horoscope", "purchase", [], "free", NOW)


class TestConfidence:
    def test_no_jitter_at_midpoint(self, rising_purchases) -> None:
        result = PredictionEngine(_fixed_rng(0.5)).generate("purchase_likelihood", "purchase", rising_purchases, "premium", NOW)
        assert result.confidence == 0.65

    def test_clamped_to_upper_bound(self) -> None:
        logs = [_log("purchase", i % 5, 10) for i in range(25)]
        result = PredictionEngine(_fixed_rng(1.0)).generate("purchase_likelihood", "purchase", logs, "premium", NOW)
        assert result.confidence == 0.95

    def test_free_tier_capped(self) -> None:
        logs = [_log("purchase", i % 5, 10) for i in range(25)]
        result = PredictionEngine(_fixed_rng(1.0)).generate("purchase_likelihood", "purchase", logs, "free", NOW)
        assert result.confidence == FREE_TIER_CONFIDENCE_CAP

    def test_negative_jitter_stays_in_bounds(self) -> None:
        engine = PredictionEngine(_fixed_rng(0.0))
        features = extract_features([], "purchase", NOW)
        assert engine.calculate_confidence(features) == pytest.approx(0.45)
        assert 0.3 <= engine.calculate_confidence(features) <= 0.95


class TestTargetDate:
    def test_fixed_offsets(self) -> None:
        assert target_date_for("1_day", NOW) == NOW + timedelta(days=1)
        assert target_date_for("3_days", NOW) == NOW + timedelta(days=3)
        assert target_date_for("1_week", NOW) == NOW + timedelta(days=7)

    def test_month_end_clamped(self) -> None:
        jan31 = datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)
        assert target_date_for("1_month", jan31) == datetime(2024, 2, 29, 9, 0, tzinfo=timezone.utc)

    def test_december_rolls_year(self) -> None:
        dec = datetime(2023, 12, 15, tzinfo=timezone.utc)
        assert target_date_for("1_month", dec) == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_invalid_timeframe(self) -> None:
        with pytest.raises(ValueError, match="Invalid timeframe"):
            target_date_for("2_years", NOW)


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3.0
    assert round_half_up(0.125, 2) == 0.13
