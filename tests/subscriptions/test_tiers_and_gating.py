"""Tier catalog, feature gating and usage-limit bodies."""

from __future__ import annotations

from behaviormarket.subscriptions.gating import get_feature_availability, tier_denial, usage_denial
from behaviormarket.subscriptions.tiers import (
    PREDICTION_LIMITS,
    normalize_tier,
    public_catalog,
    tier_for_price,
    tier_rank,
)


class TestTierHelpers:
    def test_unknown_tier_treated_as_free(self) -> None:
        assert normalize_tier("platinum") == "free"
        assert normalize_tier(None) == "free"
        assert tier_rank("platinum") == 0

    def test_ordering(self) -> None:
        assert tier_rank("free") < tier_rank("premium") < tier_rank("enterprise")

    def test_prediction_limits(self) -> None:
        assert PREDICTION_LIMITS == {"free": 5, "premium": 50, "enterprise": 1000}

    def test_price_lookup(self) -> None:
        assert tier_for_price("price_premium_monthly") == "premium"
        assert tier_for_price("price_enterprise_monthly") == "enterprise"
        assert tier_for_price("price_unknown") is None
        assert tier_for_price(None) is None

    def test_public_catalog(self) -> None:
        catalog = public_catalog()
        assert list(catalog) == ["free", "premium", "enterprise"]
        assert catalog["free"]["stripe_price_id"] is None
        assert catalog["premium"]["price"] == 29
        assert catalog["enterprise"]["features"]["api_access"] is True


class TestTierDenial:
    def test_allowed(self) -> None:
        assert tier_denial("premium", "premium") is None
        assert tier_denial("enterprise", "premium", "correlation_analysis") is None

    def test_upgrade_required(self) -> None:
        body = tier_denial("free", "enterprise")
        assert body == {
            "error": "Subscription upgrade required",
            "message": "This feature requires enterprise subscription",
            "current_tier": "free",
            "required_tier": "enterprise",
            "upgrade_url": "/pricing?upgrade=enterprise",
        }

    def test_feature_missing_from_plan(self) -> None:
        body = tier_denial("premium", "premium", "personality_insights")
        assert body is not None
        assert body["error"] == "Feature not available"
        assert body["available_in"] == ["enterprise"]

    def test_feature_availability(self) -> None:
        assert get_feature_availability("correlation_analysis") == ["premium", "enterprise"]
        assert get_feature_availability("community_access") == ["free", "premium", "enterprise"]
        assert get_feature_availability("teleportation") == []


class TestUsageDenial:
    def test_under_limit(self) -> None:
        assert usage_denial("free", "max_predictions", 4) is None

    def test_at_limit(self) -> None:
        body = usage_denial("free", "max_behavior_logs", 50)
        assert body is not None
        assert body["error"] == "Usage limit exceeded"
        assert body["current_usage"] == 50
        assert body["max_usage"] == 50
        assert body["current_tier"] == "free"
        assert body["upgrade_url"] == "/pricing"

    def test_unlimited(self) -> None:
        assert usage_denial("enterprise", "max_predictions", 10_000) is None
