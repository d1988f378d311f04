"""Subscription tier catalog and per-tier feature/limit tables."""

from __future__ import annotations

from typing import Any

from behaviormarket.config import get_settings

TIER_ORDER = ("free", "premium", "enterprise")
PAID_TIERS = ("premium", "enterprise")

UNLIMITED = -1

# Pricing page catalog
SUBSCRIPTION_TIERS: dict[str, dict[str, Any]] = {
    "free": {
        "name": "Free",
        "price": 0,
        "stripe_price_id": None,
        "features": {
            "max_predictions": 5,
            "advanced_analytics": False,
            "marketplace_access": False,
            "api_access": False,
            "custom_reports": False,
        },
    },
    "premium": {
        "name": "Premium",
        "price": 29,
        "stripe_price_id": "price_premium_monthly",
        "features": {
            "max_predictions": 50,
            "advanced_analytics": True,
            "marketplace_access": True,
            "api_access": False,
            "custom_reports": True,
        },
    },
    "enterprise": {
        "name": "Enterprise",
        "price": 999,
        "stripe_price_id": "price_enterprise_monthly",
        "features": {
            "max_predictions": 1000,
            "advanced_analytics": True,
            "marketplace_access": True,
            "api_access": True,
            "custom_reports": True,
        },
    },
}

# Gating table: booleans are feature flags, ints are usage caps (UNLIMITED = no cap)
SUBSCRIPTION_FEATURES: dict[str, dict[str, bool | int]] = {
    "free": {
        "max_behavior_logs": 50,
        "max_predictions": 5,
        "basic_analytics": True,
        "community_access": True,
        "max_challenges": 2,
    },
    "premium": {
        "max_behavior_logs": 1000,
        "max_predictions": 50,
        "basic_analytics": True,
        "advanced_analytics": True,
        "correlation_analysis": True,
        "community_access": True,
        "priority_support": True,
        "max_challenges": 10,
        "custom_themes": True,
        "export_data": True,
    },
    "enterprise": {
        "max_behavior_logs": UNLIMITED,
        "max_predictions": UNLIMITED,
        "basic_analytics": True,
        "advanced_analytics": True,
        "correlation_analysis": True,
        "personality_insights": True,
        "predictive_modeling": True,
        "community_access": True,
        "priority_support": True,
        "dedicated_support": True,
        "max_challenges": UNLIMITED,
        "custom_themes": True,
        "export_data": True,
        "api_access": True,
        "white_label": True,
        "custom_integrations": True,
    },
}

# Lifetime prediction cap enforced by the generate endpoint
PREDICTION_LIMITS = {tier: info["features"]["max_predictions"] for tier, info in SUBSCRIPTION_TIERS.items()}


def normalize_tier(tier: str | None) -> str:
    return tier if tier in SUBSCRIPTION_FEATURES else "free"


def tier_rank(tier: str | None) -> int:
    return TIER_ORDER.index(normalize_tier(tier))


def stripe_price_id(tier: str) -> str | None:
    """Price id for a paid tier, with the configured override applied."""
    settings = get_settings()
    if tier == "premium":
        return settings.stripe_premium_price_id
    if tier == "enterprise":
        return settings.stripe_enterprise_price_id
    return None


def tier_for_price(price_id: str | None) -> str | None:
    for tier in PAID_TIERS:
        if price_id and stripe_price_id(tier) == price_id:
            return tier
    return None


def public_catalog() -> dict[str, dict[str, Any]]:
    """The tier catalog with configured Stripe price ids filled in."""
    return {
        tier: {**info, "stripe_price_id": stripe_price_id(tier)}
        for tier, info in SUBSCRIPTION_TIERS.items()
    }
