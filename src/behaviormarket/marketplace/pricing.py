"""Insight pricing and purchase revenue split."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from behaviormarket.config import get_settings

CENT = Decimal("0.01")
DISCOUNTED_TIER = "enterprise"


def tier_multiplier(tier: str | None) -> Decimal:
    if tier == DISCOUNTED_TIER:
        return Decimal(1) - Decimal(str(get_settings().marketplace_enterprise_discount))
    return Decimal(1)


def discount_percent(tier: str | None) -> int:
    return int((Decimal(1) - tier_multiplier(tier)) * 100)


def estimate_price(category_count: int, tier: str | None) -> int:
    """Whole-dollar price: per-category base times the tier multiplier."""
    base = Decimal(category_count * get_settings().marketplace_price_per_category)
    return int((base * tier_multiplier(tier)).quantize(Decimal(1), ROUND_HALF_UP))


@dataclass(frozen=True)
class EarningsSplit:
    pool: Decimal
    share: Decimal
    contributors: int
    fee: Decimal

    @property
    def distributed(self) -> Decimal:
        return self.share * self.contributors


def split_earnings(amount: Decimal, contributors: int) -> EarningsSplit:
    """Divide the user share of ``amount`` equally, rounding each share down to cents.

    Whatever cannot be split evenly (the whole pool when there are no
    contributors) becomes the marketplace fee.
    """
    pool = (Decimal(amount) * Decimal(str(get_settings().marketplace_user_share))).quantize(CENT, ROUND_HALF_UP)
    if contributors <= 0:
        return EarningsSplit(pool=pool, share=Decimal("0.00"), contributors=0, fee=pool)
    share = (pool / contributors).quantize(CENT, ROUND_DOWN)
    return EarningsSplit(pool=pool, share=share, contributors=contributors, fee=pool - share * contributors)
