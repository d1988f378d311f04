"""Insight pricing and the contributor revenue split."""

from __future__ import annotations

from decimal import Decimal

import pytest

from behaviormarket.marketplace.pricing import discount_percent, estimate_price, split_earnings, tier_multiplier


class TestPricing:
    def test_ten_dollars_per_category(self) -> None:
        assert estimate_price(3, "premium") == 30
        assert estimate_price(0, "premium") == 0

    def test_enterprise_discount(self) -> None:
        assert tier_multiplier("enterprise") == Decimal("0.8")
        assert estimate_price(3, "enterprise") == 24
        assert discount_percent("enterprise") == 20

    @pytest.mark.parametrize("tier", ["free", "premium", "basic", None])
    def test_no_discount_for_other_tiers(self, tier: str | None) -> None:
        assert discount_percent(tier) == 0
        assert tier_multiplier(tier) == Decimal(1)


class TestSplitEarnings:
    def test_even_split(self) -> None:
        split = split_earnings(Decimal("100.00"), 3)
        assert split.pool == Decimal("30.00")
        assert split.share == Decimal("10.00")
        assert split.fee == Decimal("0.00")
        assert split.distributed == Decimal("30.00")

    def test_remainder_becomes_fee(self) -> None:
        split = split_earnings(Decimal("100.00"), 7)
        assert split.share == Decimal("4.28")
        assert split.distributed == Decimal("29.96")
        assert split.fee == Decimal("0.04")
        assert split.distributed + split.fee == split.pool

    def test_no_contributors_keeps_whole_pool(self) -> None:
        split = split_earnings(Decimal("50.00"), 0)
        assert split.contributors == 0
        assert split.share == Decimal("0.00")
        assert split.fee == split.pool == Decimal("15.00")

    def test_pool_rounds_half_up_to_cents(self) -> None:
        assert split_earnings(Decimal("0.05"), 1).pool == Decimal("0.02")

    def test_shares_never_exceed_pool(self) -> None:
        for contributors in range(1, 101):
            split = split_earnings(Decimal("99.99"), contributors)
            assert split.distributed <= split.pool
            assert split.fee >= 0
