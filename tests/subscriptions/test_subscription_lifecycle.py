"""Checkout, cancel, reactivate and payment-method flows."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient

from behaviormarket.db.models import Subscription, User
from behaviormarket.subscriptions.service import (
    cancel_subscription,
    ensure_stripe_customer,
    reactivate_subscription,
    start_checkout,
)
from behaviormarket.subscriptions.stripe_client import PaymentProviderError

from conftest import make_user

STRIPE = "behaviormarket.subscriptions.stripe_client"


def _result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def make_subscription(**overrides) -> Subscription:
    fields = {
        "id": 1,
        "user_id": 1,
        "tier": "premium",
        "status": "active",
        "stripe_subscription_id": "sub_1",
        "stripe_price_id": "price_premium_monthly",
        "cancel_at_period_end": False,
        "features": {},
    }
    fields.update(overrides)
    return Subscription(**fields)


@pytest.fixture
def stripe_calls():
    with (
        patch(f"{STRIPE}.create_customer", AsyncMock(return_value="cus_new")) as create_customer,
        patch(
            f"{STRIPE}.create_checkout_session",
            AsyncMock(return_value=("https://checkout.stripe.test/cs_1", "cs_1")),
        ) as create_session,
        patch(f"{STRIPE}.set_cancel_at_period_end", AsyncMock()) as set_cancel,
        patch(f"{STRIPE}.set_default_payment_method", AsyncMock()) as set_method,
    ):
        yield MagicMock(
            create_customer=create_customer,
            create_checkout_session=create_session,
            set_cancel_at_period_end=set_cancel,
            set_default_payment_method=set_method,
        )


class TestCheckout:
    async def test_existing_customer_reused(self, mock_db: AsyncMock, stripe_calls: MagicMock) -> None:
        user = make_user(stripe_customer_id="cus_old")
        assert await ensure_stripe_customer(mock_db, user) == "cus_old"
        stripe_calls.create_customer.assert_not_awaited()
        mock_db.commit.assert_not_awaited()

    async def test_new_customer_committed(self, mock_db: AsyncMock, stripe_calls: MagicMock) -> None:
        user = make_user(id=4, stripe_customer_id=None)
        assert await ensure_stripe_customer(mock_db, user) == "cus_new"
        assert user.stripe_customer_id == "cus_new"
        stripe_calls.create_customer.assert_awaited_once_with("test@example.com", user.full_name, 4)
        mock_db.commit.assert_awaited_once()

    async def test_start_checkout(self, mock_db: AsyncMock, stripe_calls: MagicMock) -> None:
        session = await start_checkout(mock_db, make_user(id=4, stripe_customer_id="cus_old"), "enterprise")
        assert session == {"checkout_url": "https://checkout.stripe.test/cs_1", "session_id": "cs_1"}
        stripe_calls.create_checkout_session.assert_awaited_once_with(
            "cus_old", "price_enterprise_monthly", 4, "enterprise"
        )

    @pytest.mark.parametrize("tier", ["free", "platinum"])
    async def test_unpaid_tier_rejected(self, mock_db: AsyncMock, stripe_calls: MagicMock, tier: str) -> None:
        with pytest.raises(ValueError, match="Tier not available"):
            await start_checkout(mock_db, make_user(), tier)
        stripe_calls.create_customer.assert_not_awaited()

    async def test_route_success(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock, stripe_calls: MagicMock
    ) -> None:
        as_user(stripe_customer_id="cus_old")
        response = await client.post("/api/subscriptions/checkout", json={"tier": "premium"})
        assert response.status_code == 200
        assert response.json() == {"checkout_url": "https://checkout.stripe.test/cs_1", "session_id": "cs_1"}

    async def test_route_free_tier_is_400(
        self, client: AsyncClient, as_user: Callable[..., User], stripe_calls: MagicMock
    ) -> None:
        as_user()
        response = await client.post("/api/subscriptions/checkout", json={"tier": "free"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Tier not available for subscription"

    async def test_provider_failure_is_502_and_keeps_customer(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock, stripe_calls: MagicMock
    ) -> None:
        user = as_user(stripe_customer_id=None)
        stripe_calls.create_checkout_session.side_effect = PaymentProviderError("card network down")

        response = await client.post("/api/subscriptions/checkout", json={"tier": "premium"})

        assert response.status_code == 502
        assert response.json()["detail"] == "Payment provider error"
        assert user.stripe_customer_id == "cus_new"
        mock_db.commit.assert_awaited_once()


class TestCancel:
    async def test_free_subscription_cannot_be_cancelled(self, mock_db: AsyncMock, stripe_calls: MagicMock) -> None:
        mock_db.execute.return_value = _result(make_subscription(tier="free", stripe_subscription_id=None))
        with pytest.raises(ValueError, match="No paid subscription"):
            await cancel_subscription(mock_db, make_user())
        stripe_calls.set_cancel_at_period_end.assert_not_awaited()

    async def test_cancel_at_period_end(self, mock_db: AsyncMock, stripe_calls: MagicMock) -> None:
        subscription = make_subscription()
        mock_db.execute.return_value = _result(subscription)

        assert await cancel_subscription(mock_db, make_user()) is subscription

        assert subscription.cancel_at_period_end is True
        assert subscription.tier == "premium"
        stripe_calls.set_cancel_at_period_end.assert_awaited_once_with("sub_1", True)

    async def test_route_free_is_400(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock, stripe_calls: MagicMock
    ) -> None:
        as_user()
        mock_db.execute.return_value = _result(make_subscription(tier="free", stripe_subscription_id=None))
        response = await client.post("/api/subscriptions/cancel")
        assert response.status_code == 400
        mock_db.commit.assert_not_awaited()

    async def test_route_success(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock, stripe_calls: MagicMock
    ) -> None:
        as_user(subscription_tier="premium")
        mock_db.execute.return_value = _result(make_subscription())

        response = await client.post("/api/subscriptions/cancel")

        assert response.status_code == 200
        body = response.json()
        assert body["subscription"]["cancel_at_period_end"] is True
        assert body["subscription"]["tier_info"] is not None
        mock_db.commit.assert_awaited_once()

    async def test_route_provider_failure_is_502(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock, stripe_calls: MagicMock
    ) -> None:
        as_user(subscription_tier="premium")
        subscription = make_subscription()
        mock_db.execute.return_value = _result(subscription)
        stripe_calls.set_cancel_at_period_end.side_effect = PaymentProviderError("timeout")

        response = await client.post("/api/subscriptions/cancel")

        assert response.status_code == 502
        assert subscription.cancel_at_period_end is False
        mock_db.commit.assert_not_awaited()


class TestReactivate:
    async def test_requires_stripe_subscription(self, mock_db: AsyncMock, stripe_calls: MagicMock) -> None:
        mock_db.execute.return_value = _result(make_subscription(stripe_subscription_id=None))
        with pytest.raises(ValueError, match="No active subscription"):
            await reactivate_subscription(mock_db, make_user())

    async def test_clears_pending_cancel(self, mock_db: AsyncMock, stripe_calls: MagicMock) -> None:
        subscription = make_subscription(cancel_at_period_end=True, status="past_due")
        mock_db.execute.return_value = _result(subscription)

        await reactivate_subscription(mock_db, make_user())

        assert subscription.cancel_at_period_end is False
        assert subscription.status == "active"
        stripe_calls.set_cancel_at_period_end.assert_awaited_once_with("sub_1", False)

    async def test_route(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock, stripe_calls: MagicMock
    ) -> None:
        as_user(subscription_tier="premium")
        mock_db.execute.return_value = _result(make_subscription(cancel_at_period_end=True))

        response = await client.post("/api/subscriptions/reactivate")

        assert response.status_code == 200
        assert response.json()["message"] == "Subscription reactivated successfully"
        assert response.json()["subscription"]["cancel_at_period_end"] is False


class TestPaymentMethod:
    async def test_without_customer_is_400(
        self, client: AsyncClient, as_user: Callable[..., User], stripe_calls: MagicMock
    ) -> None:
        as_user(stripe_customer_id=None)
        response = await client.post("/api/subscriptions/payment-method", json={"payment_method_id": "pm_1"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Stripe customer not found"
        stripe_calls.set_default_payment_method.assert_not_awaited()

    async def test_updates_default(
        self, client: AsyncClient, as_user: Callable[..., User], stripe_calls: MagicMock
    ) -> None:
        as_user(stripe_customer_id="cus_9")
        response = await client.post("/api/subscriptions/payment-method", json={"payment_method_id": "pm_1"})
        assert response.status_code == 200
        assert response.json() == {"message": "Payment method updated successfully"}
        stripe_calls.set_default_payment_method.assert_awaited_once_with("cus_9", "pm_1")

    async def test_provider_failure_is_502(
        self, client: AsyncClient, as_user: Callable[..., User], stripe_calls: MagicMock
    ) -> None:
        as_user(stripe_customer_id="cus_9")
        stripe_calls.set_default_payment_method.side_effect = PaymentProviderError("card declined")
        response = await client.post("/api/subscriptions/payment-method", json={"payment_method_id": "pm_1"})
        assert response.status_code == 502
