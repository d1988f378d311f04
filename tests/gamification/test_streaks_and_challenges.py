"""Streak milestones and challenge joining."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient

from behaviormarket.db.models import Challenge, User, UserChallenge, UserGamification
from behaviormarket.gamification.challenge_service import (
    AlreadyJoinedError,
    ChallengeNotFoundError,
    join_challenge,
)
from behaviormarket.gamification.rules import STREAK_REWARDS
from behaviormarket.gamification.streak_service import update_streak

TODAY = date(2026, 3, 10)
STREAKS = "behaviormarket.gamification.streak_service"


def make_gam(**overrides) -> UserGamification:
    fields = {
        "user_id": 1,
        "total_xp": 0,
        "level": 1,
        "current_streak": 0,
        "longest_streak": 0,
        "last_streak_date": None,
        "badges": [],
    }
    fields.update(overrides)
    return UserGamification(**fields)


def make_challenge(**overrides) -> Challenge:
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    fields = {
        "id": 3,
        "title": "Week of Logging",
        "description": "Log every day",
        "category": "consistency",
        "difficulty": "medium",
        "requirements": {"daily_logs": 7},
        "reward_xp": 200,
        "reward_money": Decimal("5.00"),
        "start_date": now,
        "end_date": now + timedelta(days=7),
        "max_participants": 100,
        "current_participants": 10,
        "is_active": True,
    }
    fields.update(overrides)
    return Challenge(**fields)


def _result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class StreakHarness:
    def __init__(self, gam: UserGamification, granted: int) -> None:
        self.gam = gam
        self.get_or_create = AsyncMock(return_value=gam)
        self.grant_xp = AsyncMock(return_value=granted)
        self.credit_earnings = AsyncMock()
        self.create_notification = AsyncMock()


@pytest.fixture
def streak_harness() -> Iterator[Callable[..., StreakHarness]]:
    patches = []

    def _build(gam: UserGamification, granted: int = 100) -> StreakHarness:
        harness = StreakHarness(gam, granted)
        for name, mock in (
            ("get_or_create_gamification", harness.get_or_create),
            ("grant_xp", harness.grant_xp),
            ("credit_earnings", harness.credit_earnings),
            ("create_notification", harness.create_notification),
        ):
            p = patch(f"{STREAKS}.{name}", mock)
            p.start()
            patches.append(p)
        return harness

    yield _build
    for p in patches:
        p.stop()


class TestUpdateStreak:
    async def test_same_day_is_noop(self, mock_db: AsyncMock, streak_harness) -> None:
        h = streak_harness(make_gam(current_streak=4, last_streak_date=TODAY))
        assert await update_streak(mock_db, None, 1, today=TODAY) == 4
        mock_db.flush.assert_not_awaited()
        h.grant_xp.assert_not_awaited()

    async def test_consecutive_day_without_milestone(self, mock_db: AsyncMock, streak_harness) -> None:
        h = streak_harness(make_gam(current_streak=4, longest_streak=9, last_streak_date=TODAY - timedelta(days=1)))
        assert await update_streak(mock_db, None, 1, today=TODAY) == 5
        assert h.gam.longest_streak == 9
        assert h.gam.last_streak_date == TODAY
        h.grant_xp.assert_not_awaited()

    async def test_gap_resets_streak(self, mock_db: AsyncMock, streak_harness) -> None:
        h = streak_harness(make_gam(current_streak=6, longest_streak=6, last_streak_date=TODAY - timedelta(days=3)))
        assert await update_streak(mock_db, None, 1, today=TODAY) == 1
        assert h.gam.longest_streak == 6
        h.grant_xp.assert_not_awaited()

    async def test_seven_day_milestone_pays_out(self, mock_db: AsyncMock, streak_harness) -> None:
        h = streak_harness(make_gam(current_streak=6, longest_streak=6, last_streak_date=TODAY - timedelta(days=1)))

        assert await update_streak(mock_db, None, 1, today=TODAY) == 7

        reward = STREAK_REWARDS[7]
        h.grant_xp.assert_awaited_once_with(
            mock_db, None, 1, reward.xp, "streak", "7", "7-day streak bonus", f"streak:1:7:{TODAY.isoformat()}"
        )
        h.credit_earnings.assert_awaited_once()
        assert h.credit_earnings.await_args.args[2] == Decimal("2.00")
        assert h.gam.badges == ["Week Warrior"]
        assert h.gam.longest_streak == 7
        h.create_notification.assert_awaited_once()
        assert h.create_notification.await_args.args[3] == "streak_milestone"

    async def test_milestone_already_granted_pays_nothing(self, mock_db: AsyncMock, streak_harness) -> None:
        h = streak_harness(
            make_gam(current_streak=13, longest_streak=13, last_streak_date=TODAY - timedelta(days=1)), granted=0
        )

        assert await update_streak(mock_db, None, 1, today=TODAY) == 14

        h.grant_xp.assert_awaited_once()
        h.credit_earnings.assert_not_awaited()
        h.create_notification.assert_not_awaited()
        assert h.gam.badges == []


class TestJoinChallenge:
    async def test_unknown_challenge(self, mock_db: AsyncMock) -> None:
        mock_db.get.return_value = None
        with pytest.raises(ChallengeNotFoundError):
            await join_challenge(mock_db, 1, 3)

    async def test_inactive_checked_before_full(self, mock_db: AsyncMock) -> None:
        mock_db.get.return_value = make_challenge(is_active=False, current_participants=100)
        with pytest.raises(ValueError, match="not active"):
            await join_challenge(mock_db, 1, 3)

    async def test_full_checked_before_duplicate(self, mock_db: AsyncMock) -> None:
        mock_db.get.return_value = make_challenge(current_participants=100)
        mock_db.execute.return_value = _result(42)
        with pytest.raises(ValueError, match="full"):
            await join_challenge(mock_db, 1, 3)
        mock_db.execute.assert_not_awaited()

    async def test_already_joined(self, mock_db: AsyncMock) -> None:
        challenge = make_challenge()
        mock_db.get.return_value = challenge
        mock_db.execute.return_value = _result(42)
        with pytest.raises(AlreadyJoinedError):
            await join_challenge(mock_db, 1, 3)
        assert challenge.current_participants == 10

    async def test_join_increments_participants(self, mock_db: AsyncMock) -> None:
        challenge = make_challenge()
        mock_db.get.return_value = challenge
        mock_db.execute.return_value = _result(None)

        participation = await join_challenge(mock_db, 1, 3)

        assert isinstance(participation, UserChallenge)
        assert participation.status == "active"
        assert participation.progress == {}
        assert challenge.current_participants == 11
        mock_db.add.assert_called_once_with(participation)


class TestJoinRoute:
    @pytest.mark.parametrize(
        ("challenge", "existing", "status"),
        [
            (None, None, 404),
            (make_challenge(is_active=False), None, 400),
            (make_challenge(current_participants=100), None, 400),
            (make_challenge(), 42, 409),
        ],
    )
    async def test_error_mapping(
        self,
        client: AsyncClient,
        as_user: Callable[..., User],
        mock_db: AsyncMock,
        challenge: Challenge | None,
        existing: int | None,
        status: int,
    ) -> None:
        as_user(subscription_tier="enterprise")
        mock_db.get.return_value = challenge
        mock_db.execute.return_value = _result(existing)

        response = await client.post("/api/gamification/challenges/3/join")

        assert response.status_code == status
        mock_db.commit.assert_not_awaited()

    async def test_free_tier_challenge_cap_is_429(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock
    ) -> None:
        as_user(subscription_tier="free")
        mock_db.execute.return_value.scalar_one.return_value = 2

        response = await client.post("/api/gamification/challenges/3/join")

        assert response.status_code == 429
        detail = response.json()["detail"]
        assert detail["current_usage"] == 2
        assert detail["max_usage"] == 2
        mock_db.get.assert_not_awaited()
