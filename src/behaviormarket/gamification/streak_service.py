"""Daily logging streaks and milestone rewards."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING

from behaviormarket.gamification.rules import STREAK_REWARDS, next_streak
from behaviormarket.gamification.xp_service import add_badge, get_or_create_gamification, grant_xp
from behaviormarket.notifications.service import create_notification
from behaviormarket.users.service import credit_earnings

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def update_streak(
    db: AsyncSession,
    redis: Redis | None,
    user_id: int,
    today: date | None = None,
) -> int:
    """Record activity on ``today`` and return the resulting streak.

    Logging twice on the same day is a no-op. Reaching a milestone grants
    its XP, money and badge exactly once per milestone day.
    """
    today = today or datetime.now(timezone.utc).date()
    gam = await get_or_create_gamification(db, user_id)

    if gam.last_streak_date == today:
        return gam.current_streak

    gam.current_streak = next_streak(gam.current_streak or 0, gam.last_streak_date, today)
    gam.longest_streak = max(gam.longest_streak or 0, gam.current_streak)
    gam.last_streak_date = today
    gam.updated_at = datetime.now(timezone.utc)
    await db.flush()

    reward = STREAK_REWARDS.get(gam.current_streak)
    if reward is not None:
        await _grant_streak_reward(db, redis, user_id, gam.current_streak, today)

    return gam.current_streak


async def _grant_streak_reward(
    db: AsyncSession,
    redis: Redis | None,
    user_id: int,
    streak: int,
    today: date,
) -> None:
    reward = STREAK_REWARDS[streak]
    granted = await grant_xp(
        db,
        redis,
        user_id,
        reward.xp,
        "streak",
        str(streak),
        f"{streak}-day streak bonus",
        f"streak:{user_id}:{streak}:{today.isoformat()}",
    )
    if not granted:
        return

    await credit_earnings(
        db,
        user_id,
        reward.money,
        f"{streak}-day streak reward",
        metadata={"source": "streak", "streak": streak},
    )

    gam = await get_or_create_gamification(db, user_id)
    add_badge(gam, reward.badge)
    await db.flush()

    await create_notification(
        db,
        user_id,
        "gamification",
        "streak_milestone",
        f"{streak}-day streak!",
        description=f"You earned {granted} XP, ${reward.money} and the {reward.badge} badge",
        metadata={"streak": streak, "badge": reward.badge, "xp": granted, "money": str(reward.money)},
        redis=redis,
    )
    logger.info("Streak milestone %s reached by user %s", streak, user_id)
