"""XP grants with idempotency, streak multipliers and level-up notifications."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import select

from behaviormarket.db.models import UserGamification, XPLedger
from behaviormarket.gamification.level_thresholds import calculate_level, get_level_reward
from behaviormarket.gamification.rules import apply_streak_multiplier
from behaviormarket.notifications.push import publish_broadcast
from behaviormarket.notifications.service import create_notification

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def get_or_create_gamification(db: AsyncSession, user_id: int) -> UserGamification:
    """Get or create the denormalized gamification row for a user."""
    result = await db.execute(select(UserGamification).where(UserGamification.user_id == user_id))
    gam = result.scalar_one_or_none()
    if gam is None:
        gam = UserGamification(
            user_id=user_id,
            total_xp=0,
            level=1,
            current_streak=0,
            longest_streak=0,
            badges=[],
            updated_at=datetime.now(timezone.utc),
        )
        db.add(gam)
        await db.flush()
    return gam


def add_badge(gam: UserGamification, badge: str) -> bool:
    """Append a badge once. Returns True if it was new."""
    badges = list(gam.badges or [])
    if badge in badges:
        return False
    # Reassign so the JSONB column is marked dirty
    gam.badges = [*badges, badge]
    return True


async def grant_xp(
    db: AsyncSession,
    redis: Redis | None,
    user_id: int,
    amount: int,
    source: str,
    source_id: str | None,
    description: str,
    idempotency_key: str,
) -> int:
    """Grant XP scaled by the user's streak multiplier.

    Returns the XP actually granted, or 0 when ``idempotency_key`` was
    already used. A level up emits a ``level_up`` notification carrying the
    level reward, if any.
    """
    existing = await db.execute(select(XPLedger.id).where(XPLedger.idempotency_key == idempotency_key))
    if existing.scalar_one_or_none() is not None:
        return 0

    gam = await get_or_create_gamification(db, user_id)
    final_xp = apply_streak_multiplier(amount, gam.current_streak or 0)
    now = datetime.now(timezone.utc)

    db.add(
        XPLedger(
            user_id=user_id,
            amount=final_xp,
            source=source,
            source_id=source_id,
            description=description,
            idempotency_key=idempotency_key,
            created_at=now,
        )
    )

    old_level = gam.level or 1
    gam.total_xp = (gam.total_xp or 0) + final_xp
    gam.level = calculate_level(gam.total_xp)
    gam.updated_at = now
    await db.flush()

    if gam.level > old_level:
        await _emit_level_up(db, redis, gam, old_level, final_xp, source)

    return final_xp


async def _emit_level_up(
    db: AsyncSession,
    redis: Redis | None,
    gam: UserGamification,
    old_level: int,
    xp_gained: int,
    reason: str,
) -> None:
    logger.info("User %s leveled up %s -> %s", gam.user_id, old_level, gam.level)
    reward = get_level_reward(gam.level)
    if reward:
        add_badge(gam, reward["badge"])
        await db.flush()

    description = f"You reached level {gam.level}"
    if reward:
        description += f" and unlocked {reward['feature']}"

    await create_notification(
        db,
        gam.user_id,
        "gamification",
        "level_up",
        "Level Up!",
        description=description,
        action_url="/profile",
        metadata={
            "old_level": old_level,
            "new_level": gam.level,
            "xp_gained": xp_gained,
            "reason": reason,
            "rewards": reward,
        },
        redis=redis,
    )

    await publish_broadcast(
        redis, "pubsub:leaderboard_update", {"user_id": gam.user_id, "level": gam.level, "total_xp": gam.total_xp}
    )
