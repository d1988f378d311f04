"""Behavior log CRUD, per-user analytics and post-log side effects."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from behaviormarket.behaviors.schemas import BehaviorCreate, BehaviorUpdate
from behaviormarket.db.models import BehaviorLog
from behaviormarket.gamification.challenge_service import update_challenge_progress
from behaviormarket.gamification.rules import calculate_xp_gain
from behaviormarket.gamification.streak_service import update_streak
from behaviormarket.gamification.xp_service import grant_xp
from behaviormarket.notifications.push import publish_user_event

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

# Body fields that map 1:1 onto model attributes
_PLAIN_FIELDS = (
    "category",
    "subcategory",
    "description",
    "value",
    "quantity",
    "duration",
    "mood_rating",
    "energy_level",
    "stress_level",
)


async def list_behaviors(
    db: AsyncSession,
    user_id: int,
    category: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[BehaviorLog], int]:
    """Page of the user's logs, newest first, and the total count."""
    conditions = [BehaviorLog.user_id == user_id]
    if category:
        conditions.append(BehaviorLog.category == category)

    total = (await db.execute(select(func.count(BehaviorLog.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(BehaviorLog)
        .where(*conditions)
        .order_by(BehaviorLog.timestamp.desc(), BehaviorLog.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def create_behavior(db: AsyncSession, user_id: int, body: BehaviorCreate) -> BehaviorLog:
    """Insert a manual log. Commits so side effects never roll it back."""
    now = datetime.now(timezone.utc)
    log = BehaviorLog(
        user_id=user_id,
        **{name: getattr(body, name) for name in _PLAIN_FIELDS},
        log_metadata=body.metadata or {},
        timestamp=body.timestamp or now,
        source="manual",
        confidence=1.0,
        created_at=now,
    )
    db.add(log)
    await db.commit()
    logger.info("behavior_logged", user_id=user_id, behavior_id=log.id, category=log.category)
    return log


async def get_owned_behavior(db: AsyncSession, user_id: int, behavior_id: int) -> BehaviorLog | None:
    result = await db.execute(
        select(BehaviorLog).where(BehaviorLog.id == behavior_id, BehaviorLog.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def update_behavior(db: AsyncSession, user_id: int, behavior_id: int, body: BehaviorUpdate) -> BehaviorLog:
    """Partial update of an owned log. Raises LookupError if not found."""
    log = await get_owned_behavior(db, user_id, behavior_id)
    if log is None:
        msg = "Behavior log not found"
        raise LookupError(msg)

    changes = body.model_dump(exclude_unset=True)
    for name in _PLAIN_FIELDS:
        if name in changes:
            setattr(log, name, changes[name])
    if "metadata" in changes:
        log.log_metadata = changes["metadata"] or {}

    await db.flush()
    return log


async def delete_behavior(db: AsyncSession, user_id: int, behavior_id: int) -> None:
    """Delete an owned log. Raises LookupError if not found."""
    log = await get_owned_behavior(db, user_id, behavior_id)
    if log is None:
        msg = "Behavior log not found"
        raise LookupError(msg)
    await db.delete(log)
    await db.flush()


async def get_behavior_analytics(db: AsyncSession, user_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Counts by category plus the number of logs in the last 30 days."""
    now = now or datetime.now(timezone.utc)
    rows = await db.execute(
        select(BehaviorLog.category, func.count(BehaviorLog.id))
        .where(BehaviorLog.user_id == user_id)
        .group_by(BehaviorLog.category)
        .order_by(func.count(BehaviorLog.id).desc())
    )
    recent = (
        await db.execute(
            select(func.count(BehaviorLog.id)).where(
                BehaviorLog.user_id == user_id, BehaviorLog.timestamp >= now - timedelta(days=30)
            )
        )
    ).scalar_one()
    return {
        "category_stats": [{"category": category, "count": count} for category, count in rows.all()],
        "recent_behaviors": recent,
        "period": "30_days",
    }


# ---------------------------------------------------------------------------
# Side effects
# ---------------------------------------------------------------------------


async def _best_effort(db: AsyncSession, name: str, user_id: int, step: Callable[[], Awaitable[Any]]) -> Any:
    """Run ``step`` in a savepoint; log and swallow any failure."""
    try:
        async with db.begin_nested():
            return await step()
    except Exception:
        logger.warning("behavior_side_effect_failed", step=name, user_id=user_id, exc_info=True)
        return None


async def apply_log_side_effects(db: AsyncSession, redis: Redis | None, log: BehaviorLog) -> dict[str, Any]:
    """Grant XP, advance the streak and challenges, then push a WS event.

    None of these may fail the request; each runs in its own savepoint.
    """
    # Read everything up front: a failed commit below expires the instance
    user_id, log_id, category, timestamp = log.user_id, log.id, log.category, log.timestamp
    xp = calculate_xp_gain(log.description, log.mood_rating, log.energy_level)

    # Streak first so the multiplier reflects today's activity
    streak = await _best_effort(
        db, "streak", user_id, lambda: update_streak(db, redis, user_id)
    )
    granted = await _best_effort(
        db,
        "xp",
        user_id,
        lambda: grant_xp(
            db, redis, user_id, xp, "behavior_log", str(log_id), f"Logged {category}", f"behavior:{log_id}"
        ),
    )
    await _best_effort(db, "challenges", user_id, lambda: update_challenge_progress(db, redis, user_id))

    try:
        await db.commit()
    except Exception:
        logger.warning("behavior_side_effect_commit_failed", user_id=user_id, exc_info=True)
        await db.rollback()

    await publish_user_event(
        redis,
        user_id,
        "behavior_logged",
        {"id": log_id, "category": category, "timestamp": timestamp.isoformat(), "xp_gained": granted or 0},
    )
    return {"xp_gained": granted or 0, "streak": streak}
