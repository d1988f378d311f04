"""Notification persistence and delivery.

A notification is stored, then pushed to the user's WebSocket connections
through Redis (``ws:user:{id}``). Users can opt out of in-app notifications
with ``preferences.notifications.in_app = false``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update

from behaviormarket.db.models import Notification, User
from behaviormarket.notifications.push import push_notification_to_user

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

VALID_TYPES = {"behavior", "prediction", "gamification", "marketplace", "subscription", "system"}


def should_deliver(preferences: dict[str, Any] | None) -> bool:
    notification_prefs = (preferences or {}).get("notifications") or {}
    return bool(notification_prefs.get("in_app", True))


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type_: str,
    subtype: str,
    title: str,
    description: str | None = None,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
    redis: Redis | None = None,
) -> Notification | None:
    """Persist a notification and push it. Returns None if the user opted out."""
    if type_ not in VALID_TYPES:
        msg = f"Invalid notification type: {type_}. Must be one of {sorted(VALID_TYPES)}"
        raise ValueError(msg)

    prefs = (await db.execute(select(User.preferences).where(User.id == user_id))).scalar_one_or_none()
    if not should_deliver(prefs):
        return None

    notification = Notification(
        user_id=user_id,
        type=type_,
        subtype=subtype,
        title=title,
        description=description,
        action_url=action_url,
        read=False,
        notification_metadata=metadata or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()

    await push_notification_to_user(redis, notification)
    return notification


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Notification], int]:
    """One page of the user's notifications, newest first, plus the total."""
    total = (
        await db.execute(select(func.count()).select_from(Notification).where(Notification.user_id == user_id))
    ).scalar_one()

    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True)
    )
    await db.flush()
    return result.rowcount > 0  # type: ignore[attr-defined,no-any-return]


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.flush()
    return result.rowcount  # type: ignore[attr-defined,no-any-return]


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return result.scalar_one()
