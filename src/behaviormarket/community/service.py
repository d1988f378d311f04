"""Community feed: posts, likes and comments."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select, update

from behaviormarket.db.models import CommunityComment, CommunityPost, User, UserGamification

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

DEFAULT_AVATAR = "👤"


class PostNotFoundError(LookupError):
    pass


def format_relative(created_at: datetime, now: datetime | None = None) -> str:
    """Human-readable age: "Just now", "N minutes ago" ... "N days ago", then the ISO date."""
    now = now or datetime.now(timezone.utc)
    seconds = (now - created_at).total_seconds()
    minutes = int(seconds // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} minutes ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hours ago"
    days = hours // 24
    if days < 7:
        return f"{days} days ago"
    return created_at.date().isoformat()


def _author(user: User, level: int | None = None, *, with_level: bool = True) -> dict[str, Any]:
    author: dict[str, Any] = {"id": user.id, "name": user.full_name, "avatar": user.avatar_url or DEFAULT_AVATAR}
    if with_level:
        author["level"] = level or 1
    return author


def format_post(post: CommunityPost, user: User, level: int | None, now: datetime | None = None) -> dict[str, Any]:
    return {
        "id": post.id,
        "user": _author(user, level),
        "content": post.content,
        "type": post.type,
        "likes": post.likes_count or 0,
        "comments": post.comments_count or 0,
        "timestamp": format_relative(post.created_at, now),
        "tags": post.tags or [],
    }


def format_comment(comment: CommunityComment, user: User, now: datetime | None = None) -> dict[str, Any]:
    return {
        "id": comment.id,
        "user": _author(user, with_level=False),
        "content": comment.content,
        "likes": comment.likes_count or 0,
        "timestamp": format_relative(comment.created_at, now),
    }


async def _level_of(db: AsyncSession, user_id: int) -> int | None:
    result = await db.execute(select(UserGamification.level).where(UserGamification.user_id == user_id))
    return result.scalar_one_or_none()


async def list_posts(db: AsyncSession, type_filter: str = "all", limit: int = 20, offset: int = 0) -> list[dict[str, Any]]:
    stmt = (
        select(CommunityPost, User, UserGamification.level)
        .join(User, User.id == CommunityPost.user_id)
        .outerjoin(UserGamification, UserGamification.user_id == User.id)
        .order_by(CommunityPost.created_at.desc(), CommunityPost.id.desc())
        .limit(limit)
        .offset(offset)
    )
    if type_filter != "all":
        stmt = stmt.where(CommunityPost.type == type_filter)
    now = datetime.now(timezone.utc)
    return [format_post(post, user, level, now) for post, user, level in (await db.execute(stmt)).all()]


async def create_post(
    db: AsyncSession, user: User, content: str, type_: str = "post", tags: list[str] | None = None
) -> dict[str, Any]:
    content = content.strip()
    if not content:
        msg = "Content is required"
        raise ValueError(msg)
    post = CommunityPost(user_id=user.id, content=content, type=type_, tags=tags or [], likes_count=0, comments_count=0)
    db.add(post)
    await db.flush()
    logger.info("community_post_created", user_id=user.id, post_id=post.id)
    return format_post(post, user, await _level_of(db, user.id))


async def like_post(db: AsyncSession, post_id: int) -> int:
    """Increment the like counter atomically and return the new count."""
    result = await db.execute(
        update(CommunityPost)
        .where(CommunityPost.id == post_id)
        .values(likes_count=CommunityPost.likes_count + 1)
        .returning(CommunityPost.likes_count)
    )
    likes = result.scalar_one_or_none()
    if likes is None:
        msg = "Post not found"
        raise PostNotFoundError(msg)
    return likes


async def list_comments(db: AsyncSession, post_id: int) -> list[dict[str, Any]]:
    result = await db.execute(
        select(CommunityComment, User)
        .join(User, User.id == CommunityComment.user_id)
        .where(CommunityComment.post_id == post_id)
        .order_by(CommunityComment.created_at.asc(), CommunityComment.id.asc())
    )
    now = datetime.now(timezone.utc)
    return [format_comment(comment, user, now) for comment, user in result.all()]


async def add_comment(db: AsyncSession, user: User, post_id: int, content: str) -> dict[str, Any]:
    """ValueError on blank content, PostNotFoundError when the post is missing."""
    content = content.strip()
    if not content:
        msg = "Content is required"
        raise ValueError(msg)
    post = await db.get(CommunityPost, post_id)
    if post is None:
        msg = "Post not found"
        raise PostNotFoundError(msg)

    comment = CommunityComment(post_id=post_id, user_id=user.id, content=content, likes_count=0)
    db.add(comment)
    post.comments_count = (post.comments_count or 0) + 1
    await db.flush()
    return format_comment(comment, user)
