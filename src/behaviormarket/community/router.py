"""Community endpoints: /api/community."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from behaviormarket.auth.dependencies import get_current_user
from behaviormarket.community.service import (
    PostNotFoundError,
    add_comment,
    create_post,
    like_post,
    list_comments,
    list_posts,
)
from behaviormarket.database import get_session
from behaviormarket.db.models import User

router = APIRouter(prefix="/api/community", tags=["Community"])


class PostCreate(BaseModel):
    content: str = Field("", max_length=5000)
    type: str = Field("post", min_length=1, max_length=32)
    tags: list[str] = Field(default_factory=list, max_length=20)


class CommentCreate(BaseModel):
    content: str = Field("", max_length=2000)


@router.get("/posts")
async def posts(
    filter: str = Query("all", max_length=32),  # noqa: A002
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return {"posts": await list_posts(db, filter, limit, offset)}


@router.post("/posts", status_code=201)
async def new_post(
    body: PostCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        post = await create_post(db, user, body.content, body.type, body.tags)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"post": post}


@router.post("/posts/{post_id}/like")
async def like(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        likes = await like_post(db, post_id)
    except PostNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return {"success": True, "likes": likes}


@router.get("/posts/{post_id}/comments")
async def comments(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return {"comments": await list_comments(db, post_id)}


@router.post("/posts/{post_id}/comments", status_code=201)
async def new_comment(
    post_id: int,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        comment = await add_comment(db, user, post_id, body.content)
    except PostNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"comment": comment}
