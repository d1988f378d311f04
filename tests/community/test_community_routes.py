"""Community post, like and comment endpoints."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from behaviormarket.community.service import PostNotFoundError, add_comment, create_post, like_post
from behaviormarket.db.models import User

from conftest import make_user


class TestPosts:
    @pytest.mark.parametrize("content", ["", "   \n\t"])
    async def test_blank_post_is_400(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock, content: str
    ) -> None:
        as_user()
        response = await client.post("/api/community/posts", json={"content": content})
        assert response.status_code == 400
        assert response.json()["detail"] == "Content is required"
        mock_db.add.assert_not_called()
        mock_db.commit.assert_not_awaited()

    async def test_missing_content_is_400(self, client: AsyncClient, as_user: Callable[..., User]) -> None:
        as_user()
        response = await client.post("/api/community/posts", json={"tags": ["sleep"]})
        assert response.status_code == 400

    async def test_create_post_strips_content(self, mock_db: AsyncMock, monkeypatch: pytest.MonkeyPatch) -> None:
        mock_db.execute.return_value.scalar_one_or_none.return_value = 4
        monkeypatch.setattr(
            "behaviormarket.community.service.format_post",
            lambda post, user, level, now=None: {"content": post.content, "level": level},
        )

        post = await create_post(mock_db, make_user(), "  Slept eight hours  ", tags=["sleep"])

        assert post == {"content": "Slept eight hours", "level": 4}
        created = mock_db.add.call_args[0][0]
        assert created.tags == ["sleep"]
        assert created.likes_count == 0


class TestLikes:
    async def test_like_missing_post_is_404(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock
    ) -> None:
        as_user()
        mock_db.execute.return_value.scalar_one_or_none.return_value = None

        response = await client.post("/api/community/posts/404/like")

        assert response.status_code == 404
        assert response.json()["detail"] == "Post not found"
        mock_db.commit.assert_not_awaited()

    async def test_like_returns_new_count(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock
    ) -> None:
        as_user()
        mock_db.execute.return_value.scalar_one_or_none.return_value = 8

        response = await client.post("/api/community/posts/1/like")

        assert response.status_code == 200
        assert response.json() == {"success": True, "likes": 8}
        mock_db.commit.assert_awaited_once()

    async def test_like_service_raises_lookup(self, mock_db: AsyncMock) -> None:
        mock_db.execute.return_value.scalar_one_or_none.return_value = None
        with pytest.raises(LookupError):
            await like_post(mock_db, 9)


class TestComments:
    async def test_blank_comment_checked_before_post_lookup(self, mock_db: AsyncMock) -> None:
        with pytest.raises(ValueError, match="Content is required"):
            await add_comment(mock_db, make_user(), 1, "  ")
        mock_db.get.assert_not_awaited()

    async def test_comment_on_missing_post(self, mock_db: AsyncMock) -> None:
        mock_db.get.return_value = None
        with pytest.raises(PostNotFoundError):
            await add_comment(mock_db, make_user(), 1, "Nice streak")

    async def test_comment_routes(
        self, client: AsyncClient, as_user: Callable[..., User], mock_db: AsyncMock
    ) -> None:
        as_user()
        mock_db.get.return_value = None
        assert (await client.post("/api/community/posts/1/comments", json={"content": ""})).status_code == 400
        assert (await client.post("/api/community/posts/1/comments", json={"content": "hi"})).status_code == 404
