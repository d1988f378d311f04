"""Formatting of community posts and comments."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from behaviormarket.community.service import format_comment, format_post, format_relative

NOW = datetime(2026, 5, 20, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("age", "expected"),
    [
        (timedelta(seconds=30), "Just now"),
        (timedelta(minutes=5), "5 minutes ago"),
        (timedelta(hours=3, minutes=20), "3 hours ago"),
        (timedelta(days=2, hours=1), "2 days ago"),
        (timedelta(days=10), "2026-05-10"),
    ],
)
def test_format_relative(age: timedelta, expected: str) -> None:
    assert format_relative(NOW - age, NOW) == expected


def test_format_post() -> None:
    author = SimpleNamespace(id=3, full_name="Ada Lovelace", avatar_url=None)
    post = SimpleNamespace(
        id=9,
        content="Ten days of logging sleep!",
        type="achievement",
        likes_count=None,
        comments_count=2,
        created_at=NOW - timedelta(minutes=90),
        tags=["sleep"],
    )
    formatted = format_post(post, author, level=None, now=NOW)
    assert formatted["user"]["id"] == 3
    assert formatted["user"]["name"] == "Ada Lovelace"
    assert formatted["user"]["level"] == 1
    assert formatted["user"]["avatar"]
    assert formatted["likes"] == 0
    assert formatted["comments"] == 2
    assert formatted["timestamp"] == "1 hours ago"
    assert formatted["tags"] == ["sleep"]


def test_format_comment_has_no_level() -> None:
    author = SimpleNamespace(id=3, full_name="Ada Lovelace", avatar_url="https://cdn.example.com/a.png")
    comment = SimpleNamespace(id=1, content="Nice", likes_count=4, created_at=NOW)
    formatted = format_comment(comment, author, now=NOW)
    assert "level" not in formatted["user"]
    assert formatted["user"]["avatar"] == "https://cdn.example.com/a.png"
    assert formatted["timestamp"] == "Just now"
    assert formatted["likes"] == 4
