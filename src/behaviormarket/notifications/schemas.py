"""Notification response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    model_config = {"from_attributes": True, "populate_by_name": True}

    id: int
    type: str
    subtype: str
    title: str
    description: str | None = None
    action_url: str | None = None
    read: bool
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="notification_metadata")
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread: int
    page: int
    per_page: int
