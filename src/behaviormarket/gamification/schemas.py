"""Pydantic models for gamification endpoints."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel


class GamificationSummaryResponse(BaseModel):
    total_xp: int
    level: int
    xp_into_level: int
    xp_for_level: int
    next_level: int | None = None
    next_threshold: int | None = None
    progress: float
    current_streak: int
    longest_streak: int
    last_streak_date: date | None = None
    streak_multiplier: float
    badges: list[str]


class LevelEntry(BaseModel):
    level: int
    xp_required: int
    reward: dict[str, str] | None = None


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]


class LeaderboardResponse(BaseModel):
    type: str
    entries: list[dict[str, Any]]


class ChallengeResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    title: str
    description: str
    category: str
    difficulty: str
    requirements: dict[str, Any]
    reward_xp: int
    reward_money: Decimal
    start_date: datetime
    end_date: datetime
    max_participants: int
    current_participants: int
    is_active: bool


class ParticipationResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    challenge_id: int
    status: str
    progress: dict[str, Any]
    joined_at: datetime | None = None
    completed_at: datetime | None = None


class ChallengeListItem(BaseModel):
    challenge: ChallengeResponse
    participation: ParticipationResponse | None = None


class CreateChallengeRequest(BaseModel):
    template: Literal["daily_logger", "mood_tracker", "social_butterfly", "health_warrior", "prediction_seeker"]
    difficulty: Literal["easy", "medium", "hard", "expert"] = "medium"
