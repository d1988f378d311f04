"""Pure gamification rules: XP per log, streak multipliers and rewards, challenge templates."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

BASE_LOG_XP = 10
PREDICTION_XP = 25

# (minimum streak days, multiplier), highest first
STREAK_MULTIPLIERS: list[tuple[int, float]] = [
    (100, 3.0),
    (60, 2.5),
    (30, 2.0),
    (14, 1.5),
    (7, 1.2),
]


@dataclass(frozen=True)
class StreakReward:
    xp: int
    money: Decimal
    badge: str


STREAK_REWARDS: dict[int, StreakReward] = {
    7: StreakReward(100, Decimal("2.00"), "Week Warrior"),
    14: StreakReward(250, Decimal("5.00"), "Fortnight Fighter"),
    30: StreakReward(500, Decimal("10.00"), "Month Master"),
    60: StreakReward(1000, Decimal("25.00"), "Streak Legend"),
    100: StreakReward(2000, Decimal("50.00"), "Century Champion"),
}


def calculate_xp_gain(description: str | None, mood_rating: int | None, energy_level: int | None) -> int:
    """XP for one behavior log: richer entries earn more."""
    xp = BASE_LOG_XP
    if mood_rating is not None:
        xp += 5
    if energy_level is not None:
        xp += 5
    if description and len(description) > 20:
        xp += 10
    return xp


def get_streak_multiplier(streak: int) -> float:
    for threshold, multiplier in STREAK_MULTIPLIERS:
        if streak >= threshold:
            return multiplier
    return 1.0


def apply_streak_multiplier(amount: int, streak: int) -> int:
    # Half-up rounding, so 25 XP at 1.5x is 38
    return int((Decimal(amount) * Decimal(str(get_streak_multiplier(streak)))).quantize(Decimal(1), ROUND_HALF_UP))


def next_streak(current: int, last_date: date | None, today: date) -> int:
    """Streak after logging on ``today`` given the last day that counted."""
    if last_date == today:
        return current
    if last_date is not None and last_date == today - timedelta(days=1):
        return current + 1
    return 1


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChallengeTemplate:
    title: str
    description: str
    requirements: dict[str, Any]
    reward_xp: int
    reward_money: Decimal
    duration_days: int


CHALLENGE_TEMPLATES: dict[str, ChallengeTemplate] = {
    "daily_logger": ChallengeTemplate(
        title="7-Day Logging Challenge",
        description="Log at least one behavior every day for 7 consecutive days",
        requirements={"consecutive_days": 7, "min_logs_per_day": 1},
        reward_xp=500,
        reward_money=Decimal("5.00"),
        duration_days=7,
    ),
    "mood_tracker": ChallengeTemplate(
        title="Mood Master Challenge",
        description="Track your mood rating for 14 days straight",
        requirements={"mood_logs": 14, "consecutive_days": 14},
        reward_xp=750,
        reward_money=Decimal("10.00"),
        duration_days=14,
    ),
    "social_butterfly": ChallengeTemplate(
        title="Social Connection Challenge",
        description="Log 20 social interactions in one week",
        requirements={"social_logs": 20, "category": "social"},
        reward_xp=400,
        reward_money=Decimal("7.50"),
        duration_days=7,
    ),
    "health_warrior": ChallengeTemplate(
        title="Health & Wellness Challenge",
        description="Log exercise, sleep, and nutrition for 10 days",
        requirements={
            "exercise_logs": 10,
            "sleep_logs": 10,
            "nutrition_logs": 10,
            "categories": ["exercise", "sleep", "food"],
        },
        reward_xp=1000,
        reward_money=Decimal("15.00"),
        duration_days=10,
    ),
    "prediction_seeker": ChallengeTemplate(
        title="AI Prediction Challenge",
        description="Generate and rate 5 AI predictions",
        requirements={"predictions_generated": 5, "predictions_rated": 5},
        reward_xp=300,
        reward_money=Decimal("5.00"),
        duration_days=14,
    ),
}

# difficulty -> (reward multiplier, requirement multiplier)
DIFFICULTY_MULTIPLIERS: dict[str, tuple[Decimal, Decimal]] = {
    "easy": (Decimal("0.7"), Decimal("0.7")),
    "medium": (Decimal("1.0"), Decimal("1.0")),
    "hard": (Decimal("1.5"), Decimal("1.3")),
    "expert": (Decimal("2.0"), Decimal("1.8")),
}


def scale_requirements(requirements: dict[str, Any], multiplier: Decimal) -> dict[str, Any]:
    """Scale numeric requirements up to the next whole unit; other values pass through."""
    scaled: dict[str, Any] = {}
    for key, value in requirements.items():
        if isinstance(value, int) and not isinstance(value, bool):
            scaled[key] = math.ceil(Decimal(value) * multiplier)
        else:
            scaled[key] = value
    return scaled


@dataclass
class ChallengeSpec:
    """Everything needed to create a Challenge row from a template."""

    title: str
    description: str
    category: str
    difficulty: str
    requirements: dict[str, Any] = field(default_factory=dict)
    reward_xp: int = 0
    reward_money: Decimal = Decimal("0")
    duration_days: int = 7


def build_challenge(template_key: str, difficulty: str = "medium") -> ChallengeSpec:
    """Raises ValueError for an unknown template or difficulty."""
    template = CHALLENGE_TEMPLATES.get(template_key)
    if template is None:
        msg = f"Invalid challenge type: {template_key}"
        raise ValueError(msg)
    if difficulty not in DIFFICULTY_MULTIPLIERS:
        msg = f"Invalid difficulty: {difficulty}"
        raise ValueError(msg)

    reward_mult, requirement_mult = DIFFICULTY_MULTIPLIERS[difficulty]
    return ChallengeSpec(
        title=f"{difficulty.upper()} {template.title}",
        description=template.description,
        category=template_key,
        difficulty=difficulty,
        requirements=scale_requirements(template.requirements, requirement_mult),
        reward_xp=int((template.reward_xp * reward_mult).quantize(Decimal(1), ROUND_HALF_UP)),
        reward_money=(template.reward_money * reward_mult).quantize(Decimal("0.01"), ROUND_HALF_UP),
        duration_days=template.duration_days,
    )


def longest_daily_run(days: set[date]) -> int:
    """Length of the longest run of consecutive calendar days."""
    best = 0
    for day in days:
        if day - timedelta(days=1) in days:
            continue
        length = 1
        while day + timedelta(days=length) in days:
            length += 1
        best = max(best, length)
    return best


@dataclass
class ActivitySnapshot:
    """Counters over a user's activity inside a challenge window."""

    logs_per_day: dict[date, int] = field(default_factory=dict)
    mood_days: set[date] = field(default_factory=set)
    mood_logs: int = 0
    category_counts: dict[str, int] = field(default_factory=dict)
    predictions_generated: int = 0
    predictions_rated: int = 0


# requirement key -> category whose log count satisfies it
_CATEGORY_REQUIREMENTS = {
    "social_logs": "social",
    "exercise_logs": "exercise",
    "sleep_logs": "sleep",
    "nutrition_logs": "food",
}


def compute_progress(requirements: dict[str, Any], snapshot: ActivitySnapshot) -> dict[str, int]:
    """Current value for each numeric requirement key."""
    progress: dict[str, int] = {}
    for key, target in requirements.items():
        if not isinstance(target, int) or isinstance(target, bool):
            continue
        if key == "consecutive_days":
            if "mood_logs" in requirements:
                progress[key] = longest_daily_run(snapshot.mood_days)
            else:
                min_per_day = int(requirements.get("min_logs_per_day", 1))
                active = {d for d, n in snapshot.logs_per_day.items() if n >= min_per_day}
                progress[key] = longest_daily_run(active)
        elif key == "min_logs_per_day":
            # Threshold folded into consecutive_days
            continue
        elif key == "mood_logs":
            progress[key] = snapshot.mood_logs
        elif key in _CATEGORY_REQUIREMENTS:
            progress[key] = snapshot.category_counts.get(_CATEGORY_REQUIREMENTS[key], 0)
        elif key == "predictions_generated":
            progress[key] = snapshot.predictions_generated
        elif key == "predictions_rated":
            progress[key] = snapshot.predictions_rated
    return progress


def is_challenge_complete(requirements: dict[str, Any], progress: dict[str, int]) -> bool:
    targets = {
        k: v
        for k, v in requirements.items()
        if isinstance(v, int) and not isinstance(v, bool) and k != "min_logs_per_day"
    }
    return bool(targets) and all(progress.get(k, 0) >= v for k, v in targets.items())
