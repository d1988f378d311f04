"""Level thresholds, level rewards and level computation."""

from __future__ import annotations

from typing import Any

# Cumulative XP needed to reach level index+1
LEVEL_THRESHOLDS: list[int] = [0, 100, 250, 500, 1000, 2000, 4000, 8000, 15000, 30000, 50000]

LEVEL_REWARDS: dict[int, dict[str, str]] = {
    5: {"badge": "Rising Star", "feature": "Custom themes"},
    10: {"badge": "Data Explorer", "feature": "Advanced analytics"},
    15: {"badge": "Behavior Master", "feature": "Priority predictions"},
    20: {"badge": "Community Leader", "feature": "Create challenges"},
    25: {"badge": "AI Whisperer", "feature": "Model training input"},
}

MAX_LEVEL = len(LEVEL_THRESHOLDS)


def calculate_level(total_xp: int) -> int:
    """Highest level whose threshold ``total_xp`` has reached (minimum 1)."""
    for index in range(len(LEVEL_THRESHOLDS) - 1, -1, -1):
        if total_xp >= LEVEL_THRESHOLDS[index]:
            return index + 1
    return 1


def get_level_reward(level: int) -> dict[str, str] | None:
    return LEVEL_REWARDS.get(level)


def compute_level(total_xp: int) -> dict[str, Any]:
    """Level plus progress toward the next threshold."""
    level = calculate_level(total_xp)
    floor = LEVEL_THRESHOLDS[level - 1]
    if level >= MAX_LEVEL:
        return {
            "level": level,
            "xp_into_level": total_xp - floor,
            "xp_for_level": 0,
            "next_level": None,
            "next_threshold": None,
            "progress": 1.0,
        }

    ceiling = LEVEL_THRESHOLDS[level]
    span = ceiling - floor
    return {
        "level": level,
        "xp_into_level": total_xp - floor,
        "xp_for_level": span,
        "next_level": level + 1,
        "next_threshold": ceiling,
        "progress": round((total_xp - floor) / span, 4),
    }
