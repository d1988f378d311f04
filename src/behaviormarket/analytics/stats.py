"""Small statistics helpers over behavior logs."""

from __future__ import annotations

import statistics
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Protocol


class LogLike(Protocol):
    """The subset of BehaviorLog that the heuristics read."""

    category: str
    timestamp: object


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson r rounded to 3 places; 0.0 when either side has no variance."""
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    try:
        return round(statistics.correlation(xs, ys), 3)
    except statistics.StatisticsError:
        return 0.0


def daily_counts(logs: Iterable[LogLike], category: str | None = None) -> Counter[date]:
    """Number of logs per calendar day, optionally for one category."""
    return Counter(
        log.timestamp.date()  # type: ignore[attr-defined]
        for log in logs
        if category is None or log.category == category
    )


def mean_or(values: Iterable[float | None], default: float = 0.0) -> float:
    present = [float(v) for v in values if v is not None]
    return statistics.fmean(present) if present else default


def anomaly_days(counts: Counter[date]) -> list[date]:
    """Days whose log count exceeds mean + 2 standard deviations."""
    if len(counts) < 3:
        return []
    values = list(counts.values())
    threshold = statistics.fmean(values) + 2 * statistics.pstdev(values)
    return sorted(day for day, n in counts.items() if n > threshold)


def consistency(counts: Counter[date], days: int) -> float:
    """1 - coefficient of variation of daily counts over ``days`` days, clamped to [0, 1]."""
    if days <= 0 or not counts:
        return 0.0
    values = [*counts.values(), *([0] * max(0, days - len(counts)))]
    avg = statistics.fmean(values)
    if avg == 0:
        return 0.0
    cv = statistics.pstdev(values) / avg
    return round(max(0.0, min(1.0, 1 - cv)), 2)
