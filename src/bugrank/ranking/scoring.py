"""Severity awards, streak multipliers and the composite leaderboard score.

The composite score orders the leaderboard only. It never feeds back into
``total_points`` or tier, which stay a function of raw cumulative points.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from bugrank.ranking.records import UserRanking

SEVERITY_POINTS: dict[str, int] = {
    "critical": 1000,
    "high": 500,
    "medium": 200,
    "low": 50,
}

# (minimum streak, multiplier), highest bracket first
STREAK_MULTIPLIERS: tuple[tuple[int, float], ...] = (
    (30, 1.5),
    (14, 1.3),
    (7, 1.2),
    (3, 1.1),
    (0, 1.0),
)

POINTS_WEIGHT = 0.4
ACTIVITY_WEIGHT = 0.25
CONSISTENCY_WEIGHT = 0.2
QUALITY_WEIGHT = 0.15

ACTIVITY_BASE = 100
ACTIVITY_DECAY_PER_DAY = 5


class UnknownSeverityError(ValueError):
    """Raised for a severity outside the closed critical/high/medium/low set."""

    def __init__(self, severity: str) -> None:
        super().__init__(f"Unknown severity: {severity!r}")
        self.severity = severity


@dataclass(frozen=True)
class RankingMetrics:
    total: float
    points_weight: float
    activity_weight: float
    consistency_weight: float
    quality_weight: float


def base_award(severity: str) -> int:
    try:
        return SEVERITY_POINTS[severity]
    except KeyError:
        raise UnknownSeverityError(severity) from None


def streak_multiplier(streak: int) -> float:
    """Step function of the streak; the highest applicable bracket wins."""
    for minimum, multiplier in STREAK_MULTIPLIERS:
        if streak >= minimum:
            return multiplier
    return 1.0


def awarded_points(severity: str, streak: int) -> tuple[int, float]:
    """Return ``(points, multiplier)`` for an event at the given streak."""
    multiplier = streak_multiplier(streak)
    return math.floor(base_award(severity) * multiplier), multiplier


def whole_days_between(earlier: datetime | None, later: datetime) -> int:
    """Whole days elapsed (floored). No prior timestamp counts as zero."""
    if earlier is None:
        return 0
    return (later - earlier) // timedelta(days=1)


def score(
    user: UserRanking,
    all_users: Sequence[UserRanking] = (),
    now: datetime | None = None,
) -> RankingMetrics:
    """Composite leaderboard score.

    ``all_users`` is accepted for population-relative weighting; the current
    formula scores each user on their own state.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    days_inactive = whole_days_between(user.last_activity, now)

    points_weight = user.total_points * POINTS_WEIGHT
    activity_bonus = max(0, ACTIVITY_BASE - days_inactive * ACTIVITY_DECAY_PER_DAY)
    activity_weight = activity_bonus * ACTIVITY_WEIGHT
    consistency_weight = user.streak * streak_multiplier(user.streak) * 10 * CONSISTENCY_WEIGHT
    avg_points_per_bug = user.total_points / user.bugs_found if user.bugs_found > 0 else 0
    quality_weight = avg_points_per_bug * QUALITY_WEIGHT

    return RankingMetrics(
        total=points_weight + activity_weight + consistency_weight + quality_weight,
        points_weight=points_weight,
        activity_weight=activity_weight,
        consistency_weight=consistency_weight,
        quality_weight=quality_weight,
    )
