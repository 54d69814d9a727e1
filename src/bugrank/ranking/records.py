"""Plain records the engine reads and writes through the store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from bugrank.ranking.rank_table import Tier


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class UserRanking:
    """Running ranking state for one participant."""

    user_id: str
    username: str
    join_date: datetime
    total_points: int = 0
    rank: Tier = Tier.E
    bugs_found: int = 0
    total_earnings: float = 0.0
    weekly_points: int = 0
    monthly_points: int = 0
    streak: int = 0
    last_activity: datetime | None = None
    rank_progress: float = 0.0
    next_rank_points: int = 0


@dataclass(frozen=True)
class PointsTransaction:
    """Immutable ledger entry. ``severity`` is None for achievement bonuses."""

    user_id: str
    points: int
    reason: str
    timestamp: datetime
    severity: str | None = None
    bug_id: str | None = None
    multiplier: float | None = None
    source: str = "bug"
    achievement_id: str | None = None
    id: str = field(default_factory=new_id)

    def sort_key(self) -> tuple[datetime, int, str]:
        """Chronological order. Bonuses share their bug's timestamp and sort after it."""
        return (self.timestamp, 0 if self.source == "bug" else 1, self.achievement_id or "")


@dataclass(frozen=True)
class UserAchievement:
    user_id: str
    achievement_id: str
    unlocked_at: datetime
    id: str = field(default_factory=new_id)


@dataclass
class UserReward:
    user_id: str
    reward_id: str
    redeemed_at: datetime
    status: str = "pending"
    id: str = field(default_factory=new_id)
