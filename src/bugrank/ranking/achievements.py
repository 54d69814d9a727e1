"""Achievement catalog and unlock evaluation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from bugrank.ranking.rank_table import Tier, progress_for, tier_for
from bugrank.ranking.records import PointsTransaction, UserAchievement, UserRanking
from bugrank.ranking.store import RankingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Requirement:
    type: str  # points | bugs | streak | rank | special
    value: int | str


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    category: str
    requirement: Requirement
    points_reward: int
    rarity: str


ACHIEVEMENTS: dict[str, Achievement] = {
    a.id: a
    for a in (
        Achievement(
            id="first_bug",
            name="First Discovery",
            description="Submit your first vulnerability report",
            category="milestone",
            requirement=Requirement("bugs", 1),
            points_reward=100,
            rarity="common",
        ),
        Achievement(
            id="critical_finder",
            name="Critical Hunter",
            description="Find your first critical vulnerability",
            category="quality",
            requirement=Requirement("special", "critical_bug"),
            points_reward=500,
            rarity="rare",
        ),
        Achievement(
            id="streak_master",
            name="Consistency Master",
            description="Maintain a 30-day activity streak",
            category="streak",
            requirement=Requirement("streak", 30),
            points_reward=1000,
            rarity="epic",
        ),
        Achievement(
            id="point_collector",
            name="Point Collector",
            description="Accumulate 10,000 total points",
            category="milestone",
            requirement=Requirement("points", 10000),
            points_reward=500,
            rarity="rare",
        ),
        Achievement(
            id="elite_hunter",
            name="Elite Hunter",
            description="Reach S-rank status",
            category="milestone",
            requirement=Requirement("rank", "S"),
            points_reward=2000,
            rarity="legendary",
        ),
        Achievement(
            id="bug_marathon",
            name="Bug Marathon",
            description="Submit 50 vulnerability reports",
            category="milestone",
            requirement=Requirement("bugs", 50),
            points_reward=1500,
            rarity="epic",
        ),
    )
}


def is_unlocked(requirement: Requirement, user: UserRanking, severity: str | None) -> bool:
    """Test one unlock predicate against the user's current state."""
    kind, value = requirement.type, requirement.value

    if kind == "points":
        return user.total_points >= int(value)
    if kind == "bugs":
        return user.bugs_found >= int(value)
    if kind == "streak":
        return user.streak >= int(value)
    if kind == "rank":
        # Exact tier, not "at least"
        return Tier(user.rank) == Tier(value)
    if kind == "special":
        if value == "critical_bug":
            return severity == "critical"
        raise ValueError(f"Unknown special achievement condition: {value!r}")
    raise ValueError(f"Unknown achievement requirement type: {kind!r}")


class AchievementEvaluator:
    """Grants each catalog achievement at most once per user.

    Bonus points are ledgered as their own transactions. Unless
    ``fold_bonus`` is set they are not added to the user's totals, and in
    either case a single pass never re-triggers evaluation.
    """

    def __init__(
        self,
        store: RankingStore,
        catalog: dict[str, Achievement] | None = None,
        fold_bonus: bool = False,
    ) -> None:
        self.store = store
        self.catalog = ACHIEVEMENTS if catalog is None else catalog
        self.fold_bonus = fold_bonus

    async def evaluate(
        self,
        user_id: str,
        user: UserRanking,
        severity: str | None = None,
        now: datetime | None = None,
    ) -> list[Achievement]:
        """Unlock every not-yet-held achievement whose predicate holds.

        Returns the achievements unlocked by this call (may be empty).
        """
        if now is None:
            now = datetime.now(timezone.utc)

        held = {ua.achievement_id for ua in await self.store.list_user_achievements(user_id)}
        unlocked: list[Achievement] = []

        for achievement in self.catalog.values():
            if achievement.id in held:
                continue
            if not is_unlocked(achievement.requirement, user, severity):
                continue

            await self.store.add_user_achievement(UserAchievement(
                user_id=user_id,
                achievement_id=achievement.id,
                unlocked_at=now,
            ))
            await self.store.add_transaction(PointsTransaction(
                user_id=user_id,
                points=achievement.points_reward,
                reason=f"Achievement unlocked: {achievement.name}",
                timestamp=now,
                source="achievement",
                achievement_id=achievement.id,
            ))
            unlocked.append(achievement)
            logger.info("Achievement %s unlocked for %s", achievement.id, user_id)

        if unlocked and self.fold_bonus:
            await self._fold_bonus(user, sum(a.points_reward for a in unlocked))

        return unlocked

    async def _fold_bonus(self, user: UserRanking, bonus: int) -> None:
        user.total_points += bonus
        user.weekly_points += bonus
        user.monthly_points += bonus
        user.rank = tier_for(user.total_points)
        user.rank_progress, user.next_rank_points = progress_for(user.total_points, user.rank)
        await self.store.put_user(user)
