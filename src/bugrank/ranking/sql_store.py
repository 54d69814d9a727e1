"""SQLAlchemy-backed implementation of the ranking store."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bugrank.db.models import (
    PointsTransactionRow,
    UserAchievementRow,
    UserRankingRow,
    UserRewardRow,
)
from bugrank.ranking.rank_table import Tier
from bugrank.ranking.records import (
    PointsTransaction,
    UserAchievement,
    UserRanking,
    UserReward,
)

_RANKING_FIELDS = (
    "username",
    "total_points",
    "bugs_found",
    "total_earnings",
    "join_date",
    "weekly_points",
    "monthly_points",
    "streak",
    "last_activity",
    "rank_progress",
    "next_rank_points",
)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_ranking(row: UserRankingRow) -> UserRanking:
    return UserRanking(
        user_id=row.user_id,
        username=row.username,
        join_date=_as_utc(row.join_date),
        total_points=row.total_points,
        rank=Tier(row.rank),
        bugs_found=row.bugs_found,
        total_earnings=row.total_earnings,
        weekly_points=row.weekly_points,
        monthly_points=row.monthly_points,
        streak=row.streak,
        last_activity=_as_utc(row.last_activity),
        rank_progress=row.rank_progress,
        next_rank_points=row.next_rank_points,
    )


def _to_transaction(row: PointsTransactionRow) -> PointsTransaction:
    return PointsTransaction(
        id=row.id,
        user_id=row.user_id,
        bug_id=row.bug_id,
        points=row.points,
        reason=row.reason,
        timestamp=_as_utc(row.timestamp),
        severity=row.severity,
        multiplier=row.multiplier,
        source=row.source,
        achievement_id=row.achievement_id,
    )


class SqlRankingStore:
    """Store over one ``AsyncSession``. Writes are flushed; ``commit`` ends the unit of work."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_user(self, user_id: str, *, for_update: bool = False) -> UserRanking | None:
        if for_update:
            # SELECT ... FOR UPDATE holds the row against other processes until commit
            row = await self.db.get(UserRankingRow, user_id, with_for_update=True, populate_existing=True)
        else:
            row = await self.db.get(UserRankingRow, user_id)
        return _to_ranking(row) if row is not None else None

    async def list_users(self) -> list[UserRanking]:
        result = await self.db.execute(select(UserRankingRow))
        return [_to_ranking(row) for row in result.scalars()]

    async def put_user(self, user: UserRanking) -> None:
        row = await self.db.get(UserRankingRow, user.user_id)
        if row is None:
            row = UserRankingRow(user_id=user.user_id)
            self.db.add(row)
        for name in _RANKING_FIELDS:
            setattr(row, name, getattr(user, name))
        row.rank = Tier(user.rank).value
        await self.db.flush()

    async def add_transaction(self, transaction: PointsTransaction) -> None:
        self.db.add(PointsTransactionRow(
            id=transaction.id,
            user_id=transaction.user_id,
            bug_id=transaction.bug_id,
            points=transaction.points,
            reason=transaction.reason,
            timestamp=transaction.timestamp,
            severity=transaction.severity,
            multiplier=transaction.multiplier,
            source=transaction.source,
            achievement_id=transaction.achievement_id,
        ))
        await self.db.flush()

    async def list_transactions(self, user_id: str) -> list[PointsTransaction]:
        result = await self.db.execute(
            select(PointsTransactionRow)
            .where(PointsTransactionRow.user_id == user_id)
            .order_by(
                PointsTransactionRow.timestamp.asc(),
                case((PointsTransactionRow.source == "bug", 0), else_=1),
                func.coalesce(PointsTransactionRow.achievement_id, ""),
            )
        )
        return [_to_transaction(row) for row in result.scalars()]

    async def list_user_achievements(self, user_id: str) -> list[UserAchievement]:
        result = await self.db.execute(
            select(UserAchievementRow)
            .where(UserAchievementRow.user_id == user_id)
            .order_by(UserAchievementRow.unlocked_at.asc())
        )
        return [
            UserAchievement(
                id=row.id,
                user_id=row.user_id,
                achievement_id=row.achievement_id,
                unlocked_at=_as_utc(row.unlocked_at),
            )
            for row in result.scalars()
        ]

    async def add_user_achievement(self, achievement: UserAchievement) -> None:
        # UNIQUE(user_id, achievement_id) rejects duplicates with IntegrityError
        self.db.add(UserAchievementRow(
            id=achievement.id,
            user_id=achievement.user_id,
            achievement_id=achievement.achievement_id,
            unlocked_at=achievement.unlocked_at,
        ))
        await self.db.flush()

    async def list_user_rewards(self, user_id: str) -> list[UserReward]:
        result = await self.db.execute(
            select(UserRewardRow)
            .where(UserRewardRow.user_id == user_id)
            .order_by(UserRewardRow.redeemed_at.asc())
        )
        return [
            UserReward(
                id=row.id,
                user_id=row.user_id,
                reward_id=row.reward_id,
                redeemed_at=_as_utc(row.redeemed_at),
                status=row.status,
            )
            for row in result.scalars()
        ]

    async def count_redemptions(self, reward_id: str) -> int:
        result = await self.db.execute(
            select(func.count(UserRewardRow.id)).where(UserRewardRow.reward_id == reward_id)
        )
        return int(result.scalar_one())

    async def add_user_reward(self, reward: UserReward) -> None:
        self.db.add(UserRewardRow(
            id=reward.id,
            user_id=reward.user_id,
            reward_id=reward.reward_id,
            redeemed_at=reward.redeemed_at,
            status=reward.status,
        ))
        await self.db.flush()

    async def commit(self) -> None:
        await self.db.commit()
