"""ORM models for the ranking engine.

Column types stay portable (no dialect-specific JSONB/INET) so the same
models run on PostgreSQL in production and SQLite in tests.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from bugrank.db.base import Base


class UserRankingRow(Base):
    """Denormalized ranking state, one row per participant. Never deleted."""

    __tablename__ = "user_rankings"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    username: Mapped[str] = mapped_column(String(128), nullable=False)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rank: Mapped[str] = mapped_column(String(1), nullable=False, default="E")
    bugs_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_earnings: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    join_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    weekly_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rank_progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    next_rank_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class PointsTransactionRow(Base):
    """Immutable points ledger. Rows are only ever inserted."""

    __tablename__ = "points_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("user_rankings.user_id"), nullable=False, index=True
    )
    bug_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(256), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    severity: Mapped[str | None] = mapped_column(String(16), nullable=True)
    multiplier: Mapped[float | None] = mapped_column(Float, nullable=True)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="bug")
    achievement_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class UserAchievementRow(Base):
    """Unlocked achievements. UNIQUE(user_id, achievement_id) prevents duplicates."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_achievement_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("user_rankings.user_id"), nullable=False, index=True
    )
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class UserRewardRow(Base):
    """Reward redemptions. Status is advanced by fulfillment, not by the engine."""

    __tablename__ = "user_rewards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("user_rankings.user_id"), nullable=False, index=True
    )
    reward_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    redeemed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
