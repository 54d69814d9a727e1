"""Pydantic request/response models for ranking endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

Severity = Literal["critical", "high", "medium", "low"]


# --- Requests ---


class ScoringEventRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=128)
    severity: Severity
    reason: str = Field(min_length=1, max_length=256)
    bug_id: str | None = None
    display_name: str | None = Field(default=None, max_length=128)
    bounty: float = Field(default=0.0, ge=0)


class RedeemRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=128)


# --- Ranking ---


class UserRankingResponse(BaseModel):
    user_id: str
    username: str
    total_points: int
    rank: str
    bugs_found: int
    total_earnings: float
    join_date: datetime
    weekly_points: int
    monthly_points: int
    streak: int
    last_activity: datetime | None = None
    rank_progress: float
    next_rank_points: int


class RankInfoResponse(BaseModel):
    ranking: UserRankingResponse
    benefits: list[str]
    weekly_requirement: int
    at_risk: bool


class RankConfigEntry(BaseModel):
    tier: str
    min_points: int
    max_points: int | None = None  # None = unbounded
    description: str
    benefits: list[str]
    weekly_requirement: int


class AllRanksResponse(BaseModel):
    ranks: list[RankConfigEntry]


# --- Points ---


class PointsTransactionResponse(BaseModel):
    id: str
    user_id: str
    bug_id: str | None = None
    points: int
    reason: str
    timestamp: datetime
    severity: str | None = None
    multiplier: float | None = None
    source: str
    achievement_id: str | None = None


class TransactionHistoryResponse(BaseModel):
    transactions: list[PointsTransactionResponse]
    total: int


# --- Achievements ---


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    requirement_type: str
    requirement_value: int | str
    points_reward: int
    rarity: str


class UnlockedAchievementResponse(AchievementResponse):
    unlocked_at: datetime


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]


class UserAchievementsResponse(BaseModel):
    unlocked: list[UnlockedAchievementResponse]
    total_available: int


class ScoringEventResponse(BaseModel):
    ranking: UserRankingResponse
    transaction: PointsTransactionResponse
    achievements_unlocked: list[AchievementResponse] = []


# --- Leaderboard ---


class RankingMetricsResponse(BaseModel):
    total: float
    points_weight: float
    activity_weight: float
    consistency_weight: float
    quality_weight: float


class LeaderboardEntryResponse(BaseModel):
    position: int
    rank_change: int
    ranking: UserRankingResponse
    metrics: RankingMetricsResponse


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    total: int


# --- Rewards ---


class RewardItemResponse(BaseModel):
    id: str
    name: str
    description: str
    points_cost: int
    category: str
    available: bool
    limited_quantity: int | None = None
    required_rank: str | None = None


class RewardCatalogResponse(BaseModel):
    rewards: list[RewardItemResponse]


class UserRewardResponse(BaseModel):
    id: str
    reward_id: str
    redeemed_at: datetime
    status: str


class UserRewardsResponse(BaseModel):
    rewards: list[UserRewardResponse]


class RedeemResponse(BaseModel):
    success: bool
    message: str
    failure: str | None = None
    reward: UserRewardResponse | None = None
