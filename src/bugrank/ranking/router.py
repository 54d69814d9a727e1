"""Ranking API endpoints."""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from bugrank.config import get_settings
from bugrank.dependencies import get_db, get_redis_dep
from bugrank.ranking.achievements import ACHIEVEMENTS, Achievement
from bugrank.ranking.engine import RankingEngine
from bugrank.ranking.rank_table import RANK_CONFIGS
from bugrank.ranking.records import PointsTransaction, UserRanking, UserReward
from bugrank.ranking.rewards import REWARD_CATALOG, RewardItem
from bugrank.ranking.schemas import (
    AchievementResponse,
    AllAchievementsResponse,
    AllRanksResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    PointsTransactionResponse,
    RankConfigEntry,
    RankInfoResponse,
    RankingMetricsResponse,
    RedeemRequest,
    RedeemResponse,
    RewardCatalogResponse,
    RewardItemResponse,
    ScoringEventRequest,
    ScoringEventResponse,
    TransactionHistoryResponse,
    UnlockedAchievementResponse,
    UserAchievementsResponse,
    UserRankingResponse,
    UserRewardResponse,
    UserRewardsResponse,
)
from bugrank.ranking.sql_store import SqlRankingStore

router = APIRouter(prefix="/api/v1", tags=["Ranking"])


async def get_ranking_engine(
    db: AsyncSession = Depends(get_db),  # noqa: B008
    redis: Redis | None = Depends(get_redis_dep),  # noqa: B008
) -> RankingEngine:
    """Per-request engine over the request's DB session."""
    return RankingEngine(SqlRankingStore(db), redis=redis, settings=get_settings())


# ── Converters ──


def _ranking(user: UserRanking) -> UserRankingResponse:
    return UserRankingResponse(
        user_id=user.user_id,
        username=user.username,
        total_points=user.total_points,
        rank=user.rank.value,
        bugs_found=user.bugs_found,
        total_earnings=user.total_earnings,
        join_date=user.join_date,
        weekly_points=user.weekly_points,
        monthly_points=user.monthly_points,
        streak=user.streak,
        last_activity=user.last_activity,
        rank_progress=user.rank_progress,
        next_rank_points=user.next_rank_points,
    )


def _transaction(tx: PointsTransaction) -> PointsTransactionResponse:
    return PointsTransactionResponse(
        id=tx.id,
        user_id=tx.user_id,
        bug_id=tx.bug_id,
        points=tx.points,
        reason=tx.reason,
        timestamp=tx.timestamp,
        severity=tx.severity,
        multiplier=tx.multiplier,
        source=tx.source,
        achievement_id=tx.achievement_id,
    )


def _achievement(a: Achievement) -> AchievementResponse:
    return AchievementResponse(
        id=a.id,
        name=a.name,
        description=a.description,
        category=a.category,
        requirement_type=a.requirement.type,
        requirement_value=a.requirement.value,
        points_reward=a.points_reward,
        rarity=a.rarity,
    )


def _reward_item(r: RewardItem) -> RewardItemResponse:
    return RewardItemResponse(
        id=r.id,
        name=r.name,
        description=r.description,
        points_cost=r.points_cost,
        category=r.category,
        available=r.available,
        limited_quantity=r.limited_quantity,
        required_rank=r.required_rank.value if r.required_rank else None,
    )


def _user_reward(r: UserReward) -> UserRewardResponse:
    return UserRewardResponse(id=r.id, reward_id=r.reward_id, redeemed_at=r.redeemed_at, status=r.status)


async def _require_user(engine: RankingEngine, user_id: str) -> UserRanking:
    user = await engine.get_user_ranking(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User ranking not found")
    return user


# ── Catalogs ──


@router.get("/ranks", response_model=AllRanksResponse)
async def list_ranks():
    """Get the rank table."""
    return AllRanksResponse(
        ranks=[
            RankConfigEntry(
                tier=c.tier.value,
                min_points=c.min_points,
                max_points=None if math.isinf(c.max_points) else int(c.max_points),
                description=c.description,
                benefits=list(c.benefits),
                weekly_requirement=c.weekly_requirement,
            )
            for c in RANK_CONFIGS.values()
        ]
    )


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements():
    return AllAchievementsResponse(achievements=[_achievement(a) for a in ACHIEVEMENTS.values()])


@router.get("/rewards", response_model=RewardCatalogResponse)
async def list_rewards():
    return RewardCatalogResponse(rewards=[_reward_item(r) for r in REWARD_CATALOG.values()])


# ── Mutations ──


@router.post("/ranking/events", response_model=ScoringEventResponse)
async def post_scoring_event(
    body: ScoringEventRequest,
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    """Apply an accepted submission's severity to the author's ranking."""
    result = await engine.apply_event(
        body.user_id,
        body.severity,
        body.reason,
        bug_id=body.bug_id,
        display_name=body.display_name,
        bounty=body.bounty,
    )
    return ScoringEventResponse(
        ranking=_ranking(result.ranking),
        transaction=_transaction(result.transaction),
        achievements_unlocked=[_achievement(a) for a in result.achievements],
    )


@router.post("/rewards/{reward_id}/redeem", response_model=RedeemResponse)
async def redeem_reward(
    reward_id: str,
    body: RedeemRequest,
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    """Redeem a reward. Ineligibility is a 200 with success=false and a message."""
    result = await engine.redeem(body.user_id, reward_id)
    return RedeemResponse(
        success=result.success,
        message=result.message,
        failure=result.failure.value if result.failure else None,
        reward=_user_reward(result.reward) if result.reward else None,
    )


# ── Read views ──


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int | None = Query(None, ge=1, le=1000),
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    """Leaderboard ordered by composite score, computed on read."""
    if limit is None:
        limit = engine.settings.leaderboard_default_limit
    entries = await engine.leaderboard()
    return LeaderboardResponse(
        entries=[
            LeaderboardEntryResponse(
                position=e.position,
                rank_change=e.rank_change,
                ranking=_ranking(e.ranking),
                metrics=RankingMetricsResponse(
                    total=e.metrics.total,
                    points_weight=e.metrics.points_weight,
                    activity_weight=e.metrics.activity_weight,
                    consistency_weight=e.metrics.consistency_weight,
                    quality_weight=e.metrics.quality_weight,
                ),
            )
            for e in entries[:limit]
        ],
        total=len(entries),
    )


@router.get("/users/{user_id}/ranking", response_model=RankInfoResponse)
async def get_user_ranking(
    user_id: str,
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    info = await engine.get_rank_info(user_id)
    if info is None:
        raise HTTPException(status_code=404, detail="User ranking not found")
    return RankInfoResponse(
        ranking=_ranking(info.ranking),
        benefits=info.benefits,
        weekly_requirement=info.weekly_requirement,
        at_risk=info.at_risk,
    )


@router.get("/users/{user_id}/transactions", response_model=TransactionHistoryResponse)
async def get_user_transactions(
    user_id: str,
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    """Points history, newest first."""
    await _require_user(engine, user_id)
    history = await engine.transaction_history(user_id)
    history.sort(key=PointsTransaction.sort_key, reverse=True)
    return TransactionHistoryResponse(
        transactions=[_transaction(t) for t in history],
        total=len(history),
    )


@router.get("/users/{user_id}/achievements", response_model=UserAchievementsResponse)
async def get_user_achievements(
    user_id: str,
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    await _require_user(engine, user_id)
    unlocked = await engine.user_achievements(user_id)
    return UserAchievementsResponse(
        unlocked=[
            UnlockedAchievementResponse(**_achievement(a).model_dump(), unlocked_at=unlocked_at)
            for a, unlocked_at in unlocked
        ],
        total_available=len(ACHIEVEMENTS),
    )


@router.get("/users/{user_id}/rewards", response_model=UserRewardsResponse)
async def get_user_rewards(
    user_id: str,
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    """Rewards the user has redeemed."""
    await _require_user(engine, user_id)
    return UserRewardsResponse(rewards=[_user_reward(r) for r in await engine.user_rewards(user_id)])


@router.get("/users/{user_id}/rewards/available", response_model=RewardCatalogResponse)
async def get_available_rewards(
    user_id: str,
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    await _require_user(engine, user_id)
    return RewardCatalogResponse(rewards=[_reward_item(r) for r in await engine.available_rewards(user_id)])


@router.get("/users/{user_id}/rewards/locked", response_model=RewardCatalogResponse)
async def get_locked_rewards(
    user_id: str,
    engine: RankingEngine = Depends(get_ranking_engine),  # noqa: B008
):
    await _require_user(engine, user_id)
    return RewardCatalogResponse(rewards=[_reward_item(r) for r in await engine.locked_rewards(user_id)])
