"""Leaderboard ordering by composite score.

Order is always computed on read from the stored rankings; positions are
never persisted as part of a user's record. Redis only holds a periodic
snapshot so entries can report how far they moved since it was taken.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from redis.asyncio import Redis

from bugrank.ranking.records import UserRanking
from bugrank.ranking.scoring import RankingMetrics, score

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "leaderboard:snapshot:prev"


@dataclass(frozen=True)
class LeaderboardEntry:
    position: int
    ranking: UserRanking
    metrics: RankingMetrics
    rank_change: int = 0  # positive = moved up since the last snapshot


def order_leaderboard(
    users: Sequence[UserRanking],
    now: datetime | None = None,
    previous_positions: dict[str, int] | None = None,
) -> list[LeaderboardEntry]:
    """Sort users by composite score (desc), breaking ties on raw points then id."""
    if now is None:
        now = datetime.now(timezone.utc)
    previous_positions = previous_positions or {}

    scored = [(user, score(user, users, now)) for user in users]
    scored.sort(key=lambda pair: (-pair[1].total, -pair[0].total_points, pair[0].user_id))

    entries = []
    for offset, (user, metrics) in enumerate(scored):
        position = offset + 1
        previous = previous_positions.get(user.user_id, position)
        entries.append(LeaderboardEntry(
            position=position,
            ranking=user,
            metrics=metrics,
            rank_change=previous - position,
        ))
    return entries


async def load_previous_positions(redis: Redis | None) -> dict[str, int]:
    """Read the last snapshot's positions. Missing Redis means no movement data."""
    if redis is None:
        return {}
    try:
        data = await redis.hgetall(SNAPSHOT_KEY)
    except Exception:
        logger.warning("Failed to load leaderboard snapshot", exc_info=True)
        return {}
    return {user_id: int(position) for user_id, position in data.items()}


async def save_snapshot(
    redis: Redis, entries: Sequence[LeaderboardEntry], ttl_seconds: int,
) -> int:
    """Write current positions to Redis for the next rank_change."""
    pipe = redis.pipeline()
    pipe.delete(SNAPSHOT_KEY)
    for entry in entries:
        pipe.hset(SNAPSHOT_KEY, entry.ranking.user_id, entry.position)
    pipe.expire(SNAPSHOT_KEY, ttl_seconds)
    await pipe.execute()
    return len(entries)
