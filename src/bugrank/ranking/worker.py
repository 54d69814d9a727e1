"""Ranking arq worker: rolling-window resets and leaderboard snapshots.

Schedule (UTC):
- Weekly points reset: Monday 00:00
- Monthly points reset: 1st of the month 00:00
- Leaderboard snapshot: every hour on the hour

Run with: arq bugrank.ranking.worker.RankingWorkerSettings
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from bugrank.config import get_settings
from bugrank.database import close_db, get_session_factory, init_db
from bugrank.middleware.logging import setup_logging
from bugrank.ranking.backfill import HistoricalSubmission, backfill_rankings
from bugrank.ranking.engine import RankingEngine
from bugrank.ranking.leaderboard import order_leaderboard, save_snapshot
from bugrank.ranking.sql_store import SqlRankingStore

logger = logging.getLogger(__name__)


def _parse_utc(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


async def ranking_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB + Redis connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    logger.info("Ranking worker started")


async def ranking_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Ranking worker shut down")


async def reset_weekly_points(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: zero weekly_points at the start of each ISO week."""
    async with get_session_factory()() as db:
        engine = RankingEngine(SqlRankingStore(db), redis=ctx.get("redis"))
        return await engine.reset_weekly_points()


async def reset_monthly_points(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: zero monthly_points on the first of each month."""
    async with get_session_factory()() as db:
        engine = RankingEngine(SqlRankingStore(db), redis=ctx.get("redis"))
        return await engine.reset_monthly_points()


async def refresh_leaderboard_snapshot(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: store current positions so the next read can report rank_change."""
    redis_client: aioredis.Redis = ctx["redis"]
    settings = get_settings()
    async with get_session_factory()() as db:
        users = await SqlRankingStore(db).list_users()
    entries = order_leaderboard(users)
    count = await save_snapshot(redis_client, entries, settings.leaderboard_snapshot_ttl_seconds)
    logger.info("Leaderboard snapshot saved: %d entries", count)
    return count


async def backfill_submissions(ctx: dict, submissions: list[dict]) -> int:  # type: ignore[type-arg]
    """On-demand task: seed rankings from historical accepted submissions.

    Each item: {"author", "severity", "submitted_at" (ISO 8601), "bounty"?}.
    """
    parsed = [
        HistoricalSubmission(
            author=item["author"],
            severity=item["severity"],
            submitted_at=_parse_utc(item["submitted_at"]),
            bounty=float(item.get("bounty", 0)),
        )
        for item in submissions
    ]
    async with get_session_factory()() as db:
        return await backfill_rankings(SqlRankingStore(db), parsed)


class RankingWorkerSettings:
    """arq worker settings for ranking maintenance."""

    functions = [
        reset_weekly_points,
        reset_monthly_points,
        refresh_leaderboard_snapshot,
        backfill_submissions,
    ]
    cron_jobs = [
        cron(reset_weekly_points, weekday=0, hour=0, minute=0),  # Monday
        cron(reset_monthly_points, day=1, hour=0, minute=0),
        cron(refresh_leaderboard_snapshot, minute=0),
    ]
    on_startup = ranking_startup
    on_shutdown = ranking_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
    job_timeout = 300
