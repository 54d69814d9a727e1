"""Ranking worker job tests against an in-memory SQLite database."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest_asyncio
from arq.cron import CronJob

from bugrank.database import close_db, create_tables, get_session_factory, init_db
from bugrank.ranking.sql_store import SqlRankingStore
from bugrank.ranking.worker import (
    RankingWorkerSettings,
    backfill_submissions,
    refresh_leaderboard_snapshot,
    reset_monthly_points,
    reset_weekly_points,
)


@pytest_asyncio.fixture
async def worker_db() -> AsyncGenerator[None, None]:
    await init_db("sqlite+aiosqlite:///:memory:")
    await create_tables()
    yield
    await close_db()


async def _users() -> dict:
    async with get_session_factory()() as db:
        return {u.user_id: u for u in await SqlRankingStore(db).list_users()}


SUBMISSIONS = [
    {"author": "alice", "severity": "critical", "submitted_at": "2026-03-03T10:00:00+00:00", "bounty": 2000},
    {"author": "alice", "severity": "high", "submitted_at": "2026-03-04T09:30:00"},
    {"author": "bob", "severity": "low", "submitted_at": "2026-02-10T08:00:00+00:00"},
]


class TestBackfillJob:
    async def test_creates_rankings(self, worker_db) -> None:
        created = await backfill_submissions({}, SUBMISSIONS)
        assert created == 2

        users = await _users()
        assert users["alice"].total_points == 1500
        assert users["alice"].total_earnings == 2000.0
        assert users["alice"].last_activity.tzinfo is not None
        assert users["bob"].total_points == 50

    async def test_is_idempotent(self, worker_db) -> None:
        await backfill_submissions({}, SUBMISSIONS)
        assert await backfill_submissions({}, SUBMISSIONS) == 0


class TestResetJobs:
    async def test_weekly_then_monthly(self, worker_db) -> None:
        await backfill_submissions({}, SUBMISSIONS)
        before = await _users()

        await reset_weekly_points({"redis": None})
        after_weekly = await _users()
        assert all(u.weekly_points == 0 for u in after_weekly.values())
        assert after_weekly["alice"].monthly_points == before["alice"].monthly_points

        await reset_monthly_points({"redis": None})
        after_monthly = await _users()
        assert all(u.monthly_points == 0 for u in after_monthly.values())
        assert after_monthly["alice"].total_points == 1500


class TestSnapshotJob:
    async def test_writes_every_user(self, worker_db) -> None:
        await backfill_submissions({}, SUBMISSIONS)
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[])
        redis = MagicMock()
        redis.pipeline.return_value = pipe

        count = await refresh_leaderboard_snapshot({"redis": redis})

        assert count == 2
        pipe.execute.assert_awaited_once()


class TestWorkerSettings:
    def test_registered_functions(self) -> None:
        names = {f.__name__ for f in RankingWorkerSettings.functions}
        assert names == {
            "reset_weekly_points",
            "reset_monthly_points",
            "refresh_leaderboard_snapshot",
            "backfill_submissions",
        }

    def test_cron_schedule(self) -> None:
        jobs = {job.name: job for job in RankingWorkerSettings.cron_jobs}
        assert all(isinstance(job, CronJob) for job in jobs.values())
        weekly = jobs["cron:reset_weekly_points"]
        assert weekly.weekday == 0
        assert weekly.hour == 0
        assert jobs["cron:reset_monthly_points"].day == 1
