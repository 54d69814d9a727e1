"""Leaderboard ordering and snapshot tests."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from bugrank.ranking.engine import KeyedLocks, RankingEngine
from bugrank.ranking.leaderboard import (
    SNAPSHOT_KEY,
    load_previous_positions,
    order_leaderboard,
    save_snapshot,
)
from bugrank.ranking.records import UserRanking


def _user(now, user_id, **kwargs) -> UserRanking:
    defaults = {"user_id": user_id, "username": user_id, "join_date": now - timedelta(days=90)}
    defaults.update(kwargs)
    return UserRanking(**defaults)


class TestOrdering:
    def test_composite_can_beat_raw_points(self, now):
        """An active, consistent hunter outranks a dormant one with more points."""
        dormant = _user(now, "dormant", total_points=3000, bugs_found=30, last_activity=now - timedelta(days=30))
        active = _user(now, "active", total_points=2500, bugs_found=1, streak=30, last_activity=now)

        entries = order_leaderboard([dormant, active], now=now)

        assert [e.ranking.user_id for e in entries] == ["active", "dormant"]
        assert entries[0].metrics.total > entries[1].metrics.total

    def test_positions_start_at_one(self, now):
        users = [_user(now, f"u{i}", total_points=i * 100, last_activity=now) for i in range(5)]
        entries = order_leaderboard(users, now=now)
        assert [e.position for e in entries] == [1, 2, 3, 4, 5]
        assert entries[0].ranking.user_id == "u4"

    def test_identical_users_break_ties_by_id(self, now):
        users = [_user(now, uid, total_points=500, bugs_found=2, last_activity=now) for uid in ("zed", "amy", "kim")]
        entries = order_leaderboard(users, now=now)
        assert [e.ranking.user_id for e in entries] == ["amy", "kim", "zed"]

    def test_empty(self, now):
        assert order_leaderboard([], now=now) == []

    def test_rank_change_from_previous_positions(self, now):
        users = [
            _user(now, "a", total_points=3000, last_activity=now),
            _user(now, "b", total_points=2000, last_activity=now),
            _user(now, "c", total_points=1000, last_activity=now),
        ]
        entries = order_leaderboard(users, now=now, previous_positions={"a": 3, "b": 2})

        changes = {e.ranking.user_id: e.rank_change for e in entries}
        assert changes == {"a": 2, "b": 0, "c": 0}

    def test_does_not_modify_users(self, now):
        user = _user(now, "a", total_points=1234, last_activity=now)
        order_leaderboard([user], now=now)
        assert user.total_points == 1234


class TestSnapshot:
    async def test_load_without_redis(self):
        assert await load_previous_positions(None) == {}

    async def test_load_parses_positions(self):
        redis = AsyncMock()
        redis.hgetall.return_value = {"alice": "1", "bob": "2"}
        assert await load_previous_positions(redis) == {"alice": 1, "bob": 2}
        redis.hgetall.assert_awaited_once_with(SNAPSHOT_KEY)

    async def test_load_failure_returns_empty(self):
        redis = AsyncMock()
        redis.hgetall.side_effect = ConnectionError("redis down")
        assert await load_previous_positions(redis) == {}

    async def test_save_writes_positions(self, now):
        users = [
            _user(now, "a", total_points=3000, last_activity=now),
            _user(now, "b", total_points=1000, last_activity=now),
        ]
        entries = order_leaderboard(users, now=now)

        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[])
        redis = MagicMock()
        redis.pipeline.return_value = pipe

        written = await save_snapshot(redis, entries, ttl_seconds=7200)

        assert written == 2
        pipe.delete.assert_any_call(SNAPSHOT_KEY)
        pipe.zadd.assert_not_called()
        pipe.hset.assert_any_call(SNAPSHOT_KEY, "a", 1)
        pipe.hset.assert_any_call(SNAPSHOT_KEY, "b", 2)
        pipe.expire.assert_called_once_with(SNAPSHOT_KEY, 7200)
        pipe.execute.assert_awaited_once()


class TestEngineLeaderboard:
    async def test_limit(self, engine, now):
        for i, severity in enumerate(["critical", "high", "medium", "low"]):
            await engine.apply_event(f"user{i}", severity, "finding", now=now)

        entries = await engine.leaderboard(limit=2, now=now)
        assert [e.ranking.user_id for e in entries] == ["user0", "user1"]

    async def test_uses_snapshot_for_rank_change(self, store, settings, now):
        redis = AsyncMock()
        redis.hgetall.return_value = {"bob": "1", "alice": "2"}
        engine = RankingEngine(store, redis=redis, settings=settings, locks=KeyedLocks())
        await engine.apply_event("alice", "critical", "RCE", now=now)
        await engine.apply_event("bob", "low", "typo", now=now)

        entries = await engine.leaderboard(now=now)
        assert [(e.ranking.user_id, e.rank_change) for e in entries] == [("alice", 1), ("bob", -1)]
