"""Achievement evaluation tests."""

from __future__ import annotations

from datetime import timedelta

import pytest

from bugrank.ranking.achievements import (
    ACHIEVEMENTS,
    AchievementEvaluator,
    Requirement,
    is_unlocked,
)
from bugrank.ranking.rank_table import Tier
from bugrank.ranking.records import UserRanking


def _user(now, **kwargs) -> UserRanking:
    defaults = {"user_id": "alice", "username": "alice", "join_date": now}
    defaults.update(kwargs)
    return UserRanking(**defaults)


class TestCatalog:
    def test_six_achievements(self):
        assert set(ACHIEVEMENTS) == {
            "first_bug",
            "critical_finder",
            "streak_master",
            "point_collector",
            "elite_hunter",
            "bug_marathon",
        }

    def test_bonus_values(self):
        assert ACHIEVEMENTS["first_bug"].points_reward == 100
        assert ACHIEVEMENTS["critical_finder"].points_reward == 500
        assert ACHIEVEMENTS["streak_master"].points_reward == 1000
        assert ACHIEVEMENTS["elite_hunter"].points_reward == 2000


class TestPredicates:
    def test_threshold_is_inclusive(self, now):
        user = _user(now, total_points=10000, bugs_found=50, streak=30)
        assert is_unlocked(Requirement("points", 10000), user, None)
        assert is_unlocked(Requirement("bugs", 50), user, None)
        assert is_unlocked(Requirement("streak", 30), user, None)

    def test_below_threshold(self, now):
        user = _user(now, total_points=9999, bugs_found=49, streak=29)
        assert not is_unlocked(Requirement("points", 10000), user, None)
        assert not is_unlocked(Requirement("bugs", 50), user, None)
        assert not is_unlocked(Requirement("streak", 30), user, None)

    def test_rank_requires_exact_tier(self, now):
        user = _user(now, total_points=20000, rank=Tier.S)
        assert is_unlocked(Requirement("rank", "S"), user, None)
        assert not is_unlocked(Requirement("rank", "A"), user, None)

    def test_critical_bug_needs_critical_event(self, now):
        user = _user(now, bugs_found=3)
        assert is_unlocked(Requirement("special", "critical_bug"), user, "critical")
        assert not is_unlocked(Requirement("special", "critical_bug"), user, "high")
        assert not is_unlocked(Requirement("special", "critical_bug"), user, None)

    def test_unknown_special_condition_raises(self, now):
        with pytest.raises(ValueError, match="special"):
            is_unlocked(Requirement("special", "first_blood"), _user(now), None)

    def test_unknown_requirement_type_raises(self, now):
        with pytest.raises(ValueError, match="requirement type"):
            is_unlocked(Requirement("karma", 5), _user(now), None)


class TestEvaluator:
    async def test_unlocks_and_ledgers_bonus(self, store, now):
        evaluator = AchievementEvaluator(store)
        user = _user(now, total_points=1000, bugs_found=1)
        await store.put_user(user)

        unlocked = await evaluator.evaluate("alice", user, "critical", now)

        assert {a.id for a in unlocked} == {"first_bug", "critical_finder"}
        bonus = {t.achievement_id: t for t in await store.list_transactions("alice")}
        assert bonus["first_bug"].points == 100
        assert bonus["first_bug"].source == "achievement"
        assert bonus["first_bug"].severity is None
        assert bonus["critical_finder"].reason == "Achievement unlocked: Critical Hunter"

    async def test_bonus_not_added_to_totals_by_default(self, store, now):
        evaluator = AchievementEvaluator(store)
        user = _user(now, total_points=1000, bugs_found=1)
        await store.put_user(user)

        await evaluator.evaluate("alice", user, "critical", now)

        assert user.total_points == 1000
        assert (await store.get_user("alice")).total_points == 1000

    async def test_fold_option_adds_bonus_to_totals(self, store, now):
        evaluator = AchievementEvaluator(store, fold_bonus=True)
        user = _user(now, total_points=1000, weekly_points=1000, monthly_points=1000, bugs_found=1, rank=Tier.D)
        await store.put_user(user)

        await evaluator.evaluate("alice", user, "critical", now)

        stored = await store.get_user("alice")
        assert stored.total_points == 1600
        assert stored.weekly_points == 1600
        assert stored.rank == Tier.C

    async def test_each_achievement_unlocks_once(self, store, now):
        evaluator = AchievementEvaluator(store)
        user = _user(now, total_points=200, bugs_found=1)

        first = await evaluator.evaluate("alice", user, "medium", now)
        user.bugs_found = 2
        second = await evaluator.evaluate("alice", user, "medium", now + timedelta(hours=1))

        assert [a.id for a in first] == ["first_bug"]
        assert second == []
        assert len(await store.list_user_achievements("alice")) == 1

    async def test_unlock_records_time(self, store, now):
        evaluator = AchievementEvaluator(store)
        await evaluator.evaluate("alice", _user(now, bugs_found=1), "low", now)
        (held,) = await store.list_user_achievements("alice")
        assert held.achievement_id == "first_bug"
        assert held.unlocked_at == now

    async def test_nothing_to_unlock(self, store, now):
        evaluator = AchievementEvaluator(store)
        assert await evaluator.evaluate("alice", _user(now), None, now) == []
        assert await store.list_transactions("alice") == []


class TestThroughEngine:
    async def test_first_event_reports_unlocks(self, engine, now):
        result = await engine.apply_event("alice", "critical", "RCE", now=now)
        assert {a.id for a in result.achievements} == {"first_bug", "critical_finder"}
        assert result.ranking.total_points == 1000

    async def test_user_achievements_view(self, engine, now):
        await engine.apply_event("alice", "low", "typo", now=now)
        held = await engine.user_achievements("alice")
        assert [(a.id, at) for a, at in held] == [("first_bug", now)]
