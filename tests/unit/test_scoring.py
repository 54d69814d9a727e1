"""Scoring tests: severity awards, streak multipliers and the composite score."""

from __future__ import annotations

from datetime import timedelta

import pytest

from bugrank.ranking.records import UserRanking
from bugrank.ranking.scoring import (
    SEVERITY_POINTS,
    UnknownSeverityError,
    awarded_points,
    base_award,
    score,
    streak_multiplier,
    whole_days_between,
)


def _user(now, **kwargs) -> UserRanking:
    defaults = {"user_id": "alice", "username": "alice", "join_date": now, "last_activity": now}
    defaults.update(kwargs)
    return UserRanking(**defaults)


class TestSeverityTable:
    def test_base_awards(self):
        assert SEVERITY_POINTS == {"critical": 1000, "high": 500, "medium": 200, "low": 50}

    def test_unknown_severity_raises(self):
        with pytest.raises(UnknownSeverityError) as exc_info:
            base_award("informational")
        assert exc_info.value.severity == "informational"

    def test_unknown_severity_is_value_error(self):
        with pytest.raises(ValueError):
            base_award("")


class TestStreakMultiplier:
    @pytest.mark.parametrize(
        "streak,expected",
        [
            (0, 1.0),
            (2, 1.0),
            (3, 1.1),
            (6, 1.1),
            (7, 1.2),
            (13, 1.2),
            (14, 1.3),
            (29, 1.3),
            (30, 1.5),
            (365, 1.5),
        ],
    )
    def test_step_function(self, streak, expected):
        assert streak_multiplier(streak) == expected

    def test_critical_at_seven_day_streak(self):
        assert awarded_points("critical", 7) == (1200, 1.2)

    def test_points_are_floored(self):
        # 50 * 1.1 lands just above 55 in floating point
        assert awarded_points("low", 3) == (55, 1.1)

    @pytest.mark.parametrize("severity", ["critical", "high", "medium", "low"])
    @pytest.mark.parametrize("streak", [0, 3, 7, 14, 30])
    def test_award_never_below_base(self, severity, streak):
        points, _ = awarded_points(severity, streak)
        assert points >= SEVERITY_POINTS[severity]


class TestWholeDays:
    def test_no_previous_activity(self, now):
        assert whole_days_between(None, now) == 0

    def test_floors_partial_days(self, now):
        assert whole_days_between(now - timedelta(hours=47), now) == 1

    def test_exact_days(self, now):
        assert whole_days_between(now - timedelta(days=3), now) == 3


class TestCompositeScore:
    def test_formula(self, now):
        user = _user(
            now,
            total_points=1000,
            bugs_found=4,
            streak=7,
            last_activity=now - timedelta(days=2),
        )
        metrics = score(user, [user], now)

        assert metrics.points_weight == pytest.approx(400.0)
        assert metrics.activity_weight == pytest.approx(90 * 0.25)
        assert metrics.consistency_weight == pytest.approx(7 * 1.2 * 10 * 0.2)
        assert metrics.quality_weight == pytest.approx(250 * 0.15)
        assert metrics.total == pytest.approx(400 + 22.5 + 16.8 + 37.5)

    def test_activity_floors_at_zero_after_twenty_days(self, now):
        user = _user(now, last_activity=now - timedelta(days=20))
        assert score(user, now=now).activity_weight == 0

        user = _user(now, last_activity=now - timedelta(days=90))
        assert score(user, now=now).activity_weight == 0

    def test_quality_is_zero_without_bugs(self, now):
        user = _user(now, total_points=500, bugs_found=0)
        assert score(user, now=now).quality_weight == 0

    def test_score_does_not_touch_user(self, now):
        user = _user(now, total_points=1234, bugs_found=3, streak=4)
        before = (user.total_points, user.rank, user.streak)
        score(user, [user], now)
        assert (user.total_points, user.rank, user.streak) == before
