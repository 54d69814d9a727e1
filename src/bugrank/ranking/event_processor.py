"""Scoring event processor: applies one accepted submission to a user's ranking."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from bugrank.ranking.achievements import Achievement, AchievementEvaluator
from bugrank.ranking.rank_table import progress_for, tier_for
from bugrank.ranking.records import PointsTransaction, UserRanking
from bugrank.ranking.scoring import awarded_points, base_award, whole_days_between
from bugrank.ranking.store import RankingStore

logger = logging.getLogger(__name__)


@dataclass
class EventResult:
    ranking: UserRanking
    transaction: PointsTransaction
    achievements: list[Achievement] = field(default_factory=list)


class EventProcessor:
    """Turns (user, severity, reason) into updated ranking state plus a ledger entry."""

    def __init__(
        self,
        store: RankingStore,
        evaluator: AchievementEvaluator,
        streak_window_days: int = 1,
    ) -> None:
        self.store = store
        self.evaluator = evaluator
        self.streak_window_days = streak_window_days

    async def apply_event(
        self,
        user_id: str,
        severity: str,
        reason: str,
        *,
        bug_id: str | None = None,
        display_name: str | None = None,
        bounty: float = 0.0,
        now: datetime | None = None,
    ) -> EventResult:
        """Apply a scoring event.

        1. Base award from the severity table, scaled by the multiplier for
           the user's streak *before* this event (floored)
        2. Streak continues within the window, otherwise restarts at 1
        3. Totals, bug count, tier and progress updated
        4. Transaction appended, then achievements evaluated
        """
        if now is None:
            now = datetime.now(timezone.utc)

        base_award(severity)  # raises UnknownSeverityError before any state changes

        user = await self.store.get_user(user_id, for_update=True)
        if user is None:
            user = UserRanking(
                user_id=user_id,
                username=display_name or user_id,
                join_date=now,
            )
        points, multiplier = awarded_points(severity, user.streak)

        if user.last_activity is None:
            user.streak = 1
        elif whole_days_between(user.last_activity, now) <= self.streak_window_days:
            user.streak += 1
        else:
            user.streak = 1

        user.total_points += points
        user.weekly_points += points
        user.monthly_points += points
        user.bugs_found += 1
        user.total_earnings += bounty
        user.rank = tier_for(user.total_points)
        user.rank_progress, user.next_rank_points = progress_for(user.total_points, user.rank)
        user.last_activity = now
        await self.store.put_user(user)

        transaction = PointsTransaction(
            user_id=user_id,
            bug_id=bug_id,
            points=points,
            reason=reason,
            timestamp=now,
            severity=severity,
            multiplier=multiplier if multiplier > 1 else None,
        )
        await self.store.add_transaction(transaction)

        logger.info(
            "Awarded %d points to %s (severity=%s, multiplier=%.1f, streak=%d, rank=%s)",
            points, user_id, severity, multiplier, user.streak, user.rank.value,
        )

        achievements = await self.evaluator.evaluate(user_id, user, severity, now)
        return EventResult(ranking=user, transaction=transaction, achievements=achievements)
