"""Build initial rankings from historical accepted submissions.

Used once when the engine is introduced on a platform that already has
reviewed reports. Historical awards use the base severity table only;
streak multipliers and achievement bonuses apply to new events.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from bugrank.ranking.rank_table import progress_for, tier_for
from bugrank.ranking.records import UserRanking
from bugrank.ranking.scoring import base_award
from bugrank.ranking.store import RankingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoricalSubmission:
    author: str
    severity: str
    submitted_at: datetime
    bounty: float = 0.0


def consecutive_day_streak(days: Iterable[date]) -> int:
    """Length of the run of consecutive calendar days ending at the latest day."""
    unique = sorted(set(days), reverse=True)
    if not unique:
        return 0
    streak = 1
    for newer, older in zip(unique, unique[1:]):
        if newer - older != timedelta(days=1):
            break
        streak += 1
    return streak


def build_rankings(
    submissions: Iterable[HistoricalSubmission], now: datetime | None = None,
) -> list[UserRanking]:
    """Aggregate submissions per author into fresh ranking records."""
    if now is None:
        now = datetime.now(timezone.utc)
    week_start = (now - timedelta(days=now.weekday())).date()
    month_start = now.date().replace(day=1)

    by_author: defaultdict[str, list[HistoricalSubmission]] = defaultdict(list)
    for submission in submissions:
        base_award(submission.severity)  # reject unknown severities up front
        by_author[submission.author].append(submission)

    rankings = []
    for author, items in by_author.items():
        total = sum(base_award(s.severity) for s in items)
        weekly = sum(base_award(s.severity) for s in items if s.submitted_at.date() >= week_start)
        monthly = sum(base_award(s.severity) for s in items if s.submitted_at.date() >= month_start)
        first = min(s.submitted_at for s in items)
        last = max(s.submitted_at for s in items)
        tier = tier_for(total)
        progress, to_next = progress_for(total, tier)

        rankings.append(UserRanking(
            user_id=author,
            username=author,
            join_date=first,
            total_points=total,
            rank=tier,
            bugs_found=len(items),
            total_earnings=sum(s.bounty for s in items),
            weekly_points=weekly,
            monthly_points=monthly,
            streak=consecutive_day_streak(s.submitted_at.date() for s in items),
            last_activity=last,
            rank_progress=progress,
            next_rank_points=to_next,
        ))
    return rankings


async def backfill_rankings(
    store: RankingStore,
    submissions: Iterable[HistoricalSubmission],
    now: datetime | None = None,
) -> int:
    """Insert rankings for authors that have none yet. Returns records created."""
    created = 0
    for ranking in build_rankings(submissions, now):
        if await store.get_user(ranking.user_id) is not None:
            continue
        await store.put_user(ranking)
        created += 1
    await store.commit()
    logger.info("Backfilled %d rankings", created)
    return created
