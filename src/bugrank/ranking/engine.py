"""Ranking engine facade, the single entry point for mutations and read views.

Every mutation runs under a per-user asyncio lock (plus a per-reward lock for
stock-limited items), reads current state through the store, writes the new
state and commits. Notifications go out over Redis pub/sub after commit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from redis.asyncio import Redis

from bugrank.config import Settings, get_settings
from bugrank.ranking.achievements import ACHIEVEMENTS, Achievement, AchievementEvaluator
from bugrank.ranking.event_processor import EventProcessor, EventResult
from bugrank.ranking.leaderboard import LeaderboardEntry, load_previous_positions, order_leaderboard
from bugrank.ranking.rank_table import benefits_for, is_rank_at_risk, weekly_requirement
from bugrank.ranking.records import PointsTransaction, UserRanking, UserReward
from bugrank.ranking.rewards import RedeemResult, RewardItem, RewardsLedger
from bugrank.ranking.store import RankingStore
from bugrank.redis_client import publish_json

logger = logging.getLogger(__name__)


class KeyedLocks:
    """Reference-counted asyncio locks keyed by string.

    An entry lives only while some task holds or waits on it, so the map
    stays bounded by the number of in-flight mutations.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._refs[key] = self._refs.get(key, 0) + 1
        return lock

    def _checkin(self, key: str) -> None:
        self._refs[key] -= 1
        if self._refs[key] == 0:
            del self._refs[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """Acquire locks in the given order, release in reverse."""
        acquired: list[asyncio.Lock] = []
        checked_out: list[str] = []
        try:
            for key in keys:
                lock = self._checkout(key)
                checked_out.append(key)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)


# Shared across per-request engines in one process
_default_locks = KeyedLocks()


@dataclass(frozen=True)
class RankInfo:
    ranking: UserRanking
    benefits: list[str]
    weekly_requirement: int
    at_risk: bool


class RankingEngine:
    """Owns all ranking, points, achievement and reward logic."""

    def __init__(
        self,
        store: RankingStore,
        redis: Redis | None = None,
        settings: Settings | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.store = store
        self.redis = redis
        self.settings = settings or get_settings()
        self.locks = locks or _default_locks
        self.evaluator = AchievementEvaluator(store, fold_bonus=self.settings.fold_achievement_bonus)
        self.processor = EventProcessor(
            store, self.evaluator, streak_window_days=self.settings.streak_window_days,
        )
        self.ledger = RewardsLedger(store, recompute_tier=self.settings.recompute_tier_on_redeem)

    # ── Mutations ──

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
        """Score an accepted submission for ``user_id``."""
        async with self.locks.hold(f"user:{user_id}"):
            result = await self.processor.apply_event(
                user_id, severity, reason,
                bug_id=bug_id, display_name=display_name, bounty=bounty, now=now,
            )
            await self.store.commit()

        await self._publish("pubsub:points_awarded", {
            "user_id": user_id,
            "points": result.transaction.points,
            "severity": severity,
            "multiplier": result.transaction.multiplier,
            "total_points": result.ranking.total_points,
            "rank": result.ranking.rank.value,
        })
        for achievement in result.achievements:
            await self._publish("pubsub:achievement_unlocked", {
                "user_id": user_id,
                "achievement_id": achievement.id,
                "name": achievement.name,
                "rarity": achievement.rarity,
                "points_reward": achievement.points_reward,
            })
        return result

    async def redeem(
        self, user_id: str, reward_id: str, now: datetime | None = None,
    ) -> RedeemResult:
        """Redeem a catalog reward. Ineligibility comes back in the result."""
        keys = [f"user:{user_id}"]
        reward = self.ledger.catalog.get(reward_id)
        if reward is not None and reward.limited_quantity is not None:
            keys.append(f"reward:{reward_id}")

        async with self.locks.hold(*keys):
            result = await self.ledger.redeem(user_id, reward_id, now=now)
            # a refusal wrote nothing; committing still releases the row lock
            await self.store.commit()

        if result.success:
            await self._publish("pubsub:reward_redeemed", {
                "user_id": user_id,
                "reward_id": reward_id,
            })
        else:
            logger.info("Redemption of %s by %s refused: %s", reward_id, user_id, result.message)
        return result

    async def reset_weekly_points(self) -> int:
        return await self._reset_window("weekly_points")

    async def reset_monthly_points(self) -> int:
        return await self._reset_window("monthly_points")

    async def _reset_window(self, field_name: str) -> int:
        """Zero a rolling window counter for every user. Returns users touched."""
        touched = 0
        for user in await self.store.list_users():
            async with self.locks.hold(f"user:{user.user_id}"):
                current = await self.store.get_user(user.user_id, for_update=True)
                if current is not None and getattr(current, field_name) != 0:
                    setattr(current, field_name, 0)
                    await self.store.put_user(current)
                    touched += 1
                await self.store.commit()
        logger.info("Reset %s for %d users", field_name, touched)
        return touched

    # ── Read views ──

    async def leaderboard(
        self, limit: int | None = None, now: datetime | None = None,
    ) -> list[LeaderboardEntry]:
        users = await self.store.list_users()
        previous = await load_previous_positions(self.redis)
        entries = order_leaderboard(users, now=now, previous_positions=previous)
        return entries[:limit] if limit else entries

    async def get_user_ranking(self, user_id: str) -> UserRanking | None:
        return await self.store.get_user(user_id)

    async def get_rank_info(self, user_id: str) -> RankInfo | None:
        user = await self.store.get_user(user_id)
        if user is None:
            return None
        return RankInfo(
            ranking=user,
            benefits=benefits_for(user.rank),
            weekly_requirement=weekly_requirement(user.rank),
            at_risk=is_rank_at_risk(user),
        )

    async def transaction_history(self, user_id: str) -> list[PointsTransaction]:
        return await self.store.list_transactions(user_id)

    async def user_achievements(self, user_id: str) -> list[tuple[Achievement, datetime]]:
        """Unlocked achievements with their unlock time, catalog entries resolved."""
        return [
            (ACHIEVEMENTS[ua.achievement_id], ua.unlocked_at)
            for ua in await self.store.list_user_achievements(user_id)
            if ua.achievement_id in ACHIEVEMENTS
        ]

    async def user_rewards(self, user_id: str) -> list[UserReward]:
        return await self.store.list_user_rewards(user_id)

    async def available_rewards(self, user_id: str) -> list[RewardItem]:
        user = await self.store.get_user(user_id)
        if user is None:
            return []
        return await self.ledger.available_rewards(user)

    async def locked_rewards(self, user_id: str) -> list[RewardItem]:
        user = await self.store.get_user(user_id)
        if user is None:
            return list(self.ledger.catalog.values())
        return await self.ledger.locked_rewards(user)

    async def _publish(self, channel: str, payload: dict) -> None:
        payload["ts"] = datetime.now(timezone.utc).isoformat()
        await publish_json(self.redis, channel, payload)
