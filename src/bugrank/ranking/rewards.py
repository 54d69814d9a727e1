"""Rewards catalog and redemption ledger.

Redemption failures are returned as ``RedeemResult`` values, never raised,
so callers can render the message inline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from bugrank.ranking.rank_table import Tier, is_rank_at_least, progress_for, tier_for
from bugrank.ranking.records import UserRanking, UserReward
from bugrank.ranking.store import RankingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardItem:
    id: str
    name: str
    description: str
    points_cost: int
    category: str  # badge | perk | physical | access
    available: bool = True
    limited_quantity: int | None = None
    required_rank: Tier | None = None


REWARD_CATALOG: dict[str, RewardItem] = {
    r.id: r
    for r in (
        RewardItem(
            id="premium_badge",
            name="Premium Hunter Badge",
            description="Exclusive badge displayed on your profile",
            points_cost=5000,
            category="badge",
        ),
        RewardItem(
            id="hall_of_fame",
            name="Hall of Fame Entry",
            description="Permanent recognition in our Hall of Fame",
            points_cost=10000,
            category="perk",
            required_rank=Tier.A,
        ),
        RewardItem(
            id="elite_status",
            name="Elite Hunter Status",
            description="Special status with exclusive perks and access",
            points_cost=15000,
            category="access",
            required_rank=Tier.S,
        ),
        RewardItem(
            id="security_hoodie",
            name="Limited Edition Security Hoodie",
            description="Premium hoodie with cybersecurity design",
            points_cost=8000,
            category="physical",
            limited_quantity=100,
        ),
        RewardItem(
            id="conference_ticket",
            name="Security Conference Ticket",
            description="Free ticket to major cybersecurity conference",
            points_cost=12000,
            category="access",
            limited_quantity=20,
            required_rank=Tier.B,
        ),
        RewardItem(
            id="mentorship_session",
            name="1-on-1 Mentorship Session",
            description="Personal mentorship with industry expert",
            points_cost=6000,
            category="access",
            limited_quantity=50,
        ),
    )
}


class RedeemFailure(str, Enum):
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    INSUFFICIENT_POINTS = "insufficient_points"
    RANK_TOO_LOW = "rank_too_low"
    OUT_OF_STOCK = "out_of_stock"


@dataclass(frozen=True)
class RedeemResult:
    success: bool
    message: str
    failure: RedeemFailure | None = None
    reward: UserReward | None = None

    @classmethod
    def failed(cls, failure: RedeemFailure, message: str) -> RedeemResult:
        return cls(success=False, message=message, failure=failure)


class RewardsLedger:
    """Validates and records point-for-reward redemptions."""

    def __init__(
        self,
        store: RankingStore,
        catalog: dict[str, RewardItem] | None = None,
        recompute_tier: bool = True,
    ) -> None:
        self.store = store
        self.catalog = REWARD_CATALOG if catalog is None else catalog
        self.recompute_tier = recompute_tier

    async def _in_stock(self, reward: RewardItem) -> bool:
        if reward.limited_quantity is None:
            return True
        return await self.store.count_redemptions(reward.id) < reward.limited_quantity

    async def redeem(
        self, user_id: str, reward_id: str, now: datetime | None = None,
    ) -> RedeemResult:
        """Redeem a catalog item. Checks run in order; the first failure wins."""
        if now is None:
            now = datetime.now(timezone.utc)

        user = await self.store.get_user(user_id, for_update=True)
        reward = self.catalog.get(reward_id)

        if user is None or reward is None:
            return RedeemResult.failed(RedeemFailure.NOT_FOUND, "User or reward not found")

        if not reward.available:
            return RedeemResult.failed(RedeemFailure.UNAVAILABLE, "Reward is no longer available")

        if user.total_points < reward.points_cost:
            return RedeemResult.failed(RedeemFailure.INSUFFICIENT_POINTS, "Insufficient points")

        if reward.required_rank is not None and not is_rank_at_least(user.rank, reward.required_rank):
            return RedeemResult.failed(
                RedeemFailure.RANK_TOO_LOW,
                f"Requires {reward.required_rank.value} rank or higher",
            )

        if not await self._in_stock(reward):
            return RedeemResult.failed(RedeemFailure.OUT_OF_STOCK, "Reward is out of stock")

        # Only path that decreases total_points
        user.total_points -= reward.points_cost
        if self.recompute_tier:
            user.rank = tier_for(user.total_points)
            user.rank_progress, user.next_rank_points = progress_for(user.total_points, user.rank)
        await self.store.put_user(user)

        user_reward = UserReward(user_id=user_id, reward_id=reward_id, redeemed_at=now)
        await self.store.add_user_reward(user_reward)

        logger.info(
            "Reward %s redeemed by %s for %d points", reward_id, user_id, reward.points_cost,
        )
        return RedeemResult(success=True, message="Reward redeemed successfully!", reward=user_reward)

    async def available_rewards(self, user: UserRanking) -> list[RewardItem]:
        """Items the user may redeem by rank and stock. Point cost is not considered."""
        items = []
        for reward in self.catalog.values():
            if not reward.available:
                continue
            if reward.required_rank is not None and not is_rank_at_least(user.rank, reward.required_rank):
                continue
            if not await self._in_stock(reward):
                continue
            items.append(reward)
        return items

    async def locked_rewards(self, user: UserRanking) -> list[RewardItem]:
        available = {r.id for r in await self.available_rewards(user)}
        return [r for r in self.catalog.values() if r.id not in available]
