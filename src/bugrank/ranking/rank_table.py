"""Rank table and tier resolution.

Tier is a pure function of cumulative points. Ranges are inclusive, contiguous
and non-overlapping; the top tier is unbounded.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bugrank.ranking.records import UserRanking


class Tier(str, Enum):
    """Rank tiers, declared lowest to highest."""

    E = "E"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"


@dataclass(frozen=True)
class RankConfig:
    tier: Tier
    min_points: int
    max_points: float
    description: str
    benefits: tuple[str, ...]
    weekly_requirement: int = 0


RANK_CONFIGS: dict[Tier, RankConfig] = {
    Tier.E: RankConfig(
        tier=Tier.E,
        min_points=0,
        max_points=499,
        description="Novice Bug Hunter",
        benefits=("Access to basic tutorials", "Community forum access"),
    ),
    Tier.D: RankConfig(
        tier=Tier.D,
        min_points=500,
        max_points=1499,
        description="Junior Security Researcher",
        benefits=("Priority support", "Advanced tutorials", "Monthly webinars"),
        weekly_requirement=50,
    ),
    Tier.C: RankConfig(
        tier=Tier.C,
        min_points=1500,
        max_points=3999,
        description="Security Analyst",
        benefits=("Beta feature access", "Direct mentor contact", "Certification discounts"),
        weekly_requirement=100,
    ),
    Tier.B: RankConfig(
        tier=Tier.B,
        min_points=4000,
        max_points=7999,
        description="Senior Security Expert",
        benefits=("VIP support", "Conference invitations", "Research collaboration"),
        weekly_requirement=150,
    ),
    Tier.A: RankConfig(
        tier=Tier.A,
        min_points=8000,
        max_points=14999,
        description="Elite Bug Hunter",
        benefits=("Exclusive events", "Industry partnerships", "Speaking opportunities"),
        weekly_requirement=200,
    ),
    Tier.S: RankConfig(
        tier=Tier.S,
        min_points=15000,
        max_points=math.inf,
        description="Legendary Security Master",
        benefits=("Hall of Fame", "Advisory board invitation", "Unlimited access"),
        weekly_requirement=250,
    ),
}

TIER_ORDER: tuple[Tier, ...] = tuple(Tier)
TOP_TIER = TIER_ORDER[-1]


def tier_for(points: int) -> Tier:
    """Return the tier whose inclusive range contains ``points``."""
    for tier, config in RANK_CONFIGS.items():
        if config.min_points <= points <= config.max_points:
            return tier
    # Unreachable for points >= 0 while the ranges stay contiguous
    return Tier.E


def progress_for(points: int, tier: Tier) -> tuple[float, int]:
    """Return ``(progress_percent, points_to_next_tier)`` within ``tier``."""
    if tier is TOP_TIER:
        return 100.0, 0

    config = RANK_CONFIGS[tier]
    span = config.max_points - config.min_points
    progress = min(100.0, (points - config.min_points) / span * 100)
    points_to_next = int(config.max_points) + 1 - points
    return progress, points_to_next


def tier_index(tier: Tier) -> int:
    return TIER_ORDER.index(Tier(tier))


def is_rank_at_least(tier: Tier, required: Tier) -> bool:
    """True if ``tier`` is the same as or above ``required`` (E<D<C<B<A<S)."""
    return tier_index(tier) >= tier_index(required)


def benefits_for(tier: Tier) -> list[str]:
    return list(RANK_CONFIGS[Tier(tier)].benefits)


def weekly_requirement(tier: Tier) -> int:
    return RANK_CONFIGS[Tier(tier)].weekly_requirement


def is_rank_at_risk(user: UserRanking) -> bool:
    """A user is at risk when their tier has a weekly quota they have not met."""
    requirement = weekly_requirement(user.rank)
    return requirement > 0 and user.weekly_points < requirement
