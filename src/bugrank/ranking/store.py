"""Persistence port for the ranking engine.

The engine only talks to a ``RankingStore``. Production wires the SQL store
(``bugrank.ranking.sql_store``); tests and single-process tools use the
in-memory implementation below.
"""

from __future__ import annotations

import copy
from typing import Protocol

from bugrank.ranking.records import (
    PointsTransaction,
    UserAchievement,
    UserRanking,
    UserReward,
)


class RankingStore(Protocol):
    """get / list / put access to the engine's collections."""

    async def get_user(self, user_id: str, *, for_update: bool = False) -> UserRanking | None:
        """``for_update`` asks the backend to lock the row until ``commit``."""
        ...

    async def list_users(self) -> list[UserRanking]: ...

    async def put_user(self, user: UserRanking) -> None: ...

    async def add_transaction(self, transaction: PointsTransaction) -> None: ...

    async def list_transactions(self, user_id: str) -> list[PointsTransaction]: ...

    async def list_user_achievements(self, user_id: str) -> list[UserAchievement]: ...

    async def add_user_achievement(self, achievement: UserAchievement) -> None: ...

    async def list_user_rewards(self, user_id: str) -> list[UserReward]: ...

    async def count_redemptions(self, reward_id: str) -> int: ...

    async def add_user_reward(self, reward: UserReward) -> None: ...

    async def commit(self) -> None: ...


class InMemoryRankingStore:
    """Dict-backed store. Returns copies so callers never mutate stored state."""

    def __init__(self) -> None:
        self._users: dict[str, UserRanking] = {}
        self._transactions: list[PointsTransaction] = []
        self._achievements: list[UserAchievement] = []
        self._rewards: list[UserReward] = []

    async def get_user(self, user_id: str, *, for_update: bool = False) -> UserRanking | None:
        user = self._users.get(user_id)
        return copy.copy(user) if user is not None else None

    async def list_users(self) -> list[UserRanking]:
        return [copy.copy(u) for u in self._users.values()]

    async def put_user(self, user: UserRanking) -> None:
        self._users[user.user_id] = copy.copy(user)

    async def add_transaction(self, transaction: PointsTransaction) -> None:
        self._transactions.append(transaction)

    async def list_transactions(self, user_id: str) -> list[PointsTransaction]:
        return [t for t in self._transactions if t.user_id == user_id]

    async def list_user_achievements(self, user_id: str) -> list[UserAchievement]:
        return [a for a in self._achievements if a.user_id == user_id]

    async def add_user_achievement(self, achievement: UserAchievement) -> None:
        for existing in self._achievements:
            if (existing.user_id, existing.achievement_id) == (achievement.user_id, achievement.achievement_id):
                raise ValueError(
                    f"Achievement {achievement.achievement_id} already unlocked for {achievement.user_id}"
                )
        self._achievements.append(achievement)

    async def list_user_rewards(self, user_id: str) -> list[UserReward]:
        return [copy.copy(r) for r in self._rewards if r.user_id == user_id]

    async def count_redemptions(self, reward_id: str) -> int:
        return sum(1 for r in self._rewards if r.reward_id == reward_id)

    async def add_user_reward(self, reward: UserReward) -> None:
        self._rewards.append(copy.copy(reward))

    async def commit(self) -> None:
        return None
