"""Redis client for ranking notifications and leaderboard snapshots.

Redis is optional for scoring: when the pool is not initialised, or a
publish fails, the ranking state change still stands.
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 50) -> None:
    """Create the shared client. Responses are decoded to str."""
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis_or_none() -> redis.Redis | None:
    return _client


async def publish_json(client: redis.Redis | None, channel: str, payload: dict[str, Any]) -> bool:
    """Publish ``payload`` as JSON. Returns False when nothing was sent."""
    if client is None:
        return False
    try:
        await client.publish(channel, json.dumps(payload, default=str))
    except Exception:
        logger.warning("Failed to publish %s notification", channel, exc_info=True)
        return False
    return True
