"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from redis.asyncio import Redis

from bugrank.database import get_session
from bugrank.redis_client import get_redis_or_none

get_db = get_session


async def get_redis_dep() -> AsyncGenerator[Redis | None, None]:
    """Yield the Redis client, or None when notifications are not configured."""
    yield get_redis_or_none()
