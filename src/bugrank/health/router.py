"""Liveness, readiness and version probes."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bugrank.config import get_settings
from bugrank.db.models import UserRankingRow
from bugrank.dependencies import get_db
from bugrank.redis_client import get_redis_or_none

router = APIRouter()


async def _check_database(db: AsyncSession) -> str:
    # Touches the rankings table so a missing schema shows up as not ready
    try:
        await db.execute(select(func.count()).select_from(UserRankingRow))
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


async def _check_redis() -> str:
    redis = get_redis_or_none()
    if redis is None:
        return "disabled"
    try:
        await redis.ping()
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe — returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe.

    The database is required. Redis only carries notifications and
    leaderboard movement, so "disabled" still counts as ready.
    """
    checks = {
        "database": await _check_database(db),
        "redis": await _check_redis(),
    }
    ready = all(v in ("ok", "disabled") for v in checks.values())
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "service": "bugrank",
        "version": settings.app_version,
        "environment": settings.environment,
    }
