"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bugrank.config import get_settings
from bugrank.database import close_db, create_tables, init_db
from bugrank.health.router import router as health_router
from bugrank.middleware import setup_middleware
from bugrank.ranking.router import router as ranking_router
from bugrank.redis_client import close_redis, init_redis


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    if settings.create_tables_on_startup:
        await create_tables()

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Bug Bounty Ranking API",
        description="Points, tiers, achievements and rewards for bug bounty hunters",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(ranking_router)

    return app


app = create_app()
