"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bugrank.config import Settings
from bugrank.db.base import Base
from bugrank.main import create_app
from bugrank.ranking.engine import KeyedLocks, RankingEngine
from bugrank.ranking.router import get_ranking_engine
from bugrank.ranking.store import InMemoryRankingStore

import bugrank.db.models  # noqa: F401  (register tables on Base.metadata)


@pytest.fixture
def now() -> datetime:
    """A fixed Wednesday noon UTC."""
    return datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> Settings:
    return Settings(log_format="console")


@pytest.fixture
def store() -> InMemoryRankingStore:
    return InMemoryRankingStore()


@pytest.fixture
def engine(store: InMemoryRankingStore, settings: Settings) -> RankingEngine:
    """Engine over an in-memory store with its own lock registry."""
    return RankingEngine(store, redis=None, settings=settings, locks=KeyedLocks())


@pytest.fixture
def app(engine: RankingEngine) -> FastAPI:
    """Application with the ranking engine bound to the in-memory store."""
    application = create_app()
    application.dependency_overrides[get_ranking_engine] = lambda: engine
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the test application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory SQLite database per test."""
    sql_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with sql_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(sql_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await sql_engine.dispose()
