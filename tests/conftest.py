import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.api.deps import get_clock
from src.config import Settings, get_settings
from src.crud import lead as lead_crud
from src.database import Base, get_db
from src.main import app

# Import all models to register them with Base.metadata
from src.models import (  # noqa: F401
    Lead,
    QueueConfiguration,
    QueueEntry,
    QueueSequence,
    ScoringConfigurationRecord,
)
from src.schemas.lead import LeadCreate
from src.services.clock import FrozenClock
from src.services.queue import QueueManager
from src.services.scoring import ScoringEngine

FROZEN_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def get_test_settings(tmp_path: Path) -> Settings:
    """Get test settings with test database.

    TEST_DATABASE_URL points the suite at PostgreSQL (as in CI);
    otherwise each test gets its own SQLite file.
    """
    database_url = os.getenv("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    redis_host = os.getenv("TEST_REDIS_HOST", "localhost")
    return Settings(
        database_url=database_url,
        redis_url=f"redis://{redis_host}:6379/0",
        debug=True,
    )


@pytest.fixture(scope="function")
def test_settings(tmp_path: Path) -> Settings:
    """Get test settings."""
    return get_test_settings(tmp_path)


@pytest_asyncio.fixture(scope="function")
async def test_engine(test_settings: Settings):  # type: ignore[no-untyped-def]
    """Create test database engine."""
    connect_args: dict[str, Any] = {}
    if test_settings.database_url.startswith("sqlite"):
        # Concurrent sessions wait for the write lock instead of failing
        connect_args["timeout"] = 30

    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
        connect_args=connect_args,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:  # type: ignore[no-untyped-def]
    """Session factory for tests that need several independent sessions."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def frozen_clock() -> FrozenClock:
    """Clock pinned to 2025-01-15 12:00 UTC."""
    return FrozenClock(FROZEN_NOW)


@pytest.fixture
def scoring_engine(frozen_clock: FrozenClock, test_settings: Settings) -> ScoringEngine:
    return ScoringEngine(clock=frozen_clock, settings=test_settings)


@pytest.fixture
def queue_manager(
    scoring_engine: ScoringEngine, frozen_clock: FrozenClock, test_settings: Settings
) -> QueueManager:
    return QueueManager(scoring_engine=scoring_engine, clock=frozen_clock, settings=test_settings)


@pytest.fixture
def make_lead(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[Lead]]:
    """Factory creating leads; created 60 days before the frozen clock by default."""

    async def _make_lead(tenant_id: str = "tenant-a", **fields: Any) -> Lead:
        fields.setdefault("created_at", FROZEN_NOW - timedelta(days=60))
        return await lead_crud.create(
            db_session, obj_in=LeadCreate(tenant_id=tenant_id, **fields)
        )

    return _make_lead


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, test_settings: Settings, frozen_clock: FrozenClock
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    def override_get_settings() -> Settings:
        return test_settings

    def override_get_clock() -> FrozenClock:
        return frozen_clock

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = override_get_settings
    app.dependency_overrides[get_clock] = override_get_clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
