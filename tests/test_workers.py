"""Tests for Celery tasks."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.crud import lead as lead_crud
from src.crud import queue_entry as queue_entry_crud
from src.database import Base
from src.models import LeadSource, QueuePriority
from src.schemas import LeadCreate
from src.services.queue import QueueManager
from src.workers import queue_tasks, score_tasks
from src.workers.celery_app import celery_app


@pytest.fixture
def worker_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Point the tasks at a fresh SQLite database."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'worker.db'}"

    @asynccontextmanager
    async def sqlite_sessions():
        engine = create_async_engine(url)
        try:
            yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        finally:
            await engine.dispose()

    async def create_tables() -> None:
        engine = create_async_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(create_tables())
    monkeypatch.setattr(queue_tasks, "task_session_factory", sqlite_sessions)
    monkeypatch.setattr(score_tasks, "task_session_factory", sqlite_sessions)
    return url


def seed(url: str, coro_factory) -> None:
    async def _seed() -> None:
        engine = create_async_engine(url)
        async with async_sessionmaker(engine, expire_on_commit=False)() as session:
            await coro_factory(session)
        await engine.dispose()

    asyncio.run(_seed())


class TestCeleryApp:
    """Tests for the Celery application setup."""

    def test_sweep_is_scheduled(self) -> None:
        schedule = celery_app.conf.beat_schedule

        assert schedule["sweep-queues"]["task"] == "src.workers.queue_tasks.sweep_queues"
        assert schedule["sweep-queues"]["schedule"] == timedelta(minutes=5)


class TestSweepQueues:
    """Tests for the periodic queue sweep."""

    def test_expires_overdue_entries(self, worker_db: str) -> None:
        long_ago = datetime.now(timezone.utc) - timedelta(days=2)

        async def add_overdue_entry(session: AsyncSession) -> None:
            await queue_entry_crud.create_many(
                session,
                tenant_id="tenant-a",
                entries=[{"lead_id": "lead-1", "priority": QueuePriority.NORMAL, "score": 50}],
                max_size=10,
                now=long_ago,
                expires_at=long_ago + timedelta(hours=1),
            )

        seed(worker_db, add_overdue_entry)

        result = queue_tasks.sweep_queues()

        assert result == {
            "success": True,
            "tenants": 1,
            "expired": 1,
            "released": 0,
            "failed_tenants": [],
        }

    def test_database_error_skips_only_that_tenant(
        self, worker_db: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        long_ago = datetime.now(timezone.utc) - timedelta(days=2)

        async def add_overdue_entries(session: AsyncSession) -> None:
            for tenant_id in ("tenant-a", "tenant-b"):
                await queue_entry_crud.create_many(
                    session,
                    tenant_id=tenant_id,
                    entries=[{"lead_id": "lead-1", "priority": QueuePriority.NORMAL, "score": 50}],
                    max_size=10,
                    now=long_ago,
                    expires_at=long_ago + timedelta(hours=1),
                )

        seed(worker_db, add_overdue_entries)
        expire_sweep = QueueManager.expire_sweep

        async def failing_sweep(manager, db, tenant_id):
            if tenant_id == "tenant-a":
                raise OperationalError("UPDATE queue_entries", {}, Exception("disk I/O error"))
            return await expire_sweep(manager, db, tenant_id)

        monkeypatch.setattr(QueueManager, "expire_sweep", failing_sweep)

        result = queue_tasks.sweep_queues()

        assert result["success"] is False
        assert result["tenants"] == 2
        assert result["expired"] == 1
        assert result["failed_tenants"] == ["tenant-a"]

    def test_no_tenants(self, worker_db: str) -> None:
        result = queue_tasks.sweep_queues()

        assert result["tenants"] == 0
        assert result["success"] is True


class TestRecalculateScores:
    """Tests for the background re-scoring task."""

    def test_rescores_tenant_leads(self, worker_db: str) -> None:
        async def add_leads(session: AsyncSession) -> None:
            for lead_id, source in (("a", LeadSource.REFERRAL), ("b", LeadSource.COLD_CALL)):
                await lead_crud.create(
                    session,
                    obj_in=LeadCreate(lead_id=lead_id, tenant_id="tenant-a", source=source),
                )

        seed(worker_db, add_leads)

        result = score_tasks.recalculate_scores_task(tenant_id="tenant-a")

        assert result["success"] is True
        assert result["leads_processed"] == 2
        assert result["failed"] == []

    def test_saves_new_scores(self, worker_db: str) -> None:
        async def add_lead(session: AsyncSession) -> None:
            await lead_crud.create(
                session,
                obj_in=LeadCreate(lead_id="a", tenant_id="tenant-a", source=LeadSource.REFERRAL),
            )

        seed(worker_db, add_lead)

        score_tasks.recalculate_scores_task(lead_ids=["a"])

        saved: dict = {}

        async def read_score(session: AsyncSession) -> None:
            saved["lead"] = await lead_crud.get_by_lead_id(session, lead_id="a")

        seed(worker_db, read_score)
        assert saved["lead"].score == 7.2
        assert saved["lead"].scored_at is not None
