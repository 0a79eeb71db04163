"""Tests for CRUD operations."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud import lead, queue_config, queue_entry, scoring_config
from src.models import LeadSource, LeadStatus, QueueEntryStatus, QueuePriority, QueueSequence
from src.schemas import LeadCreate

TENANT = "tenant-a"
FROZEN_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def test_lead(db_session: AsyncSession):
    """Create a test lead."""
    lead_data = LeadCreate(
        lead_id="lead-1",
        tenant_id=TENANT,
        source=LeadSource.REFERRAL,
        property_preferences={"min_price": 200000, "max_price": 300000},
        created_at=FROZEN_NOW - timedelta(days=5),
    )
    return await lead.create(db_session, obj_in=lead_data)


@pytest_asyncio.fixture
async def queue_ready(db_session: AsyncSession):
    """Create the tenant's queue configuration and position counter."""
    return await queue_config.get_or_create(
        db_session, tenant_id=TENANT, defaults={"max_queue_size": 10}, now=FROZEN_NOW
    )


def entry_values(lead_id: str, priority: QueuePriority = QueuePriority.NORMAL) -> dict:
    return {"lead_id": lead_id, "priority": priority, "score": 50.0}


async def create_entries(db: AsyncSession, *lead_ids: str, max_size: int = 10):
    return await queue_entry.create_many(
        db,
        tenant_id=TENANT,
        entries=[entry_values(lead_id) for lead_id in lead_ids],
        max_size=max_size,
        now=FROZEN_NOW,
        expires_at=FROZEN_NOW + timedelta(hours=24),
    )


class TestLeadCRUD:
    """Tests for Lead CRUD operations."""

    @pytest.mark.asyncio
    async def test_create_lead(self, test_lead) -> None:
        """Nested documents are stored as plain JSON."""
        assert test_lead.id is not None
        assert test_lead.lead_id == "lead-1"
        assert test_lead.status == LeadStatus.NEW
        assert test_lead.source == LeadSource.REFERRAL
        assert test_lead.property_preferences["min_price"] == 200000
        assert test_lead.communication_history == []
        assert test_lead.score is None

    @pytest.mark.asyncio
    async def test_get_by_lead_id(self, db_session: AsyncSession, test_lead) -> None:
        result = await lead.get_by_lead_id(db_session, lead_id="lead-1")

        assert result is not None
        assert result.id == test_lead.id
        assert await lead.get_by_lead_id(db_session, lead_id="missing") is None

    @pytest.mark.asyncio
    async def test_get_ids_by_tenant_oldest_first(self, db_session: AsyncSession) -> None:
        for lead_id, age_days in (("newer", 1), ("older", 10), ("other-tenant", 20)):
            await lead.create(
                db_session,
                obj_in=LeadCreate(
                    lead_id=lead_id,
                    tenant_id="tenant-b" if lead_id == "other-tenant" else TENANT,
                    created_at=FROZEN_NOW - timedelta(days=age_days),
                ),
            )

        assert await lead.get_ids_by_tenant(db_session, tenant_id=TENANT) == ["older", "newer"]
        assert await lead.get_ids_by_tenant(db_session, tenant_id=TENANT, limit=1) == ["older"]

    @pytest.mark.asyncio
    async def test_update_score_touches_only_score(
        self, db_session: AsyncSession, test_lead
    ) -> None:
        updated = await lead.update_score(
            db_session, lead_id="lead-1", score=84.0, scored_at=FROZEN_NOW
        )

        await db_session.refresh(test_lead)
        assert updated is True
        assert test_lead.score == 84.0
        assert test_lead.scored_at == FROZEN_NOW
        assert test_lead.status == LeadStatus.NEW
        assert test_lead.source == LeadSource.REFERRAL

    @pytest.mark.asyncio
    async def test_update_score_missing_lead(self, db_session: AsyncSession) -> None:
        updated = await lead.update_score(
            db_session, lead_id="missing", score=10.0, scored_at=FROZEN_NOW
        )
        assert updated is False


class TestQueueConfigCRUD:
    """Tests for QueueConfiguration CRUD operations."""

    @pytest.mark.asyncio
    async def test_get_or_create_creates_counter(
        self, db_session: AsyncSession, queue_ready
    ) -> None:
        assert queue_ready.tenant_id == TENANT
        assert queue_ready.max_queue_size == 10
        assert queue_ready.max_leads_per_agent == 10

        sequence = await db_session.get(QueueSequence, TENANT)
        assert sequence is not None
        assert sequence.last_position == 0

    @pytest.mark.asyncio
    async def test_get_or_create_returns_existing(
        self, db_session: AsyncSession, queue_ready
    ) -> None:
        again = await queue_config.get_or_create(
            db_session, tenant_id=TENANT, defaults={"max_queue_size": 99}, now=FROZEN_NOW
        )

        assert again.id == queue_ready.id
        assert again.max_queue_size == 10


class TestQueueEntryCRUD:
    """Tests for QueueEntry CRUD operations."""

    @pytest.mark.asyncio
    async def test_create_many_assigns_increasing_positions(
        self, db_session: AsyncSession, queue_ready
    ) -> None:
        first = await create_entries(db_session, "lead-1", "lead-2")
        second = await create_entries(db_session, "lead-3")

        assert [e.queue_position for e in first + second] == [1, 2, 3]
        assert all(e.status == QueueEntryStatus.PENDING for e in first + second)
        assert first[0].priority_rank == QueuePriority.NORMAL.rank

    @pytest.mark.asyncio
    async def test_create_many_without_counter_row(self, db_session: AsyncSession) -> None:
        """The counter is created on first use if the tenant has none yet."""
        entries = await create_entries(db_session, "lead-1")

        assert entries[0].queue_position == 1

    @pytest.mark.asyncio
    async def test_compare_and_set_guard(self, db_session: AsyncSession, queue_ready) -> None:
        [entry] = await create_entries(db_session, "lead-1")

        missed = await queue_entry.compare_and_set(
            db_session,
            tenant_id=TENANT,
            entry_id=entry.id,
            expected=QueueEntryStatus.CLAIMED,
            values={"status": QueueEntryStatus.CANCELLED},
        )
        assert missed is None

        updated = await queue_entry.compare_and_set(
            db_session,
            tenant_id=TENANT,
            entry_id=entry.id,
            expected=QueueEntryStatus.PENDING,
            values={"status": QueueEntryStatus.CANCELLED},
        )
        assert updated is not None
        assert updated.status == QueueEntryStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_compare_and_set_agent_limit(
        self, db_session: AsyncSession, queue_ready
    ) -> None:
        first, second = await create_entries(db_session, "lead-1", "lead-2")
        assign = {"status": QueueEntryStatus.ASSIGNED, "assigned_to": "agent-1"}

        assert await queue_entry.compare_and_set(
            db_session,
            tenant_id=TENANT,
            entry_id=first.id,
            expected=QueueEntryStatus.PENDING,
            values=assign,
            agent_limit=("agent-1", 1),
        )
        assert (
            await queue_entry.compare_and_set(
                db_session,
                tenant_id=TENANT,
                entry_id=second.id,
                expected=QueueEntryStatus.PENDING,
                values=assign,
                agent_limit=("agent-1", 1),
            )
            is None
        )
        assert await queue_entry.agent_load(db_session, tenant_id=TENANT, agent_id="agent-1") == 1

    @pytest.mark.asyncio
    async def test_get_for_tenant_scoped(self, db_session: AsyncSession, queue_ready) -> None:
        [entry] = await create_entries(db_session, "lead-1")

        assert await queue_entry.get_for_tenant(db_session, tenant_id=TENANT, entry_id=entry.id)
        assert (
            await queue_entry.get_for_tenant(db_session, tenant_id="tenant-b", entry_id=entry.id)
            is None
        )

    @pytest.mark.asyncio
    async def test_delete_for_tenant(self, db_session: AsyncSession, queue_ready) -> None:
        [entry] = await create_entries(db_session, "lead-1")

        assert not await queue_entry.delete_for_tenant(
            db_session, tenant_id="tenant-b", entry_id=entry.id
        )
        assert await queue_entry.delete_for_tenant(db_session, tenant_id=TENANT, entry_id=entry.id)

    @pytest.mark.asyncio
    async def test_counts(self, db_session: AsyncSession, queue_ready) -> None:
        first, _ = await create_entries(db_session, "lead-1", "lead-2")
        await queue_entry.compare_and_set(
            db_session,
            tenant_id=TENANT,
            entry_id=first.id,
            expected=QueueEntryStatus.PENDING,
            values={"status": QueueEntryStatus.EXPIRED},
        )

        counts = await queue_entry.count_by_status(db_session, tenant_id=TENANT)

        assert counts[QueueEntryStatus.PENDING] == 1
        assert counts[QueueEntryStatus.EXPIRED] == 1
        assert counts[QueueEntryStatus.CLAIMED] == 0
        assert await queue_entry.count_active(db_session, tenant_id=TENANT) == 1

    @pytest.mark.asyncio
    async def test_tenant_ids(self, db_session: AsyncSession, queue_ready) -> None:
        await queue_config.get_or_create(db_session, tenant_id="tenant-c", defaults={}, now=FROZEN_NOW)
        await create_entries(db_session, "lead-1")

        assert await queue_entry.tenant_ids(db_session) == ["tenant-a", "tenant-c"]


class TestScoringConfigCRUD:
    """Tests for stored scoring configuration CRUD operations."""

    @pytest.mark.asyncio
    async def test_replace_bumps_version(self, db_session: AsyncSession) -> None:
        data = {"factors": [], "thresholds": {"hot": 80, "warm": 60, "cold": 40}}
        created = await scoring_config.get_or_create(
            db_session, scope="tenant-a", defaults=data, now=FROZEN_NOW
        )
        assert created.version == 1

        replaced = await scoring_config.replace(
            db_session,
            scope="tenant-a",
            data={**data, "min_score": 10},
            updated_by="admin",
            now=FROZEN_NOW,
        )

        assert replaced.version == 2
        assert replaced.min_score == 10
        assert replaced.updated_by == "admin"

    @pytest.mark.asyncio
    async def test_replace_creates_missing_scope(self, db_session: AsyncSession) -> None:
        record = await scoring_config.replace(
            db_session,
            scope="tenant-b",
            data={"factors": [], "thresholds": {"hot": 80, "warm": 60, "cold": 40}},
            updated_by=None,
            now=FROZEN_NOW,
        )

        assert record.version == 1
        assert (await scoring_config.get_by_scope(db_session, scope="tenant-b")).id == record.id
