"""Tests for queue API endpoints."""

import pytest
from httpx import AsyncClient

from src.services.clock import FrozenClock

HEADERS = {"X-Tenant-ID": "tenant-a", "X-User-ID": "agent-1"}


async def enqueue(client: AsyncClient, lead_id: str, score: float = 50, **fields) -> dict:
    response = await client.post(
        "/api/queue", json={"lead_id": lead_id, "score": score, **fields}, headers=HEADERS
    )
    assert response.status_code == 201
    return response.json()


class TestEnqueue:
    """Tests for adding leads to the queue."""

    @pytest.mark.asyncio
    async def test_add_to_queue(self, client: AsyncClient) -> None:
        data = await enqueue(client, "lead-1", score=85, tags=["vip"], metadata={"a": 1})

        assert data["status"] == "pending"
        assert data["priority"] == "urgent"
        assert data["queue_position"] == 1
        assert data["tenant_id"] == "tenant-a"
        assert data["tags"] == ["vip"]
        assert data["metadata"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_tenant_header_required(self, client: AsyncClient) -> None:
        response = await client.post("/api/queue", json={"lead_id": "lead-1", "score": 50})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_score_out_of_range(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/queue", json={"lead_id": "lead-1", "score": 120}, headers=HEADERS
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_capacity_conflict(self, client: AsyncClient) -> None:
        await client.put("/api/queue/config", json={"max_queue_size": 1}, headers=HEADERS)
        await enqueue(client, "lead-1")

        response = await client.post(
            "/api/queue", json={"lead_id": "lead-2", "score": 50}, headers=HEADERS
        )

        assert response.status_code == 409
        assert "capacity" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_batch_add(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/queue/batch",
            json={"entries": [{"lead_id": "a", "score": 10}, {"lead_id": "b", "score": 90}]},
            headers=HEADERS,
        )

        assert response.status_code == 201
        assert [e["queue_position"] for e in response.json()] == [1, 2]

    @pytest.mark.asyncio
    async def test_batch_over_capacity_adds_nothing(self, client: AsyncClient) -> None:
        await client.put("/api/queue/config", json={"max_queue_size": 1}, headers=HEADERS)

        response = await client.post(
            "/api/queue/batch",
            json={"entries": [{"lead_id": "a", "score": 10}, {"lead_id": "b", "score": 90}]},
            headers=HEADERS,
        )
        status = await client.get("/api/queue/status", headers=HEADERS)

        assert response.status_code == 409
        assert status.json()["total_entries"] == 0


class TestClaimAndLifecycle:
    """Tests for claiming and moving entries through their lifecycle."""

    @pytest.mark.asyncio
    async def test_claim_in_priority_order(self, client: AsyncClient) -> None:
        await enqueue(client, "low", score=10)
        await enqueue(client, "urgent", score=95)

        response = await client.post("/api/queue/claim", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["lead_id"] == "urgent"
        assert data["status"] == "claimed"
        assert data["claimed_by"] == "agent-1"

    @pytest.mark.asyncio
    async def test_claim_empty_queue(self, client: AsyncClient) -> None:
        response = await client.post("/api/queue/claim", headers=HEADERS)

        assert response.status_code == 204
        assert response.content == b""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, client: AsyncClient, frozen_clock: FrozenClock) -> None:
        entry = await enqueue(client, "lead-1")

        assigned = await client.post(
            f"/api/queue/{entry['id']}/assign",
            json={"agent_id": "agent-2", "assignment_reason": "Speaks Dutch"},
            headers=HEADERS,
        )
        processing = await client.put(
            f"/api/queue/{entry['id']}/status", json={"status": "processing"}, headers=HEADERS
        )
        frozen_clock.advance(minutes=20)
        completed = await client.put(
            f"/api/queue/{entry['id']}/status",
            json={"status": "completed", "notes": "Viewing booked"},
            headers=HEADERS,
        )

        assert assigned.status_code == 200
        assert assigned.json()["assigned_to"] == "agent-2"
        assert assigned.json()["assigned_by"] == "agent-1"
        assert processing.json()["status"] == "processing"
        assert completed.status_code == 200
        assert completed.json()["actual_processing_time"] == 20
        assert completed.json()["notes"] == "Viewing booked"

    @pytest.mark.asyncio
    async def test_invalid_transition(self, client: AsyncClient) -> None:
        entry = await enqueue(client, "lead-1")

        response = await client.put(
            f"/api/queue/{entry['id']}/status", json={"status": "completed"}, headers=HEADERS
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Invalid status transition from pending to completed"

    @pytest.mark.asyncio
    async def test_agent_capacity_conflict(self, client: AsyncClient) -> None:
        await client.put("/api/queue/config", json={"max_leads_per_agent": 1}, headers=HEADERS)
        first = await enqueue(client, "lead-1")
        second = await enqueue(client, "lead-2")
        await client.post(
            f"/api/queue/{first['id']}/assign", json={"agent_id": "agent-2"}, headers=HEADERS
        )

        response = await client.post(
            f"/api/queue/{second['id']}/assign", json={"agent_id": "agent-2"}, headers=HEADERS
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_entry(self, client: AsyncClient) -> None:
        response = await client.put(
            "/api/queue/missing/status", json={"status": "cancelled"}, headers=HEADERS
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Queue entry not found: missing"

    @pytest.mark.asyncio
    async def test_entries_are_tenant_scoped(self, client: AsyncClient) -> None:
        entry = await enqueue(client, "lead-1")

        response = await client.delete(
            f"/api/queue/{entry['id']}", headers={"X-Tenant-ID": "tenant-b"}
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_reprioritise_and_remove(self, client: AsyncClient) -> None:
        entry = await enqueue(client, "lead-1", score=10)

        reordered = await client.put(
            f"/api/queue/{entry['id']}/priority", json={"priority": "urgent"}, headers=HEADERS
        )
        removed = await client.delete(f"/api/queue/{entry['id']}", headers=HEADERS)
        removed_again = await client.delete(f"/api/queue/{entry['id']}", headers=HEADERS)

        assert reordered.json()["priority"] == "urgent"
        assert removed.status_code == 204
        assert removed_again.status_code == 404


class TestQueueReporting:
    """Tests for status, listing and maintenance endpoints."""

    @pytest.mark.asyncio
    async def test_status(self, client: AsyncClient, frozen_clock: FrozenClock) -> None:
        await enqueue(client, "lead-1", score=90)
        await enqueue(client, "lead-2", score=20)
        frozen_clock.advance(minutes=15)
        await client.post("/api/queue/claim", headers=HEADERS)

        response = await client.get("/api/queue/status", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["total_leads"] == 2
        assert data["pending_leads"] == 1
        assert data["claimed_leads"] == 1
        assert data["average_wait_time"] == 15.0
        assert data["health_status"] == "healthy"
        assert data["priority_distribution"] == {"urgent": 0, "high": 0, "normal": 0, "low": 1}

    @pytest.mark.asyncio
    async def test_list_entries(self, client: AsyncClient) -> None:
        await enqueue(client, "low", score=10)
        await enqueue(client, "urgent", score=95)
        await enqueue(client, "normal", score=50)

        response = await client.get(
            "/api/queue/entries", params={"limit": 2, "page": 1}, headers=HEADERS
        )
        filtered = await client.get(
            "/api/queue/entries", params={"priority": "low"}, headers=HEADERS
        )

        data = response.json()
        assert [e["lead_id"] for e in data["entries"]] == ["urgent", "normal"]
        assert data["total"] == 3
        assert [e["lead_id"] for e in filtered.json()["entries"]] == ["low"]

    @pytest.mark.asyncio
    async def test_sweep(self, client: AsyncClient, frozen_clock: FrozenClock) -> None:
        await enqueue(client, "lead-1")
        frozen_clock.advance(hours=25)

        response = await client.post("/api/queue/sweep", headers=HEADERS)

        assert response.json() == {"expired": 1}

    @pytest.mark.asyncio
    async def test_release_stale(self, client: AsyncClient, frozen_clock: FrozenClock) -> None:
        await client.put(
            "/api/queue/config",
            json={"enable_stale_watchdog": True, "assignment_timeout_minutes": 5},
            headers=HEADERS,
        )
        await enqueue(client, "lead-1")
        await client.post("/api/queue/claim", headers=HEADERS)
        frozen_clock.advance(minutes=10)

        response = await client.post("/api/queue/release-stale", headers=HEADERS)

        assert response.json() == {"released": 1, "action": "requeue"}

    @pytest.mark.asyncio
    async def test_queue_config(self, client: AsyncClient) -> None:
        default = await client.get("/api/queue/config", headers=HEADERS)
        updated = await client.put(
            "/api/queue/config",
            json={"max_queue_size": 50, "stale_entry_action": "expire"},
            headers=HEADERS,
        )
        invalid = await client.put(
            "/api/queue/config", json={"max_queue_size": 0}, headers=HEADERS
        )

        assert default.json()["max_queue_size"] == 1000
        assert updated.json()["max_queue_size"] == 50
        assert updated.json()["stale_entry_action"] == "expire"
        assert updated.json()["updated_by"] == "agent-1"
        assert invalid.status_code == 422
