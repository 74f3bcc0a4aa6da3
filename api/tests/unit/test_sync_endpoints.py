"""
Tests unitarios del API de control de sincronizacion.

El scheduler se inyecta en app.state (sin lifespan), contra FakeSupabase.
"""
from __future__ import annotations

from unittest.mock import Mock

import pytest
from httpx import ASGITransport, AsyncClient

from mistral_sync.api.v1.dependencies.use_case_deps import get_sync_scheduler
from mistral_sync.shared.exceptions.sync import RemoteError


@pytest.fixture
def scheduler(make_scheduler):
    return make_scheduler()


@pytest.fixture
def app_with_scheduler(scheduler):
    """App FastAPI con el scheduler ya construido."""
    from main import create_application
    app = create_application(with_lifespan=False)
    app.state.sync_scheduler = scheduler
    yield app
    app.dependency_overrides.clear()


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_state_endpoint_returns_snapshot(app_with_scheduler) -> None:
    async with _client(app_with_scheduler) as client:
        response = await client.get("/api/v1/sync/state")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "idle"
    assert data["is_syncing"] is False
    assert data["last_sync"] is None
    assert data["pending_changes"] == []


@pytest.mark.asyncio
async def test_full_sync_endpoint_runs_cycle(app_with_scheduler, fake_supabase, scheduler) -> None:
    fake_supabase.seed("clients", [{"id": "c1", "updated_at": "2024-06-01T00:00:00Z"}])

    async with _client(app_with_scheduler) as client:
        response = await client.post("/api/v1/sync/full")

    assert response.status_code == 200
    data = response.json()
    assert data["kind"] == "full"
    assert data["success"] is True
    assert "mistral_gestion_clients" in data["pulled"]
    assert scheduler.cache.get("mistral_gestion_clients")[0]["id"] == "c1"


@pytest.mark.asyncio
async def test_full_sync_endpoint_conflict_when_running(app_with_scheduler, scheduler) -> None:
    scheduler._state.is_syncing = True

    async with _client(app_with_scheduler) as client:
        response = await client.post("/api/v1/sync/full")

    assert response.status_code == 409
    scheduler._state.is_syncing = False


@pytest.mark.asyncio
async def test_pull_endpoint_reports_failed_tables(app_with_scheduler, fake_supabase) -> None:
    fake_supabase.fail("instruments", 500)

    async with _client(app_with_scheduler) as client:
        response = await client.post("/api/v1/sync/pull")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["pull_failed"] == ["mistral_gestion_instruments"]


@pytest.mark.asyncio
async def test_push_endpoint_uploads_local_records(app_with_scheduler, fake_supabase, scheduler) -> None:
    scheduler.cache.set("mistral_gestion_clients", [{"id": "c2"}])

    async with _client(app_with_scheduler) as client:
        response = await client.post("/api/v1/sync/push")

    assert response.status_code == 200
    assert [r["id"] for r in fake_supabase.rows("clients")] == ["c2"]


@pytest.mark.asyncio
async def test_delete_endpoint_removes_record(app_with_scheduler, fake_supabase, scheduler) -> None:
    fake_supabase.seed("clients", [{"id": "c1"}, {"id": "c2"}])
    scheduler.cache.set("mistral_gestion_clients", [{"id": "c1"}, {"id": "c2"}])

    async with _client(app_with_scheduler) as client:
        response = await client.delete("/api/v1/sync/mistral_gestion_clients/c1")

    assert response.status_code == 200
    assert response.json() == {"collection": "mistral_gestion_clients", "record_id": "c1", "deleted": True}
    assert [r["id"] for r in fake_supabase.rows("clients")] == ["c2"]
    assert [r["id"] for r in scheduler.cache.get("mistral_gestion_clients")] == ["c2"]


@pytest.mark.asyncio
async def test_delete_endpoint_unknown_collection_returns_404(app_with_scheduler) -> None:
    async with _client(app_with_scheduler) as client:
        response = await client.delete("/api/v1/sync/mistral_inconnue/c1")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_endpoint_remote_failure_returns_502(app_with_scheduler, fake_supabase, scheduler) -> None:
    scheduler.cache.set("mistral_gestion_clients", [{"id": "c1"}])
    fake_supabase.fail("clients", 500)

    async with _client(app_with_scheduler) as client:
        response = await client.delete("/api/v1/sync/mistral_gestion_clients/c1")

    assert response.status_code == 502
    assert scheduler.cache.get("mistral_gestion_clients") == [{"id": "c1"}]


@pytest.mark.asyncio
async def test_auto_sync_endpoints(app_with_scheduler, scheduler) -> None:
    async with _client(app_with_scheduler) as client:
        response = await client.put("/api/v1/sync/auto/interval", json={"interval_ms": 60000})
        assert response.status_code == 200
        assert response.json()["auto_sync_interval_ms"] == 60000
        assert response.json()["auto_sync_running"] is True

        response = await client.post("/api/v1/sync/auto/stop")
        assert response.json()["auto_sync_running"] is False

        response = await client.post("/api/v1/sync/auto/start")
        assert response.json()["auto_sync_running"] is True

    await scheduler.stop()


@pytest.mark.asyncio
async def test_negative_interval_is_rejected_with_422(app_with_scheduler) -> None:
    async with _client(app_with_scheduler) as client:
        response = await client.put("/api/v1/sync/auto/interval", json={"interval_ms": -5})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_missing_scheduler_returns_503() -> None:
    from main import create_application
    app = create_application(with_lifespan=False)

    async with _client(app) as client:
        response = await client.get("/api/v1/sync/state")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_app_exception_is_mapped_to_json_error(app_with_scheduler) -> None:
    failing = Mock()
    failing.get_state.side_effect = RemoteError("Supabase caido", status_code=503, table="clients")
    app_with_scheduler.dependency_overrides[get_sync_scheduler] = lambda: failing

    async with _client(app_with_scheduler) as client:
        response = await client.get("/api/v1/sync/state")

    assert response.status_code == 502
    data = response.json()
    assert data["error"] == "REMOTE_ERROR"
    assert data["details"]["remote_status"] == 503


@pytest.mark.asyncio
async def test_health_reports_sync_status(app_with_scheduler) -> None:
    async with _client(app_with_scheduler) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["sync_status"] == "idle"
