"""
Configuración de fixtures para pytest.

- Cache local: SQLite en memoria (StaticPool, una conexion compartida).
- Supabase: FakeSupabase detras de httpx.MockTransport, con tablas en
  memoria y fallos inyectables por tabla.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
import pytest

from mistral_sync.application.services.change_detector import ChangeDetector
from mistral_sync.application.services.event_notifier import EventNotifier
from mistral_sync.application.services.sync_scheduler import SyncScheduler
from mistral_sync.infrastructure.database.session import create_cache_engine
from mistral_sync.infrastructure.external.supabase_sync.supabase_client import (
    SupabaseCredentials,
    SupabaseRestClient,
)
from mistral_sync.infrastructure.external.supabase_sync.sync_config import TableBinding
from mistral_sync.infrastructure.storage.local_cache import LocalCache
from mistral_sync.infrastructure.storage.sql_storage import SqlKeyValueStorage


TEST_CACHE_URL = "sqlite://"
TEST_SUPABASE_URL = "https://fake.supabase.co"


class FakeSupabase:
    """PostgREST minimo: GET con filtros eq., POST con on_conflict y DELETE por eq."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[Any, dict]] = {}
        self.failing_tables: Dict[str, int] = {}
        self.requests: List[httpx.Request] = []

    def seed(self, table: str, rows: Sequence[dict], id_field: str = "id") -> None:
        bucket = self.tables.setdefault(table, {})
        for row in rows:
            bucket[row[id_field]] = dict(row)

    def rows(self, table: str) -> List[dict]:
        return list(self.tables.get(table, {}).values())

    def fail(self, table: str, status_code: int = 500) -> None:
        self.failing_tables[table] = status_code

    def posts(self, table: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == "POST" and (table is None or r.url.path.endswith(f"/{table}"))
        ]

    def deletes(self, table: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == "DELETE" and (table is None or r.url.path.endswith(f"/{table}"))
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]

        if table in self.failing_tables:
            return httpx.Response(self.failing_tables[table], json={"message": "boom"})

        if request.method == "GET":
            rows = self.rows(table)
            for column, expr in request.url.params.items():
                if column in ("select", "order"):
                    continue
                expected = expr.removeprefix("eq.")
                rows = [r for r in rows if str(r.get(column)).lower() == expected.lower()]
            rows.sort(key=lambda r: r.get("updated_at") or "", reverse=True)
            return httpx.Response(200, json=rows)

        if request.method == "POST":
            id_field = request.url.params.get("on_conflict", "id")
            row = json.loads(request.content)
            self.tables.setdefault(table, {})[row[id_field]] = row
            return httpx.Response(201)

        if request.method == "DELETE":
            bucket = self.tables.get(table, {})
            for column, expr in request.url.params.items():
                expected = expr.removeprefix("eq.")
                for key in [k for k, r in bucket.items() if str(r.get(column)) == expected]:
                    del bucket[key]
            return httpx.Response(204)

        return httpx.Response(405)


@pytest.fixture
def storage() -> SqlKeyValueStorage:
    """Storage SQL en memoria, limpio para cada test."""
    return SqlKeyValueStorage(create_cache_engine(TEST_CACHE_URL))


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def remote_client(fake_supabase: FakeSupabase) -> SupabaseRestClient:
    """Cliente REST contra FakeSupabase, sin esperas de backoff."""
    return SupabaseRestClient(
        SupabaseCredentials(url=TEST_SUPABASE_URL, api_key="test-key"),
        client=httpx.AsyncClient(transport=httpx.MockTransport(fake_supabase.handler)),
        max_retries=0,
        min_backoff_s=0.0,
        max_backoff_s=0.0,
    )


@pytest.fixture
def make_scheduler(storage: SqlKeyValueStorage, remote_client: SupabaseRestClient) -> Callable[..., SyncScheduler]:
    """
    Factory de SyncScheduler cableado como en produccion
    (ChangeDetector -> ObservedStorage -> LocalCache).
    """

    def _make(
        bindings: Sequence[TableBinding] = (
            TableBinding(local="mistral_gestion_clients", remote="clients"),
            TableBinding(local="mistral_gestion_instruments", remote="instruments"),
        ),
        **kwargs: Any,
    ) -> SyncScheduler:
        detector = ChangeDetector(b.local for b in bindings)
        cache = LocalCache(detector.wrap(storage))
        options: Dict[str, Any] = {
            "debounce_ms": 50,
            "interval_ms": 0,
            "watch_interval_ms": 0,
            "initial_pull": False,
        }
        options.update(kwargs)
        return SyncScheduler(
            bindings=bindings,
            cache=cache,
            remote=options.pop("remote", remote_client),
            notifier=options.pop("notifier", EventNotifier()),
            detector=detector,
            **options,
        )

    return _make
