"""
Tests unitarios del cache local (LocalCache sobre SqlKeyValueStorage).
"""
from __future__ import annotations

from unittest.mock import Mock

import pytest

from mistral_sync.infrastructure.database.session import create_cache_engine
from mistral_sync.infrastructure.storage.local_cache import LocalCache
from mistral_sync.infrastructure.storage.sql_storage import SqlKeyValueStorage
from mistral_sync.shared.exceptions.sync import LocalStorageError, StorageQuotaExceededError


@pytest.fixture
def cache(storage: SqlKeyValueStorage) -> LocalCache:
    return LocalCache(storage)


def test_missing_collection_is_empty(cache: LocalCache) -> None:
    assert cache.get("mistral_gestion_clients") == []


def test_set_then_get_returns_records(cache: LocalCache) -> None:
    records = [{"id": "c1", "nom": "Héloïse"}, {"id": "c2", "nom": "Zoé"}]

    assert cache.set("mistral_gestion_clients", records) is True
    assert cache.get("mistral_gestion_clients") == records


def test_corrupt_json_is_treated_as_empty(storage: SqlKeyValueStorage, cache: LocalCache) -> None:
    storage.set_item("mistral_gestion_clients", "{not json")

    assert cache.get("mistral_gestion_clients") == []


def test_non_list_payload_is_treated_as_empty(storage: SqlKeyValueStorage, cache: LocalCache) -> None:
    storage.set_item("mistral_gestion_clients", '{"id": "c1"}')

    assert cache.get("mistral_gestion_clients") == []


def test_quota_exceeded_returns_false_and_keeps_previous_value() -> None:
    storage = SqlKeyValueStorage(create_cache_engine("sqlite://"), max_value_bytes=64)
    cache = LocalCache(storage)
    small = [{"id": "c1"}]
    cache.set("mistral_gestion_clients", small)

    big = [{"id": f"c{i}", "nom": "x" * 20} for i in range(10)]

    assert cache.set("mistral_gestion_clients", big) is False
    assert cache.get("mistral_gestion_clients") == small


def test_quota_error_carries_sizes() -> None:
    storage = SqlKeyValueStorage(create_cache_engine("sqlite://"), max_value_bytes=4)

    with pytest.raises(StorageQuotaExceededError) as exc_info:
        storage.set_item("k", "0123456789")

    assert exc_info.value.size == 10
    assert exc_info.value.quota == 4
    assert exc_info.value.error_code == "STORAGE_QUOTA_EXCEEDED"


def test_unserializable_value_returns_false(cache: LocalCache) -> None:
    assert cache.set("mistral_gestion_clients", [{"id": "c1", "bad": object()}]) is False


def test_backend_failure_is_logged_not_raised() -> None:
    broken = Mock()
    broken.get_item.side_effect = LocalStorageError("disco lleno", key="k")
    broken.set_item.side_effect = LocalStorageError("disco lleno", key="k")
    cache = LocalCache(broken)

    assert cache.get("k") == []
    assert cache.set("k", [{"id": 1}]) is False


def test_each_write_bumps_revision(storage: SqlKeyValueStorage) -> None:
    storage.set_item("k", "[]")
    storage.set_item("k", "[1]")

    revision, writer = storage.revisions(["k"])["k"]

    assert revision == 2
    assert writer == storage.writer_id


def test_remove_item_and_keys(storage: SqlKeyValueStorage) -> None:
    storage.set_item("a", "[]")
    storage.set_item("b", "[]")
    storage.remove_item("a")

    assert storage.keys() == ["b"]
    assert storage.get_item("a") is None
