"""
Tests unitarios del ChangeDetector y del decorador ObservedStorage.
"""
from __future__ import annotations

from unittest.mock import Mock

from mistral_sync.application.services.change_detector import (
    SOURCE_EXTERNAL,
    SOURCE_LOCAL,
    ChangeDetector,
)
from mistral_sync.infrastructure.storage.local_cache import LocalCache
from mistral_sync.infrastructure.storage.sql_storage import SqlKeyValueStorage


TRACKED = ("mistral_gestion_clients", "mistral_teachers")


def test_tracked_write_notifies_listener(storage: SqlKeyValueStorage) -> None:
    listener = Mock()
    detector = ChangeDetector(TRACKED, listener)
    cache = LocalCache(detector.wrap(storage))

    cache.set("mistral_gestion_clients", [{"id": "c1"}])

    listener.assert_called_once_with("mistral_gestion_clients", SOURCE_LOCAL)


def test_untracked_write_is_ignored(storage: SqlKeyValueStorage) -> None:
    listener = Mock()
    detector = ChangeDetector(TRACKED, listener)
    cache = LocalCache(detector.wrap(storage))

    cache.write_value("mistral_sync_state", {"lastSync": None})

    listener.assert_not_called()


def test_failed_write_does_not_notify(storage: SqlKeyValueStorage) -> None:
    listener = Mock()
    detector = ChangeDetector(TRACKED, listener)
    cache = LocalCache(detector.wrap(storage))

    assert cache.set("mistral_gestion_clients", [{"id": object()}]) is False

    listener.assert_not_called()


def test_listener_error_does_not_break_the_write(storage: SqlKeyValueStorage) -> None:
    detector = ChangeDetector(TRACKED, Mock(side_effect=RuntimeError("boom")))
    cache = LocalCache(detector.wrap(storage))

    assert cache.set("mistral_gestion_clients", [{"id": "c1"}]) is True
    assert cache.get("mistral_gestion_clients") == [{"id": "c1"}]


def test_observed_storage_delegates_reads(storage: SqlKeyValueStorage) -> None:
    detector = ChangeDetector(TRACKED)
    observed = detector.wrap(storage)
    storage.set_item("mistral_teachers", "[]")

    assert observed.get_item("mistral_teachers") == "[]"
    assert observed.writer_id == storage.writer_id
    assert observed.inner is storage


def test_explicit_external_notification() -> None:
    listener = Mock()
    detector = ChangeDetector(TRACKED, listener)

    assert detector.notify_external_change("mistral_teachers") is True
    assert detector.notify_external_change("otra_clave") is False

    listener.assert_called_once_with("mistral_teachers", SOURCE_EXTERNAL)


def test_scan_detects_writes_from_another_writer(storage: SqlKeyValueStorage) -> None:
    listener = Mock()
    detector = ChangeDetector(TRACKED, listener)
    detector.wrap(storage)
    detector.prime()

    # Otro proceso comparte la misma base con su propio writer_id
    other_process = SqlKeyValueStorage(storage._engine, writer_id="otro-proceso")
    other_process.set_item("mistral_gestion_clients", '[{"id": "c9"}]')

    assert detector.scan_external_changes() == ["mistral_gestion_clients"]
    listener.assert_called_once_with("mistral_gestion_clients", SOURCE_EXTERNAL)

    # Un segundo escaneo sin cambios nuevos no vuelve a notificar
    assert detector.scan_external_changes() == []


def test_scan_ignores_own_writes(storage: SqlKeyValueStorage) -> None:
    listener = Mock()
    detector = ChangeDetector(TRACKED, listener)
    cache = LocalCache(detector.wrap(storage))
    detector.prime()

    cache.set("mistral_gestion_clients", [{"id": "c1"}])
    listener.reset_mock()

    assert detector.scan_external_changes() == []
    listener.assert_not_called()


def test_prime_skips_preexisting_revisions(storage: SqlKeyValueStorage) -> None:
    other_process = SqlKeyValueStorage(storage._engine, writer_id="otro-proceso")
    other_process.set_item("mistral_teachers", "[]")
    listener = Mock()
    detector = ChangeDetector(TRACKED, listener)
    detector.wrap(storage)

    detector.prime()

    assert detector.scan_external_changes() == []
