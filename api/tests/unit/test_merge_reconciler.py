"""
Tests unitarios de merge(): last-write-wins por registro completo.
"""
from __future__ import annotations

from mistral_sync.infrastructure.external.supabase_sync.merge import merge


def _rec(rid, updated_at=None, **extra):
    record = {"id": rid, **extra}
    if updated_at is not None:
        record["updated_at"] = updated_at
    return record


def test_disjoint_collections_are_unioned() -> None:
    local = [_rec("a", "2024-01-01T00:00:00Z"), _rec("b", "2024-01-02T00:00:00Z")]
    remote = [_rec("c", "2024-01-03T00:00:00Z")]

    result = merge(local, remote)

    assert len(result) == 3
    assert [r["id"] for r in result] == ["a", "b", "c"]


def test_newer_remote_replaces_local() -> None:
    local = [_rec("c1", "2024-01-01T00:00:00Z", name="Ancien")]
    remote = [_rec("c1", "2024-06-01T00:00:00Z", name="Nouveau")]

    result = merge(local, remote)

    assert result == [remote[0]]


def test_newer_local_is_kept() -> None:
    local = [_rec("c1", "2024-06-01T00:00:00Z", name="Local")]
    remote = [_rec("c1", "2024-01-01T00:00:00Z", name="Remote")]

    assert merge(local, remote)[0]["name"] == "Local"


def test_timestamp_tie_keeps_local() -> None:
    local = [_rec("c1", "2024-03-01T10:00:00Z", name="Local")]
    remote = [_rec("c1", "2024-03-01T10:00:00.000Z", name="Remote")]

    assert merge(local, remote)[0]["name"] == "Local"


def test_camel_case_updated_at_is_used_as_fallback() -> None:
    local = [{"id": "c1", "updatedAt": "2024-01-01T00:00:00Z", "name": "Local"}]
    remote = [_rec("c1", "2023-12-31T00:00:00Z", name="Remote")]

    assert merge(local, remote)[0]["name"] == "Local"


def test_missing_timestamp_loses_against_any_valid_one() -> None:
    local = [_rec("c1", name="Sans date")]
    remote = [_rec("c1", "2020-01-01T00:00:00Z", name="Datee")]

    assert merge(local, remote)[0]["name"] == "Datee"


def test_records_without_valid_id_are_dropped() -> None:
    local = [{"name": "sans id"}, _rec("", "2024-01-01T00:00:00Z"), _rec("a", "2024-01-01T00:00:00Z")]
    remote = [{"id": None}, {"id": True}, _rec(7, "2024-01-01T00:00:00Z")]

    result = merge(local, remote)

    assert [r["id"] for r in result] == ["a", 7]


def test_duplicate_local_ids_keep_last_occurrence() -> None:
    local = [_rec("a", "2024-01-01T00:00:00Z", v=1), _rec("a", "2024-01-01T00:00:00Z", v=2)]

    result = merge(local, [])

    assert result == [local[1]]


def test_merge_is_idempotent() -> None:
    local = [_rec("a", "2024-01-01T00:00:00Z"), _rec("b", "2024-05-01T00:00:00Z")]
    remote = [_rec("b", "2024-02-01T00:00:00Z"), _rec("c", "2024-03-01T00:00:00Z")]

    once = merge(local, remote)
    twice = merge(once, remote)

    assert twice == once


def test_inputs_are_not_mutated() -> None:
    local = [_rec("a", "2024-01-01T00:00:00Z")]
    remote = [_rec("a", "2024-02-01T00:00:00Z")]
    local_copy = [dict(r) for r in local]

    merge(local, remote)

    assert local == local_copy


def test_non_object_entries_are_dropped() -> None:
    local = [_rec("a", "2024-01-01T00:00:00Z"), "garbage", 42, None]
    remote = ["otro", _rec("b", "2024-01-01T00:00:00Z"), ["c"]]

    result = merge(local, remote)

    assert [r["id"] for r in result] == ["a", "b"]


def test_local_edit_stamped_in_camel_case_beats_stale_column() -> None:
    # Pulled on 2024-01-01, then edited locally: only updatedAt moves forward
    local = [_rec("a1", "2024-01-01T00:00:00Z", updatedAt="2024-09-01T00:00:00Z", title="Nouveau")]
    remote = [_rec("a1", "2024-05-01T00:00:00Z", title="Remote")]

    assert merge(local, remote)[0]["title"] == "Nouveau"
