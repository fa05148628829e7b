"""
Tests for merging the source records with the override store.
"""

from src.damage_viewer.merge import find_record, merge
from src.damage_viewer.records import DamageRecord
from src.damage_viewer.source import normalize_record


def test_no_overrides_returns_records_unchanged(records):
    assert merge(records, {}) == records


def test_override_fields_win_and_others_fall_through(records):
    patch = {"status": "completed", "response_date": "2025-01-10"}

    merged = find_record(merge(records, {"b": patch}), "b")
    base = find_record(records, "b")

    assert merged.status == "completed"
    assert merged.response_date == "2025-01-10"
    for name in ("type", "lat", "lng", "size", "inspection_time", "response_notes"):
        assert getattr(merged, name) == getattr(base, name)


def test_tombstone_excludes_record(records):
    merged = merge(records, {"a": {"status": "completed", "deleted": True}})

    assert "a" not in [r.id for r in merged]
    assert len(merged) == len(records) - 1


def test_deleted_false_is_not_a_tombstone(records):
    merged = merge(records, {"a": {"deleted": False}})

    assert [r.id for r in merged] == ["a", "b", "c", "d"]


def test_order_follows_base_records(records):
    overrides = {"d": {"status": "cancelled"}, "a": {"status": "cancelled"}}

    assert [r.id for r in merge(records, overrides)] == ["a", "b", "c", "d"]


def test_overrides_for_unknown_ids_add_nothing(records):
    merged = merge(records, {"zzz": {"status": "completed"}})

    assert [r.id for r in merged] == ["a", "b", "c", "d"]


def test_inputs_are_not_modified(records):
    before = list(records)

    merge(records, {"a": {"status": "completed"}})

    assert records == before
    assert records[0].status == "pending"


def test_unknown_patch_keys_are_ignored():
    record = DamageRecord(id="x")

    merged = merge([record], {"x": {"colour": "red", "status": "in-progress"}})

    assert merged[0].status == "in-progress"
    assert not hasattr(merged[0], "colour")


def test_override_cannot_change_the_id():
    merged = merge([DamageRecord(id="x")], {"x": {"id": "y"}})

    assert merged[0].id == "x"


def test_basic_lifecycle(overrides):
    """Size comes from the source normalization; the override only changes what it names."""
    base = [normalize_record({
        "id": "a", "damage_type": "Potholes", "confidence": 0.85, "size": None,
        "location": {"latitude": 35.0, "longitude": 139.0},
        "captured_at": "2025-01-05T08:00:00",
    })]

    first = merge(base, overrides.get())[0]
    assert first.size == "large"
    assert first.status == "pending"

    overrides.set("a", {"status": "completed", "response_date": "2025-01-10"})
    second = merge(base, overrides.get())[0]

    assert second.status == "completed"
    assert second.response_date == "2025-01-10"
    assert (second.type, second.lat, second.lng, second.size) == ("Potholes", 35.0, 139.0, "large")


def test_delete_then_reload(records, overrides):
    overrides.set("a", {"deleted": True})

    assert "a" not in [r.id for r in merge(records, overrides.get())]
    assert "a" in overrides.get()
