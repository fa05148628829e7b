"""
Tests for ViewSync: selection, filters and save actions keeping the map
and the result list in step. The views and the source are MagicMocks.
"""

from datetime import date
from unittest.mock import MagicMock

import pytest

from src.damage_viewer.facets import ALL, UNKNOWN_SIZE, FilterState
from src.damage_viewer.handoff import load_selection, store_selection
from src.damage_viewer.records import DamageRecord
from src.damage_viewer.source import DamageSource
from src.damage_viewer.view_sync import (
    NoSelectionError,
    ViewSync,
    build_markers,
    detail_notes,
    marker_color,
    result_label,
)


@pytest.fixture
def views():
    return MagicMock(name="map_view"), MagicMock(name="list_view")


@pytest.fixture
def sync(records, overrides, storage, views):
    source = MagicMock()
    source.load.return_value = records
    map_view, list_view = views
    return ViewSync.load(source, overrides, storage, map_view, list_view)


def last_markers(map_view):
    return map_view.render_markers.call_args.args[0]


def last_rows(list_view):
    return list_view.render_results.call_args.args[0]


def selected_ids(items):
    return [item["id"] for item in items if item["selected"]]


def test_load_renders_both_views(sync, views):
    map_view, list_view = views

    # c has no coordinates: listed but not plotted
    assert [m["id"] for m in last_markers(map_view)] == ["a", "b", "d"]
    assert [r["id"] for r in last_rows(list_view)] == ["a", "b", "c", "d"]
    assert list_view.render_results.call_args.args[1] == 4
    assert sync.current_record() is None


def test_load_builds_facets_from_merged_data(records, overrides, storage, views):
    """A damage deleted in an earlier session does not contribute filter options."""
    overrides.set("b", {"deleted": True})
    source = MagicMock()
    source.load.return_value = records

    sync = ViewSync.load(source, overrides, storage, *views)

    assert "Longitudinal Crack" not in sync.state.facets.types
    assert "b" not in [r.id for r in sync.state.records]


def test_load_restores_saved_filters(records, overrides, storage, views):
    storage.set_item("filterType", "Potholes")
    source = MagicMock()
    source.load.return_value = records

    sync = ViewSync.load(source, overrides, storage, *views)

    assert sync.state.filters.type == "Potholes"
    assert [r.id for r in sync.state.visible] == ["a", "c"]


def test_load_reopens_handed_over_damage(records, overrides, storage, views):
    store_selection(storage, records[1])
    source = MagicMock()
    source.load.return_value = records
    map_view, list_view = views

    sync = ViewSync.load(source, overrides, storage, map_view, list_view)

    assert sync.current_record().id == "b"
    list_view.show_detail.assert_called_with(records[1])
    map_view.focus.assert_called_with(35.1, 139.1)


def test_handed_over_damage_that_was_deleted_is_ignored(records, overrides, storage, views):
    store_selection(storage, records[1])
    overrides.set("b", {"deleted": True})
    source = MagicMock()
    source.load.return_value = records

    sync = ViewSync.load(source, overrides, storage, *views)

    assert sync.current_record() is None


def test_select_marks_exactly_one_marker_and_row(sync, views):
    map_view, list_view = views

    sync.select("b")

    assert selected_ids(last_markers(map_view)) == ["b"]
    assert selected_ids(last_rows(list_view)) == ["b"]

    sync.select("d")

    assert selected_ids(last_markers(map_view)) == ["d"]
    assert selected_ids(last_rows(list_view)) == ["d"]


def test_selected_marker_is_bigger(sync, views):
    map_view, _ = views

    sync.select("a")

    markers = {m["id"]: m for m in last_markers(map_view)}
    assert (markers["a"]["radius"], markers["a"]["weight"]) == (12, 4)
    assert (markers["b"]["radius"], markers["b"]["weight"]) == (8, 2)


def test_select_without_location(sync, views):
    map_view, list_view = views

    sync.select("c")

    map_view.show_no_location.assert_called_once()
    map_view.focus.assert_not_called()
    assert selected_ids(last_rows(list_view)) == ["c"]
    assert selected_ids(last_markers(map_view)) == []


def test_select_unknown_id(sync):
    with pytest.raises(KeyError):
        sync.select("nope")


def test_close_clears_selection(sync, views):
    map_view, list_view = views
    sync.select("a")

    sync.close()

    assert sync.current_record() is None
    list_view.hide_detail.assert_called()
    assert selected_ids(last_markers(map_view)) == []


def test_filter_change_keeps_hidden_selection(sync, storage, views):
    map_view, list_view = views
    sync.select("a")

    visible = sync.change_filters(month="2025-08")

    assert [r.id for r in visible] == ["b", "c"]
    assert sync.current_record().id == "a"
    assert selected_ids(last_rows(list_view)) == []
    assert storage.get_item("filterMonth") == "2025-08"


def test_filter_by_unknown_size(sync, views):
    map_view, list_view = views

    sync.change_filters(size=UNKNOWN_SIZE)

    assert [r["id"] for r in last_rows(list_view)] == ["c"]
    assert last_markers(map_view) == []


def test_reset_filters(sync, storage, views):
    _, list_view = views
    sync.change_filters(type="Potholes", status="pending")
    sync.select("a")

    sync.reset_filters()

    assert sync.state.filters == FilterState()
    assert storage.get_item("filterType") == ALL
    assert sync.current_record() is None
    assert [r["id"] for r in last_rows(list_view)] == ["a", "b", "c", "d"]


def test_save_status_completed_defaults_to_today(sync, overrides):
    sync.select("a")

    updated = sync.save_status("completed", response_details="パッチ補修")

    assert updated.status == "completed"
    assert updated.response_date == date.today().isoformat()
    assert overrides.get()["a"]["response_details"] == "パッチ補修"


def test_save_status_keeps_entered_date(sync):
    sync.select("a")

    assert sync.save_status("completed", response_date="2025-01-10").response_date == "2025-01-10"


def test_save_status_other_than_completed_clears_date(sync):
    sync.select("d")

    updated = sync.save_status("in-progress", response_date="2025-09-21")

    assert updated.status == "in-progress"
    assert updated.response_date == ""


def test_save_status_rejects_unknown_status(sync):
    sync.select("a")

    with pytest.raises(ValueError):
        sync.save_status("archived")


def test_save_rerenders_with_new_data(sync, views):
    _, list_view = views
    sync.change_filters(status="pending")
    sync.select("a")

    sync.save_status("completed")

    # a no longer matches the pending filter, but stays selected
    assert [r["id"] for r in last_rows(list_view)] == ["c"]
    assert sync.current_record().status == "completed"
    list_view.show_detail.assert_called_with(sync.current_record())


def test_save_does_not_rebuild_facets(sync):
    facets = sync.state.facets
    sync.select("a")

    sync.save_status("cancelled")

    assert sync.state.facets is facets


def test_save_notes(sync, overrides):
    sync.select("c")

    updated = sync.save_notes("段差あり")

    assert updated.response_notes == "段差あり"
    assert overrides.get()["c"] == {"response_notes": "段差あり"}


def test_save_status_keeps_saved_notes_and_details(sync, overrides):
    sync.select("a")
    sync.save_notes("段差あり")
    sync.save_status("completed", response_details="パッチ補修")

    updated = sync.save_status("in-progress")

    assert updated.status == "in-progress"
    assert updated.response_notes == "段差あり"
    assert updated.response_details == "パッチ補修"
    assert overrides.get()["a"]["response_notes"] == "段差あり"


def test_save_status_can_clear_notes_explicitly(sync):
    sync.select("a")
    sync.save_notes("段差あり")

    assert sync.save_status("cancelled", response_notes="").response_notes == ""


def test_duplicate_ids_select_only_one_marker(storage, overrides, views):
    client = MagicMock()
    client.get_image_url.side_effect = lambda damage_id: f"http://api/images/{damage_id}/annotated"
    client.get_damages.return_value = {"success": True, "data": [
        {"id": "x", "damage_type": "Potholes", "location": {"latitude": 35.0, "longitude": 139.0}},
        {"id": "x", "damage_type": "Transverse Crack", "location": {"latitude": 35.1, "longitude": 139.1}},
    ]}
    map_view, list_view = views

    sync = ViewSync.load(DamageSource(client=client), overrides, storage, map_view, list_view)
    sync.select("x")

    assert selected_ids(last_markers(map_view)) == ["x"]
    assert selected_ids(last_rows(list_view)) == ["x"]
    assert sync.current_record().type == "Potholes"


def test_save_without_selection(sync):
    with pytest.raises(NoSelectionError):
        sync.save_notes("x")
    with pytest.raises(NoSelectionError):
        sync.delete_current()


def test_delete_current(sync, overrides, views):
    map_view, list_view = views
    sync.select("b")

    deleted = sync.delete_current()

    assert deleted.id == "b"
    assert sync.current_record() is None
    assert "b" not in [m["id"] for m in last_markers(map_view)]
    assert "b" not in [r["id"] for r in last_rows(list_view)]
    assert overrides.get()["b"] == {"deleted": True}
    list_view.hide_detail.assert_called()
    # filter options stay as they were built on load
    assert "Longitudinal Crack" in sync.state.facets.types


def test_hand_off_stores_effective_record(sync, storage):
    sync.select("a")
    sync.save_notes("要確認")

    record = sync.hand_off()

    assert load_selection(storage) == record
    assert load_selection(storage).response_notes == "要確認"


def test_marker_colors():
    assert build_markers([]) == []
    assert marker_color(DamageRecord(id="x", size="large")) == "#ef4444"
    assert marker_color(DamageRecord(id="x", size="medium")) == "#f59e0b"
    assert marker_color(DamageRecord(id="x", size="small")) == "#10b981"
    assert marker_color(DamageRecord(id="x")) == "#6b7280"


def test_result_label_and_notes(records):
    assert result_label(records[0]) == "ポットホール / 大 / 2025-09-03 10:15 / 未対応"
    assert result_label(records[2]) == "ポットホール / サイズ不明 / 2025-08-05 09:30 / 未対応"
    assert detail_notes(records[2]) == "通行には影響なし。"
    assert detail_notes(records[3]) == ""
