"""
view_sync.py
Keeps the map and the result list / status panel in step with the data.

ViewSync owns the page state (ViewState). Every change goes through it:
filters, selection and the save actions. After each change the merged
data is recomputed from the source records plus the override store and
handed to the two views.

The views are plain collaborator objects:

    map_view.render_markers(markers)   list of marker dicts
    map_view.focus(lat, lng)           centre the map on the selection
    map_view.show_no_location()        the selection has no coordinates
    list_view.render_results(rows, count)
    list_view.show_detail(record)
    list_view.hide_detail()
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from .facets import ALL, FILTER_KEYS, Facets, FilterState, apply_filters, build_facets, restore_filters, save_filters
from .handoff import load_selection, store_selection
from .labels import size_label, status_label, type_label
from .merge import find_record, merge
from .records import STATUSES, DamageRecord

logger = logging.getLogger(__name__)

MARKER_COLORS = {
    'large': '#ef4444',
    'medium': '#f59e0b',
    'small': '#10b981',
}
UNKNOWN_SIZE_COLOR = '#6b7280'

MARKER_STYLE = {'radius': 8, 'weight': 2}
SELECTED_MARKER_STYLE = {'radius': 12, 'weight': 4}


class NoSelectionError(Exception):
    """A save action was requested while no damage is selected."""


@dataclass
class ViewState:
    base_records: List[DamageRecord]
    facets: Facets
    filters: FilterState = field(default_factory=FilterState)
    records: List[DamageRecord] = field(default_factory=list)
    visible: List[DamageRecord] = field(default_factory=list)
    selected_id: Optional[str] = None


def marker_color(record):
    return MARKER_COLORS.get(record.size, UNKNOWN_SIZE_COLOR)


def build_markers(visible, selected_id=None):
    """Markers for the visible records that have coordinates."""
    markers = []
    for record in visible:
        if not record.has_location:
            continue
        selected = record.id == selected_id
        style = SELECTED_MARKER_STYLE if selected else MARKER_STYLE
        markers.append({
            'id': record.id,
            'lat': record.lat,
            'lng': record.lng,
            'color': marker_color(record),
            'radius': style['radius'],
            'weight': style['weight'],
            'selected': selected,
        })
    return markers


def result_label(record):
    return (f"{type_label(record.type)} / {size_label(record.size)} / "
            f"{record.inspection_time} / {status_label(record.status)}")


def build_rows(visible, selected_id=None):
    """Result list rows, records without a location included."""
    return [
        {'id': r.id, 'label': result_label(r), 'selected': r.id == selected_id}
        for r in visible
    ]


def detail_notes(record):
    """The notes box shows the user's notes, or the voice memo if there are none yet."""
    return record.response_notes or record.voice_text or ''


class ViewSync:
    def __init__(self, state, overrides, storage, map_view, list_view):
        self.state = state
        self.overrides = overrides
        self.storage = storage
        self.map_view = map_view
        self.list_view = list_view

    @classmethod
    def load(cls, source, overrides, storage, map_view, list_view):
        """
        Page start: load the records, build the filter options from the
        merged data, restore the saved filters, render, then reopen the
        damage handed over from another page if it is still there.
        """
        base_records = source.load()
        facets = build_facets(merge(base_records, overrides.get()))
        filters = restore_filters(storage, facets)

        sync = cls(ViewState(base_records=base_records, facets=facets, filters=filters),
                   overrides, storage, map_view, list_view)
        sync.recompute()

        with_location = [r for r in sync.state.records if r.has_location]
        logger.info(f"Total damages: {len(sync.state.records)}, With location: {len(with_location)}, "
                    f"Without location: {len(sync.state.records) - len(with_location)}")

        handed_over = load_selection(storage)
        if handed_over is not None and find_record(sync.state.records, handed_over.id) is not None:
            sync.select(handed_over.id)
        return sync

    # --- recomputation -------------------------------------------------

    def recompute(self):
        """Merge the source records with the current overrides, filter, render."""
        self.state.records = merge(self.state.base_records, self.overrides.get())
        self.state.visible = apply_filters(self.state.records, self.state.filters)
        self.render()
        return self.state.visible

    def render(self):
        selected_id = self.state.selected_id
        self.map_view.render_markers(build_markers(self.state.visible, selected_id))
        self.list_view.render_results(build_rows(self.state.visible, selected_id), len(self.state.visible))

    # --- selection -----------------------------------------------------

    def current_record(self):
        """
        The effective record of the selection. Looked up in all merged
        records, so a selection hidden by the filters is still reachable.
        """
        if self.state.selected_id is None:
            return None
        return find_record(self.state.records, self.state.selected_id)

    def select(self, damage_id):
        record = find_record(self.state.records, damage_id)
        if record is None:
            raise KeyError(f"No damage with id {damage_id!r}")

        self.state.selected_id = record.id
        self.render()
        self.list_view.show_detail(record)
        if record.has_location:
            self.map_view.focus(record.lat, record.lng)
        else:
            self.map_view.show_no_location()
        return record

    def close(self):
        self.state.selected_id = None
        self.list_view.hide_detail()
        self.render()

    def hand_off(self):
        """Store the selected record for the next page (search, map or report)."""
        record = self._require_selection()
        store_selection(self.storage, record)
        return record

    # --- filters -------------------------------------------------------

    def change_filters(self, **changes):
        """
        Change one or more filters (month, size, type, status), save them
        and recompute. The selection is left alone even if it is now hidden.
        """
        self.state.filters = self.state.filters.update(**changes)
        save_filters(self.storage, self.state.filters)
        return self.recompute()

    def reset_filters(self):
        self.state.filters = FilterState(**{dimension: ALL for dimension in FILTER_KEYS})
        save_filters(self.storage, self.state.filters)
        self.state.selected_id = None
        self.list_view.hide_detail()
        return self.recompute()

    # --- save actions --------------------------------------------------

    def _require_selection(self):
        record = self.current_record()
        if record is None:
            raise NoSelectionError("No damage is selected")
        return record

    def _save(self, patch):
        record = self._require_selection()
        self.overrides.set(record.id, patch)
        self.recompute()
        updated = self.current_record()
        if updated is not None:
            self.list_view.show_detail(updated)
        return updated

    def save_status(self, status, response_date=None, response_details=None, response_notes=None):
        """
        Save the status panel. Completed needs a response date (today if
        none was entered); every other status clears it. Details and notes
        left as None keep their current values.
        """
        if status not in STATUSES:
            raise ValueError(f"Unknown status {status!r}, expected one of {STATUSES}")

        if status == 'completed':
            response_date = response_date or date.today().isoformat()
        else:
            response_date = ''

        patch = {'status': status, 'response_date': response_date}
        if response_details is not None:
            patch['response_details'] = response_details
        if response_notes is not None:
            patch['response_notes'] = response_notes
        return self._save(patch)

    def save_notes(self, notes):
        return self._save({'response_notes': notes})

    def delete_current(self):
        """Tombstone the selected damage and go back to no selection."""
        record = self._require_selection()
        self.overrides.set(record.id, {'deleted': True})
        self.state.selected_id = None
        self.list_view.hide_detail()
        self.recompute()
        return record
