"""
handoff.py
Passing the selected damage between pages (map -> search -> report) and
remembering layout preferences, both through local storage.
"""

import logging

from .records import DamageRecord

logger = logging.getLogger(__name__)

SELECTED_KEY = 'selectedDamage'
SIDEBAR_KEY = 'sidebarCollapsed'

# Where a page without a selection sends the user
DEFAULT_PAGE = 'search'


class MissingSelectionError(Exception):
    """A page needs a selected damage but none was handed over."""

    def __init__(self, message="損傷情報が選択されていません。検索ページから選択してください。",
                 redirect_to=DEFAULT_PAGE):
        super().__init__(message)
        self.redirect_to = redirect_to


def store_selection(storage, record):
    """Save a snapshot of the (effective) record for the next page."""
    storage.set_json(SELECTED_KEY, record.to_dict())


def load_selection(storage):
    """The handed over record, or None if there is none or it can't be read."""
    data = storage.get_json(SELECTED_KEY)
    if not isinstance(data, dict):
        return None
    try:
        return DamageRecord.from_dict(data)
    except TypeError as e:
        logger.warning(f"Stored selection is not a damage record, ignoring it. \nError: {e}")
        return None


def require_selection(storage):
    record = load_selection(storage)
    if record is None:
        raise MissingSelectionError()
    return record


def is_sidebar_collapsed(storage):
    return storage.get_item(SIDEBAR_KEY) == '1'


def set_sidebar_collapsed(storage, collapsed):
    storage.set_item(SIDEBAR_KEY, '1' if collapsed else '0')
