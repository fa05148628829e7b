"""
facets.py
Filter options (month, size, type, status) derived from the damage records,
the filter rule itself, and saving/restoring the chosen filters.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List

from .records import STATUSES

logger = logging.getLogger(__name__)

# Value of the "all" option in every filter
ALL = '全て'

# Size filter value for records without a size
UNKNOWN_SIZE = 'unknown'

SIZE_RANK = {'large': 1, 'medium': 2, 'small': 3}

# Local storage keys for the chosen filter values
FILTER_KEYS = {
    'month': 'filterMonth',
    'size': 'filterSeverity',
    'type': 'filterType',
    'status': 'filterStatus',
}


@dataclass(frozen=True)
class Facets:
    months: List[str] = field(default_factory=list)
    sizes: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    statuses: List[str] = field(default_factory=lambda: list(STATUSES))

    def options(self, dimension):
        """Values the filter for `dimension` may take, ALL included."""
        return [ALL] + list(getattr(self, FACET_ATTRS[dimension]))


FACET_ATTRS = {'month': 'months', 'size': 'sizes', 'type': 'types', 'status': 'statuses'}


@dataclass(frozen=True)
class FilterState:
    month: str = ALL
    size: str = ALL
    type: str = ALL
    status: str = ALL

    def update(self, **changes):
        unknown = set(changes) - set(FILTER_KEYS)
        if unknown:
            raise ValueError(f"Unknown filter dimension(s): {sorted(unknown)}")
        return replace(self, **changes)


def build_facets(records):
    """
    Months newest first, sizes by rank with 'unknown' last,
    types in the order they first appear, statuses always all four.
    """
    months = sorted({r.month for r in records if r.month}, reverse=True)

    sizes = sorted({r.size for r in records if r.size}, key=lambda s: SIZE_RANK.get(s, 99))
    if any(not r.size for r in records):
        sizes.append(UNKNOWN_SIZE)

    # dict keeps insertion order, so this is "first seen" order
    types = list(dict.fromkeys(r.type for r in records))

    return Facets(months=months, sizes=sizes, types=types, statuses=list(STATUSES))


def matches(record, filters):
    """True if the record passes all four filters. ALL matches everything, even missing values."""
    if filters.month != ALL and record.month != filters.month:
        return False

    if filters.size != ALL:
        if filters.size == UNKNOWN_SIZE:
            if record.size:
                return False
        elif record.size != filters.size:
            return False

    if filters.type != ALL and record.type != filters.type:
        return False
    if filters.status != ALL and record.status != filters.status:
        return False

    return True


def apply_filters(records, filters):
    return [r for r in records if matches(r, filters)]


def save_filters(storage, filters):
    for dimension, key in FILTER_KEYS.items():
        storage.set_item(key, getattr(filters, dimension))


def restore_filters(storage, facets):
    """
    Read the saved filter values. A value that is missing or no longer one
    of the current options is reset to ALL, and ALL is written back.
    """
    restored = {}
    for dimension, key in FILTER_KEYS.items():
        saved = storage.get_item(key)
        if saved is not None and saved in facets.options(dimension):
            restored[dimension] = saved
        else:
            if saved is not None:
                logger.info(f"Saved {dimension} filter {saved!r} is no longer available, resetting.")
            restored[dimension] = ALL
            storage.set_item(key, ALL)
    return FilterState(**restored)
