"""
records.py
The canonical damage record used everywhere in the viewer after normalization.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

STATUSES = ('pending', 'in-progress', 'completed', 'cancelled')
DEFAULT_STATUS = 'pending'

SIZES = ('large', 'medium', 'small')

# Placeholders for administrative fields the source has no data for
NO_DATA = 'データなし'
NO_REPAIR = 'なし'
UNKNOWN_TYPE = '不明'


@dataclass(frozen=True)
class DamageRecord:
    id: str
    type: str = UNKNOWN_TYPE
    inspection_time: str = ''
    lat: Optional[float] = None
    lng: Optional[float] = None
    altitude: Optional[float] = None
    size: Optional[str] = None
    confidence: Optional[float] = None
    status: str = DEFAULT_STATUS
    response_date: str = ''
    response_details: str = ''
    response_notes: str = ''
    image: str = ''
    voice: str = ''
    voice_text: str = ''
    vehicle: str = NO_DATA
    patrol_team: str = NO_DATA
    weather: str = NO_DATA
    inspection_section: str = NO_DATA
    temporary_repair: str = NO_REPAIR
    speed_kmh: Optional[float] = None
    bbox: Any = field(default=None, compare=False)

    @property
    def has_location(self):
        return self.lat is not None and self.lng is not None

    @property
    def gps(self):
        return f"{self.lat},{self.lng}" if self.has_location else ''

    @property
    def month(self):
        """The YYYY-MM bucket used by the month filter."""
        return (self.inspection_time or '')[:7]

    def apply(self, patch):
        """
        Shallow right-biased merge: every known field in patch replaces ours.
        Keys that are not record fields (e.g. "deleted") are not copied.
        """
        known = {k: v for k, v in patch.items() if k in FIELD_NAMES and k != 'id'}
        unknown = set(patch) - set(known) - {'deleted', 'id'}
        if unknown:
            logger.debug(f"Ignoring unknown override keys for {self.id}: {sorted(unknown)}")
        return dataclasses.replace(self, **known) if known else self

    def to_dict(self):
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data):
        """Builds a record from a stored snapshot, ignoring keys we don't know."""
        return cls(**{k: v for k, v in data.items() if k in FIELD_NAMES})


FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(DamageRecord))
