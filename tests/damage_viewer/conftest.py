import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from src.damage_viewer.overrides import OverrideStore
from src.damage_viewer.records import DamageRecord
from src.damage_viewer.storage import LocalStorage


@pytest.fixture
def storage():
    """Local storage on a temporary in-memory database (one shared connection)."""
    engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    yield LocalStorage(engine)
    engine.dispose()


@pytest.fixture
def overrides(storage):
    return OverrideStore(storage)


@pytest.fixture
def records():
    """Four damages covering every size, two months and one without a location."""
    return [
        DamageRecord(id="a", type="Potholes", lat=35.0, lng=139.0, size="large",
                     inspection_time="2025-09-03 10:15"),
        DamageRecord(id="b", type="Longitudinal Crack", lat=35.1, lng=139.1, size="medium",
                     inspection_time="2025-08-12 14:00", status="in-progress"),
        DamageRecord(id="c", type="Potholes", size=None,
                     inspection_time="2025-08-05 09:30", voice_text="通行には影響なし。"),
        DamageRecord(id="d", type="Transverse Crack", lat=35.2, lng=139.2, size="small",
                     inspection_time="2025-09-20 08:00", status="completed", response_date="2025-09-21"),
    ]
