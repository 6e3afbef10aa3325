"""
Shared fixtures for drift tracker tests.
"""

import pytest

from drift_tracker.catalog import ReferenceCatalog
from drift_tracker.engine import DriftEngine
from drift_tracker.model import PositionSample
from drift_tracker.storage import InMemorySessionStore

REF_LAT = 46.0
REF_LON = 11.0


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class Consent:
    """Mutable consent flag usable as the engine's consent callable."""

    def __init__(self, granted: bool = True):
        self.granted = granted

    def __call__(self) -> bool:
        return self.granted


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def consent():
    return Consent()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def catalog(store, clock):
    return ReferenceCatalog(store, clock=clock)


@pytest.fixture
def engine(catalog, store, clock, consent):
    return DriftEngine(catalog, store, consent=consent, clock=clock)


def position(lat: float = REF_LAT, lon: float = REF_LON, speed: float = 0.0, t: float = 0.0):
    return PositionSample(timestamp=t, latitude_deg=lat, longitude_deg=lon, speed_m_per_sec=speed)


@pytest.fixture
def recorded_engine(engine, clock):
    """Engine with one closed, active reference path of a single point at
    (46.0, 11.0) with angle 0, and the current position on that point."""
    engine.on_position(position())
    engine.start_reference_recording(label="Test Track")
    clock.advance(0.1)
    engine.on_tick()
    clock.advance(0.1)
    engine.stop_reference_recording()
    return engine
