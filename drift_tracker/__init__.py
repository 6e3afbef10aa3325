"""Drift Tracker - Real-Time Drift Angle Measurement Against a Reference Lap

Measures how far a vehicle's heading deviates from a previously recorded
reference path while it drives over (approximately) the same ground.

## Architecture Overview

The system is a small pipeline driven by two sensor streams and a fixed tick:

### Sensing (estimator.py)
Integrates the gyroscope's vertical angular rate into a heading estimate
using a scalar Kalman-style filter.
- Gyro (~100 Hz): Prediction step, O(1) per sample
- Output: Heading estimate (degrees) in an arbitrary frame

### Reference Paths (path.py, catalog.py)
Recorded laps of heading-tagged positions. Exactly one path (or none) is
active; a freshly recorded path becomes active immediately.
- Nearest-point matching by haversine distance
- Active-path successor on deletion

### Recording (engine.py, session.py)
A tick (~10 Hz) records either a reference point or a drift point depending
on the session state (Idle, RecordingReference, RecordingDrift).
- Drift start is gated by consent, an active path and a 50m proximity check
- Per-session angle offset aligns the live frame with the reference frame
- Drift angle = (angle - offset) - angle of nearest reference point

### Storage (storage.py, data_collector.py)
Every recorded point is handed to a storage collaborator.
- In-memory store for embedding and tests
- CSV-logging store for live runs

## Modules

- `config.py` - Centralized configuration parameters with documentation
- `errors.py` - Exception hierarchy
- `model.py` - Sensor samples, recorded points and drift sessions
- `estimator.py` - Heading estimator
- `geo.py` - Haversine distance
- `path.py` - Reference path and nearest-point matching
- `catalog.py` - Reference path collection with a single active path
- `session.py` - Recording state machine
- `engine.py` - Drift engine
- `storage.py` - Storage interface and in-memory implementation
- `data_collector.py` - CSV-logging store
- `summary.py` - Drift session statistics
- `client.py` - WebSocket telemetry client and tick loop

## Quick Start

```python
from drift_tracker import DriftEngine, InMemorySessionStore, ReferenceCatalog

store = InMemorySessionStore()
engine = DriftEngine(ReferenceCatalog(store))
```

Or use the command-line interface:
```bash
python -m drift_tracker --mode drift --uri ws://localhost:8765
```

## Version

0.1.0 - Initial implementation
"""

__version__ = "0.1.0"

# Export key classes for convenience
from .catalog import ReferenceCatalog
from .data_collector import DataCollector
from .engine import DriftEngine
from .errors import (
    ConsentRequired,
    DriftTrackerError,
    InvalidState,
    InvalidTransition,
    NoReference,
    PersistenceError,
    PositionUnavailable,
    TooFarFromReference,
)
from .estimator import AngleEstimator
from .model import (
    AngleSample,
    DriftPoint,
    DriftSession,
    PositionSample,
    ReferencePoint,
    SessionState,
)
from .path import ReferencePath
from .storage import InMemorySessionStore, SessionStore
from .summary import SessionSummary, summarize

__all__ = [
    "AngleEstimator",
    "ReferencePath",
    "ReferenceCatalog",
    "DriftEngine",
    "SessionStore",
    "InMemorySessionStore",
    "DataCollector",
    "SessionSummary",
    "summarize",
    "SessionState",
    "AngleSample",
    "PositionSample",
    "ReferencePoint",
    "DriftPoint",
    "DriftSession",
    "DriftTrackerError",
    "ConsentRequired",
    "NoReference",
    "TooFarFromReference",
    "InvalidTransition",
    "InvalidState",
    "PositionUnavailable",
    "PersistenceError",
]
