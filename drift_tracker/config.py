"""Configuration parameters for the drift tracking system.

This module centralizes all configuration parameters including:
- Angle estimator (scalar Kalman filter) noise terms
- Reference matching and proximity gate
- Sampling cadences for the motion stream and the recording tick
- WebSocket connection parameters for the live telemetry feed

Every parameter carries its unit in its docstring.
"""

# ============================================================================
# Angle Estimator Parameters (Scalar Kalman Filter)
# ============================================================================

ESTIMATOR_INITIAL_ESTIMATE = 0.0
"""Initial angle estimate (degrees).

The gyro integrator has no absolute reference, so zero is arbitrary. Drift
sessions compensate for this with a per-session angle offset.
"""

ESTIMATOR_INITIAL_UNCERTAINTY = 1.0
"""Initial estimate variance (deg²)."""

ESTIMATOR_MEASUREMENT_NOISE = 0.1
"""Variance of an absolute angle correction passed to ``update`` (deg²).

Only used when a correction is applied. No periodic absolute-angle source
exists in the live pipeline, so the estimate is pure rate integration.
"""

ESTIMATOR_PROCESS_NOISE = 0.01
"""Variance added to the estimate on every prediction step (deg²).

Models gyro noise accumulated per integration step. At 100 Hz the
uncertainty grows by 1 deg² per second without corrections.
"""


# ============================================================================
# Reference Matching
# ============================================================================

PROXIMITY_THRESHOLD_METERS = 50.0
"""Maximum distance to the nearest reference point to start a drift session (meters).

A drift session compares the live heading against the heading recorded at
the matched reference point. Beyond this distance the vehicle is not on the
reference path and the comparison is meaningless, so the start is refused.
"""

EARTH_RADIUS_METERS = 6371000.0
"""Mean Earth radius used by the haversine distance (meters)."""


# ============================================================================
# Sampling Cadence
# ============================================================================

MOTION_UPDATE_INTERVAL_SECONDS = 0.01
"""Nominal angular-rate sample interval (seconds), 100 Hz.

Used as the integration step for the very first gyro sample, when no
previous timestamp exists to derive dt from.
"""

MAX_RATE_GAP_SECONDS = 0.1
"""Largest gap between gyro samples integrated as-is (seconds).

After a longer pause (sensor stall, app suspended) the next sample is
integrated over ``MOTION_UPDATE_INTERVAL_SECONDS`` instead of the whole gap,
so one sample cannot swing the heading by rate × pause.
"""

TICK_INTERVAL_SECONDS = 0.1
"""Period of the recording tick (seconds), 10 Hz.

Each tick reads the last known position and the current angle estimate and
records one reference point or one drift point.
"""


# ============================================================================
# Unit Conversion
# ============================================================================

MS_TO_KMH = 3.6
"""Conversion factor from m/s to km/h."""


# ============================================================================
# Session Naming
# ============================================================================

REFERENCE_NAME_FORMAT = "Reference Session %Y-%m-%d %H:%M"
"""strftime format for the default name of a new reference path."""

DRIFT_NAME_FORMAT = "Drift Session %Y-%m-%d %H:%M"
"""strftime format for the default name of a new drift session."""

UNKNOWN_LOCATION = "Unknown Location"
"""Location label used when the caller does not supply one."""


# ============================================================================
# Terminal Colors
# ============================================================================

TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for warnings shown to the driver (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for status messages (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_URI = "ws://localhost:8765"
"""WebSocket URI of the telemetry feed (gyro + GPS messages)."""

WS_RETRY_DELAY_SECONDS = 1
"""Initial retry delay for failed WebSocket connections (seconds)."""

WS_MAX_RETRY_DELAY_SECONDS = 60
"""Maximum retry delay with exponential backoff (seconds)."""

WS_TIMEOUT_SECONDS = 5.0
"""Timeout for WebSocket message reception (seconds)."""


# ============================================================================
# Output
# ============================================================================

RESULTS_DIR = "results"
"""Directory (relative to the output dir) that receives per-run CSV logs."""
