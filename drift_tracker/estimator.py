"""Angle estimation module for drift tracking.

This module provides a one-dimensional Kalman filter that turns the
high-rate gyroscope stream into a stable heading estimate:
- Prediction at ~100 Hz integrates angular rate into the angle
- Optional correction with an absolute angle measurement
- Scalar uncertainty propagation

Note: the live pipeline never calls ``update``. No absolute heading source
exists, so the estimate is pure rate integration and drifts without bound
over long sessions. Drift sessions only compare relative angles (see
``DriftEngine.start_drift_recording``), which keeps short sessions usable.
"""

from typing import Dict, Optional

from . import config as default_config


class AngleEstimator:
    """Scalar Kalman filter for a heading angle in degrees.

    State:
        - angle: Heading estimate (degrees), arbitrary zero
        - uncertainty: Variance of the estimate (deg²)

    The estimator is not thread-safe on its own; callers that predict from a
    sensor thread and read from another must serialize access (the
    ``DriftEngine`` does this with its lock).
    """

    def __init__(
        self,
        initial_estimate: Optional[float] = None,
        initial_uncertainty: Optional[float] = None,
        measurement_noise: Optional[float] = None,
        process_noise: Optional[float] = None,
        config=None,
    ) -> None:
        """Initialize the estimator.

        Args:
            initial_estimate: Starting angle (degrees).
            initial_uncertainty: Starting variance (deg²).
            measurement_noise: Variance of absolute corrections (deg²).
            process_noise: Variance added per prediction step (deg²).
            config: Configuration module or object providing defaults for any
                argument left as None. Defaults to drift_tracker.config.
        """
        cfg = config if config is not None else default_config

        self.initial_estimate = (
            cfg.ESTIMATOR_INITIAL_ESTIMATE if initial_estimate is None else initial_estimate
        )
        self.initial_uncertainty = (
            cfg.ESTIMATOR_INITIAL_UNCERTAINTY if initial_uncertainty is None else initial_uncertainty
        )
        self.measurement_noise = (
            cfg.ESTIMATOR_MEASUREMENT_NOISE if measurement_noise is None else measurement_noise
        )
        self.process_noise = (
            cfg.ESTIMATOR_PROCESS_NOISE if process_noise is None else process_noise
        )

        self._angle = float(self.initial_estimate)
        self._uncertainty = float(self.initial_uncertainty)

        # Diagnostics
        self.predict_count = 0
        self.update_count = 0

    def predict(self, rate_deg_per_sec: float, dt: float) -> None:
        """Integrate an angular rate sample (prediction step).

        O(1) and allocation free so it keeps up with the sensor stream.
        ``dt`` must be positive; this is the caller's contract and is not
        checked here.

        Args:
            rate_deg_per_sec: Angular rate around the vertical axis (deg/s).
            dt: Time since the previous sample (seconds).
        """
        self._angle += rate_deg_per_sec * dt
        self._uncertainty += self.process_noise
        self.predict_count += 1

    def update(self, measurement: float) -> None:
        """Correct the estimate with an absolute angle measurement.

        Args:
            measurement: Measured angle (degrees) in the estimator's frame.
        """
        gain = self._uncertainty / (self._uncertainty + self.measurement_noise)
        self._angle += gain * (measurement - self._angle)
        self._uncertainty *= 1.0 - gain
        self.update_count += 1

    def state(self) -> float:
        """Current angle estimate (degrees)."""
        return self._angle

    def uncertainty(self) -> float:
        """Current estimate variance (deg²)."""
        return self._uncertainty

    def get_diagnostics(self) -> Dict[str, float]:
        """Get estimator diagnostic information.

        Returns:
            Dictionary containing:
                - angle: Current estimate (degrees)
                - uncertainty: Current variance (deg²)
                - predict_count: Number of prediction steps applied
                - update_count: Number of corrections applied
        """
        return {
            "angle": self._angle,
            "uncertainty": self._uncertainty,
            "predict_count": self.predict_count,
            "update_count": self.update_count,
        }

    def reset(self) -> None:
        """Reset the filter to its initial conditions."""
        self._angle = float(self.initial_estimate)
        self._uncertainty = float(self.initial_uncertainty)
        self.predict_count = 0
        self.update_count = 0
