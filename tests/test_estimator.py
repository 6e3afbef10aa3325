"""
Tests for the heading estimator.
"""

from types import SimpleNamespace

import pytest
from numpy.testing import assert_allclose

from drift_tracker.estimator import AngleEstimator


class TestDefaults:
    """Construction from configuration."""

    def test_config_defaults(self):
        est = AngleEstimator()
        assert est.state() == 0.0
        assert est.uncertainty() == 1.0
        assert est.measurement_noise == 0.1
        assert est.process_noise == 0.01

    def test_explicit_arguments_override_config(self):
        est = AngleEstimator(initial_estimate=12.0, process_noise=0.5)
        assert est.state() == 12.0
        assert est.process_noise == 0.5
        assert est.measurement_noise == 0.1

    def test_custom_config_object(self):
        cfg = SimpleNamespace(
            ESTIMATOR_INITIAL_ESTIMATE=3.0,
            ESTIMATOR_INITIAL_UNCERTAINTY=2.0,
            ESTIMATOR_MEASUREMENT_NOISE=0.5,
            ESTIMATOR_PROCESS_NOISE=0.2,
        )
        est = AngleEstimator(config=cfg)
        assert est.state() == 3.0
        assert est.uncertainty() == 2.0


class TestPredict:
    """Rate integration."""

    def test_zero_rate_keeps_estimate(self):
        """Integrating a zero rate never moves the estimate."""
        est = AngleEstimator(initial_estimate=7.5)
        for _ in range(1000):
            est.predict(0.0, 0.01)
        assert est.state() == 7.5

    def test_integrates_rate_times_dt(self):
        est = AngleEstimator()
        est.predict(10.0, 0.5)
        est.predict(-4.0, 0.25)
        assert_allclose(est.state(), 4.0)

    def test_uncertainty_grows_by_process_noise(self):
        est = AngleEstimator()
        for _ in range(10):
            est.predict(1.0, 0.01)
        assert_allclose(est.uncertainty(), 1.0 + 10 * 0.01)


class TestUpdate:
    """Absolute-angle correction."""

    @pytest.mark.parametrize("prior, measurement", [(0.0, 10.0), (10.0, -5.0), (3.0, 3.5)])
    def test_estimate_moves_between_prior_and_measurement(self, prior, measurement):
        est = AngleEstimator(initial_estimate=prior)
        u_before = est.uncertainty()

        est.update(measurement)

        low, high = sorted((prior, measurement))
        assert low < est.state() < high
        assert est.uncertainty() < u_before

    def test_gain_formula(self):
        est = AngleEstimator(initial_estimate=0.0, initial_uncertainty=1.0, measurement_noise=0.1)
        est.update(11.0)
        gain = 1.0 / 1.1
        assert_allclose(est.state(), gain * 11.0)
        assert_allclose(est.uncertainty(), 1.0 * (1.0 - gain))

    def test_measurement_equal_to_estimate(self):
        est = AngleEstimator(initial_estimate=4.0)
        est.update(4.0)
        assert est.state() == 4.0


class TestDiagnostics:
    def test_counts_and_reset(self):
        est = AngleEstimator(initial_estimate=1.0)
        est.predict(5.0, 1.0)
        est.predict(5.0, 1.0)
        est.update(0.0)

        diag = est.get_diagnostics()
        assert diag["predict_count"] == 2
        assert diag["update_count"] == 1
        assert diag["angle"] == est.state()

        est.reset()
        assert est.state() == 1.0
        assert est.uncertainty() == 1.0
        assert est.get_diagnostics()["predict_count"] == 0
