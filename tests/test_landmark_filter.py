"""Tests for the landmark stream filter."""

import numpy as np
import pytest

from formcoach.analysis.landmark_filter import LandmarkStreamFilter, gaussian_weights
from formcoach.analysis.landmarks import Landmark, LandmarkFrame


def _frame(x: float, timestamp=None, visibility: float = 1.0, y: float = 0.5) -> LandmarkFrame:
    """Every joint at the same position."""
    return LandmarkFrame([Landmark(x, y, 0.0, visibility) for _ in range(33)], timestamp=timestamp)


class TestGaussianWeights:

    def test_single_frame(self):
        np.testing.assert_allclose(gaussian_weights(1), [1.0])

    def test_empty(self):
        assert len(gaussian_weights(0)) == 0

    def test_newest_frame_weighs_most(self):
        weights = gaussian_weights(10)
        assert len(weights) == 10
        assert weights[-1] == pytest.approx(1.0)
        assert np.all(np.diff(weights) > 0)


class TestOutlierRejection:

    def test_first_frame_always_accepted(self):
        f = LandmarkStreamFilter()
        assert f.add(_frame(0.5, 0.0))
        assert len(f.buffer) == 1

    def test_large_jump_rejected(self):
        f = LandmarkStreamFilter()
        f.add(_frame(0.5, 0.0))
        assert not f.add(_frame(0.9, 0.1))
        assert f.latest.landmarks[0].x == 0.5
        assert f.rejected_frames == 1

    def test_small_move_accepted(self):
        f = LandmarkStreamFilter()
        f.add(_frame(0.5, 0.0))
        assert f.add(_frame(0.55, 0.1))

    def test_low_visibility_jump_ignored(self):
        f = LandmarkStreamFilter()
        f.add(_frame(0.5, 0.0))
        assert f.add(_frame(0.9, 0.1, visibility=0.3))

    def test_recovers_after_repeated_outliers(self):
        f = LandmarkStreamFilter()
        f.add(_frame(0.5, 0.0))
        f.add(_frame(0.5, 0.1))

        assert not f.add(_frame(0.9, 0.2))
        assert not f.add(_frame(0.9, 0.3))
        # Third in a row: the body really moved
        assert f.add(_frame(0.9, 0.4))
        assert len(f.buffer) == 1
        assert f.latest.landmarks[0].x == 0.9
        assert len(f.velocity_history) == 0

    def test_rejection_streak_resets_on_accept(self):
        f = LandmarkStreamFilter()
        f.add(_frame(0.5, 0.0))
        assert not f.add(_frame(0.9, 0.1))
        assert f.add(_frame(0.52, 0.2))
        assert not f.add(_frame(0.9, 0.3))
        assert not f.add(_frame(0.9, 0.4))
        assert len(f.buffer) == 2


class TestSmoothing:

    def test_untimed_frames_are_stamped(self):
        f = LandmarkStreamFilter()
        f.add(_frame(0.5))
        f.add(_frame(0.5))
        assert f.buffer[0].timestamp == 0.0
        assert f.buffer[1].timestamp == pytest.approx(1.0 / 30.0)

    def test_constant_position(self):
        f = LandmarkStreamFilter()
        for i in range(5):
            f.add(_frame(0.4, i * 0.1))
        smoothed = f.smoothed(0)
        assert smoothed.x == pytest.approx(0.4)
        assert smoothed.y == pytest.approx(0.5)

    def test_low_visibility_samples_skipped(self):
        f = LandmarkStreamFilter()
        f.add(_frame(0.4, 0.0))
        f.add(_frame(0.45, 0.1, visibility=0.2))
        assert f.smoothed(0).x == pytest.approx(0.4)

    def test_falls_back_to_raw_when_nothing_visible(self):
        f = LandmarkStreamFilter()
        f.add(_frame(0.4, 0.0, visibility=0.1))
        assert f.smoothed(0) == Landmark(0.4, 0.5, 0.0, 0.1)

    def test_smoothed_frame_size(self):
        f = LandmarkStreamFilter()
        assert f.smoothed_frame() is None
        f.add(_frame(0.4, 0.0))
        assert len(f.smoothed_frame()) == 33

    def test_buffer_capacity(self):
        f = LandmarkStreamFilter(buffer_size=4)
        for i in range(10):
            f.add(_frame(0.5, i * 0.1))
        assert len(f.buffer) == 4


class TestDerivatives:

    def _moving_filter(self, n=4, step=0.01, dt=0.1):
        f = LandmarkStreamFilter()
        for i in range(n):
            f.add(_frame(0.5 + i * step, i * dt))
        return f

    def test_velocity_needs_three_frames(self):
        f = self._moving_filter(n=2)
        assert f.velocity(0) is None

    def test_velocity_uses_timestamps(self):
        f = self._moving_filter(n=3)
        np.testing.assert_allclose(f.velocity(0), [0.1, 0.0, 0.0], atol=1e-9)

    def test_constant_velocity_has_no_acceleration(self):
        f = self._moving_filter(n=4)
        np.testing.assert_allclose(f.acceleration(0), [0.0, 0.0, 0.0], atol=1e-6)

    def test_prediction_extrapolates(self):
        f = self._moving_filter(n=4)
        smoothed = f.smoothed(0)
        predicted = f.predict(0)
        assert predicted.x == pytest.approx(smoothed.x + 0.1 * 0.1)

    def test_jitter(self):
        f = self._moving_filter(n=4, step=0.01)
        assert f.jitter(0) == pytest.approx(0.01)

        still = LandmarkStreamFilter()
        still.add(_frame(0.5, 0.0))
        still.add(_frame(0.5, 0.1))
        assert still.jitter(0) == 0.0

    def test_enhanced_landmark(self):
        f = self._moving_filter(n=4)
        enhanced = f.enhanced_landmark(0)
        assert enhanced.x == pytest.approx(0.53)
        assert enhanced.velocity is not None
        assert len(enhanced.predicted) == 3

        bundle = f.enhanced_landmarks([0, 11, 40])
        assert set(bundle) == {0, 11}

    def test_reset(self):
        f = self._moving_filter(n=4)
        f.reset()
        assert f.latest is None
        assert f.velocity(0) is None
