"""
Temporal landmark filtering with outlier rejection.

FILTERING STRATEGY:
1. Outlier rejection: a frame where any confident joint jumps more than
   15% of the frame since the last accepted frame is a detection glitch
2. Gaussian-weighted smoothing over a short ring buffer, peaked at the
   most recent frame (sigma = buffer length / 3)
3. Finite-difference velocity (2-frame lag) and acceleration from the
   velocity history
4. Jitter (mean frame-to-frame displacement) as a stability proxy

All derivatives use the frame timestamps. The configured fps is only a
fallback when timestamps are missing or not increasing.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Tuple
import logging

import numpy as np
from scipy.signal import windows

from formcoach.analysis.landmarks import Landmark, LandmarkFrame
from formcoach.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class EnhancedLandmark:
    """A landmark with its temporal estimates."""
    x: float
    y: float
    z: float
    visibility: float
    smoothed: Optional[Tuple[float, float, float]] = None
    velocity: Optional[Tuple[float, float, float]] = None
    acceleration: Optional[Tuple[float, float, float]] = None
    predicted: Optional[Tuple[float, float, float]] = None


def gaussian_weights(length: int) -> np.ndarray:
    """
    Weights for a buffer of `length` frames, peaked at the last one.

    Taken from the first half of a symmetric Gaussian window of size
    2 * length - 1, so weight[i] = exp(-(i - (length-1))^2 / (2 sigma^2)).
    """
    if length <= 0:
        return np.zeros(0)
    if length == 1:
        return np.ones(1)
    return windows.gaussian(2 * length - 1, std=length / 3.0)[:length]


def _as_tuple(vector: Optional[np.ndarray]) -> Optional[Tuple[float, float, float]]:
    if vector is None:
        return None
    return float(vector[0]), float(vector[1]), float(vector[2])


class LandmarkStreamFilter:
    """
    Per-session landmark filter.

    Features:
    - Fixed-capacity ring buffer of accepted frames
    - Visibility-weighted Gaussian smoothing
    - Per-joint velocity / acceleration / prediction
    - Jitter metric for stability scoring
    - Outlier rejection with recovery after repeated rejections
    """

    def __init__(
        self,
        buffer_size: Optional[int] = None,
        velocity_history_size: Optional[int] = None,
        confidence_threshold: Optional[float] = None,
        outlier_threshold: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize filter.

        Args:
            buffer_size: Number of accepted frames kept for smoothing
            velocity_history_size: Number of velocity samples kept per joint
            confidence_threshold: Minimum visibility for a joint to be trusted
            outlier_threshold: Max normalized 2D movement between accepted frames
            settings: Pipeline settings (defaults to the cached settings)
        """
        self.settings = settings or get_settings()
        self.buffer_size = buffer_size or self.settings.filter_buffer_size
        self.velocity_history_size = velocity_history_size or self.settings.velocity_history_size
        self.confidence_threshold = (
            confidence_threshold
            if confidence_threshold is not None
            else self.settings.filter_confidence_threshold
        )
        self.outlier_threshold = (
            outlier_threshold
            if outlier_threshold is not None
            else self.settings.outlier_max_movement
        )
        self.frame_interval = 1.0 / self.settings.assumed_fps

        self.buffer: Deque[LandmarkFrame] = deque(maxlen=self.buffer_size)

        # (timestamp, per-joint velocity array of shape (n, 3))
        self.velocity_history: Deque[Tuple[float, np.ndarray]] = deque(
            maxlen=self.velocity_history_size
        )

        self._consecutive_rejections = 0
        self.rejected_frames = 0

    @property
    def latest(self) -> Optional[LandmarkFrame]:
        return self.buffer[-1] if self.buffer else None

    def add(self, frame: LandmarkFrame) -> bool:
        """
        Push a frame through outlier rejection into the buffer.

        Returns:
            True if the frame was accepted
        """
        frame = self._stamp(frame)

        if self.buffer and self.is_outlier(frame):
            self._consecutive_rejections += 1
            self.rejected_frames += 1

            if self._consecutive_rejections < self.settings.max_consecutive_outliers:
                logger.debug(
                    f"Outlier frame rejected ({self._consecutive_rejections} in a row)"
                )
                return False

            # Repeated "glitches" mean the body really moved: start over from here
            logger.info(
                f"{self._consecutive_rejections} consecutive outliers, restarting filter history"
            )
            self.buffer.clear()
            self.velocity_history.clear()

        self._consecutive_rejections = 0
        self.buffer.append(frame)
        self._update_velocity()
        return True

    def is_outlier(self, frame: LandmarkFrame) -> bool:
        """Check whether any confident joint jumped too far since the last accepted frame."""
        last = self.latest
        if last is None:
            return False

        for current, previous in zip(frame.landmarks, last.landmarks):
            if current.visibility <= self.confidence_threshold:
                continue
            if current.distance_2d(previous) > self.outlier_threshold:
                return True
        return False

    def smoothed(self, index: int) -> Optional[Landmark]:
        """Gaussian-weighted average of a joint over the buffer."""
        if not self.buffer:
            return None

        weights = gaussian_weights(len(self.buffer))
        total_weight = 0.0
        position = np.zeros(3)
        visibility = 0.0

        for weight, frame in zip(weights, self.buffer):
            landmark = frame.get(index)
            if landmark is None or landmark.visibility <= self.confidence_threshold:
                continue
            position += landmark.to_array() * weight
            visibility += landmark.visibility * weight
            total_weight += weight

        if total_weight == 0:
            return self.buffer[-1].get(index)

        position /= total_weight
        return Landmark(
            x=float(position[0]),
            y=float(position[1]),
            z=float(position[2]),
            visibility=visibility / total_weight,
        )

    def smoothed_frame(self) -> Optional[LandmarkFrame]:
        """Smoothed version of the latest frame."""
        last = self.latest
        if last is None:
            return None
        return LandmarkFrame(
            landmarks=[self.smoothed(i) for i in range(len(last))],
            timestamp=last.timestamp,
        )

    def velocity(self, index: int) -> Optional[np.ndarray]:
        """Latest velocity of a joint in normalized units per second."""
        if not self.velocity_history:
            return None
        _, velocities = self.velocity_history[-1]
        if index >= len(velocities):
            return None
        return velocities[index]

    def acceleration(self, index: int) -> Optional[np.ndarray]:
        """Acceleration of a joint from the last two velocity samples."""
        if len(self.velocity_history) < 2:
            return None

        t1, previous = self.velocity_history[-2]
        t2, current = self.velocity_history[-1]
        if index >= len(previous) or index >= len(current):
            return None

        dt = t2 - t1
        if dt <= 0:
            dt = self.frame_interval
        return (current[index] - previous[index]) / dt

    def predict(self, index: int) -> Optional[Landmark]:
        """One-step linear prediction of a joint position."""
        current = self.smoothed(index)
        velocity = self.velocity(index)
        if current is None or velocity is None:
            return current

        dt = self._last_interval()
        position = current.to_array() + velocity * dt
        return Landmark(
            x=float(position[0]),
            y=float(position[1]),
            z=float(position[2]),
            visibility=current.visibility,
        )

    def jitter(self, index: int) -> float:
        """Mean frame-to-frame 2D displacement of a joint over the buffer."""
        if len(self.buffer) < 2:
            return 0.0

        frames = list(self.buffer)
        total = 0.0
        for previous, current in zip(frames, frames[1:]):
            a = previous.get(index)
            b = current.get(index)
            if a is not None and b is not None:
                total += b.distance_2d(a)

        return total / (len(frames) - 1)

    def enhanced_landmark(self, index: int) -> Optional[EnhancedLandmark]:
        """Raw landmark bundled with its smoothed, derivative and predicted values."""
        last = self.latest
        raw = last.get(index) if last else None
        if raw is None:
            return None

        smoothed = self.smoothed(index)
        predicted = self.predict(index)
        return EnhancedLandmark(
            x=raw.x,
            y=raw.y,
            z=raw.z,
            visibility=raw.visibility,
            smoothed=_as_tuple(smoothed.to_array()) if smoothed else None,
            velocity=_as_tuple(self.velocity(index)),
            acceleration=_as_tuple(self.acceleration(index)),
            predicted=_as_tuple(predicted.to_array()) if predicted else None,
        )

    def enhanced_landmarks(self, indices: List[int]) -> Dict[int, EnhancedLandmark]:
        result = {}
        for index in indices:
            enhanced = self.enhanced_landmark(int(index))
            if enhanced is not None:
                result[int(index)] = enhanced
        return result

    def reset(self):
        """Reset all filter history."""
        self.buffer.clear()
        self.velocity_history.clear()
        self._consecutive_rejections = 0
        self.rejected_frames = 0

    def _stamp(self, frame: LandmarkFrame) -> LandmarkFrame:
        """Give untimed frames a timestamp one nominal frame after the last."""
        if frame.timestamp is not None:
            return frame
        last = self.latest
        timestamp = (last.timestamp + self.frame_interval) if last is not None else 0.0
        return frame.with_timestamp(timestamp)

    def _last_interval(self) -> float:
        if len(self.buffer) < 2:
            return self.frame_interval
        dt = self.buffer[-1].timestamp - self.buffer[-2].timestamp
        return dt if dt > 0 else self.frame_interval

    def _update_velocity(self):
        """Finite difference over a 2-frame lag for every joint."""
        if len(self.buffer) < 3:
            return

        current = self.buffer[-1]
        previous = self.buffer[-3]
        count = min(len(current), len(previous))
        if count == 0:
            return

        dt = current.timestamp - previous.timestamp
        if dt <= 0:
            dt = 2 * self.frame_interval

        cur = np.array([lm.to_array() for lm in current.landmarks[:count]])
        prev = np.array([lm.to_array() for lm in previous.landmarks[:count]])
        self.velocity_history.append((current.timestamp, (cur - prev) / dt))
