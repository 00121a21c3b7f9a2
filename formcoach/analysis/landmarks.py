"""
Landmark and frame types for the analysis pipeline.

Frames follow the 33-joint MediaPipe Pose indexing. Coordinates are
normalized image space (x right, y down), z is depth relative to the
hips, visibility is the detector's confidence for the joint.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, List, Optional, Sequence

import numpy as np


class PoseLandmark(IntEnum):
    """MediaPipe Pose landmark indices."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_LANDMARKS = 33

# Joints consumed by the pipeline
CORE_JOINTS = (
    PoseLandmark.LEFT_SHOULDER,
    PoseLandmark.RIGHT_SHOULDER,
    PoseLandmark.LEFT_HIP,
    PoseLandmark.RIGHT_HIP,
    PoseLandmark.LEFT_KNEE,
    PoseLandmark.RIGHT_KNEE,
)
TRACKED_JOINTS = CORE_JOINTS + (
    PoseLandmark.LEFT_ELBOW,
    PoseLandmark.RIGHT_ELBOW,
    PoseLandmark.LEFT_WRIST,
    PoseLandmark.RIGHT_WRIST,
    PoseLandmark.LEFT_ANKLE,
    PoseLandmark.RIGHT_ANKLE,
)


@dataclass(frozen=True)
class Landmark:
    """Single joint with normalized 3D position and visibility."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 0.0

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, z]."""
        return np.array([self.x, self.y, self.z], dtype=float)

    def distance_2d(self, other: "Landmark") -> float:
        return float(np.hypot(self.x - other.x, self.y - other.y))

    @classmethod
    def coerce(cls, item: Any) -> "Landmark":
        """Build a Landmark from an object with attributes, a dict, or a tuple."""
        if isinstance(item, Landmark):
            return item
        if isinstance(item, dict):
            return cls(
                x=float(item.get("x", 0.0)),
                y=float(item.get("y", 0.0)),
                z=float(item.get("z", 0.0)),
                visibility=float(item.get("visibility", 0.0)),
            )
        if isinstance(item, (tuple, list)):
            values = list(item) + [0.0] * (4 - len(item))
            return cls(*(float(v) for v in values[:4]))
        # Pose detector results (e.g. MediaPipe NormalizedLandmark)
        return cls(
            x=float(item.x),
            y=float(item.y),
            z=float(getattr(item, "z", 0.0)),
            visibility=float(getattr(item, "visibility", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class LandmarkFrame:
    """All landmarks captured at the same instant."""
    landmarks: List[Landmark] = field(default_factory=list)
    timestamp: Optional[float] = None

    @classmethod
    def from_sequence(
        cls,
        items: Iterable[Any],
        timestamp: Optional[float] = None,
    ) -> "LandmarkFrame":
        return cls(landmarks=[Landmark.coerce(item) for item in items], timestamp=timestamp)

    def __len__(self) -> int:
        return len(self.landmarks)

    def __getitem__(self, index: int) -> Landmark:
        return self.landmarks[index]

    def get(self, index: int) -> Optional[Landmark]:
        """Safely get landmark by index."""
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None

    def has_joints(self, indices: Sequence[int]) -> bool:
        return all(self.get(i) is not None for i in indices)

    def min_visibility(self, indices: Sequence[int]) -> float:
        """Lowest visibility among the given joints, 0 when any is missing."""
        values = []
        for i in indices:
            landmark = self.get(i)
            if landmark is None:
                return 0.0
            values.append(landmark.visibility)
        return min(values) if values else 0.0

    def midpoint(self, left: int, right: int) -> np.ndarray:
        return (self.landmarks[left].to_array() + self.landmarks[right].to_array()) / 2.0

    def with_timestamp(self, timestamp: float) -> "LandmarkFrame":
        return LandmarkFrame(landmarks=self.landmarks, timestamp=timestamp)
