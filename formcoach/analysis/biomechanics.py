"""
Joint angle, physics and biomechanical metrics for a single frame.

Everything here is a pure function of a frame, the previous frame and
the stream filter. The caller supplies the elapsed time between frames;
the configured fps is only used when no positive interval is available.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import math

import numpy as np

from formcoach.analysis.landmark_filter import LandmarkStreamFilter
from formcoach.analysis.landmarks import Landmark, LandmarkFrame, PoseLandmark as PL
from formcoach.config import Settings, get_settings

GRAVITY = 9.81

# Placeholder until per-exercise range-of-motion calibration exists
DEFAULT_RANGE_OF_MOTION = 85.0

# (proximal, vertex, distal) per joint
JOINT_TRIPLETS: Dict[str, Tuple[int, int, int]] = {
    "left_knee": (PL.LEFT_HIP, PL.LEFT_KNEE, PL.LEFT_ANKLE),
    "right_knee": (PL.RIGHT_HIP, PL.RIGHT_KNEE, PL.RIGHT_ANKLE),
    "left_elbow": (PL.LEFT_SHOULDER, PL.LEFT_ELBOW, PL.LEFT_WRIST),
    "right_elbow": (PL.RIGHT_SHOULDER, PL.RIGHT_ELBOW, PL.RIGHT_WRIST),
    "left_hip": (PL.LEFT_SHOULDER, PL.LEFT_HIP, PL.LEFT_KNEE),
    "right_hip": (PL.RIGHT_SHOULDER, PL.RIGHT_HIP, PL.RIGHT_KNEE),
    "left_body": (PL.LEFT_SHOULDER, PL.LEFT_HIP, PL.LEFT_ANKLE),
    "right_body": (PL.RIGHT_SHOULDER, PL.RIGHT_HIP, PL.RIGHT_ANKLE),
}

SYMMETRY_PAIRS = (
    ("left_knee", "right_knee"),
    ("left_elbow", "right_elbow"),
    ("left_hip", "right_hip"),
)


@dataclass
class PhysicsSnapshot:
    """Whole-body motion estimates for one frame."""
    velocity: float = 0.0       # m/s
    acceleration: float = 0.0   # m/s^2
    momentum: float = 0.0       # kg*m/s
    stability: float = 100.0    # 0-100
    power_output: float = 0.0   # W


@dataclass
class BiomechanicalSnapshot:
    """Joint-level summary for one frame."""
    joint_angles: Dict[str, float] = field(default_factory=dict)
    range_of_motion: float = DEFAULT_RANGE_OF_MOTION
    asymmetry: float = 0.0      # degrees
    balance_score: float = 100.0
    depth_estimate: float = 1.0


def angle_2d(a: Landmark, b: Landmark, c: Landmark, signed: bool = False) -> float:
    """
    Angle at vertex b from x/y only, in degrees.

    Unsigned angles are folded into [0, 180]. Signed angles are in
    (-180, 180], positive when turning from a to c counter-clockwise in
    image coordinates.
    """
    radians = math.atan2(c.y - b.y, c.x - b.x) - math.atan2(a.y - b.y, a.x - b.x)
    angle = math.degrees(radians)

    if signed:
        while angle > 180.0:
            angle -= 360.0
        while angle <= -180.0:
            angle += 360.0
        return angle

    angle = abs(angle)
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def angle_3d(a: Landmark, b: Landmark, c: Landmark) -> float:
    """Angle at vertex b using x/y/z, in degrees."""
    ba = a.to_array() - b.to_array()
    bc = c.to_array() - b.to_array()

    norm = np.linalg.norm(ba) * np.linalg.norm(bc)
    if norm == 0:
        # Coincident points, treat the joint as straight
        return 180.0

    cosine = np.clip(np.dot(ba, bc) / norm, -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine)))


def joint_angle(frame: LandmarkFrame, joint: str) -> float:
    a, b, c = JOINT_TRIPLETS[joint]
    return angle_3d(frame[a], frame[b], frame[c])


def segment_angle_difference(
    top_a: Landmark,
    bottom_a: Landmark,
    top_b: Landmark,
    bottom_b: Landmark,
) -> float:
    """Absolute difference between two segment orientations, folded into [0, 180]."""
    first = math.atan2(top_a.y - bottom_a.y, top_a.x - bottom_a.x)
    second = math.atan2(top_b.y - bottom_b.y, top_b.x - bottom_b.x)
    diff = abs(math.degrees(first - second)) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def hips_below_line(shoulder: Landmark, hip: Landmark, ankle: Landmark) -> bool:
    """
    Whether the hip sits below the straight shoulder-ankle line.

    Image y grows downward, so "below" means a larger y than the line at
    the hip's x position.
    """
    dx = ankle.x - shoulder.x
    if abs(dx) < 1e-6:
        line_y = (shoulder.y + ankle.y) / 2.0
    else:
        line_y = shoulder.y + (ankle.y - shoulder.y) * (hip.x - shoulder.x) / dx
    return hip.y > line_y


def estimate_depth(frame: LandmarkFrame, settings: Optional[Settings] = None) -> float:
    """Distance-to-camera estimate from apparent shoulder width, clamped to [0.5, 2.0]."""
    settings = settings or get_settings()
    width = frame[PL.LEFT_SHOULDER].distance_2d(frame[PL.RIGHT_SHOULDER])
    if width <= 1e-9:
        return 2.0
    return float(np.clip(settings.reference_shoulder_width / width, 0.5, 2.0))


def joint_stability(
    landmark: Landmark,
    index: int,
    stream_filter: LandmarkStreamFilter,
) -> float:
    """
    Stability score 0-100 for one joint.

    50% jitter, 30% velocity magnitude, 20% visibility.
    """
    jitter_score = max(0.0, 100.0 - stream_filter.jitter(index) * 5000.0)

    velocity = stream_filter.velocity(index)
    velocity_score = 100.0
    if velocity is not None:
        velocity_score = max(0.0, 100.0 - float(np.linalg.norm(velocity)) * 100.0)

    visibility_score = landmark.visibility * 100.0
    return jitter_score * 0.5 + velocity_score * 0.3 + visibility_score * 0.2


def compute_physics(
    frame: LandmarkFrame,
    previous: Optional[LandmarkFrame],
    stream_filter: LandmarkStreamFilter,
    body_weight_kg: float,
    delta_time: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> PhysicsSnapshot:
    """
    Estimate body motion between two frames.

    Args:
        frame: Current frame
        previous: Previous analyzed frame (None on the first frame)
        stream_filter: Filter holding the recent history
        body_weight_kg: Mass used for momentum and power
        delta_time: Seconds elapsed since `previous`
        settings: Pipeline settings

    Returns:
        PhysicsSnapshot
    """
    settings = settings or get_settings()
    if delta_time is None or delta_time <= 0:
        delta_time = 1.0 / settings.assumed_fps
    scale = settings.body_height_m

    hip_center = frame.midpoint(PL.LEFT_HIP, PL.RIGHT_HIP)
    knee_center = frame.midpoint(PL.LEFT_KNEE, PL.RIGHT_KNEE)

    velocity = 0.0
    vertical_velocity = 0.0
    if previous is not None and len(previous) >= len(frame):
        prev_hip = previous.midpoint(PL.LEFT_HIP, PL.RIGHT_HIP)
        prev_knee = previous.midpoint(PL.LEFT_KNEE, PL.RIGHT_KNEE)

        displacement = (
            np.linalg.norm(hip_center - prev_hip) + np.linalg.norm(knee_center - prev_knee)
        ) / 2.0
        velocity = float(displacement * scale / delta_time)
        vertical_velocity = float(abs(hip_center[1] - prev_hip[1]) * scale / delta_time)

    acceleration = 0.0
    hip_acceleration = stream_filter.acceleration(PL.LEFT_HIP)
    if hip_acceleration is not None:
        acceleration = float(np.linalg.norm(hip_acceleration) * scale)

    return PhysicsSnapshot(
        velocity=velocity,
        acceleration=acceleration,
        momentum=body_weight_kg * velocity,
        stability=joint_stability(frame[PL.LEFT_HIP], PL.LEFT_HIP, stream_filter),
        power_output=body_weight_kg * GRAVITY * vertical_velocity,
    )


def compute_biomechanics(
    frame: LandmarkFrame,
    settings: Optional[Settings] = None,
) -> BiomechanicalSnapshot:
    """Joint angles, left/right asymmetry, balance and depth for one frame."""
    angles = {name: joint_angle(frame, name) for name in JOINT_TRIPLETS}

    asymmetry = float(np.mean([abs(angles[left] - angles[right]) for left, right in SYMMETRY_PAIRS]))

    com_x = float(np.mean([lm.x for lm in frame.landmarks]))
    foot_center_x = (frame[PL.LEFT_ANKLE].x + frame[PL.RIGHT_ANKLE].x) / 2.0
    balance = max(0.0, 100.0 - abs(com_x - foot_center_x) * 500.0)

    return BiomechanicalSnapshot(
        joint_angles=angles,
        range_of_motion=DEFAULT_RANGE_OF_MOTION,
        asymmetry=asymmetry,
        balance_score=balance,
        depth_estimate=estimate_depth(frame, settings),
    )
