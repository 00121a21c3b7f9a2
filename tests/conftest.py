"""Shared synthetic pose builders.

Frames are built in normalized image coordinates (y grows downward) with
every one of the 33 landmarks present and fully visible unless a test
says otherwise.
"""

import math

import pytest

from formcoach.analysis.landmarks import Landmark, LandmarkFrame, PoseLandmark as PL
from formcoach.config import Settings


def base_landmarks(visibility: float = 1.0):
    """33 landmarks parked at the center of the frame."""
    return [Landmark(x=0.5, y=0.5, z=0.0, visibility=visibility) for _ in range(33)]


def build_squat_landmarks(knee_angle: float, visibility: float = 1.0, knee_shift: float = 0.0):
    """
    Side-on squatter with both legs mirrored.

    Knees sit at y=0.7 directly above the ankles (y=0.9); the thigh is
    rotated so the knee angle equals `knee_angle` and the torso stays
    vertical above the hips. A positive `knee_shift` pulls both knees in
    toward the midline (valgus), tilting the shins.
    """
    lm = base_landmarks(visibility)
    theta = math.radians(knee_angle)

    for side, x, inward in (("LEFT", 0.45, 1.0), ("RIGHT", 0.55, -1.0)):
        knee = (x + inward * knee_shift, 0.7)
        hip = (knee[0] + 0.2 * math.sin(theta), 0.7 + 0.2 * math.cos(theta))
        shoulder = (hip[0], hip[1] - 0.3)
        elbow = (shoulder[0], shoulder[1] + 0.15)
        wrist = (shoulder[0], shoulder[1] + 0.3)

        lm[PL[f"{side}_SHOULDER"]] = Landmark(*shoulder, 0.0, visibility)
        lm[PL[f"{side}_ELBOW"]] = Landmark(*elbow, 0.0, visibility)
        lm[PL[f"{side}_WRIST"]] = Landmark(*wrist, 0.0, visibility)
        lm[PL[f"{side}_HIP"]] = Landmark(*hip, 0.0, visibility)
        lm[PL[f"{side}_KNEE"]] = Landmark(*knee, 0.0, visibility)
        lm[PL[f"{side}_ANKLE"]] = Landmark(x, 0.9, 0.0, visibility)
    return lm


def build_plank_landmarks(hip_drop: float = 0.0, visibility: float = 1.0):
    """Side-on plank, shoulders to ankles horizontal at y=0.5; positive `hip_drop` sags the hips."""
    lm = base_landmarks(visibility)
    for side in ("LEFT", "RIGHT"):
        lm[PL[f"{side}_SHOULDER"]] = Landmark(0.3, 0.5, 0.0, visibility)
        lm[PL[f"{side}_ELBOW"]] = Landmark(0.3, 0.65, 0.0, visibility)
        lm[PL[f"{side}_WRIST"]] = Landmark(0.3, 0.8, 0.0, visibility)
        lm[PL[f"{side}_HIP"]] = Landmark(0.5, 0.5 + hip_drop, 0.0, visibility)
        lm[PL[f"{side}_KNEE"]] = Landmark(0.65, 0.5, 0.0, visibility)
        lm[PL[f"{side}_ANKLE"]] = Landmark(0.8, 0.5, 0.0, visibility)
    return lm


def build_pushup_landmarks(elbow_angle: float, visibility: float = 1.0):
    """
    Side-on push-up with the hands under the shoulders and the feet fixed.

    Upper arm and forearm are both 0.15 long, so the shoulder rises and
    falls with `elbow_angle`; hips and knees stay on the straight
    shoulder-ankle line.
    """
    lm = base_landmarks(visibility)
    half = math.radians(elbow_angle) / 2.0
    rise = 0.15 * math.sin(half)

    wrist = (0.3, 0.8)
    elbow = (0.3 + 0.15 * math.cos(half), 0.8 - rise)
    shoulder = (0.3, 0.8 - 2.0 * rise)
    ankle = (0.8, 0.8)
    hip = (0.6 * shoulder[0] + 0.4 * ankle[0], 0.6 * shoulder[1] + 0.4 * ankle[1])
    knee = (0.3 * shoulder[0] + 0.7 * ankle[0], 0.3 * shoulder[1] + 0.7 * ankle[1])

    for side in ("LEFT", "RIGHT"):
        lm[PL[f"{side}_SHOULDER"]] = Landmark(*shoulder, 0.0, visibility)
        lm[PL[f"{side}_ELBOW"]] = Landmark(*elbow, 0.0, visibility)
        lm[PL[f"{side}_WRIST"]] = Landmark(*wrist, 0.0, visibility)
        lm[PL[f"{side}_HIP"]] = Landmark(*hip, 0.0, visibility)
        lm[PL[f"{side}_KNEE"]] = Landmark(*knee, 0.0, visibility)
        lm[PL[f"{side}_ANKLE"]] = Landmark(*ankle, 0.0, visibility)
    return lm


def build_lunge_landmarks(front_knee_angle: float, visibility: float = 1.0):
    """
    Side-on lunge with the left leg forward.

    The front shin is vertical over its ankle and the thigh is rotated so
    the front knee angle equals `front_knee_angle`. The back knee hangs
    under the hips and moves with them.
    """
    lm = base_landmarks(visibility)
    theta = math.radians(front_knee_angle)

    front_knee = (0.4, 0.7)
    front_ankle = (0.4, 0.9)
    hip = (0.4 + 0.2 * math.sin(theta), 0.7 + 0.2 * math.cos(theta))
    back_knee = (hip[0] + 0.1, hip[1] + 0.15)
    back_ankle = (0.75, 0.9)
    shoulder = (hip[0], hip[1] - 0.3)

    for side in ("LEFT", "RIGHT"):
        lm[PL[f"{side}_SHOULDER"]] = Landmark(*shoulder, 0.0, visibility)
        lm[PL[f"{side}_ELBOW"]] = Landmark(shoulder[0], shoulder[1] + 0.15, 0.0, visibility)
        lm[PL[f"{side}_WRIST"]] = Landmark(shoulder[0], shoulder[1] + 0.3, 0.0, visibility)
        lm[PL[f"{side}_HIP"]] = Landmark(*hip, 0.0, visibility)
    lm[PL.LEFT_KNEE] = Landmark(*front_knee, 0.0, visibility)
    lm[PL.LEFT_ANKLE] = Landmark(*front_ankle, 0.0, visibility)
    lm[PL.RIGHT_KNEE] = Landmark(*back_knee, 0.0, visibility)
    lm[PL.RIGHT_ANKLE] = Landmark(*back_ankle, 0.0, visibility)
    return lm


# Standing idle, descent, hold at the bottom, ascent and standing again
SQUAT_REP_ANGLES = [175, 175, 175, 175, 175, 160, 140, 118, 100, 85, 85, 85, 100, 120, 140, 155, 165, 170, 175]
SQUAT_FRAME_INTERVAL = 0.1


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def squat_landmarks():
    return build_squat_landmarks


@pytest.fixture
def plank_landmarks():
    return build_plank_landmarks


@pytest.fixture
def pushup_landmarks():
    return build_pushup_landmarks


@pytest.fixture
def lunge_landmarks():
    return build_lunge_landmarks


@pytest.fixture
def squat_frame():
    def _build(knee_angle: float, timestamp: float = None, visibility: float = 1.0):
        return LandmarkFrame(build_squat_landmarks(knee_angle, visibility), timestamp=timestamp)
    return _build


@pytest.fixture
def plank_frame():
    def _build(hip_drop: float = 0.0, timestamp: float = None):
        return LandmarkFrame(build_plank_landmarks(hip_drop), timestamp=timestamp)
    return _build


@pytest.fixture
def squat_rep():
    """(angle, timestamp) pairs for one full squat rep."""
    return [(angle, i * SQUAT_FRAME_INTERVAL) for i, angle in enumerate(SQUAT_REP_ANGLES)]
