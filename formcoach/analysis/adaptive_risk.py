"""
Session-scoped adaptive modelling of rep performance.

Keeps a rolling window of completed reps and derives from it:
- personalized thresholds (mean - 0.5 * std per metric)
- fatigue (recent 5 reps vs the 5 before)
- an injury-risk heuristic (ROM spikes, rushed tempo, fatigue)

These are plain statistics, not trained models. The scoring formulas
are module-level functions so they can be tested in isolation.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Sequence
import logging

import numpy as np

from formcoach.analysis.biomechanics import BiomechanicalSnapshot, PhysicsSnapshot
from formcoach.config import Settings, get_settings

logger = logging.getLogger(__name__)

METRICS = ("form_score", "rom", "tempo")

# Beginner thresholds used until enough reps are recorded
DEFAULT_THRESHOLDS = {
    "form_score": 70.0,
    "rom": 90.0,
    "tempo": 2.0,
}

TARGET_VELOCITY = 0.5  # m/s cruise speed for smooth movement


@dataclass(frozen=True)
class RepSample:
    """One completed rep as seen by the adaptive model."""
    form_score: float
    rom: float       # angle excursion, degrees
    tempo: float     # rep duration, seconds
    timestamp: float = 0.0


@dataclass
class FatigueAssessment:
    is_fatigued: bool = False
    severity: float = 0.0
    performance_drop: float = 0.0


@dataclass
class MovementQuality:
    """Movement quality breakdown, all scores 0-100."""
    overall: float = 0.0
    smoothness: float = 0.0
    control: float = 0.0
    efficiency: float = 0.0
    details: List[str] = field(default_factory=list)


def adaptive_threshold(values: Sequence[float], default: float, min_samples: int = 5) -> float:
    """mean - 0.5 * population std, or `default` with fewer than `min_samples` values."""
    if len(values) < min_samples:
        return default
    data = np.asarray(values, dtype=float)
    return float(data.mean() - 0.5 * data.std())


def assess_fatigue(
    form_scores: Sequence[float],
    window: int = 5,
    drop_threshold: float = 15.0,
) -> FatigueAssessment:
    """Compare the mean of the last `window` scores with the `window` before."""
    if len(form_scores) < 2 * window:
        return FatigueAssessment()

    recent = float(np.mean(form_scores[-window:]))
    previous = float(np.mean(form_scores[-2 * window:-window]))
    drop = previous - recent

    return FatigueAssessment(
        is_fatigued=drop >= drop_threshold,
        severity=min(100.0, max(0.0, drop * 5.0)),
        performance_drop=drop,
    )


def injury_risk_score(
    current_rom: float,
    current_tempo: float,
    average_rom: float,
    average_tempo: float,
    fatigue: Optional[FatigueAssessment] = None,
) -> float:
    """
    Heuristic injury risk 0-100.

    +30 when ROM exceeds the average by more than 20%,
    +25 when tempo is under 60% of the average,
    +0.3 * severity when fatigued.
    """
    risk = 0.0
    if current_rom > average_rom * 1.2:
        risk += 30.0
    if current_tempo < average_tempo * 0.6:
        risk += 25.0
    if fatigue is not None and fatigue.is_fatigued:
        risk += fatigue.severity * 0.3
    return min(100.0, risk)


def smoothness_score(physics: PhysicsSnapshot) -> float:
    velocity_score = max(0.0, 100.0 - abs(physics.velocity - TARGET_VELOCITY) * 100.0)
    return physics.stability * 0.6 + velocity_score * 0.4


def control_score(biomechanics: BiomechanicalSnapshot) -> float:
    return biomechanics.balance_score * 0.7 + (100.0 - biomechanics.asymmetry * 2.0) * 0.3


def efficiency_score(physics: PhysicsSnapshot, biomechanics: BiomechanicalSnapshot) -> float:
    power = min(100.0, physics.power_output / 5.0)
    return power * 0.5 + biomechanics.balance_score * 0.5


def assess_movement_quality(
    form_score: float,
    physics: PhysicsSnapshot,
    biomechanics: BiomechanicalSnapshot,
) -> MovementQuality:
    """Weighted blend of form (40%), smoothness (25%), control (20%) and efficiency (15%)."""
    smoothness = _clamp(smoothness_score(physics))
    control = _clamp(control_score(biomechanics))
    efficiency = _clamp(efficiency_score(physics, biomechanics))
    overall = _clamp(form_score * 0.4 + smoothness * 0.25 + control * 0.2 + efficiency * 0.15)

    details = []
    if smoothness < 70:
        details.append("Movement is jerky - focus on smooth, controlled motion")
    if control < 70:
        details.append("Improve stability - engage core and maintain balance")
    if efficiency < 70:
        details.append("Using excess energy - relax and find optimal path")

    return MovementQuality(
        overall=overall,
        smoothness=smoothness,
        control=control,
        efficiency=efficiency,
        details=details,
    )


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(min(high, max(low, value)))


class AdaptiveRiskModel:
    """
    Rolling per-session performance model.

    Usage:
        model = AdaptiveRiskModel()
        model.record_rep(form_score=82, rom=65, tempo=2.1)
        if model.detect_fatigue().is_fatigued:
            ...
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.samples: Deque[RepSample] = deque(maxlen=self.settings.learning_window)

    def record_rep(self, form_score: float, rom: float, tempo: float, timestamp: float = 0.0):
        self.samples.append(RepSample(form_score=form_score, rom=rom, tempo=tempo, timestamp=timestamp))

    def values(self, metric: str) -> List[float]:
        if metric not in METRICS:
            raise ValueError(f"Unknown metric '{metric}'")
        return [getattr(s, metric) for s in self.samples]

    def adaptive_threshold(self, metric: str) -> float:
        """Personal threshold for a metric (form_score, rom or tempo)."""
        return adaptive_threshold(
            self.values(metric),
            DEFAULT_THRESHOLDS[metric],
            self.settings.min_adaptive_samples,
        )

    def detect_fatigue(self) -> FatigueAssessment:
        assessment = assess_fatigue(
            self.values("form_score"),
            window=self.settings.fatigue_window,
            drop_threshold=self.settings.fatigue_drop_threshold,
        )
        if assessment.is_fatigued:
            logger.debug(
                f"Fatigue detected: {assessment.performance_drop:.1f} point drop, "
                f"severity {assessment.severity:.0f}"
            )
        return assessment

    def predict_injury_risk(self, current_rom: float, current_tempo: float) -> float:
        """Injury risk 0-100 for the latest rep, 0 until the fatigue window is filled twice."""
        if len(self.samples) < 2 * self.settings.fatigue_window:
            return 0.0

        return injury_risk_score(
            current_rom,
            current_tempo,
            float(np.mean(self.values("rom"))),
            float(np.mean(self.values("tempo"))),
            self.detect_fatigue(),
        )

    def assess_movement_quality(
        self,
        form_score: float,
        physics: PhysicsSnapshot,
        biomechanics: BiomechanicalSnapshot,
    ) -> MovementQuality:
        return assess_movement_quality(form_score, physics, biomechanics)

    def reset(self):
        self.samples.clear()
