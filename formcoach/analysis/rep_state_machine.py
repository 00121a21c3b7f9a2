"""
Hysteresis state machine for repetition counting.

STATE MACHINE:
    UP -> TRANSITION_DOWN -> DOWN -> TRANSITION_UP -> UP (+1 rep)

Each exercise has separate enter/exit thresholds for the down and up
phases so a signal hovering near one boundary cannot flap the state.
A transition is only confirmed after N consecutive frames past the
enter threshold; moving back past the exit threshold cancels it.

A rep is counted on the confirmed TRANSITION_UP -> UP event when:
- time since the confirmed DOWN is within [min_rep_duration, max_rep_duration]
- at least rep_cooldown has passed since the last counted rep

Quality never suppresses a count. Partial-range reps count; quality is
kept for statistics and coaching only. Isometric exercises stay in
HOLDING and never count.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
import logging

import numpy as np

from formcoach.analysis.landmarks import CORE_JOINTS, LandmarkFrame
from formcoach.config import Settings, get_settings
from formcoach.models.exercise import get_exercise

logger = logging.getLogger(__name__)


class RepPhase(Enum):
    """Position within the rep cycle."""
    UP = "up"
    TRANSITION_DOWN = "transition_down"
    DOWN = "down"
    TRANSITION_UP = "transition_up"
    HOLDING = "holding"   # Isometric exercises


@dataclass(frozen=True)
class RepThresholds:
    """Enter/exit angles (degrees) for the down and up phases."""
    down_enter: float
    down_exit: float
    up_enter: float
    up_exit: float


REP_THRESHOLDS: Dict[str, RepThresholds] = {
    "squats": RepThresholds(down_enter=120.0, down_exit=130.0, up_enter=150.0, up_exit=140.0),
    "pushups": RepThresholds(down_enter=110.0, down_exit=120.0, up_enter=150.0, up_exit=140.0),
    "lunges": RepThresholds(down_enter=120.0, down_exit=130.0, up_enter=150.0, up_exit=140.0),
}


@dataclass
class RepState:
    """The single mutable phase record of a session."""
    phase: RepPhase = RepPhase.UP
    confidence: float = 1.0
    consecutive_frame_count: int = 0
    last_transition_timestamp: Optional[float] = None


@dataclass(frozen=True)
class RepQuality:
    """Quality breakdown of one completed rep."""
    form_score: float
    depth_score: float
    stability_score: float
    tempo_score: float
    overall_score: float

    # Inputs for adaptive modelling
    duration_s: float = 0.0
    range_of_motion: float = 0.0
    timestamp: float = 0.0


@dataclass
class RepUpdate:
    """Result of feeding one frame to the state machine."""
    counted: bool
    phase: RepPhase
    confidence: float
    quality: Optional[RepQuality] = None


@dataclass
class RepStats:
    """Running statistics over all counted reps."""
    total: int = 0
    valid: int = 0
    invalid: int = 0
    accuracy: float = 100.0
    average_quality: float = 0.0
    best_quality: float = 0.0
    consistency: float = 100.0


def compute_rep_quality(
    form_score: float,
    deepest_angle: float,
    duration_s: float,
    frame: Optional[LandmarkFrame],
    ideal_duration_s: float = 2.0,
) -> Tuple[float, float, float, float, float]:
    """
    Score a completed rep.

    Returns:
        (depth, stability, tempo, overall, form) component scores
    """
    depth = min(100.0, max(0.0, (180.0 - deepest_angle) * 1.5))

    stability = 0.0
    if frame is not None:
        visibilities = [frame.get(i).visibility for i in CORE_JOINTS if frame.get(i) is not None]
        if visibilities:
            stability = float(np.mean(visibilities)) * 100.0

    deviation = abs(duration_s - ideal_duration_s) / ideal_duration_s
    tempo = max(0.0, 100.0 - deviation * 50.0)

    overall = form_score * 0.4 + depth * 0.25 + stability * 0.2 + tempo * 0.15
    return depth, stability, tempo, overall, form_score


class RepStateMachine:
    """
    Per-session rep counter.

    Usage:
        machine = RepStateMachine("squats")
        for signal, t in samples:
            update = machine.update(signal, t, velocity, frame)
            machine.record_form(form_score)
            if update.counted:
                print(machine.rep_count)
    """

    def __init__(self, exercise_id: str, settings: Optional[Settings] = None):
        self.exercise_id = exercise_id
        self.settings = settings or get_settings()

        exercise = get_exercise(exercise_id)
        self.is_isometric = exercise is not None and exercise.is_isometric
        self.thresholds = REP_THRESHOLDS.get(exercise_id)
        if self.thresholds is None and not self.is_isometric:
            raise ValueError(f"No rep thresholds for exercise '{exercise_id}'")

        self.transition_frames = max(1, self.settings.transition_frames)
        self.min_rep_duration = self.settings.min_rep_duration_ms / 1000.0
        self.max_rep_duration = self.settings.max_rep_duration_ms / 1000.0
        self.rep_cooldown = self.settings.rep_cooldown_ms / 1000.0

        self.state = RepState(phase=self._initial_phase())
        self.rep_count = 0
        self.valid_reps = 0
        self.invalid_reps = 0
        self._history: List[RepQuality] = []
        self.rep_timestamps: List[float] = []
        self.last_rep_timestamp: Optional[float] = None

        self._reset_cycle()

    @property
    def phase(self) -> RepPhase:
        return self.state.phase

    @property
    def deepest_signal(self) -> Optional[float]:
        """Lowest signal of the rep in progress, None between reps."""
        return self._cycle_min if np.isfinite(self._cycle_min) else None

    @property
    def history(self) -> Tuple[RepQuality, ...]:
        """Completed rep qualities, oldest first."""
        return tuple(self._history)

    def update(
        self,
        signal: float,
        timestamp: float,
        velocity: float = 0.0,
        frame: Optional[LandmarkFrame] = None,
    ) -> RepUpdate:
        """
        Advance the machine by one frame.

        Args:
            signal: Primary joint angle in degrees (e.g. average knee angle)
            timestamp: Frame time in seconds
            velocity: Body velocity in m/s, gates the start of a new transition
            frame: Frame used for stability scoring of a completed rep

        Returns:
            RepUpdate with the (possibly new) phase and a quality when counted
        """
        if self.is_isometric:
            return RepUpdate(counted=False, phase=RepPhase.HOLDING, confidence=1.0)

        t = self.thresholds
        state = self.state
        moving = velocity >= self.settings.motion_velocity_floor
        counted = False
        quality = None

        if state.phase in (RepPhase.UP, RepPhase.TRANSITION_DOWN):
            self._cycle_max = max(self._cycle_max, signal)

        if state.phase == RepPhase.UP:
            if signal < t.down_enter and moving:
                self._descent_start = timestamp
                self._cycle_min = signal
                state.phase = RepPhase.TRANSITION_DOWN
                state.consecutive_frame_count = 1
                self._maybe_confirm_down(signal, timestamp)

        elif state.phase == RepPhase.TRANSITION_DOWN:
            if signal < t.down_enter:
                self._cycle_min = min(self._cycle_min, signal)
                state.consecutive_frame_count += 1
                self._maybe_confirm_down(signal, timestamp)
            elif signal > t.down_exit:
                logger.debug(f"{self.exercise_id}: descent cancelled at {signal:.1f}°")
                state.phase = RepPhase.UP
                state.consecutive_frame_count = 0
                self._reset_cycle()

        elif state.phase == RepPhase.DOWN:
            self._cycle_min = min(self._cycle_min, signal)
            if signal > t.up_enter and moving:
                state.phase = RepPhase.TRANSITION_UP
                state.consecutive_frame_count = 1
                counted, quality = self._maybe_confirm_up(signal, timestamp, frame)

        elif state.phase == RepPhase.TRANSITION_UP:
            if signal > t.up_enter:
                state.consecutive_frame_count += 1
                counted, quality = self._maybe_confirm_up(signal, timestamp, frame)
            elif signal < t.up_exit:
                logger.debug(f"{self.exercise_id}: ascent cancelled at {signal:.1f}°")
                state.phase = RepPhase.DOWN
                state.consecutive_frame_count = 0
                self._cycle_min = min(self._cycle_min, signal)

        return RepUpdate(
            counted=counted,
            phase=state.phase,
            confidence=state.confidence,
            quality=quality,
        )

    def record_form(self, form_score: float):
        """Record the form score of the current frame for the rep in progress."""
        if self.state.phase not in (RepPhase.UP, RepPhase.HOLDING):
            self._cycle_form_scores.append(form_score)

    def predict_next_phase(self) -> RepPhase:
        if self.is_isometric:
            return RepPhase.HOLDING
        if self.state.phase in (RepPhase.DOWN, RepPhase.TRANSITION_UP):
            return RepPhase.UP
        return RepPhase.DOWN

    def stats(self) -> RepStats:
        """Statistics over the rep history."""
        total = self.valid_reps + self.invalid_reps
        if not self._history:
            return RepStats(total=total, valid=self.valid_reps, invalid=self.invalid_reps)

        scores = np.array([q.overall_score for q in self._history])
        std = float(np.std(scores)) if len(scores) > 1 else 0.0

        return RepStats(
            total=total,
            valid=self.valid_reps,
            invalid=self.invalid_reps,
            accuracy=(self.valid_reps / total) * 100.0 if total > 0 else 100.0,
            average_quality=float(np.mean(scores)),
            best_quality=float(np.max(scores)),
            consistency=max(0.0, 100.0 - std),
        )

    def quality_trend(self, last_n: Optional[int] = None) -> str:
        """Compare the two halves of the last N reps: improving, stable or declining."""
        last_n = last_n or self.settings.quality_trend_window
        if len(self._history) < last_n or last_n < 2:
            return "stable"

        recent = [q.overall_score for q in self._history[-last_n:]]
        half = last_n // 2
        diff = float(np.mean(recent[half:])) - float(np.mean(recent[:half]))

        if diff > 5:
            return "improving"
        if diff < -5:
            return "declining"
        return "stable"

    def reset(self):
        self.state = RepState(phase=self._initial_phase())
        self.rep_count = 0
        self.valid_reps = 0
        self.invalid_reps = 0
        self._history = []
        self.rep_timestamps = []
        self.last_rep_timestamp = None
        self._reset_cycle()

    def _initial_phase(self) -> RepPhase:
        return RepPhase.HOLDING if self.is_isometric else RepPhase.UP

    def _reset_cycle(self):
        self._descent_start: Optional[float] = None
        self._cycle_min = float("inf")
        self._cycle_max = float("-inf")
        self._cycle_form_scores: List[float] = []

    def _maybe_confirm_down(self, signal: float, timestamp: float):
        state = self.state
        if state.consecutive_frame_count < self.transition_frames:
            return

        state.phase = RepPhase.DOWN
        state.consecutive_frame_count = 0
        state.last_transition_timestamp = timestamp
        state.confidence = self._confidence(signal, self.thresholds.down_enter)
        logger.debug(f"{self.exercise_id}: DOWN confirmed at {signal:.1f}° (t={timestamp:.2f}s)")

    def _maybe_confirm_up(
        self,
        signal: float,
        timestamp: float,
        frame: Optional[LandmarkFrame],
    ) -> Tuple[bool, Optional[RepQuality]]:
        state = self.state
        if state.consecutive_frame_count < self.transition_frames:
            return False, None

        counted = False
        quality = None
        since_down = timestamp - (state.last_transition_timestamp or timestamp)
        since_last_rep = (
            timestamp - self.last_rep_timestamp
            if self.last_rep_timestamp is not None
            else float("inf")
        )

        if not (self.min_rep_duration <= since_down <= self.max_rep_duration):
            logger.debug(
                f"{self.exercise_id}: rep rejected, {since_down * 1000:.0f}ms outside rep window"
            )
        elif since_last_rep < self.rep_cooldown:
            logger.debug(
                f"{self.exercise_id}: rep rejected, {since_last_rep * 1000:.0f}ms since last rep"
            )
        else:
            quality = self._complete_rep(signal, timestamp, frame)
            counted = True

        state.phase = RepPhase.UP
        state.consecutive_frame_count = 0
        state.last_transition_timestamp = timestamp
        state.confidence = self._confidence(signal, self.thresholds.up_enter)
        self._reset_cycle()
        self._cycle_max = signal
        return counted, quality

    def _complete_rep(
        self,
        signal: float,
        timestamp: float,
        frame: Optional[LandmarkFrame],
    ) -> RepQuality:
        start = self._descent_start if self._descent_start is not None else self.state.last_transition_timestamp
        duration = max(0.0, timestamp - (start if start is not None else timestamp))

        deepest = self._cycle_min if np.isfinite(self._cycle_min) else signal
        top = max(self._cycle_max, signal) if np.isfinite(self._cycle_max) else signal
        form = float(np.mean(self._cycle_form_scores)) if self._cycle_form_scores else 100.0

        depth, stability, tempo, overall, form = compute_rep_quality(
            form,
            deepest,
            duration,
            frame,
            ideal_duration_s=self.settings.ideal_rep_duration_ms / 1000.0,
        )
        quality = RepQuality(
            form_score=form,
            depth_score=depth,
            stability_score=stability,
            tempo_score=tempo,
            overall_score=overall,
            duration_s=duration,
            range_of_motion=max(0.0, top - deepest),
            timestamp=timestamp,
        )

        self.rep_count += 1
        if overall > self.settings.valid_rep_quality:
            self.valid_reps += 1
        else:
            self.invalid_reps += 1
        self._history.append(quality)
        self.rep_timestamps.append(timestamp)
        self.last_rep_timestamp = timestamp

        logger.info(
            f"{self.exercise_id}: rep {self.rep_count} counted "
            f"(quality {overall:.1f}, {duration:.2f}s, depth {deepest:.1f}°)"
        )
        return quality

    @staticmethod
    def _confidence(signal: float, threshold: float) -> float:
        return min(1.0, 0.5 + abs(signal - threshold) / 100.0)
