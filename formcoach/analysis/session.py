"""
Per-session exercise analysis pipeline.

PIPELINE STAGES (one call per frame):
1. Landmark filtering (outlier rejection, smoothing, derivatives)
2. Visibility gate for the exercise's required joints
3. Physics and biomechanics
4. Idle gate (standing still before the first rep)
5. Rep state machine
6. Fault rules (first match wins)
7. Adaptive risk model (fatigue, injury risk, movement quality)
8. Feedback scheduling

All mutable state lives on one ExerciseSession. Use a separate session
per workout (and per user). Nothing is raised across `analyze`: failures
come back as a degraded, zero-confidence AnalysisResult.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging
import time

import numpy as np

from formcoach.analysis.adaptive_risk import (
    AdaptiveRiskModel,
    FatigueAssessment,
    MovementQuality,
)
from formcoach.analysis.biomechanics import (
    BiomechanicalSnapshot,
    PhysicsSnapshot,
    compute_biomechanics,
    compute_physics,
)
from formcoach.analysis.fault_rules import FaultRuleEngine, RuleContext
from formcoach.analysis.feedback_scheduler import (
    Feedback,
    FeedbackScheduler,
    FeedbackType,
    LearningProgress,
    Priority,
    Risk,
)
from formcoach.analysis.landmark_filter import LandmarkStreamFilter
from formcoach.analysis.landmarks import (
    NUM_LANDMARKS,
    Landmark,
    LandmarkFrame,
    PoseLandmark as PL,
)
from formcoach.analysis.rep_state_machine import (
    RepPhase,
    RepQuality,
    RepStateMachine,
    RepStats,
)
from formcoach.config import Settings, get_settings
from formcoach.models.exercise import Exercise, get_exercise
from formcoach.models.mistake import Mistake

logger = logging.getLogger(__name__)


# Joints that must be clearly visible before a frame is analyzed
REQUIRED_JOINTS: Dict[str, Sequence[int]] = {
    "squats": (PL.LEFT_HIP, PL.RIGHT_HIP, PL.LEFT_KNEE, PL.RIGHT_KNEE),
    "pushups": (PL.LEFT_SHOULDER, PL.LEFT_ELBOW, PL.LEFT_HIP),
    "lunges": (PL.LEFT_KNEE, PL.RIGHT_KNEE),
    "plank": (PL.LEFT_SHOULDER, PL.LEFT_HIP, PL.LEFT_ANKLE),
}

REPOSITION_FEEDBACK = {
    "squats": (
        "Step back please",
        "I can't see you clearly. Please take a step back from the camera so I can "
        "track your full movement.",
    ),
    "default": (
        "Turn Sideways",
        "Please turn sideways to the camera so I can see your full body from the side.",
    ),
}

READY_VOICE = {
    "squats": "I can see you clearly. Begin your squat by bending your knees and hips. "
              "Go down slowly and controlled.",
    "pushups": "Good plank position. Begin by bending your elbows and lowering your chest "
               "toward the ground.",
    "lunges": "Step one leg forward and lower your body by bending both knees to 90 degrees.",
}

REP_NOUNS = {
    "squats": "squat",
    "pushups": "pushup",
    "lunges": "lunge",
}

STANDING_ANGLE = 165.0

# Held start positions sway more than a standing squatter
START_POSITION_EXERCISES = ("pushups", "lunges")


@dataclass
class AnalysisResult:
    """Everything the caller needs for one frame."""
    stage: str
    rep_counted: bool
    mistake: Optional[str]
    form_score: float
    feedback: Feedback

    physics: Optional[PhysicsSnapshot] = None
    biomechanics: Optional[BiomechanicalSnapshot] = None
    movement_quality: Optional[MovementQuality] = None
    fatigue_level: float = 0.0
    injury_risk: float = 0.0
    improvement_trend: str = "stable"

    rep_count: int = 0
    deliver_feedback: bool = False
    predicted_next_stage: Optional[str] = None
    repeat_mistake_count: int = 0
    rep_quality: Optional[RepQuality] = None
    applied_penalties: Dict[str, float] = field(default_factory=dict)
    smoothed_landmarks: Optional[List[Landmark]] = None
    timestamp: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return self.feedback.confidence


@dataclass
class WorkoutSummary:
    """End-of-session aggregate."""
    exercise_id: str
    exercise_name: str
    clean_reps: int = 0
    mistakes: Dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0
    calories_burned: float = 0.0
    average_form_score: float = 100.0
    peak_power: float = 0.0
    average_velocity: float = 0.0
    consistency_score: float = 100.0
    biomechanical_efficiency: float = 85.0
    time_held_seconds: Optional[float] = None
    improvement_trend: str = "stable"
    rep_stats: RepStats = field(default_factory=RepStats)
    fatigue: FatigueAssessment = field(default_factory=FatigueAssessment)
    learning: LearningProgress = field(default_factory=LearningProgress)


def primary_signal(exercise_id: str, biomechanics: BiomechanicalSnapshot, frame: LandmarkFrame) -> float:
    """The joint angle that drives the rep state machine."""
    angles = biomechanics.joint_angles
    if exercise_id == "squats":
        return (angles["left_knee"] + angles["right_knee"]) / 2.0
    if exercise_id == "pushups":
        return (angles["left_elbow"] + angles["right_elbow"]) / 2.0
    if exercise_id == "lunges":
        left_forward = frame[PL.LEFT_ANKLE].x < frame[PL.RIGHT_ANKLE].x
        return angles["left_knee"] if left_forward else angles["right_knee"]
    return angles["left_body"]


class ExerciseSession:
    """
    Owns all state for one workout of one exercise.

    Usage:
        session = ExerciseSession("squats", body_weight_kg=80)
        for landmarks, t in stream:
            result = session.analyze(landmarks, timestamp=t)
            if result.deliver_feedback:
                speak(result.feedback.voice_message)
        summary = session.summarize()
    """

    def __init__(
        self,
        exercise_id: str,
        body_weight_kg: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        self.exercise_id = exercise_id
        self.settings = settings or get_settings()
        self.body_weight_kg = body_weight_kg or self.settings.default_body_weight_kg
        self.exercise: Optional[Exercise] = get_exercise(exercise_id)

        if self.exercise is None:
            logger.warning(f"Unknown exercise '{exercise_id}', frames will not be analyzed")
            self.stream_filter = None
            self.rep_machine = None
            self.fault_engine = None
        else:
            self.stream_filter = LandmarkStreamFilter(settings=self.settings)
            self.rep_machine = RepStateMachine(exercise_id, settings=self.settings)
            self.fault_engine = FaultRuleEngine(exercise_id)
            logger.info(f"Started {self.exercise.name} session ({self.body_weight_kg:.0f} kg)")

        self.adaptive = AdaptiveRiskModel(settings=self.settings)
        self.scheduler = FeedbackScheduler(settings=self.settings)
        self._reset_history()

    @property
    def is_known(self) -> bool:
        return self.exercise is not None

    @property
    def rep_count(self) -> int:
        return self.rep_machine.rep_count if self.rep_machine else 0

    @property
    def phase(self) -> RepPhase:
        return self.rep_machine.phase if self.rep_machine else RepPhase.UP

    def analyze(self, landmarks: Any, timestamp: Optional[float] = None) -> AnalysisResult:
        """
        Analyze one frame.

        Args:
            landmarks: LandmarkFrame or a sequence of landmark-like items
                (objects with x/y/z/visibility, dicts or tuples)
            timestamp: Capture time in seconds (defaults to a monotonic clock)

        Returns:
            AnalysisResult, never raises
        """
        if timestamp is None:
            timestamp = time.monotonic()
        timestamp = float(timestamp)

        if not self.is_known:
            return unknown_exercise_result(self.exercise_id, timestamp=timestamp)

        try:
            return self._analyze_frame(landmarks, timestamp)
        except Exception as e:
            logger.exception(f"Frame analysis failed for {self.exercise_id}: {e}")
            return self._degraded_result(f"{type(e).__name__}: {e}", timestamp)

    def summarize(self) -> WorkoutSummary:
        """Aggregate the session into a WorkoutSummary."""
        exercise = self.exercise
        name = exercise.name if exercise else self.exercise_id

        duration = 0.0
        if self._first_timestamp is not None and self._last_timestamp is not None:
            duration = max(0.0, self._last_timestamp - self._first_timestamp)

        met = exercise.met_value if exercise else 0.0
        calories = met * self.body_weight_kg * (duration / 3600.0)

        history = self.rep_machine.history if self.rep_machine else ()
        if history:
            average_form = float(np.mean([q.form_score for q in history]))
        elif self._frame_scores:
            average_form = float(np.mean(self._frame_scores))
        else:
            average_form = 100.0

        consistency = 100.0
        if len(self._frame_scores) > 1:
            consistency = max(0.0, 100.0 - (max(self._frame_scores) - min(self._frame_scores)))

        efficiency = 85.0
        if self._last_biomechanics is not None and self._last_biomechanics.balance_score:
            bio = self._last_biomechanics
            efficiency = (bio.balance_score + (100.0 - bio.asymmetry * 2.0)) / 2.0

        is_isometric = exercise is not None and exercise.is_isometric

        return WorkoutSummary(
            exercise_id=self.exercise_id,
            exercise_name=name,
            clean_reps=self.rep_count,
            mistakes=self.fault_engine.tracker.counts() if self.fault_engine else {},
            duration_seconds=round(duration, 2),
            calories_burned=round(calories, 2),
            average_form_score=round(average_form),
            peak_power=round(self._peak_power, 2),
            average_velocity=round(float(np.mean(self._velocities)), 3) if self._velocities else 0.0,
            consistency_score=round(consistency, 1),
            biomechanical_efficiency=round(efficiency, 1),
            time_held_seconds=round(self._time_held, 2) if is_isometric else None,
            improvement_trend=self._trend(),
            rep_stats=self.rep_machine.stats() if self.rep_machine else RepStats(),
            fatigue=self.adaptive.detect_fatigue(),
            learning=self.scheduler.progress(),
        )

    def reset(self):
        """Start the same exercise over."""
        if self.stream_filter:
            self.stream_filter.reset()
        if self.rep_machine:
            self.rep_machine.reset()
        if self.fault_engine:
            self.fault_engine.reset()
        self.adaptive.reset()
        self.scheduler.reset()
        self._reset_history()

    def _reset_history(self):
        self._previous_frame: Optional[LandmarkFrame] = None
        self._previous_timestamp: Optional[float] = None
        self._first_timestamp: Optional[float] = None
        self._last_timestamp: Optional[float] = None
        self._frame_scores: List[float] = []
        self._velocities: List[float] = []
        self._peak_power = 0.0
        self._time_held = 0.0
        self._last_biomechanics: Optional[BiomechanicalSnapshot] = None
        self._cycle_mistake: Optional[str] = None

    def _analyze_frame(self, landmarks: Any, timestamp: float) -> AnalysisResult:
        if isinstance(landmarks, LandmarkFrame):
            frame = landmarks.with_timestamp(timestamp)
        else:
            frame = LandmarkFrame.from_sequence(landmarks, timestamp=timestamp)

        if self._first_timestamp is None:
            self._first_timestamp = timestamp
        self._last_timestamp = timestamp

        if len(frame) < NUM_LANDMARKS:
            logger.warning(f"Malformed frame with {len(frame)} landmarks, expected {NUM_LANDMARKS}")
            return self._reposition_result(timestamp)

        if not self.stream_filter.add(frame):
            logger.debug(f"Outlier frame at t={timestamp:.3f}s, analyzing last accepted frame")
        current = self.stream_filter.latest
        current = current.with_timestamp(timestamp)

        required = REQUIRED_JOINTS[self.exercise_id]
        if current.min_visibility(required) < self.settings.required_visibility:
            return self._reposition_result(timestamp)

        delta_time = None
        if self._previous_timestamp is not None:
            delta_time = timestamp - self._previous_timestamp

        physics = compute_physics(
            current,
            self._previous_frame,
            self.stream_filter,
            self.body_weight_kg,
            delta_time,
            self.settings,
        )
        biomechanics = compute_biomechanics(current, self.settings)
        signal = primary_signal(self.exercise_id, biomechanics, current)

        previous_timestamp = self._previous_timestamp
        self._previous_frame = current
        self._previous_timestamp = timestamp
        self._velocities.append(physics.velocity)
        self._peak_power = max(self._peak_power, physics.power_output)
        self._last_biomechanics = biomechanics

        machine = self.rep_machine
        if self._is_idle(signal, physics):
            return self._ready_result(timestamp, physics, biomechanics)

        previous_phase = machine.phase
        update = machine.update(signal, timestamp, physics.velocity, current)
        if update.counted or update.phase != previous_phase:
            self.scheduler.clear_last_message()

        ctx = RuleContext(
            frame=current,
            phase=update.phase,
            signal=signal,
            physics=physics,
            biomechanics=biomechanics,
            stream_filter=self.stream_filter,
            deepest_signal=machine.deepest_signal,
        )
        evaluation = self.fault_engine.evaluate(ctx)
        machine.record_form(evaluation.form_score)
        repeat_count = self.fault_engine.record(evaluation.mistake, timestamp)

        mistake = evaluation.mistake
        form_score = evaluation.form_score
        feedback = evaluation.feedback

        if mistake and update.phase != RepPhase.UP:
            self._cycle_mistake = mistake

        if update.counted:
            quality = update.quality
            self.adaptive.record_rep(
                form_score=quality.form_score,
                rom=quality.range_of_motion,
                tempo=quality.duration_s,
                timestamp=timestamp,
            )
            feedback = self._rep_feedback(machine.rep_count, form_score, mistake or self._cycle_mistake)
            self._cycle_mistake = None

        fatigue = self.adaptive.detect_fatigue()
        injury_risk = 0.0
        if self.adaptive.samples:
            latest = self.adaptive.samples[-1]
            injury_risk = self.adaptive.predict_injury_risk(latest.rom, latest.tempo)

        movement_quality = self.adaptive.assess_movement_quality(form_score, physics, biomechanics)

        feedback, form_score, overridden = self._apply_adaptive_overrides(
            feedback,
            form_score,
            mistake,
            evaluation.active,
            update.counted,
            fatigue,
            injury_risk,
            movement_quality,
        )

        feedback = self.scheduler.enhance(
            feedback,
            mistake,
            timestamp,
            machine.rep_count,
            escalate=not overridden,
        )
        deliver = self.scheduler.should_deliver(feedback, timestamp)

        if update.phase != RepPhase.UP:
            self._frame_scores.append(form_score)
        if update.phase == RepPhase.HOLDING and previous_timestamp is not None:
            self._time_held += max(0.0, timestamp - previous_timestamp)

        smoothed = self.stream_filter.smoothed_frame()

        return AnalysisResult(
            stage=update.phase.value,
            rep_counted=update.counted,
            mistake=mistake,
            form_score=form_score,
            feedback=feedback,
            physics=physics,
            biomechanics=biomechanics,
            movement_quality=movement_quality,
            fatigue_level=fatigue.severity if fatigue.is_fatigued else 0.0,
            injury_risk=injury_risk,
            improvement_trend=self._trend(),
            rep_count=machine.rep_count,
            deliver_feedback=deliver,
            predicted_next_stage=machine.predict_next_phase().value,
            repeat_mistake_count=repeat_count,
            rep_quality=update.quality,
            applied_penalties=dict(evaluation.applied_penalties),
            smoothed_landmarks=list(smoothed.landmarks) if smoothed else None,
            timestamp=timestamp,
        )

    def _is_idle(self, signal: float, physics: PhysicsSnapshot) -> bool:
        machine = self.rep_machine
        if machine.is_isometric:
            return False

        floor = self.settings.motion_velocity_floor
        if self.exercise_id in START_POSITION_EXERCISES:
            floor = self.settings.start_position_velocity_floor

        return (
            signal >= STANDING_ANGLE
            and physics.velocity < floor
            and machine.phase == RepPhase.UP
            and machine.rep_count == 0
        )

    def _apply_adaptive_overrides(
        self,
        feedback: Feedback,
        form_score: float,
        mistake: Optional[str],
        active: bool,
        rep_counted: bool,
        fatigue: FatigueAssessment,
        injury_risk: float,
        quality: MovementQuality,
    ):
        """Replace the frame's feedback when the adaptive model has something more important."""
        overridden = False

        if injury_risk > 60:
            feedback = Feedback(
                message="High Injury Risk",
                voice_message=(
                    "Warning! Your movement pattern shows high injury risk. Slow down, reduce "
                    "range of motion, and focus on controlled movements."
                ),
                type=FeedbackType.CRITICAL,
                problem_landmarks=feedback.problem_landmarks,
                confidence=feedback.confidence,
                biomechanical_risk=Risk.HIGH,
                priority=Priority.IMMEDIATE,
            )
            form_score = min(form_score, 50.0)
            overridden = True

        elif fatigue.is_fatigued and fatigue.severity > 50:
            feedback = Feedback(
                message="Fatigue Detected",
                voice_message=(
                    "I'm noticing your form is dropping due to fatigue. Consider taking a short "
                    "rest to maintain quality and prevent injury."
                ),
                type=FeedbackType.WARNING,
                problem_landmarks=feedback.problem_landmarks,
                confidence=feedback.confidence,
                biomechanical_risk=Risk.MEDIUM,
                priority=Priority.HIGH,
            )
            overridden = True

        elif rep_counted:
            rep_count = self.rep_machine.rep_count
            enough_history = len(self.adaptive.samples) >= self.settings.min_adaptive_samples
            threshold = self.adaptive.adaptive_threshold("form_score")

            if enough_history and 50 < form_score < threshold:
                feedback = Feedback(
                    message="Below Your Standard",
                    voice_message=(
                        f"Your form is at {form_score:.0f}, but you typically perform better. "
                        f"Focus on maintaining your usual quality."
                    ),
                    type=FeedbackType.ADJUSTMENT,
                    problem_landmarks=feedback.problem_landmarks,
                    confidence=0.85,
                    priority=Priority.MEDIUM,
                    rep_count=rep_count,
                )
            elif rep_count % 10 == 0 and form_score > 85 and self._recent_average() > 85:
                feedback = Feedback(
                    message="Ready for Challenge",
                    voice_message=(
                        f"Amazing! {rep_count} reps with excellent form. You're ready to increase "
                        f"difficulty - try adding weight, slowing the tempo, or more reps."
                    ),
                    type=FeedbackType.ENCOURAGEMENT,
                    confidence=1.0,
                    priority=Priority.MEDIUM,
                    rep_count=rep_count,
                )

        elif mistake is None and active:
            if quality.overall > 85 and form_score > 80:
                feedback = Feedback(
                    message="Excellent Form!",
                    voice_message=(
                        f"Outstanding! Your movement quality is exceptional - smooth "
                        f"{quality.smoothness:.0f}%, controlled {quality.control:.0f}%, "
                        f"efficient {quality.efficiency:.0f}%. Keep it up!"
                    ),
                    type=FeedbackType.POSITIVE,
                    confidence=1.0,
                    priority=Priority.MEDIUM,
                )
            elif quality.smoothness < 60 and form_score > 70:
                feedback = Feedback(
                    message="Improve Smoothness",
                    voice_message=(
                        "Your form is good, but try to move more smoothly. Control the movement "
                        "throughout the entire range of motion."
                    ),
                    type=FeedbackType.ADJUSTMENT,
                    problem_landmarks=feedback.problem_landmarks,
                    confidence=0.9,
                    priority=Priority.MEDIUM,
                )

        if 40 < injury_risk <= 60:
            feedback = feedback.with_changes(
                biomechanical_risk=Risk.highest(feedback.biomechanical_risk, Risk.MEDIUM)
            )

        return feedback, form_score, overridden

    def _rep_feedback(self, rep_count: int, form_score: float, mistake: Optional[str]) -> Feedback:
        """Rep-count message tiered by form score."""
        noun = REP_NOUNS.get(self.exercise_id, "rep")
        encouragement = self.scheduler.encouragement(rep_count)
        score = f"{form_score:.0f}%"

        if form_score >= 75:
            voice = f"{encouragement} INCREDIBLE {noun}! {score} form - you're on fire!"
        elif form_score >= 60:
            tip = f"Pro tip: {mistake.lower()}." if mistake else "You're crushing it!"
            voice = f"{encouragement} Awesome {noun}! {score}. {tip}"
        elif form_score >= 47:
            focus = f"Work on {mistake} - " if mistake else ""
            voice = f"Yes! Rep {rep_count} at {score}. {focus}You're getting stronger every rep!"
        else:
            focus = f"{mistake} needs focus - " if mistake else ""
            voice = f"Rep {rep_count} complete! {score}. {focus}Every rep counts, keep pushing!"

        return Feedback(
            message=f"Rep {rep_count} complete",
            voice_message=voice,
            type=FeedbackType.POSITIVE,
            confidence=0.95,
            biomechanical_risk=Risk.LOW if form_score >= 60 else Risk.MEDIUM,
            priority=Priority.MEDIUM,
            rep_count=rep_count,
        )

    def _reposition_result(self, timestamp: float) -> AnalysisResult:
        message, voice = REPOSITION_FEEDBACK.get(self.exercise_id, REPOSITION_FEEDBACK["default"])
        feedback = Feedback(
            message=message,
            voice_message=voice,
            type=FeedbackType.WARNING,
            confidence=0.3,
            biomechanical_risk=Risk.HIGH,
            priority=Priority.IMMEDIATE,
        )
        return AnalysisResult(
            stage=self.phase.value,
            rep_counted=False,
            mistake=Mistake.POOR_VISIBILITY,
            form_score=0.0,
            feedback=feedback,
            rep_count=self.rep_count,
            deliver_feedback=self.scheduler.should_deliver(feedback, timestamp),
            predicted_next_stage=self.rep_machine.predict_next_phase().value,
            timestamp=timestamp,
        )

    def _ready_result(
        self,
        timestamp: float,
        physics: PhysicsSnapshot,
        biomechanics: BiomechanicalSnapshot,
    ) -> AnalysisResult:
        feedback = Feedback(
            message="Ready to Start",
            voice_message=READY_VOICE.get(self.exercise_id, "Begin when you're ready."),
            type=FeedbackType.INFO,
            confidence=1.0,
            priority=Priority.LOW,
        )
        smoothed = self.stream_filter.smoothed_frame()
        return AnalysisResult(
            stage=RepPhase.UP.value,
            rep_counted=False,
            mistake=None,
            form_score=0.0,
            feedback=feedback,
            physics=physics,
            biomechanics=biomechanics,
            rep_count=self.rep_count,
            deliver_feedback=self.scheduler.should_deliver(feedback, timestamp),
            predicted_next_stage=RepPhase.DOWN.value,
            smoothed_landmarks=list(smoothed.landmarks) if smoothed else None,
            timestamp=timestamp,
        )

    def _degraded_result(self, error: str, timestamp: float) -> AnalysisResult:
        feedback = Feedback(
            message="Analysis Unavailable",
            voice_message="I lost track of your movement for a moment. Keep going.",
            type=FeedbackType.WARNING,
            confidence=0.0,
            priority=Priority.LOW,
        )
        return AnalysisResult(
            stage=self.phase.value,
            rep_counted=False,
            mistake=None,
            form_score=0.0,
            feedback=feedback,
            rep_count=self.rep_count,
            timestamp=timestamp,
            errors=[error],
        )

    def _recent_average(self) -> float:
        scores = self.adaptive.values("form_score")
        return float(np.mean(scores)) if scores else 0.0

    def _trend(self) -> str:
        if self.rep_machine is None:
            return "stable"
        if not self.rep_machine.is_isometric:
            return self.rep_machine.quality_trend()
        return score_trend(self._frame_scores)


def score_trend(scores: Sequence[float], window: int = 3) -> str:
    """Compare the last `window` scores with the `window` before them."""
    if len(scores) < 2 * window:
        return "stable"
    recent = float(np.mean(scores[-window:]))
    earlier = float(np.mean(scores[-2 * window:-window]))
    if recent > earlier + 5:
        return "improving"
    if recent < earlier - 5:
        return "declining"
    return "stable"


def unknown_exercise_result(
    exercise_id: str,
    current_phase: str = RepPhase.UP.value,
    rep_count: int = 0,
    timestamp: float = 0.0,
) -> AnalysisResult:
    """Terminal zero-confidence result for an unsupported exercise id."""
    feedback = Feedback(
        message="Unknown Exercise",
        voice_message="This exercise is not recognized. Please select a different exercise.",
        type=FeedbackType.WARNING,
        confidence=0.0,
        priority=Priority.IMMEDIATE,
    )
    return AnalysisResult(
        stage=current_phase,
        rep_counted=False,
        mistake=None,
        form_score=0.0,
        feedback=feedback,
        rep_count=rep_count,
        deliver_feedback=True,
        timestamp=timestamp,
        errors=[f"Unknown exercise '{exercise_id}'"],
    )


def create_session(
    exercise_id: str,
    body_weight_kg: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> ExerciseSession:
    """Create a session for one workout."""
    return ExerciseSession(exercise_id, body_weight_kg=body_weight_kg, settings=settings)


def analyze(
    session: ExerciseSession,
    exercise_id: str,
    landmarks: Any,
    current_phase: Optional[str] = None,
    rep_count: Optional[int] = None,
    body_weight_kg: Optional[float] = None,
    timestamp: Optional[float] = None,
) -> AnalysisResult:
    """
    Analyze one frame of an exercise.

    The session is the source of truth for phase and rep count;
    `current_phase` and `rep_count` are the caller's view and only echoed
    back for an unknown exercise.
    """
    if timestamp is None:
        timestamp = time.monotonic()

    if get_exercise(exercise_id) is None:
        return unknown_exercise_result(
            exercise_id,
            current_phase=current_phase or RepPhase.UP.value,
            rep_count=rep_count or 0,
            timestamp=timestamp,
        )

    if session.exercise_id != exercise_id:
        logger.warning(
            f"Session is tracking '{session.exercise_id}' but frame is for '{exercise_id}'"
        )
        result = unknown_exercise_result(
            exercise_id,
            current_phase=current_phase or session.phase.value,
            rep_count=session.rep_count,
            timestamp=timestamp,
        )
        result.errors = [f"Session exercise mismatch: '{session.exercise_id}' != '{exercise_id}'"]
        return result

    if body_weight_kg:
        session.body_weight_kg = body_weight_kg

    if current_phase is not None and current_phase != session.phase.value:
        logger.debug(f"Caller phase '{current_phase}' differs from session phase '{session.phase.value}'")
    if rep_count is not None and rep_count != session.rep_count:
        logger.debug(f"Caller rep count {rep_count} differs from session count {session.rep_count}")

    return session.analyze(landmarks, timestamp=timestamp)
