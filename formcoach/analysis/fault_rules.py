"""
Per-exercise technique fault rules.

Each exercise has an ordered table of FaultRules. Rules are checked top
to bottom and the FIRST match wins: faults never accumulate within a
frame. When no rule matches the frame is scored as good form.

A RuleSet also has:
- an activity gate: when false the rules are skipped (e.g. standing at
  the top of a squat)
- an optional risk gate: an asymmetry/stability penalty applied on every
  analyzed frame, independent of the rules

Form score = 100 - sum(applied penalties), clamped to [0, 100].

Adding an exercise means adding a table, not new control flow.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Tuple, Union
import logging

import numpy as np

from formcoach.analysis.biomechanics import (
    BiomechanicalSnapshot,
    PhysicsSnapshot,
    hips_below_line,
    joint_stability,
    segment_angle_difference,
)
from formcoach.analysis.feedback_scheduler import Feedback, FeedbackType, Priority, Risk
from formcoach.analysis.landmark_filter import LandmarkStreamFilter
from formcoach.analysis.landmarks import Landmark, LandmarkFrame, PoseLandmark as PL
from formcoach.analysis.rep_state_machine import RepPhase
from formcoach.models.mistake import Mistake

logger = logging.getLogger(__name__)

RISK_GATE_PENALTY = "Biomechanical Risk"


@dataclass
class RuleContext:
    """Everything a rule predicate may inspect for one frame."""
    frame: LandmarkFrame
    phase: RepPhase
    signal: float
    physics: PhysicsSnapshot
    biomechanics: BiomechanicalSnapshot
    stream_filter: LandmarkStreamFilter
    deepest_signal: Optional[float] = None

    def __getitem__(self, index: int) -> Landmark:
        return self.frame[index]

    @property
    def rep_depth(self) -> float:
        """Deepest signal reached so far in this rep, including this frame."""
        if self.deepest_signal is None:
            return self.signal
        return min(self.signal, self.deepest_signal)

    def angle(self, joint: str) -> float:
        return self.biomechanics.joint_angles[joint]

    def stability(self, index: int) -> float:
        return joint_stability(self.frame[index], index, self.stream_filter)

    @property
    def left_leg_forward(self) -> bool:
        return self.frame[PL.LEFT_ANKLE].x < self.frame[PL.RIGHT_ANKLE].x

    @property
    def front_knee(self) -> Landmark:
        return self.frame[PL.LEFT_KNEE if self.left_leg_forward else PL.RIGHT_KNEE]

    @property
    def front_ankle(self) -> Landmark:
        return self.frame[PL.LEFT_ANKLE if self.left_leg_forward else PL.RIGHT_ANKLE]

    @property
    def front_knee_angle(self) -> float:
        return self.angle("left_knee" if self.left_leg_forward else "right_knee")

    @property
    def front_knee_index(self) -> int:
        return int(PL.LEFT_KNEE if self.left_leg_forward else PL.RIGHT_KNEE)


LandmarkSpec = Union[Tuple[int, ...], Callable[[RuleContext], Tuple[int, ...]]]


@dataclass(frozen=True)
class FaultRule:
    """A geometric/physical predicate mapped to one named fault."""
    name: str
    predicate: Callable[[RuleContext], bool]
    penalty: float
    risk: Risk
    priority: Priority
    message: str
    voice_message: str
    problem_landmarks: LandmarkSpec = ()
    confidence: float = 0.8
    feedback_type: FeedbackType = FeedbackType.ADJUSTMENT
    phases: Optional[FrozenSet[RepPhase]] = None  # None = every phase

    def applies_in(self, phase: RepPhase) -> bool:
        return self.phases is None or phase in self.phases

    def landmarks_for(self, ctx: RuleContext) -> Tuple[int, ...]:
        if callable(self.problem_landmarks):
            return tuple(self.problem_landmarks(ctx))
        return tuple(self.problem_landmarks)

    def feedback(self, ctx: RuleContext, risk: Risk) -> Feedback:
        return Feedback(
            message=self.message,
            voice_message=self.voice_message,
            type=self.feedback_type,
            problem_landmarks=self.landmarks_for(ctx),
            confidence=self.confidence,
            biomechanical_risk=risk,
            priority=self.priority,
        )


@dataclass(frozen=True)
class RuleSet:
    """Ordered fault table and gates for one exercise."""
    exercise_id: str
    rules: Tuple[FaultRule, ...]
    is_active: Callable[[RuleContext], bool]
    positive_message: Tuple[str, str]
    standby_message: Tuple[str, str] = ("", "")
    risk_gate: Optional[Callable[[RuleContext], Optional[Tuple[Risk, float]]]] = None


@dataclass
class FaultEvaluation:
    """Outcome of running a rule set on one frame."""
    mistake: Optional[str]
    form_score: float
    risk: Risk
    feedback: Feedback
    applied_penalties: Dict[str, float] = field(default_factory=dict)
    active: bool = True


@dataclass
class MistakeRecord:
    """Session tally for one fault."""
    name: str
    count: int = 0
    last_seen: Optional[float] = None


class MistakeTracker:
    """
    Counts fault episodes.

    A run of consecutive frames showing the same fault is one occurrence.
    """

    def __init__(self):
        self.records: Dict[str, MistakeRecord] = {}
        self._current: Optional[str] = None

    def observe(self, mistake: Optional[str], timestamp: float) -> int:
        """Record the fault of this frame; returns its occurrence count (0 for none)."""
        if mistake is None:
            self._current = None
            return 0

        record = self.records.setdefault(mistake, MistakeRecord(name=mistake))
        if mistake != self._current:
            record.count += 1
        record.last_seen = timestamp
        self._current = mistake
        return record.count

    def counts(self) -> Dict[str, int]:
        return {name: r.count for name, r in self.records.items()}

    def reset(self):
        self.records.clear()
        self._current = None


# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

DOWN_ONLY = frozenset({RepPhase.DOWN})


def _squat_risk_gate(ctx: RuleContext) -> Optional[Tuple[Risk, float]]:
    asymmetry = ctx.biomechanics.asymmetry
    stability = ctx.physics.stability
    if asymmetry > 15 or stability < 50:
        return Risk.HIGH, 15.0
    if asymmetry > 8 or stability < 70:
        return Risk.MEDIUM, 5.0
    return None


def _chest_falling(ctx: RuleContext) -> bool:
    diff = segment_angle_difference(
        ctx[PL.LEFT_SHOULDER], ctx[PL.LEFT_HIP], ctx[PL.LEFT_KNEE], ctx[PL.LEFT_ANKLE]
    )
    return diff > 50


def _knee_valgus(ctx: RuleContext) -> bool:
    left = ctx[PL.LEFT_KNEE].x > ctx[PL.LEFT_ANKLE].x + 0.02
    right = ctx[PL.RIGHT_KNEE].x < ctx[PL.RIGHT_ANKLE].x - 0.02
    return left or right


def _hips_above_knees(ctx: RuleContext) -> bool:
    left = ctx[PL.LEFT_HIP].y < ctx[PL.LEFT_KNEE].y - 0.03
    right = ctx[PL.RIGHT_HIP].y < ctx[PL.RIGHT_KNEE].y - 0.03
    return left and right


def _pushup_body_angle(ctx: RuleContext) -> float:
    return (ctx.angle("left_body") + ctx.angle("right_body")) / 2.0


def _elbow_flare(ctx: RuleContext) -> float:
    return (
        abs(ctx[PL.LEFT_ELBOW].x - ctx[PL.LEFT_SHOULDER].x)
        + abs(ctx[PL.RIGHT_ELBOW].x - ctx[PL.RIGHT_SHOULDER].x)
    )


def _plank_hips_low(ctx: RuleContext) -> bool:
    return hips_below_line(ctx[PL.LEFT_SHOULDER], ctx[PL.LEFT_HIP], ctx[PL.LEFT_ANKLE])


SQUAT_RULES = RuleSet(
    exercise_id="squats",
    rules=(
        FaultRule(
            name=Mistake.CHEST_FALLING,
            predicate=_chest_falling,
            penalty=8.0,
            risk=Risk.MEDIUM,
            priority=Priority.LOW,
            message="Keep That Chest Up!",
            voice_message="Great effort! Just lift your chest a bit more and you'll have perfect form!",
            problem_landmarks=(PL.LEFT_SHOULDER, PL.RIGHT_SHOULDER, PL.LEFT_HIP, PL.RIGHT_HIP),
            confidence=0.9,
        ),
        FaultRule(
            name=Mistake.KNEE_VALGUS,
            predicate=_knee_valgus,
            penalty=6.0,
            risk=Risk.MEDIUM,
            priority=Priority.LOW,
            message="Push Knees Out!",
            voice_message="Nice work! Just push your knees outward a bit and you're golden!",
            problem_landmarks=(PL.LEFT_KNEE, PL.RIGHT_KNEE),
            confidence=0.85,
        ),
        FaultRule(
            name=Mistake.UNSTABLE_KNEES,
            predicate=lambda ctx: ctx.stability(PL.LEFT_KNEE) < 60,
            penalty=4.0,
            risk=Risk.LOW,
            priority=Priority.LOW,
            message="Almost There!",
            voice_message="Great job! Just stabilize those knees a bit more - you've got this!",
            problem_landmarks=(PL.LEFT_KNEE, PL.RIGHT_KNEE),
            confidence=0.75,
        ),
        FaultRule(
            name=Mistake.NOT_DEEP_ENOUGH,
            predicate=_hips_above_knees,
            penalty=3.0,
            risk=Risk.LOW,
            priority=Priority.LOW,
            message="You Can Go Deeper!",
            voice_message="Awesome control! Try going a bit deeper next time - you're doing amazing!",
            problem_landmarks=(PL.LEFT_HIP, PL.RIGHT_HIP),
            confidence=0.8,
            phases=DOWN_ONLY,
        ),
    ),
    is_active=lambda ctx: ctx.phase != RepPhase.UP or ctx.signal < 150,
    positive_message=(
        "Perfect Form!",
        "Incredible! Your technique is absolutely spot-on! Keep it up!",
    ),
    standby_message=(
        "Squat Down",
        "Sit your hips back and bend your knees to start the next rep.",
    ),
    risk_gate=_squat_risk_gate,
)

PUSHUP_RULES = RuleSet(
    exercise_id="pushups",
    rules=(
        FaultRule(
            name=Mistake.HIP_SAG,
            predicate=lambda ctx: _pushup_body_angle(ctx) < 160,
            penalty=10.0,
            risk=Risk.MEDIUM,
            priority=Priority.MEDIUM,
            message="Engage That Core!",
            voice_message="Great effort! Tighten your core and keep your body straight - you've got this!",
            problem_landmarks=(PL.LEFT_HIP, PL.RIGHT_HIP),
            confidence=0.9,
        ),
        FaultRule(
            name=Mistake.ELBOWS_FLARING,
            predicate=lambda ctx: _elbow_flare(ctx) > 0.3,
            penalty=6.0,
            risk=Risk.LOW,
            priority=Priority.LOW,
            message="Tuck Those Elbows!",
            voice_message="Nice work! Just bring your elbows in a bit closer and you'll be perfect!",
            problem_landmarks=(PL.LEFT_ELBOW, PL.RIGHT_ELBOW),
            confidence=0.8,
        ),
        FaultRule(
            name=Mistake.LOWER_CHEST_MORE,
            # Judged on the bottom reached so far, not on the way back up
            predicate=lambda ctx: ctx.rep_depth >= 90,
            penalty=5.0,
            risk=Risk.LOW,
            priority=Priority.LOW,
            message="Go Lower!",
            voice_message="Good effort! Try going a bit lower next time.",
            problem_landmarks=(PL.LEFT_SHOULDER, PL.RIGHT_SHOULDER),
            confidence=0.75,
            phases=DOWN_ONLY,
        ),
    ),
    is_active=lambda ctx: True,
    positive_message=(
        "Strong Push-up Form!",
        "WOW! Straight body line and controlled elbows - your form is incredible!",
    ),
)

LUNGE_RULES = RuleSet(
    exercise_id="lunges",
    rules=(
        FaultRule(
            name=Mistake.KNEE_OVER_TOES,
            predicate=lambda ctx: ctx.front_knee.x < ctx.front_ankle.x,
            penalty=7.0,
            risk=Risk.MEDIUM,
            priority=Priority.LOW,
            message="Shift Back!",
            voice_message="Great lunge! Just shift your weight back slightly - you're almost perfect!",
            problem_landmarks=lambda ctx: (ctx.front_knee_index,),
            confidence=0.9,
        ),
        FaultRule(
            name=Mistake.INCORRECT_DEPTH,
            predicate=lambda ctx: not (80 <= ctx.front_knee_angle <= 100),
            penalty=5.0,
            risk=Risk.LOW,
            priority=Priority.LOW,
            message="Aim for 90 Degrees!",
            voice_message="Nice lunge! Aim for 90 degrees and you'll be spot on!",
            problem_landmarks=lambda ctx: (ctx.front_knee_index,),
            confidence=0.75,
            phases=DOWN_ONLY,
        ),
        FaultRule(
            name=Mistake.POOR_BALANCE,
            predicate=lambda ctx: ctx.biomechanics.balance_score < 60,
            penalty=4.0,
            risk=Risk.LOW,
            priority=Priority.LOW,
            message="Stay Balanced!",
            voice_message="Excellent effort! Keep that core tight and you'll nail the balance!",
            problem_landmarks=(PL.LEFT_HIP, PL.RIGHT_HIP),
            confidence=0.7,
        ),
    ),
    is_active=lambda ctx: ctx.front_knee_angle <= 160,
    positive_message=(
        "Perfect!",
        "Excellent lunge form! Your technique is on point!",
    ),
    standby_message=(
        "Step Into Your Lunge",
        "Step one leg forward and lower your body by bending both knees to 90 degrees.",
    ),
)

PLANK_RULES = RuleSet(
    exercise_id="plank",
    rules=(
        FaultRule(
            name=Mistake.HIP_SAG,
            predicate=lambda ctx: ctx.angle("left_body") < 155 and _plank_hips_low(ctx),
            penalty=30.0,
            risk=Risk.HIGH,
            priority=Priority.IMMEDIATE,
            message="Lift Hips!",
            voice_message=(
                "Engage your core and glutes to lift your hips. "
                "Don't let your back sag - protect your spine!"
            ),
            problem_landmarks=(PL.LEFT_HIP,),
            confidence=0.9,
            feedback_type=FeedbackType.CRITICAL,
        ),
        FaultRule(
            name=Mistake.HIPS_TOO_HIGH,
            predicate=lambda ctx: ctx.angle("left_body") < 165 and not _plank_hips_low(ctx),
            penalty=30.0,
            risk=Risk.MEDIUM,
            priority=Priority.HIGH,
            message="Lower Hips",
            voice_message=(
                "Lower your hips to form a straight line from shoulders to ankles "
                "for proper alignment."
            ),
            problem_landmarks=(PL.LEFT_HIP,),
            confidence=0.85,
        ),
        FaultRule(
            name=Mistake.UNSTABLE_CORE,
            predicate=lambda ctx: ctx.physics.stability < 50,
            penalty=25.0,
            risk=Risk.MEDIUM,
            priority=Priority.HIGH,
            message="Stabilize Core",
            voice_message="Your core is shaking. Breathe steadily and engage your abdominal muscles.",
            problem_landmarks=(PL.LEFT_HIP,),
            confidence=0.75,
        ),
    ),
    is_active=lambda ctx: True,
    positive_message=(
        "Perfect!",
        "Perfect form! Keep holding that strong position!",
    ),
)

RULE_SETS: Dict[str, RuleSet] = {
    rule_set.exercise_id: rule_set
    for rule_set in (SQUAT_RULES, PUSHUP_RULES, LUNGE_RULES, PLANK_RULES)
}


class FaultRuleEngine:
    """
    Evaluates one exercise's rule table frame by frame.

    Also keeps the session's mistake tally used by the workout summary.
    """

    def __init__(self, exercise_id: str, rule_set: Optional[RuleSet] = None):
        self.exercise_id = exercise_id
        self.rule_set = rule_set or RULE_SETS.get(exercise_id)
        if self.rule_set is None:
            raise ValueError(f"No fault rules for exercise '{exercise_id}'")
        self.tracker = MistakeTracker()

    def evaluate(self, ctx: RuleContext) -> FaultEvaluation:
        """
        Score a frame against the rule table.

        Returns:
            FaultEvaluation with at most one mistake
        """
        rule_set = self.rule_set
        penalties: Dict[str, float] = {}
        risk = Risk.LOW

        if rule_set.risk_gate is not None:
            gated = rule_set.risk_gate(ctx)
            if gated is not None:
                risk, penalty = gated
                penalties[RISK_GATE_PENALTY] = penalty

        if not rule_set.is_active(ctx):
            message, voice = rule_set.standby_message
            feedback = Feedback(
                message=message,
                voice_message=voice,
                type=FeedbackType.INFO,
                confidence=1.0,
                biomechanical_risk=risk,
                priority=Priority.LOW,
            )
            return self._finish(None, penalties, risk, feedback, active=False)

        for rule in rule_set.rules:
            if not rule.applies_in(ctx.phase):
                continue
            if rule.predicate(ctx):
                risk = Risk.highest(risk, rule.risk)
                penalties[rule.name] = rule.penalty
                logger.debug(f"{self.exercise_id}: {rule.name} (-{rule.penalty:g})")
                return self._finish(rule.name, penalties, risk, rule.feedback(ctx, risk))

        message, voice = rule_set.positive_message
        feedback = Feedback(
            message=message,
            voice_message=voice,
            type=FeedbackType.POSITIVE,
            confidence=0.95,
            biomechanical_risk=risk,
            priority=Priority.MEDIUM,
        )
        return self._finish(None, penalties, risk, feedback)

    def record(self, mistake: Optional[str], timestamp: float) -> int:
        """Add a frame's fault to the session tally."""
        return self.tracker.observe(mistake, timestamp)

    def reset(self):
        self.tracker.reset()

    @staticmethod
    def _finish(
        mistake: Optional[str],
        penalties: Dict[str, float],
        risk: Risk,
        feedback: Feedback,
        active: bool = True,
    ) -> FaultEvaluation:
        return FaultEvaluation(
            mistake=mistake,
            form_score=form_score_from_penalties(penalties.values()),
            risk=risk,
            feedback=feedback,
            applied_penalties=penalties,
            active=active,
        )


def form_score_from_penalties(penalties: Iterable[float]) -> float:
    """100 minus the summed penalties, clamped to [0, 100] and rounded."""
    return float(np.clip(round(100.0 - sum(penalties)), 0.0, 100.0))
