"""
Coaching feedback and the policy deciding when to deliver it.

Computing feedback and delivering it are separate steps. Every frame
produces one Feedback; the scheduler decides whether it is spoken/shown
based on priority cooldowns, duplicate suppression and per-fault repeat
escalation.

DELIVERY POLICY:
- immediate priority or critical type: always
- high: >= 2s since the last delivery
- medium: >= 4s
- low: >= 6s
- positive: >= 1.5s (or its priority cooldown if shorter)
- a new rep count: always
- an identical consecutive message is dropped unless it carries a new rep count

The duplicate memory is cleared by the session whenever the rep phase
changes or a rep is counted, so a fault that persists into the next rep
is spoken again once its cooldown allows.

ESCALATION:
A fault occurrence is counted at most once per 12s per fault. From the
3rd counted occurrence the feedback becomes critical, immediate, and
carries the detailed explanation.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple
import logging

from formcoach.config import Settings, get_settings
from formcoach.models.mistake import Mistake

logger = logging.getLogger(__name__)


class FeedbackType(Enum):
    CRITICAL = "critical"
    ADJUSTMENT = "adjustment"
    POSITIVE = "positive"
    INFO = "info"
    ENCOURAGEMENT = "encouragement"
    WARNING = "warning"


class Priority(Enum):
    IMMEDIATE = "immediate"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Risk(Enum):
    """Coarse biomechanical injury-risk tier."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]

    @classmethod
    def highest(cls, *risks: "Risk") -> "Risk":
        return max(risks, key=lambda r: r.rank) if risks else cls.LOW


ENCOURAGEMENT_LEVELS = {
    FeedbackType.POSITIVE: 100,
    FeedbackType.CRITICAL: 20,
}


@dataclass
class Feedback:
    """One coaching message. Produced every frame, delivered selectively."""
    message: str
    voice_message: str
    type: FeedbackType = FeedbackType.INFO
    problem_landmarks: Tuple[int, ...] = ()
    confidence: float = 1.0
    biomechanical_risk: Risk = Risk.LOW
    priority: Priority = Priority.MEDIUM
    progressive_hint: Optional[str] = None
    actionable_cue: Optional[str] = None
    detailed_explanation: Optional[str] = None
    encouragement_level: Optional[int] = None

    # Set on rep-count feedback so a repeated message for a new rep is not suppressed
    rep_count: Optional[int] = None

    def __post_init__(self):
        self.confidence = min(1.0, max(0.0, float(self.confidence)))
        self.problem_landmarks = tuple(int(i) for i in self.problem_landmarks)
        if self.encouragement_level is None:
            self.encouragement_level = ENCOURAGEMENT_LEVELS.get(self.type, 60)

    def with_changes(self, **changes) -> "Feedback":
        return replace(self, **changes)


@dataclass
class MistakeOccurrence:
    """Scheduler-side record of how often a fault has been raised."""
    count: int = 0
    last_counted_at: Optional[float] = None


@dataclass
class LearningProgress:
    learning_phase: bool = True
    consecutive_positive: int = 0
    total_mistakes: int = 0


class FeedbackScheduler:
    """
    Per-session feedback delivery policy.

    Usage:
        scheduler = FeedbackScheduler()
        feedback = scheduler.enhance(feedback, mistake, timestamp, rep_count)
        if scheduler.should_deliver(feedback, timestamp):
            speak(feedback.voice_message)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.cooldowns: Dict[Priority, float] = {
            Priority.IMMEDIATE: 0.0,
            Priority.HIGH: self.settings.high_priority_cooldown_s,
            Priority.MEDIUM: self.settings.medium_priority_cooldown_s,
            Priority.LOW: self.settings.low_priority_cooldown_s,
        }
        self.reset()

    def reset(self):
        """Reset for a new workout."""
        self.occurrences: Dict[str, MistakeOccurrence] = {}
        self.last_delivery_time: Optional[float] = None
        self.last_delivered_message: Optional[str] = None
        self.last_delivered_rep: Optional[int] = None
        self.last_announced_rep: Optional[int] = None
        self.consecutive_positive = 0
        self.learning_phase = True

    def register_occurrence(self, mistake: str, timestamp: float) -> Optional[int]:
        """
        Count an occurrence of a fault unless it was counted within the repeat cooldown.

        Returns:
            The new occurrence count, or None when still cooling down
        """
        record = self.occurrences.setdefault(mistake, MistakeOccurrence())
        if (
            record.last_counted_at is not None
            and timestamp - record.last_counted_at < self.settings.mistake_repeat_cooldown_s
        ):
            return None

        record.count += 1
        record.last_counted_at = timestamp
        return record.count

    def occurrence_count(self, mistake: str) -> int:
        record = self.occurrences.get(mistake)
        return record.count if record else 0

    def enhance(
        self,
        feedback: Feedback,
        mistake: Optional[str],
        timestamp: float,
        rep_count: int = 0,
        escalate: bool = True,
    ) -> Feedback:
        """
        Attach hints, cues and escalation to a freshly computed feedback.

        With escalate=False the occurrence is still counted but the message
        is left alone (used when a more important warning owns the frame).
        """
        if feedback.type == FeedbackType.POSITIVE:
            self.consecutive_positive += 1
            if self.consecutive_positive >= 3 and self.learning_phase:
                self.learning_phase = False
                logger.debug("Learning phase complete")
        else:
            self.consecutive_positive = 0

        if mistake and mistake != Mistake.POOR_VISIBILITY:
            counted = self.register_occurrence(mistake, timestamp)
            count = max(self.occurrence_count(mistake), 1)

            if escalate and counted is not None and counted >= self.settings.escalation_occurrences:
                logger.info(f"Escalating repeated fault '{mistake}' (x{counted})")
                return feedback.with_changes(
                    message=f"{mistake} (x{counted})",
                    voice_message=self.repeated_mistake_message(mistake, counted),
                    type=FeedbackType.CRITICAL,
                    priority=Priority.IMMEDIATE,
                    progressive_hint=Mistake.get_progressive_hint(mistake, counted),
                    actionable_cue=Mistake.get_cue(mistake),
                    detailed_explanation=Mistake.get_explanation(mistake),
                    encouragement_level=max(0, 100 - counted * 15),
                )

            return feedback.with_changes(
                progressive_hint=Mistake.get_progressive_hint(mistake, count),
                actionable_cue=Mistake.get_cue(mistake),
                encouragement_level=max(0, 100 - count * 15),
            )

        if feedback.type == FeedbackType.POSITIVE and feedback.rep_count is None:
            return feedback.with_changes(
                voice_message=self.encouragement(rep_count),
                encouragement_level=100,
            )

        return feedback

    def should_deliver(self, feedback: Feedback, timestamp: float) -> bool:
        """Decide whether this feedback is delivered now, recording the delivery."""
        if feedback.priority == Priority.IMMEDIATE or feedback.type == FeedbackType.CRITICAL:
            self._record_delivery(feedback, timestamp)
            return True

        if (
            feedback.message == self.last_delivered_message
            and (feedback.rep_count is None or feedback.rep_count == self.last_delivered_rep)
        ):
            return False

        if feedback.rep_count is not None and (
            self.last_announced_rep is None or feedback.rep_count > self.last_announced_rep
        ):
            self._record_delivery(feedback, timestamp)
            return True

        if self.last_delivery_time is None:
            self._record_delivery(feedback, timestamp)
            return True

        cooldown = self.cooldowns[feedback.priority]
        if feedback.type == FeedbackType.POSITIVE:
            cooldown = min(cooldown, self.settings.positive_cooldown_s)

        if timestamp - self.last_delivery_time >= cooldown:
            self._record_delivery(feedback, timestamp)
            return True
        return False

    def clear_last_message(self):
        """Forget the last delivered message so the same cue may be delivered again."""
        self.last_delivered_message = None

    def repeated_mistake_message(self, mistake: str, count: int) -> str:
        """Detailed voice text for a fault that keeps coming back."""
        return (
            f'You\'ve had {count} instances of "{mistake}". Let\'s fix this: '
            f"{Mistake.get_cue(mistake)}. {Mistake.get_progressive_hint(mistake, count)} "
            f"WHY THIS MATTERS: {Mistake.get_explanation(mistake)} "
            f"Take a moment to reset and focus on this correction."
        )

    @staticmethod
    def encouragement(rep_count: int) -> str:
        """Encouragement phrasing that changes with progress."""
        messages = [
            "Excellent form! That's how it's done!",
            f"{rep_count} perfect reps - you're crushing it!",
            "Beautiful technique! Keep this consistency!",
            "That's textbook form! Outstanding!",
            f"{rep_count} clean reps and counting - incredible work!",
            "Your form is spot-on! This is elite-level execution!",
            "Perfect alignment! You're moving like a pro!",
            f"Rep {rep_count} - absolutely flawless! Keep it up!",
        ]
        if rep_count <= 0:
            return messages[0]
        if rep_count >= 10:
            return messages[5]
        if rep_count >= 5:
            return messages[4]
        return messages[rep_count % len(messages)]

    def progress(self) -> LearningProgress:
        return LearningProgress(
            learning_phase=self.learning_phase,
            consecutive_positive=self.consecutive_positive,
            total_mistakes=sum(r.count for r in self.occurrences.values()),
        )

    def _record_delivery(self, feedback: Feedback, timestamp: float):
        self.last_delivery_time = timestamp
        self.last_delivered_message = feedback.message
        self.last_delivered_rep = feedback.rep_count
        if feedback.rep_count is not None:
            self.last_announced_rep = max(self.last_announced_rep or 0, feedback.rep_count)
