"""Tests for feedback delivery policy and escalation."""

import pytest

from formcoach.analysis.feedback_scheduler import (
    Feedback,
    FeedbackScheduler,
    FeedbackType,
    Priority,
    Risk,
)
from formcoach.models.mistake import Mistake


def _feedback(message="Push Knees Out!", type=FeedbackType.ADJUSTMENT, priority=Priority.MEDIUM, **kwargs):
    return Feedback(message=message, voice_message=message, type=type, priority=priority, **kwargs)


class TestFeedback:

    def test_confidence_clamped(self):
        assert _feedback(confidence=1.7).confidence == 1.0
        assert _feedback(confidence=-0.2).confidence == 0.0

    def test_default_encouragement_levels(self):
        assert _feedback(type=FeedbackType.POSITIVE).encouragement_level == 100
        assert _feedback(type=FeedbackType.CRITICAL).encouragement_level == 20
        assert _feedback().encouragement_level == 60

    def test_risk_ordering(self):
        assert Risk.highest(Risk.LOW, Risk.HIGH, Risk.MEDIUM) == Risk.HIGH
        assert Risk.highest() == Risk.LOW


class TestDelivery:

    def test_first_feedback_delivered(self):
        scheduler = FeedbackScheduler()
        assert scheduler.should_deliver(_feedback(), 0.0)

    def test_identical_message_suppressed(self):
        scheduler = FeedbackScheduler()
        scheduler.should_deliver(_feedback(), 0.0)
        assert not scheduler.should_deliver(_feedback(), 30.0)

    def test_priority_cooldowns(self):
        scheduler = FeedbackScheduler()
        scheduler.should_deliver(_feedback("A"), 0.0)
        assert not scheduler.should_deliver(_feedback("B", priority=Priority.MEDIUM), 3.9)
        assert scheduler.should_deliver(_feedback("B", priority=Priority.MEDIUM), 4.0)

        assert not scheduler.should_deliver(_feedback("C", priority=Priority.LOW), 9.0)
        assert scheduler.should_deliver(_feedback("C", priority=Priority.LOW), 10.0)

        assert scheduler.should_deliver(_feedback("D", priority=Priority.HIGH), 12.0)

    def test_low_priority_twice_within_cooldown(self):
        scheduler = FeedbackScheduler()
        delivered = [
            scheduler.should_deliver(_feedback("Go Lower!", priority=Priority.LOW), 0.0),
            scheduler.should_deliver(_feedback("Stay Balanced!", priority=Priority.LOW), 5.0),
        ]
        assert delivered == [True, False]

    def test_immediate_always_delivered(self):
        scheduler = FeedbackScheduler()
        urgent = _feedback("Lift Hips!", priority=Priority.IMMEDIATE)
        assert scheduler.should_deliver(urgent, 0.0)
        assert scheduler.should_deliver(urgent, 0.1)

    def test_critical_always_delivered(self):
        scheduler = FeedbackScheduler()
        scheduler.should_deliver(_feedback("A"), 0.0)
        critical = _feedback("Hip Sag (x3)", type=FeedbackType.CRITICAL, priority=Priority.LOW)
        assert scheduler.should_deliver(critical, 0.5)

    def test_positive_short_cooldown(self):
        scheduler = FeedbackScheduler()
        scheduler.should_deliver(_feedback("A"), 0.0)
        assert not scheduler.should_deliver(_feedback("Nice!", type=FeedbackType.POSITIVE), 1.0)
        assert scheduler.should_deliver(_feedback("Nice!", type=FeedbackType.POSITIVE), 1.5)

    def test_same_message_new_rep(self):
        scheduler = FeedbackScheduler()
        rep = dict(type=FeedbackType.POSITIVE)
        assert scheduler.should_deliver(_feedback("Rep complete", rep_count=1, **rep), 0.0)
        assert not scheduler.should_deliver(_feedback("Rep complete", rep_count=1, **rep), 2.0)
        assert scheduler.should_deliver(_feedback("Rep complete", rep_count=2, **rep), 2.0)

    def test_new_rep_skips_cooldown(self):
        scheduler = FeedbackScheduler()
        assert scheduler.should_deliver(_feedback("Improve Smoothness"), 0.0)
        rep = _feedback("Rep 2 complete", type=FeedbackType.POSITIVE, rep_count=2)
        assert scheduler.should_deliver(rep, 0.5)
        assert not scheduler.should_deliver(rep, 0.6)

    def test_cleared_message_can_repeat(self):
        scheduler = FeedbackScheduler()
        cue = _feedback(priority=Priority.LOW)
        assert scheduler.should_deliver(cue, 0.0)
        assert not scheduler.should_deliver(cue, 7.0)

        scheduler.clear_last_message()
        assert scheduler.should_deliver(cue, 7.0)


class TestEscalation:

    def test_occurrences_have_cooldown(self):
        scheduler = FeedbackScheduler()
        assert scheduler.register_occurrence(Mistake.KNEE_VALGUS, 0.0) == 1
        assert scheduler.register_occurrence(Mistake.KNEE_VALGUS, 5.0) is None
        assert scheduler.register_occurrence(Mistake.KNEE_VALGUS, 12.0) == 2
        assert scheduler.occurrence_count(Mistake.KNEE_VALGUS) == 2

    def test_third_occurrence_escalates(self):
        scheduler = FeedbackScheduler()
        results = [
            scheduler.enhance(_feedback(), Mistake.KNEE_VALGUS, t)
            for t in (0.0, 13.0, 26.0)
        ]

        assert results[0].type == FeedbackType.ADJUSTMENT
        assert results[0].actionable_cue == Mistake.get_cue(Mistake.KNEE_VALGUS)
        assert results[0].encouragement_level == 85

        escalated = results[2]
        assert escalated.message == "Knee Valgus (x3)"
        assert escalated.type == FeedbackType.CRITICAL
        assert escalated.priority == Priority.IMMEDIATE
        assert escalated.detailed_explanation == Mistake.get_explanation(Mistake.KNEE_VALGUS)
        assert "3 instances" in escalated.voice_message

    def test_repeat_within_cooldown_not_escalated(self):
        scheduler = FeedbackScheduler()
        for t in (0.0, 13.0):
            scheduler.enhance(_feedback(), Mistake.KNEE_VALGUS, t)
        result = scheduler.enhance(_feedback(), Mistake.KNEE_VALGUS, 14.0)
        assert result.type == FeedbackType.ADJUSTMENT

    def test_escalation_can_be_held_back(self):
        scheduler = FeedbackScheduler()
        for t in (0.0, 13.0):
            scheduler.enhance(_feedback(), Mistake.KNEE_VALGUS, t)
        result = scheduler.enhance(_feedback("Fatigue Detected"), Mistake.KNEE_VALGUS, 26.0, escalate=False)

        assert result.message == "Fatigue Detected"
        assert scheduler.occurrence_count(Mistake.KNEE_VALGUS) == 3

    def test_visibility_never_counted(self):
        scheduler = FeedbackScheduler()
        for t in (0.0, 13.0, 26.0, 39.0):
            result = scheduler.enhance(_feedback("Step back please"), Mistake.POOR_VISIBILITY, t)
        assert result.message == "Step back please"
        assert scheduler.occurrence_count(Mistake.POOR_VISIBILITY) == 0


class TestEncouragement:

    def test_positive_feedback_gets_encouragement(self):
        scheduler = FeedbackScheduler()
        result = scheduler.enhance(_feedback("Perfect Form!", type=FeedbackType.POSITIVE), None, 0.0, rep_count=0)
        assert result.voice_message == FeedbackScheduler.encouragement(0)

    def test_rep_feedback_keeps_its_voice(self):
        scheduler = FeedbackScheduler()
        rep = Feedback(message="Rep 1 complete", voice_message="One!", type=FeedbackType.POSITIVE, rep_count=1)
        assert scheduler.enhance(rep, None, 0.0, rep_count=1).voice_message == "One!"

    def test_encouragement_by_progress(self):
        assert FeedbackScheduler.encouragement(12) == "Your form is spot-on! This is elite-level execution!"
        assert "7 clean reps" in FeedbackScheduler.encouragement(7)

    def test_learning_phase_ends_after_positive_streak(self):
        scheduler = FeedbackScheduler()
        for t in range(3):
            scheduler.enhance(_feedback("Perfect!", type=FeedbackType.POSITIVE), None, float(t))
        progress = scheduler.progress()
        assert not progress.learning_phase
        assert progress.consecutive_positive == 3

    def test_reset(self):
        scheduler = FeedbackScheduler()
        scheduler.enhance(_feedback(), Mistake.HIP_SAG, 0.0)
        scheduler.should_deliver(_feedback(), 0.0)
        scheduler.reset()
        assert scheduler.progress().total_mistakes == 0
        assert scheduler.should_deliver(_feedback(), 0.1)
