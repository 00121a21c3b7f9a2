"""Tests for hysteresis rep counting."""

import pytest

from formcoach.analysis.rep_state_machine import (
    REP_THRESHOLDS,
    RepPhase,
    RepStateMachine,
    compute_rep_quality,
)

MOVING = 0.5  # m/s, well above the motion floor


def _feed(machine, samples, velocity=MOVING, form_score=None):
    """Feed (signal, timestamp) pairs; returns the updates."""
    updates = []
    for signal, t in samples:
        update = machine.update(signal, t, velocity)
        if form_score is not None:
            machine.record_form(form_score)
        updates.append(update)
    return updates


def _timed(signals, dt=0.1, start=0.0):
    return [(s, start + i * dt) for i, s in enumerate(signals)]


# Descent, a held bottom and a confirmed ascent
ONE_REP = [170, 110, 100, 95, 95, 100, 160, 160]


class TestTransitions:

    def test_thresholds_have_hysteresis(self):
        for t in REP_THRESHOLDS.values():
            assert t.down_enter < t.down_exit
            assert t.up_exit < t.up_enter

    def test_full_cycle_counts_one_rep(self):
        machine = RepStateMachine("squats")
        updates = _feed(machine, _timed(ONE_REP))

        phases = [u.phase for u in updates]
        assert phases[1] == RepPhase.TRANSITION_DOWN
        assert phases[2] == RepPhase.DOWN
        assert phases[6] == RepPhase.TRANSITION_UP
        assert phases[7] == RepPhase.UP
        assert [u.counted for u in updates].count(True) == 1
        assert updates[-1].quality is not None
        assert machine.rep_count == 1

    def test_single_frame_dip_is_not_a_transition(self):
        machine = RepStateMachine("squats")
        updates = _feed(machine, _timed([170, 110, 135]))
        assert RepPhase.DOWN not in [u.phase for u in updates]
        assert machine.phase == RepPhase.UP

    def test_state_holds_inside_band(self):
        machine = RepStateMachine("squats")
        updates = _feed(machine, _timed([170, 118, 125, 135]))
        assert updates[1].phase == RepPhase.TRANSITION_DOWN
        assert updates[2].phase == RepPhase.TRANSITION_DOWN
        assert updates[3].phase == RepPhase.UP

    def test_ascent_cancelled_below_exit(self):
        machine = RepStateMachine("squats")
        updates = _feed(machine, _timed([170, 110, 100, 155, 135, 100]))
        assert updates[3].phase == RepPhase.TRANSITION_UP
        assert updates[4].phase == RepPhase.DOWN
        assert machine.rep_count == 0

    def test_no_transition_while_still(self):
        machine = RepStateMachine("squats")
        _feed(machine, _timed([170, 100, 100, 100]), velocity=0.0)
        assert machine.phase == RepPhase.UP

    def test_pushup_thresholds(self):
        machine = RepStateMachine("pushups")
        # 115 is below the squat threshold but not the push-up one
        _feed(machine, _timed([170, 115, 115]))
        assert machine.phase == RepPhase.UP

    def test_predict_next_phase(self):
        machine = RepStateMachine("squats")
        assert machine.predict_next_phase() == RepPhase.DOWN
        _feed(machine, _timed([170, 110, 100]))
        assert machine.predict_next_phase() == RepPhase.UP


    def test_deepest_signal_tracks_rep_in_progress(self):
        machine = RepStateMachine("squats")
        assert machine.deepest_signal is None

        _feed(machine, _timed([170, 110, 100, 95, 120]))
        assert machine.deepest_signal == 95

        _feed(machine, _timed([160, 160], start=0.5))
        assert machine.rep_count == 1
        assert machine.deepest_signal is None


class TestRepTiming:

    def test_too_fast_rep_not_counted(self):
        machine = RepStateMachine("squats")
        updates = _feed(machine, _timed([170, 110, 100, 160, 160], dt=0.05))
        assert not any(u.counted for u in updates)
        assert machine.phase == RepPhase.UP
        assert machine.rep_count == 0

    def test_too_slow_rep_not_counted(self):
        machine = RepStateMachine("squats")
        samples = [(170, 0.0), (110, 0.1), (100, 0.2), (100, 10.0), (160, 20.0), (160, 20.1)]
        _feed(machine, samples)
        assert machine.rep_count == 0

    def test_cooldown_between_reps(self):
        machine = RepStateMachine("squats")
        _feed(machine, _timed(ONE_REP))
        assert machine.rep_count == 1

        # Second rep completes 0.45s after the first
        second = [(110, 0.75), (100, 0.8), (95, 0.9), (95, 1.0), (160, 1.1), (160, 1.15)]
        _feed(machine, second)
        assert machine.rep_count == 1

    def test_partial_rep_still_counts(self):
        machine = RepStateMachine("squats")
        # Bottom at 115 is shallow but past the down threshold
        _feed(machine, _timed([170, 118, 115, 115, 115, 115, 155, 155]))
        assert machine.rep_count == 1


class TestRepQuality:

    def test_quality_uses_recorded_form(self):
        machine = RepStateMachine("squats")
        updates = _feed(machine, _timed(ONE_REP), form_score=80.0)
        quality = updates[-1].quality

        assert quality.form_score == pytest.approx(80.0)
        assert quality.depth_score == 100.0
        assert quality.duration_s == pytest.approx(0.6)
        assert quality.range_of_motion == pytest.approx(170 - 95)

    def test_compute_rep_quality_components(self):
        depth, stability, tempo, overall, form = compute_rep_quality(
            form_score=90.0, deepest_angle=140.0, duration_s=2.0, frame=None
        )
        assert depth == pytest.approx(60.0)
        assert stability == 0.0
        assert tempo == pytest.approx(100.0)
        assert overall == pytest.approx(90 * 0.4 + 60 * 0.25 + 100 * 0.15)
        assert form == 90.0

    def test_stats_after_one_rep(self):
        machine = RepStateMachine("squats")
        _feed(machine, _timed(ONE_REP), form_score=80.0)
        stats = machine.stats()

        assert stats.total == 1
        assert stats.valid == 1
        assert stats.accuracy == 100.0
        assert stats.best_quality == pytest.approx(stats.average_quality)
        assert stats.consistency == 100.0

    def test_trend_stable_with_few_reps(self):
        machine = RepStateMachine("squats")
        _feed(machine, _timed(ONE_REP))
        assert machine.quality_trend() == "stable"

    def test_reset(self):
        machine = RepStateMachine("squats")
        _feed(machine, _timed(ONE_REP))
        machine.reset()
        assert machine.rep_count == 0
        assert machine.history == ()
        assert machine.phase == RepPhase.UP


class TestIsometric:

    def test_plank_holds(self):
        machine = RepStateMachine("plank")
        updates = _feed(machine, _timed([180, 100, 180, 100]))
        assert all(u.phase == RepPhase.HOLDING for u in updates)
        assert machine.rep_count == 0
        assert machine.predict_next_phase() == RepPhase.HOLDING

    def test_unknown_exercise_rejected(self):
        with pytest.raises(ValueError):
            RepStateMachine("burpees")
