from __future__ import annotations

import numpy as np
import pytest

from squatcoach.config import CoachConfig
from squatcoach.fsm import (
    FSMState,
    RepPhase,
    RepStateMachine,
    TurnaroundDetector,
    advance,
    rep_increment,
    step_phase,
)

CFG = CoachConfig()


@pytest.mark.parametrize(
    "phase,vel,reached,expected",
    [
        (RepPhase.IDLE, 0.01, False, RepPhase.DESCENT),
        (RepPhase.IDLE, 0.0015, False, RepPhase.IDLE),
        (RepPhase.DESCENT, 0.0, True, RepPhase.BOTTOM),
        (RepPhase.DESCENT, 0.0, False, RepPhase.DESCENT),
        (RepPhase.DESCENT, -0.01, False, RepPhase.ASCENT),
        (RepPhase.DESCENT, 0.01, True, RepPhase.DESCENT),
        (RepPhase.BOTTOM, -0.01, True, RepPhase.ASCENT),
        (RepPhase.BOTTOM, 0.0, True, RepPhase.BOTTOM),
        (RepPhase.ASCENT, 0.0005, True, RepPhase.LOCKOUT),
        (RepPhase.ASCENT, -0.01, True, RepPhase.ASCENT),
        (RepPhase.LOCKOUT, 0.01, False, RepPhase.DESCENT),
        (RepPhase.LOCKOUT, 0.0, False, RepPhase.LOCKOUT),
    ],
)
def test_step_phase(phase, vel, reached, expected):
    assert step_phase(phase, vel, reached, CFG) is expected


def test_rep_increment_only_on_ascent_to_lockout_with_depth():
    assert rep_increment(RepPhase.ASCENT, RepPhase.LOCKOUT, True) == 1
    assert rep_increment(RepPhase.ASCENT, RepPhase.LOCKOUT, False) == 0
    assert rep_increment(RepPhase.BOTTOM, RepPhase.ASCENT, True) == 0
    assert rep_increment(RepPhase.LOCKOUT, RepPhase.DESCENT, True) == 0


def test_lockout_counts_and_clears_depth_flag():
    s = FSMState(phase=RepPhase.ASCENT, rep_count=2, last_position=0.1, depth_reached=True)
    nxt = advance(s, 0.1, False, CFG)
    assert nxt.phase is RepPhase.LOCKOUT
    assert nxt.rep_count == 3
    assert nxt.depth_reached is False

    shallow = FSMState(phase=RepPhase.ASCENT, rep_count=2, last_position=0.1, depth_reached=False)
    nxt = advance(shallow, 0.1, False, CFG)
    assert nxt.phase is RepPhase.LOCKOUT
    assert nxt.rep_count == 2


def test_rep_count_invariant_on_random_walk():
    rng = np.random.default_rng(7)
    state = FSMState()
    pos = 0.0
    for _ in range(5000):
        pos += rng.choice([-0.01, -0.003, -0.0005, 0.0, 0.0005, 0.003, 0.01])
        depth_ok = bool(rng.random() < 0.3)
        reached_before = state.depth_reached or depth_ok
        nxt = advance(state, pos, depth_ok, CFG)
        assert nxt.rep_count >= state.rep_count
        if nxt.rep_count != state.rep_count:
            assert nxt.rep_count == state.rep_count + 1
            assert state.phase is RepPhase.ASCENT and nxt.phase is RepPhase.LOCKOUT
            assert reached_before
        state = nxt


def test_min_transition_time_throttles_but_latches_depth():
    fsm = RepStateMachine(CoachConfig(min_transition_sec=0.12))
    assert fsm.update(0.00, False, 0.00) is None
    t = fsm.update(0.01, False, 0.01)
    assert t is not None and t.next is RepPhase.DESCENT
    # Would be bottom, but only 10 ms after the last transition
    assert fsm.update(0.01, True, 0.02) is None
    assert fsm.phase is RepPhase.DESCENT
    assert fsm.state.depth_reached
    t = fsm.update(0.01, False, 0.20)
    assert t is not None and t.entered_bottom


def test_full_cycle_reports_count_and_rep_start():
    fsm = RepStateMachine(CoachConfig(min_transition_sec=0.0))
    seq = [
        (0.00, False), (0.05, False), (0.10, True), (0.10, True),  # down, hold at depth
        (0.05, False), (0.00, False), (0.00, False),  # up, lock out
        (0.05, False),  # next rep begins
    ]
    transitions = []
    for i, (pos, ok) in enumerate(seq):
        t = fsm.update(pos, ok, i * 0.1)
        if t is not None:
            transitions.append(t)
    phases = [(t.prev, t.next) for t in transitions]
    assert phases == [
        (RepPhase.IDLE, RepPhase.DESCENT),
        (RepPhase.DESCENT, RepPhase.BOTTOM),
        (RepPhase.BOTTOM, RepPhase.ASCENT),
        (RepPhase.ASCENT, RepPhase.LOCKOUT),
        (RepPhase.LOCKOUT, RepPhase.DESCENT),
    ]
    assert [t.counted for t in transitions] == [False, False, False, True, False]
    assert transitions[-1].rep_started
    assert fsm.rep_count == 1


def test_turnaround_fires_once_after_downward_motion():
    det = TurnaroundDetector(start=0.002, still=0.001)
    assert det.update(0.0) is False
    assert det.update(0.01) is False
    assert det.update(0.004) is False
    assert det.update(0.0005) is True
    assert det.update(0.0) is False
    assert det.update(-0.01) is False
