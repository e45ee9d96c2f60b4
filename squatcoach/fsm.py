"""
Squat repetition state machine: idle -> descent -> bottom -> ascent -> lockout.
Driven by the per-frame change of a depth signal (positive = going deeper) and
a debounced "at depth" flag. The transition logic is pure; RepStateMachine adds
the minimum time between transitions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .config import CoachConfig

logger = logging.getLogger(__name__)


class RepPhase(str, Enum):
    IDLE = "idle"
    DESCENT = "descent"
    BOTTOM = "bottom"
    ASCENT = "ascent"
    LOCKOUT = "lockout"


@dataclass(frozen=True)
class FSMState:
    phase: RepPhase = RepPhase.IDLE
    rep_count: int = 0
    last_position: Optional[float] = None
    depth_reached: bool = False


@dataclass(frozen=True)
class Transition:
    prev: RepPhase
    next: RepPhase
    counted: bool = False

    @property
    def rep_started(self) -> bool:
        return self.prev is RepPhase.LOCKOUT and self.next is RepPhase.DESCENT

    @property
    def entered_bottom(self) -> bool:
        return self.next is RepPhase.BOTTOM


def velocity(state: FSMState, position: float) -> float:
    if state.last_position is None:
        return 0.0
    return position - state.last_position


def step_phase(phase: RepPhase, vel: float, depth_reached: bool, cfg: CoachConfig) -> RepPhase:
    """Next phase for one frame. Pure; has no side effects."""
    still = -cfg.velocity_still < vel < cfg.velocity_still
    if phase is RepPhase.IDLE or phase is RepPhase.LOCKOUT:
        if vel > cfg.velocity_start:
            return RepPhase.DESCENT
    elif phase is RepPhase.DESCENT:
        if still and depth_reached:
            return RepPhase.BOTTOM
        if vel < -cfg.velocity_reverse:
            # Bounced before depth was confirmed
            return RepPhase.ASCENT
    elif phase is RepPhase.BOTTOM:
        if vel < -cfg.velocity_reverse:
            return RepPhase.ASCENT
    elif phase is RepPhase.ASCENT:
        if still:
            return RepPhase.LOCKOUT
    return phase


def rep_increment(prev: RepPhase, nxt: RepPhase, depth_reached: bool) -> int:
    """Reps added by a transition: one per depth-qualified ascent -> lockout."""
    if prev is RepPhase.ASCENT and nxt is RepPhase.LOCKOUT and depth_reached:
        return 1
    return 0


def advance(
    state: FSMState,
    position: float,
    depth_ok: bool,
    cfg: CoachConfig,
    allow_transition: bool = True,
) -> FSMState:
    """Fold one frame into the state. Depth is latched even when transitions are throttled."""
    vel = velocity(state, position)
    reached = state.depth_reached or depth_ok
    phase = step_phase(state.phase, vel, reached, cfg) if allow_transition else state.phase
    count = state.rep_count + rep_increment(state.phase, phase, reached)
    if state.phase is RepPhase.ASCENT and phase is RepPhase.LOCKOUT:
        reached = False
    return replace(state, phase=phase, rep_count=count, last_position=position, depth_reached=reached)


class TurnaroundDetector:
    """Fires once when downward velocity falls back to near zero (bottom of any attempt)."""

    def __init__(self, start: float = 0.002, still: float = 0.001):
        self.start = start
        self.still = still
        self._armed = False

    def update(self, vel: float) -> bool:
        if vel > self.start:
            self._armed = True
            return False
        if self._armed and vel <= self.still:
            self._armed = False
            return True
        return False

    def reset(self) -> None:
        self._armed = False


class RepStateMachine:
    """Owns the authoritative rep count; transitions are at least min_transition_sec apart."""

    def __init__(self, config: Optional[CoachConfig] = None):
        self.config = config or CoachConfig()
        self.state = FSMState()
        self.velocity = 0.0
        self._last_transition_t: Optional[float] = None

    @property
    def phase(self) -> RepPhase:
        return self.state.phase

    @property
    def rep_count(self) -> int:
        return self.state.rep_count

    def update(self, position: float, depth_ok: bool, timestamp: float) -> Optional[Transition]:
        allow = (
            self._last_transition_t is None
            or timestamp - self._last_transition_t > self.config.min_transition_sec
        )
        prev = self.state
        self.velocity = velocity(prev, position)
        self.state = advance(prev, position, depth_ok, self.config, allow)
        if self.state.phase is prev.phase:
            return None
        self._last_transition_t = timestamp
        t = Transition(prev.phase, self.state.phase, counted=self.state.rep_count > prev.rep_count)
        logger.debug("fsm: %s -> %s at t=%.3f (v=%.4f)", t.prev.value, t.next.value, timestamp, self.velocity)
        if t.counted:
            logger.info("fsm: rep %s counted at t=%.2fs", self.state.rep_count, timestamp)
        return t
