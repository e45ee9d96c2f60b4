"""
Coaching cues evaluated at the bottom of a rep (or at the turnaround of a
shallow attempt). At most one cue per evaluation; depth outranks trunk.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from .config import CoachConfig

logger = logging.getLogger(__name__)


class CueKind(str, Enum):
    DEPTH = "depth"
    TRUNK = "trunk"
    # Reserved for knee tracking (knees caving in); no rule emits it yet.
    KNEE = "knee"


CUE_MESSAGES = {
    CueKind.DEPTH: "Go deeper",
    CueKind.TRUNK: "Chest up",
    CueKind.KNEE: "Knees out",
}


@dataclass(frozen=True)
class Cue:
    kind: CueKind
    message: str


class CoachingRuleEngine:
    def __init__(self, trunk_delta_threshold_deg: float = 20.0):
        self.trunk_delta_threshold_deg = trunk_delta_threshold_deg

    def evaluate(self, depth_achieved: bool, trunk_delta_deg: Optional[float]) -> Optional[Cue]:
        if not depth_achieved:
            return Cue(CueKind.DEPTH, CUE_MESSAGES[CueKind.DEPTH])
        if trunk_delta_deg is not None and trunk_delta_deg > self.trunk_delta_threshold_deg:
            return Cue(CueKind.TRUNK, CUE_MESSAGES[CueKind.TRUNK])
        return None


class CueMemory:
    """Cue kinds already spoken in the current rep; cleared when a new rep starts."""

    def __init__(self) -> None:
        self._spoken: set[CueKind] = set()

    def admit(self, cue: Optional[Cue]) -> Optional[Cue]:
        if cue is None or cue.kind in self._spoken:
            return None
        self._spoken.add(cue.kind)
        return cue

    def reset(self) -> None:
        self._spoken.clear()


class AdaptiveCoachThreshold:
    """
    Optionally retunes the coaching depth once, from the median peak depth of the
    first two counted reps (scaled by factor and clamped to [lo, hi]).
    """

    SAMPLE_REPS = 2

    def __init__(self, config: CoachConfig):
        self.enabled = config.adaptive_coach_depth
        self.factor = config.adaptive_factor
        self.lo = config.adaptive_min
        self.hi = config.adaptive_max
        self.threshold = config.coach_depth_threshold
        self._peaks: list[float] = []
        self._locked = False

    def observe_rep(self, peak_depth: float) -> float:
        """Record a counted rep's peak depth; returns the threshold to use from now on."""
        if not self.enabled or self._locked:
            return self.threshold
        self._peaks.append(peak_depth)
        if len(self._peaks) >= self.SAMPLE_REPS:
            learned = float(np.median(self._peaks)) * self.factor
            self.threshold = max(self.lo, min(self.hi, learned))
            self._locked = True
            logger.info("coach: depth threshold learned %.3f (peaks=%s)", self.threshold, self._peaks)
        return self.threshold
