"""
One coaching session: smoothing -> metrics -> calibration -> gates -> FSM -> cues.
Owns every piece of per-session state. Switching cameras means discarding the
session and building a new one.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from .calibration import CalibrationTracker
from .config import CoachConfig, SmootherConfig
from .fsm import RepPhase, RepStateMachine, TurnaroundDetector
from .metrics import (
    FrameMetrics,
    MetricExtractor,
    combined_depth,
    hip_depth_fraction,
    knee_depth_fraction,
)
from .rules import AdaptiveCoachThreshold, CoachingRuleEngine, Cue, CueMemory
from .smoothing import KeypointSmoother
from .temporal import TemporalGate
from .topology import Keypoint

logger = logging.getLogger(__name__)


class SquatSession:
    """
    Feed one frame at a time with process(); each call returns a snapshot dict:
    knee_angle_deg, trunk_angle_deg, depth_fraction, rep_count, phase,
    calibrated, profile_ok, status, cue (a Cue or None).
    """

    def __init__(
        self,
        config: Optional[CoachConfig] = None,
        smoother_config: Optional[SmootherConfig] = None,
    ):
        self.config = cfg = config or CoachConfig()
        self.smoother = KeypointSmoother(smoother_config)
        self.extractor = MetricExtractor(cfg.ema_alpha, cfg.profile_visibility, cfg.profile_require_ankle)
        self.calibration = CalibrationTracker(cfg)
        self.rep_gate = TemporalGate(cfg.rep_gate_size, cfg.rep_gate_need)
        self.coach_gate = TemporalGate(cfg.coach_gate_size, cfg.coach_gate_need)
        self.fsm = RepStateMachine(cfg)
        self.turnaround = TurnaroundDetector(cfg.velocity_start, cfg.velocity_still)
        self.rules = CoachingRuleEngine(cfg.trunk_delta_threshold_deg)
        self.cue_memory = CueMemory()
        self.adaptive = AdaptiveCoachThreshold(cfg)
        self.coach_depth_threshold = cfg.coach_depth_threshold
        self.cue_history: list[tuple[float, Cue]] = []
        self.last_keypoints: Optional[list[Keypoint]] = None
        self._coach_streak = 0
        self._coach_depth_ok = False
        self._evaluated_this_rep = False
        self._peak_depth = 0.0
        self._last_t: Optional[float] = None
        self._snapshot: dict[str, Any] = {
            "knee_angle_deg": None,
            "trunk_angle_deg": None,
            "depth_fraction": None,
            "rep_count": 0,
            "phase": RepPhase.IDLE.value,
            "calibrated": False,
            "profile_ok": False,
            "status": "No pose",
            "cue": None,
        }

    @property
    def rep_count(self) -> int:
        return self.fsm.rep_count

    @property
    def calibrated(self) -> bool:
        return self.calibration.calibrated

    def process(self, keypoints: Optional[Sequence[Sequence[float]]], timestamp: float) -> dict[str, Any]:
        """Run one detector result (None/empty when nothing was detected)."""
        if not self._accept(timestamp):
            return dict(self._snapshot, cue=None)
        if not keypoints:
            return self._emit(None, None, status="No pose")
        smoothed = self.smoother.apply(keypoints, timestamp)
        self.last_keypoints = smoothed
        return self._step(self.extractor.extract(smoothed), timestamp)

    def process_metrics(self, metrics: FrameMetrics, timestamp: float) -> dict[str, Any]:
        """Run already-extracted metrics through calibration, gating, FSM and coaching."""
        if not self._accept(timestamp):
            return dict(self._snapshot, cue=None)
        return self._step(metrics, timestamp)

    def _accept(self, timestamp: float) -> bool:
        if self._last_t is not None and timestamp <= self._last_t:
            logger.warning("session: dropping frame with non-increasing timestamp %.4f (last %.4f)", timestamp, self._last_t)
            return False
        self._last_t = timestamp
        return True

    def _depth(self, m: FrameMetrics) -> Optional[float]:
        cfg = self.config
        base = self.calibration.baseline
        hip = None
        if base is not None and m.hip_y is not None:
            hip = hip_depth_fraction(m.hip_y, base.reference_hip_y, base.scale_unit)
        knee = None
        if cfg.use_knee_depth and m.knee_angle_deg is not None:
            knee = knee_depth_fraction(m.knee_angle_deg, cfg.knee_standing_deg, cfg.knee_target_deg)
        return combined_depth(hip, knee)

    def _start_rep(self) -> None:
        self.rep_gate.reset()
        self.coach_gate.reset()
        self.cue_memory.reset()
        self._coach_streak = 0
        self._coach_depth_ok = False
        self._evaluated_this_rep = False
        self._peak_depth = 0.0

    def _step(self, m: FrameMetrics, t: float) -> dict[str, Any]:
        cfg = self.config
        if not self.calibration.calibrated:
            done = self.calibration.offer(
                m.hip_y, m.knee_angle_deg, m.trunk_angle_deg, m.scale_candidate, m.profile_ok, t,
            )
            if done:
                return self._emit(m, None, status="Calibrated")
            n, total = self.calibration.progress
            return self._emit(m, None, status=f"Calibrating {n}/{total}")

        depth = self._depth(m)
        if depth is None or not m.profile_ok:
            return self._emit(m, depth, status="Side profile needed")

        rep_ok = self.rep_gate.push(depth >= cfg.rep_depth_threshold)
        coach_ok = self.coach_gate.push(depth >= self.coach_depth_threshold)
        self._coach_streak = self._coach_streak + 1 if coach_ok else 0
        if self._coach_streak >= cfg.coach_dwell_frames:
            self._coach_depth_ok = True
        self._peak_depth = max(self._peak_depth, depth)

        transition = self.fsm.update(depth, rep_ok, t)
        turned = self.turnaround.update(self.fsm.velocity)

        if transition is not None and transition.counted:
            self.coach_depth_threshold = self.adaptive.observe_rep(self._peak_depth)
        if transition is not None and transition.rep_started:
            self._start_rep()

        at_bottom = transition is not None and transition.entered_bottom
        shallow_turn = turned and not self._evaluated_this_rep and self.fsm.phase is not RepPhase.BOTTOM
        cue = None
        if at_bottom or shallow_turn:
            cue = self._evaluate(m, t)
        return self._emit(m, depth, status="Tracking", cue=cue)

    def _evaluate(self, m: FrameMetrics, t: float) -> Optional[Cue]:
        self._evaluated_this_rep = True
        base = self.calibration.baseline
        trunk_delta = None
        if m.trunk_angle_deg is not None and base is not None:
            trunk_delta = m.trunk_angle_deg - base.trunk_baseline_deg
        cue = self.cue_memory.admit(self.rules.evaluate(self._coach_depth_ok, trunk_delta))
        if cue is not None:
            self.cue_history.append((t, cue))
            logger.info("coach: %s cue %r at t=%.2fs (rep %s)", cue.kind.value, cue.message, t, self.rep_count)
        return cue

    def _emit(
        self,
        m: Optional[FrameMetrics],
        depth: Optional[float],
        status: str,
        cue: Optional[Cue] = None,
    ) -> dict[str, Any]:
        self._snapshot = {
            "knee_angle_deg": m.knee_angle_deg if m else None,
            "trunk_angle_deg": m.trunk_angle_deg if m else None,
            "depth_fraction": depth,
            "rep_count": self.fsm.rep_count,
            "phase": self.fsm.phase.value,
            "calibrated": self.calibration.calibrated,
            "profile_ok": bool(m.profile_ok) if m else False,
            "status": status,
            "cue": cue,
        }
        return dict(self._snapshot)
