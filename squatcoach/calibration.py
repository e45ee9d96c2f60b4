"""
Standing calibration: learn the subject's upright hip height, body scale and
trunk angle from a window of still, upright frames. Write-once per session.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import CoachConfig
from .metrics import MIN_SCALE_UNIT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationBaseline:
    reference_hip_y: float
    scale_unit: float
    trunk_baseline_deg: float


class CalibrationTracker:
    """
    Buffers frames that look upright and still; once calibration_frames are
    collected, each baseline is the buffer median and the tracker is frozen.
    There is no timeout: frames are accepted until calibration completes.
    """

    def __init__(self, config: Optional[CoachConfig] = None):
        self.config = config or CoachConfig()
        self.baseline: Optional[CalibrationBaseline] = None
        self._recent_hip_y: deque[float] = deque(maxlen=self.config.stillness_window)
        self._hip_y: list[float] = []
        self._scale: list[float] = []
        self._trunk: list[float] = []

    @property
    def calibrated(self) -> bool:
        return self.baseline is not None

    @property
    def progress(self) -> tuple[int, int]:
        return len(self._hip_y), self.config.calibration_frames

    def _is_still(self) -> bool:
        if len(self._recent_hip_y) < self._recent_hip_y.maxlen:
            return False
        return float(np.var(self._recent_hip_y)) <= self.config.stillness_var

    def offer(
        self,
        hip_y: Optional[float],
        knee_angle: Optional[float],
        trunk_angle: Optional[float],
        scale_candidate: Optional[float],
        profile_ok: bool,
        timestamp: float,
    ) -> bool:
        """Offer one frame; returns whether the session is calibrated."""
        if self.baseline is not None:
            return True
        if hip_y is None:
            return False
        self._recent_hip_y.append(hip_y)
        cfg = self.config
        upright = (
            knee_angle is not None
            and knee_angle >= cfg.calib_knee_min_deg
            and trunk_angle is not None
            and trunk_angle <= cfg.calib_trunk_max_deg
        )
        if not (profile_ok and upright and scale_candidate is not None and self._is_still()):
            return False
        self._hip_y.append(hip_y)
        self._scale.append(scale_candidate)
        self._trunk.append(trunk_angle)
        if len(self._hip_y) < cfg.calibration_frames:
            return False
        self.baseline = CalibrationBaseline(
            reference_hip_y=float(np.median(self._hip_y)),
            scale_unit=max(MIN_SCALE_UNIT, float(np.median(self._scale))),
            trunk_baseline_deg=float(np.median(self._trunk)),
        )
        logger.info(
            "calibration: done at t=%.2fs (hip_y=%.3f scale=%.3f trunk=%.1f)",
            timestamp,
            self.baseline.reference_hip_y,
            self.baseline.scale_unit,
            self.baseline.trunk_baseline_deg,
        )
        return True
