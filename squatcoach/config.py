"""
Tunables for smoothing, calibration, rep counting and coaching.
Defaults suit a side-on camera at 30-60 fps with normalized (0..1) keypoints.
Every field can be overridden with a SQUATCOACH_<FIELD> environment variable.
"""
from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

ENV_PREFIX = "SQUATCOACH_"

_T = TypeVar("_T")


@dataclass(frozen=True)
class SmootherConfig:
    # One-Euro filter: baseline cutoff (Hz), speed coefficient, derivative cutoff (Hz)
    min_cutoff: float = 1.2
    beta: float = 0.007
    d_cutoff: float = 1.0
    # Largest per-frame joint displacement (normalized units) let through to the filter
    max_jump: float = 0.08
    # Joints below this visibility keep their previous smoothed position
    visibility_threshold: float = 0.15

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SmootherConfig":
        return _from_env(cls, environ)


@dataclass(frozen=True)
class CoachConfig:
    # Depth fraction needed to count a rep (looser) and to approve depth when coaching (stricter)
    rep_depth_threshold: float = 0.36
    coach_depth_threshold: float = 0.41
    # Knee angle mapped to depth 0 and depth 1
    knee_standing_deg: float = 180.0
    knee_target_deg: float = 70.0
    use_knee_depth: bool = True
    # N-of-M debounce windows
    rep_gate_size: int = 6
    rep_gate_need: int = 4
    coach_gate_size: int = 6
    coach_gate_need: int = 5
    # Consecutive frames the coaching gate must hold before depth counts as achieved
    coach_dwell_frames: int = 3
    # Calibration: standing-still window
    calibration_frames: int = 30
    calib_knee_min_deg: float = 165.0
    calib_trunk_max_deg: float = 15.0
    stillness_window: int = 5
    stillness_var: float = 2e-5
    # FSM velocity bands, in depth-fraction units per frame
    velocity_start: float = 0.002
    velocity_reverse: float = 0.002
    velocity_still: float = 0.001
    min_transition_sec: float = 0.12
    # Trunk lean beyond the calibrated upright angle that triggers "Chest up"
    trunk_delta_threshold_deg: float = 20.0
    # Visibility needed on hip/knee(/ankle) of one side to trust the angles
    profile_visibility: float = 0.6
    profile_require_ankle: bool = True
    # EMA factor for displayed knee/trunk angles
    ema_alpha: float = 0.35
    # Optional: learn the coaching threshold from the first two counted reps
    adaptive_coach_depth: bool = False
    adaptive_factor: float = 0.9
    adaptive_min: float = 0.30
    adaptive_max: float = 0.50

    def __post_init__(self) -> None:
        if self.rep_gate_need > self.rep_gate_size or self.coach_gate_need > self.coach_gate_size:
            raise ValueError("gate need cannot exceed gate size")
        if self.knee_target_deg >= self.knee_standing_deg:
            raise ValueError("knee_target_deg must be below knee_standing_deg")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CoachConfig":
        return _from_env(cls, environ)


def _parse(raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def _from_env(cls: type[_T], environ: Optional[Mapping[str, str]]) -> _T:
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        key = ENV_PREFIX + f.name.upper()
        if key not in env:
            continue
        try:
            overrides[f.name] = _parse(env[key], f.default)
        except ValueError:
            logger.warning("config: ignoring %s=%r (not a valid %s)", key, env[key], type(f.default).__name__)
    return cls(**overrides)
