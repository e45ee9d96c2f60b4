"""
Per-frame squat metrics from a smoothed skeleton: knee angle, trunk lean,
hip height, body-scale candidate, and depth fractions.
Keypoints are normalized image coordinates (y grows downward).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .topology import LEG_CHAINS, LandmarkIdx

# Floor for the body-scale unit used as a divisor (normalized units).
MIN_SCALE_UNIT = 0.05
# Shoulder-to-ankle span is roughly this many hip-to-knee spans on a standing adult.
HIP_KNEE_SCALE_FACTOR = 3.0

Point = Sequence[float]


def _get_point(
    keypoints: Optional[Sequence[Point]],
    idx: int,
    min_visibility: float = 0.0,
) -> Optional[Point]:
    if not keypoints or idx >= len(keypoints):
        return None
    p = keypoints[idx]
    if min_visibility > 0.0 and len(p) > 2 and p[2] is not None and p[2] < min_visibility:
        return None
    return p


def _midpoint(a: Optional[Point], b: Optional[Point]) -> Optional[tuple[float, float]]:
    if a is None or b is None:
        return None
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def _mean_y(points: Sequence[Optional[Point]]) -> Optional[float]:
    ys = [p[1] for p in points if p is not None]
    if not ys:
        return None
    return sum(ys) / len(ys)


def angle_deg(a: Optional[Point], b: Optional[Point], c: Optional[Point]) -> Optional[float]:
    """Angle at b for triangle a-b-c, in degrees."""
    if a is None or b is None or c is None:
        return None
    ba = (a[0] - b[0], a[1] - b[1])
    bc = (c[0] - b[0], c[1] - b[1])
    denom = math.hypot(ba[0], ba[1]) * math.hypot(bc[0], bc[1])
    if denom < 1e-9:
        return None
    cos_val = (ba[0] * bc[0] + ba[1] * bc[1]) / denom
    cos_val = max(-1.0, min(1.0, cos_val))
    return math.degrees(math.acos(cos_val))


def knee_angle_deg(keypoints: Sequence[Point]) -> Optional[float]:
    """Hip-knee-ankle angle averaged over both legs (180 = straight)."""
    sides = []
    for hip, knee, ankle in LEG_CHAINS:
        a = angle_deg(_get_point(keypoints, hip), _get_point(keypoints, knee), _get_point(keypoints, ankle))
        if a is not None:
            sides.append(a)
    if not sides:
        return None
    return sum(sides) / len(sides)


def trunk_angle_deg(keypoints: Sequence[Point]) -> Optional[float]:
    """Lean of the hip->shoulder line from vertical, 0..90. Mirror-invariant."""
    shoulder_mid = _midpoint(
        _get_point(keypoints, LandmarkIdx.LEFT_SHOULDER),
        _get_point(keypoints, LandmarkIdx.RIGHT_SHOULDER),
    )
    hip_mid = _midpoint(
        _get_point(keypoints, LandmarkIdx.LEFT_HIP),
        _get_point(keypoints, LandmarkIdx.RIGHT_HIP),
    )
    if shoulder_mid is None or hip_mid is None:
        return None
    dx = shoulder_mid[0] - hip_mid[0]
    dy = shoulder_mid[1] - hip_mid[1]
    if abs(dx) + abs(dy) < 1e-9:
        return None
    return math.degrees(math.atan2(abs(dx), abs(dy)))


def hip_center_y(keypoints: Sequence[Point]) -> Optional[float]:
    return _mean_y([
        _get_point(keypoints, LandmarkIdx.LEFT_HIP),
        _get_point(keypoints, LandmarkIdx.RIGHT_HIP),
    ])


def scale_candidate(keypoints: Sequence[Point], min_visibility: float = 0.6) -> Optional[float]:
    """
    Body-scale unit for hip displacement: shoulder-to-ankle vertical span, or a
    multiple of the hip-to-knee span when no ankle is reliably visible.
    """
    shoulder_y = _mean_y([
        _get_point(keypoints, LandmarkIdx.LEFT_SHOULDER),
        _get_point(keypoints, LandmarkIdx.RIGHT_SHOULDER),
    ])
    ankle_y = _mean_y([
        _get_point(keypoints, LandmarkIdx.LEFT_ANKLE, min_visibility),
        _get_point(keypoints, LandmarkIdx.RIGHT_ANKLE, min_visibility),
    ])
    if shoulder_y is not None and ankle_y is not None:
        return max(MIN_SCALE_UNIT, abs(ankle_y - shoulder_y))
    hip_y = hip_center_y(keypoints)
    knee_y = _mean_y([
        _get_point(keypoints, LandmarkIdx.LEFT_KNEE),
        _get_point(keypoints, LandmarkIdx.RIGHT_KNEE),
    ])
    if hip_y is None or knee_y is None:
        return None
    return max(MIN_SCALE_UNIT, HIP_KNEE_SCALE_FACTOR * abs(knee_y - hip_y))


def profile_ok(
    keypoints: Optional[Sequence[Point]],
    min_visibility: float = 0.6,
    require_ankle: bool = True,
) -> bool:
    """True when hip and knee (and ankle) of at least one side are clearly visible."""
    if not keypoints:
        return False
    for hip, knee, ankle in LEG_CHAINS:
        joints = (hip, knee, ankle) if require_ankle else (hip, knee)
        if all(_get_point(keypoints, j, min_visibility) is not None for j in joints):
            return True
    return False


def knee_depth_fraction(knee_deg: float, standing_deg: float = 180.0, target_deg: float = 70.0) -> float:
    """Map knee angle linearly: standing -> 0, target (or deeper) -> 1."""
    frac = (standing_deg - knee_deg) / (standing_deg - target_deg)
    return max(0.0, min(1.0, frac))


def hip_depth_fraction(hip_y: float, reference_hip_y: float, scale_unit: float) -> float:
    """Hip drop below the standing height, in body-scale units, clamped to 0..1."""
    frac = (hip_y - reference_hip_y) / max(MIN_SCALE_UNIT, scale_unit)
    return max(0.0, min(1.0, frac))


def combined_depth(*fractions: Optional[float]) -> Optional[float]:
    """Largest available depth estimate; keeps working when one estimator drops out."""
    vals = [f for f in fractions if f is not None]
    return max(vals) if vals else None


def ema(prev: Optional[float], curr: float, alpha: float = 0.35) -> float:
    return curr if prev is None else prev * (1.0 - alpha) + curr * alpha


@dataclass(frozen=True)
class FrameMetrics:
    knee_angle_deg: Optional[float]
    trunk_angle_deg: Optional[float]
    hip_y: Optional[float]
    scale_candidate: Optional[float]
    profile_ok: bool


class MetricExtractor:
    """Computes FrameMetrics; knee and trunk angles are EMA-smoothed across frames."""

    def __init__(self, alpha: float = 0.35, profile_visibility: float = 0.6, require_ankle: bool = True):
        self.alpha = alpha
        self.profile_visibility = profile_visibility
        self.require_ankle = require_ankle
        self._knee: Optional[float] = None
        self._trunk: Optional[float] = None

    def extract(self, keypoints: Sequence[Point]) -> FrameMetrics:
        knee = knee_angle_deg(keypoints)
        if knee is not None:
            self._knee = ema(self._knee, knee, self.alpha)
        trunk = trunk_angle_deg(keypoints)
        if trunk is not None:
            self._trunk = ema(self._trunk, trunk, self.alpha)
        return FrameMetrics(
            knee_angle_deg=self._knee if knee is not None else None,
            trunk_angle_deg=self._trunk if trunk is not None else None,
            hip_y=hip_center_y(keypoints),
            scale_candidate=scale_candidate(keypoints, self.profile_visibility),
            profile_ok=profile_ok(keypoints, self.profile_visibility, self.require_ankle),
        )
