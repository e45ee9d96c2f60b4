from __future__ import annotations

import math

import pytest

from squatcoach.config import CoachConfig
from squatcoach.metrics import FrameMetrics
from squatcoach.topology import NUM_LANDMARKS, Keypoint, LandmarkIdx


def standing_skeleton(
    hip_drop: float = 0.0,
    visibility: float = 0.95,
    ankle_visibility: float | None = None,
    lean_dx: float = 0.0,
) -> list[Keypoint]:
    """Side-on skeleton; hip_drop lowers shoulders and hips together (knees and ankles fixed)."""
    kps = [Keypoint(0.5, 0.1, visibility) for _ in range(NUM_LANDMARKS)]
    av = visibility if ankle_visibility is None else ankle_visibility
    for side_dx, (s, h, k, a) in (
        (-0.01, (LandmarkIdx.LEFT_SHOULDER, LandmarkIdx.LEFT_HIP, LandmarkIdx.LEFT_KNEE, LandmarkIdx.LEFT_ANKLE)),
        (0.01, (LandmarkIdx.RIGHT_SHOULDER, LandmarkIdx.RIGHT_HIP, LandmarkIdx.RIGHT_KNEE, LandmarkIdx.RIGHT_ANKLE)),
    ):
        kps[s] = Keypoint(0.5 + side_dx + lean_dx, 0.30 + hip_drop, visibility)
        kps[h] = Keypoint(0.5 + side_dx, 0.55 + hip_drop, visibility)
        kps[k] = Keypoint(0.5 + side_dx, 0.75, visibility)
        kps[a] = Keypoint(0.5 + side_dx, 0.95, av)
    return kps


def metrics_frame(
    hip_y: float,
    knee: float = 180.0,
    trunk: float = 5.0,
    scale: float = 0.5,
    profile: bool = True,
) -> FrameMetrics:
    return FrameMetrics(
        knee_angle_deg=knee,
        trunk_angle_deg=trunk,
        hip_y=hip_y,
        scale_candidate=scale,
        profile_ok=profile,
    )


def hip_trace(peak: float, base: float = 0.30, frames: int = 40) -> list[float]:
    """Hip height going base -> peak -> base over `frames` samples (half sine)."""
    return [base + (peak - base) * math.sin(math.pi * i / (frames - 1)) for i in range(frames)]


@pytest.fixture
def scenario_config() -> CoachConfig:
    # scale 0.5 and reference 0.30: hip_y 0.45 is depth 0.30
    return CoachConfig(
        rep_depth_threshold=0.30,
        coach_depth_threshold=0.35,
        trunk_delta_threshold_deg=16.0,
        calibration_frames=10,
        use_knee_depth=False,
    )
