from __future__ import annotations

import pytest

from squatcoach.metrics import (
    MIN_SCALE_UNIT,
    MetricExtractor,
    angle_deg,
    combined_depth,
    hip_depth_fraction,
    knee_angle_deg,
    knee_depth_fraction,
    profile_ok,
    scale_candidate,
    trunk_angle_deg,
)
from squatcoach.topology import Keypoint, LandmarkIdx

from conftest import standing_skeleton


def test_angle_deg_right_angle_and_degenerate():
    assert angle_deg((0, 0), (1, 0), (1, 1)) == pytest.approx(90.0)
    assert angle_deg((0, 0), (1, 0), (2, 0)) == pytest.approx(180.0)
    assert angle_deg((1, 0), (1, 0), (2, 0)) is None
    assert angle_deg(None, (1, 0), (2, 0)) is None


def test_standing_skeleton_is_straight_and_upright():
    kps = standing_skeleton()
    assert knee_angle_deg(kps) == pytest.approx(180.0)
    assert trunk_angle_deg(kps) == pytest.approx(0.0)


def test_trunk_angle_is_mirror_invariant():
    forward = standing_skeleton(lean_dx=0.1)
    backward = standing_skeleton(lean_dx=-0.1)
    assert trunk_angle_deg(forward) == pytest.approx(trunk_angle_deg(backward))
    # shoulder 0.1 ahead and 0.25 above the hip
    assert trunk_angle_deg(forward) == pytest.approx(21.80, abs=0.01)


def test_trunk_angle_folded_into_0_90():
    kps = standing_skeleton()
    # Shoulders below hips (lying down the other way) still reads as a lean from vertical
    kps[LandmarkIdx.LEFT_SHOULDER] = Keypoint(0.3, 0.8, 1.0)
    kps[LandmarkIdx.RIGHT_SHOULDER] = Keypoint(0.3, 0.8, 1.0)
    assert 0.0 <= trunk_angle_deg(kps) <= 90.0


def test_knee_depth_fraction_monotonic():
    prev = -1.0
    for angle in range(180, 59, -1):
        frac = knee_depth_fraction(float(angle), 180.0, 70.0)
        assert 0.0 <= frac <= 1.0
        assert frac >= prev
        prev = frac
    assert knee_depth_fraction(180.0, 180.0, 70.0) == 0.0
    assert knee_depth_fraction(70.0, 180.0, 70.0) == 1.0
    assert knee_depth_fraction(40.0, 180.0, 70.0) == 1.0


def test_hip_depth_fraction_clamps_and_floors_scale():
    assert hip_depth_fraction(0.55, 0.30, 0.5) == pytest.approx(0.5)
    assert hip_depth_fraction(0.20, 0.30, 0.5) == 0.0
    assert hip_depth_fraction(0.90, 0.30, 0.5) == 1.0
    # Near-zero scale is floored instead of dividing by ~0
    assert hip_depth_fraction(0.31, 0.30, 0.0) == pytest.approx(0.01 / MIN_SCALE_UNIT)


def test_combined_depth_takes_max_of_available():
    assert combined_depth(0.2, 0.4) == 0.4
    assert combined_depth(None, 0.3) == 0.3
    assert combined_depth(None, None) is None


def test_scale_candidate_prefers_shoulder_to_ankle_span():
    assert scale_candidate(standing_skeleton()) == pytest.approx(0.65)


def test_scale_candidate_falls_back_to_hip_knee_span():
    kps = standing_skeleton(ankle_visibility=0.1)
    assert scale_candidate(kps, min_visibility=0.6) == pytest.approx(3.0 * 0.20)


def test_profile_ok_needs_one_clear_side():
    kps = standing_skeleton()
    assert profile_ok(kps)
    for idx in (LandmarkIdx.RIGHT_HIP, LandmarkIdx.RIGHT_KNEE, LandmarkIdx.RIGHT_ANKLE):
        kps[idx] = Keypoint(kps[idx].x, kps[idx].y, 0.1)
    assert profile_ok(kps)
    assert not profile_ok(standing_skeleton(visibility=0.3))
    assert not profile_ok(None)


def test_profile_ok_without_ankle_requirement():
    kps = standing_skeleton(ankle_visibility=0.1)
    assert not profile_ok(kps, 0.6, require_ankle=True)
    assert profile_ok(kps, 0.6, require_ankle=False)


def test_extractor_smooths_angles_with_ema():
    ex = MetricExtractor(alpha=0.5)
    first = ex.extract(standing_skeleton())
    assert first.trunk_angle_deg == pytest.approx(0.0)
    second = ex.extract(standing_skeleton(lean_dx=0.1))
    assert second.trunk_angle_deg == pytest.approx(21.80 / 2, abs=0.01)
    assert second.profile_ok
    assert second.hip_y == pytest.approx(0.55)
