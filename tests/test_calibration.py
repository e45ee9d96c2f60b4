from __future__ import annotations

import pytest

from squatcoach.calibration import CalibrationTracker
from squatcoach.config import CoachConfig
from squatcoach.metrics import MIN_SCALE_UNIT


@pytest.fixture
def tracker() -> CalibrationTracker:
    return CalibrationTracker(CoachConfig(calibration_frames=10, stillness_window=5))


def _offer_standing(tracker, i, hip_y=0.30, knee=178.0, trunk=4.0, scale=0.62, profile=True):
    return tracker.offer(hip_y, knee, trunk, scale, profile, i / 30)


def test_calibrates_after_stillness_window_and_buffer(tracker):
    # 4 frames fill the stillness window, then 10 admitted frames
    results = [_offer_standing(tracker, i, hip_y=0.300 + 0.001 * (i % 2)) for i in range(14)]
    assert results[:13] == [False] * 13
    assert results[13] is True
    assert tracker.calibrated
    assert tracker.baseline.reference_hip_y == pytest.approx(0.3005)
    assert tracker.baseline.scale_unit == pytest.approx(0.62)
    assert tracker.baseline.trunk_baseline_deg == pytest.approx(4.0)


def test_baseline_is_median_of_buffer(tracker):
    trunks = [4.0, 4.0, 14.0, 4.0, 5.0, 5.0, 3.0, 4.0, 6.0, 4.0, 4.0, 4.0, 4.0, 4.0]
    for i, trunk in enumerate(trunks):
        _offer_standing(tracker, i, trunk=trunk)
    assert tracker.baseline.trunk_baseline_deg == pytest.approx(4.0)


def test_baseline_is_write_once(tracker):
    for i in range(14):
        _offer_standing(tracker, i)
    first = tracker.baseline
    for i in range(14, 60):
        assert _offer_standing(tracker, i, hip_y=0.5, scale=0.9)
    assert tracker.baseline == first


def test_rejects_bent_leaning_hidden_or_moving_frames(tracker):
    for i in range(200):
        _offer_standing(tracker, i, knee=150.0)
        _offer_standing(tracker, i, trunk=25.0)
        _offer_standing(tracker, i, profile=False)
    assert not tracker.calibrated
    assert tracker.progress == (0, 10)

    moving = CalibrationTracker(CoachConfig(calibration_frames=10, stillness_window=5))
    for i in range(200):
        moving.offer(0.30 + 0.02 * (i % 3), 178.0, 4.0, 0.62, True, i / 30)
    assert not moving.calibrated


def test_degenerate_scale_is_floored(tracker):
    for i in range(14):
        _offer_standing(tracker, i, scale=0.0)
    assert tracker.baseline.scale_unit == MIN_SCALE_UNIT


def test_missing_hip_is_ignored(tracker):
    assert tracker.offer(None, 178.0, 4.0, 0.6, True, 0.0) is False
    assert tracker.progress == (0, 10)
