"""
MediaPipe Pose estimation. Returns keypoints in normalized image coordinates
with per-landmark visibility. Uses Pose Landmarker task (MediaPipe 0.10+).
"""
from __future__ import annotations

import logging
import os
import urllib.request
from typing import Optional

import cv2
import numpy as np

from .topology import Keypoint

logger = logging.getLogger(__name__)

# Pose Landmarker model URL (lite = faster, CPU-friendly)
_POSE_MODEL_URL = "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_lite/float16/1/pose_landmarker_lite.task"
_POSE_MODEL_FILENAME = "pose_landmarker_lite.task"


def _get_model_path(cache_dir: Optional[str] = None) -> str:
    """Return path to pose landmarker model, downloading if needed."""
    if cache_dir is None:
        cache_dir = os.path.join(os.path.expanduser("~"), ".cache", "squatcoach")
    os.makedirs(cache_dir, exist_ok=True)
    path = os.path.join(cache_dir, _POSE_MODEL_FILENAME)
    if not os.path.isfile(path):
        logger.info("pose: downloading model to %s", path)
        urllib.request.urlretrieve(_POSE_MODEL_URL, path)
    return path


def _create_landmarker(
    cache_dir: Optional[str],
    min_detection_confidence: float,
    min_presence_confidence: float,
    min_tracking_confidence: float,
):
    """Create PoseLandmarker in VIDEO mode (tracking across frames needs timestamps)."""
    from mediapipe.tasks.python.core import base_options
    from mediapipe.tasks.python.vision import PoseLandmarker, PoseLandmarkerOptions
    from mediapipe.tasks.python.vision.core import vision_task_running_mode

    model_path = _get_model_path(cache_dir)
    base = base_options.BaseOptions(model_asset_path=model_path)
    options = PoseLandmarkerOptions(
        base_options=base,
        running_mode=vision_task_running_mode.VisionTaskRunningMode.VIDEO,
        num_poses=1,
        min_pose_detection_confidence=min_detection_confidence,
        min_pose_presence_confidence=min_presence_confidence,
        min_tracking_confidence=min_tracking_confidence,
    )
    return PoseLandmarker.create_from_options(options)


class VideoClock:
    """
    Millisecond timestamps for one VIDEO-mode detector. MediaPipe rejects a
    timestamp that is not strictly greater than the previous one, so restarted
    or sub-millisecond frame times are bumped to last + 1.
    """

    def __init__(self) -> None:
        self.last_ms: Optional[int] = None

    def to_ms(self, timestamp: float) -> int:
        ms = int(timestamp * 1000)
        if self.last_ms is not None and ms <= self.last_ms:
            ms = self.last_ms + 1
        self.last_ms = ms
        return ms


def create_pose_detector(
    min_detection_confidence: float = 0.6,
    min_presence_confidence: float = 0.65,
    min_tracking_confidence: float = 0.7,
    cache_dir: Optional[str] = None,
):
    """
    Create pose detector. Slightly strict confidences reduce flicker.
    Falls back to the legacy solutions API on MediaPipe < 0.10.
    """
    try:
        return _create_landmarker(
            cache_dir, min_detection_confidence, min_presence_confidence, min_tracking_confidence,
        )
    except Exception as e:
        logger.warning("pose: PoseLandmarker unavailable (%s); using legacy solutions API", e)
        import mediapipe as mp
        return mp.solutions.pose.Pose(
            static_image_mode=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )


def _to_keypoints(landmarks) -> list[Keypoint]:
    out = []
    for lm in landmarks:
        vis = getattr(lm, "visibility", None)
        if vis is None:
            vis = getattr(lm, "presence", None)
        out.append(Keypoint(float(lm.x), float(lm.y), 1.0 if vis is None else float(vis)))
    return out


def process_frame(
    frame_bgr: np.ndarray,
    pose,  # PoseLandmarker or legacy mp.solutions.pose.Pose
    timestamp: float,
    clock: Optional[VideoClock] = None,
) -> Optional[list[Keypoint]]:
    """
    Run pose estimation on one BGR frame at `timestamp` seconds.
    Pass the detector's VideoClock so timestamps stay increasing across
    session restarts. Returns 33 normalized keypoints, or None if no pose
    (or no detector).
    """
    if pose is None or frame_bgr is None:
        return None
    rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

    if hasattr(pose, "detect_for_video"):
        from mediapipe.tasks.python.vision.core import image as mp_image
        ms = clock.to_ms(timestamp) if clock is not None else int(timestamp * 1000)
        mp_img = mp_image.Image(image_format=mp_image.ImageFormat.SRGB, data=rgb)
        result = pose.detect_for_video(mp_img, ms)
        if not result.pose_landmarks:
            return None
        return _to_keypoints(result.pose_landmarks[0])
    results = pose.process(rgb)
    if not results.pose_landmarks:
        return None
    return _to_keypoints(results.pose_landmarks.landmark)
