"""
Frame generators for video file or webcam.
Yield (frame_bgr, frame_idx, timestamp_sec) with strictly increasing timestamps.
"""
from __future__ import annotations

import time
from typing import Generator, Optional

import cv2
import numpy as np

Frames = Generator[tuple[np.ndarray, int, float], None, None]


def video_frames(video_path: str) -> Frames:
    """
    Yield frames from a video file; timestamps come from the file's frame rate
    so replay is independent of processing speed.
    """
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video: {video_path}")
    try:
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        idx = 0
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            yield (frame, idx, idx / fps)
            idx += 1
    finally:
        cap.release()


def webcam_frames(camera_id: int = 0, target_fps: float = 30, t0: Optional[float] = None) -> Frames:
    """
    Yield frames from a webcam, stamped with time.perf_counter() relative to t0
    (default: when the camera opened). Pass a shared t0 to keep timestamps
    increasing when the camera is reopened.
    """
    cap = cv2.VideoCapture(camera_id)
    if not cap.isOpened():
        raise RuntimeError(f"Cannot open camera {camera_id}. Check permissions and that no other app is using it.")
    try:
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, 1280)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 720)
        cap.set(cv2.CAP_PROP_FPS, target_fps)
        idx = 0
        if t0 is None:
            t0 = time.perf_counter()
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            yield (frame, idx, time.perf_counter() - t0)
            idx += 1
    finally:
        cap.release()
