"""
Draw skeleton, HUD and coaching banner on frames (in-place).
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

import cv2
import numpy as np

from .topology import EDGES

# Joints below this visibility are not drawn
DRAW_VISIBILITY = 0.2


def _px(p: Sequence[float], w: int, h: int) -> tuple[int, int]:
    return (int(round(p[0] * w)), int(round(p[1] * h)))


def _visible(p: Sequence[float]) -> bool:
    return len(p) < 3 or p[2] is None or p[2] > DRAW_VISIBILITY


def draw_skeleton(
    frame: np.ndarray,
    keypoints: Sequence[Sequence[float]],
    color: tuple[int, int, int] = (255, 255, 255),
    thickness: int = 3,
) -> None:
    """Draw the squat skeleton from normalized keypoints."""
    h, w = frame.shape[:2]
    for i, j in EDGES:
        if i < len(keypoints) and j < len(keypoints) and _visible(keypoints[i]) and _visible(keypoints[j]):
            cv2.line(frame, _px(keypoints[i], w, h), _px(keypoints[j], w, h), color, thickness)
    used = {i for edge in EDGES for i in edge}
    for i in used:
        if i < len(keypoints) and _visible(keypoints[i]):
            cv2.circle(frame, _px(keypoints[i], w, h), 4, color, -1)


def draw_realtime_overlay(
    frame: np.ndarray,
    keypoints: Optional[Sequence[Sequence[float]]],
    snapshot: dict[str, Any],
    fps: Optional[float] = None,
    banner: Optional[str] = None,
) -> None:
    """
    Skeleton, HUD lines (FPS, knee, trunk, reps/state, depth), calibration hint,
    side-profile hint and an optional cue banner.
    """
    h, w = frame.shape[:2]
    if keypoints:
        draw_skeleton(frame, keypoints)

    font = cv2.FONT_HERSHEY_SIMPLEX
    y0, dy = 28, 26

    def fmt(val: Optional[float], suffix: str = "") -> str:
        return f"{val:.0f}{suffix}" if val is not None else "--"

    if not snapshot.get("calibrated"):
        lines = [
            "Stand tall to calibrate...",
            "Tips: side-on, full body, good light",
            snapshot.get("status", ""),
        ]
        color = (110, 219, 255)
    else:
        depth = snapshot.get("depth_fraction")
        lines = [
            f"FPS {fmt(fps)}",
            f"Knee {fmt(snapshot.get('knee_angle_deg'), ' deg')}",
            f"Trunk {fmt(snapshot.get('trunk_angle_deg'), ' deg')}",
            f"Reps {snapshot.get('rep_count', 0)} | State {snapshot.get('phase', '')}",
            f"Depth {fmt(depth * 100 if depth is not None else None, '%')}",
        ]
        if not snapshot.get("profile_ok"):
            lines.append("Tip: side-on; show hips-knees-ankles")
        color = (255, 255, 255) if snapshot.get("profile_ok") else (112, 112, 255)

    overlay = frame.copy()
    cv2.rectangle(overlay, (0, 0), (w, y0 + dy * len(lines)), (40, 40, 40), -1)
    cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)
    for k, line in enumerate(lines):
        cv2.putText(frame, line, (12, y0 + k * dy), font, 0.6, color, 2, cv2.LINE_AA)

    if banner:
        (tw, th), _ = cv2.getTextSize(banner, font, 0.9, 2)
        x = max(0, (w - tw) // 2)
        y = h - 40
        cv2.rectangle(frame, (x - 14, y - th - 12), (x + tw + 14, y + 12), (0, 0, 0), -1)
        cv2.putText(frame, banner, (x, y), font, 0.9, (255, 255, 255), 2, cv2.LINE_AA)
