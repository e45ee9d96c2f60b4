"""
MediaPipe Pose landmark indices and the bones drawn for a squat.
"""
from __future__ import annotations

from typing import NamedTuple

# MediaPipe Pose always reports 33 landmarks; the smoother arena is sized to this.
NUM_LANDMARKS = 33


class Keypoint(NamedTuple):
    """Normalized image position (0..1) plus detector confidence."""

    x: float
    y: float
    visibility: float = 1.0


class LandmarkIdx:
    NOSE = 0
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28


# (hip, knee, ankle) per body side
LEG_CHAINS = (
    (LandmarkIdx.LEFT_HIP, LandmarkIdx.LEFT_KNEE, LandmarkIdx.LEFT_ANKLE),
    (LandmarkIdx.RIGHT_HIP, LandmarkIdx.RIGHT_KNEE, LandmarkIdx.RIGHT_ANKLE),
)

EDGES = (
    (LandmarkIdx.LEFT_SHOULDER, LandmarkIdx.RIGHT_SHOULDER),
    (LandmarkIdx.LEFT_HIP, LandmarkIdx.RIGHT_HIP),
    (LandmarkIdx.LEFT_SHOULDER, LandmarkIdx.LEFT_HIP),
    (LandmarkIdx.RIGHT_SHOULDER, LandmarkIdx.RIGHT_HIP),
    (LandmarkIdx.LEFT_SHOULDER, LandmarkIdx.LEFT_ELBOW),
    (LandmarkIdx.LEFT_ELBOW, LandmarkIdx.LEFT_WRIST),
    (LandmarkIdx.RIGHT_SHOULDER, LandmarkIdx.RIGHT_ELBOW),
    (LandmarkIdx.RIGHT_ELBOW, LandmarkIdx.RIGHT_WRIST),
    (LandmarkIdx.LEFT_HIP, LandmarkIdx.LEFT_KNEE),
    (LandmarkIdx.LEFT_KNEE, LandmarkIdx.LEFT_ANKLE),
    (LandmarkIdx.RIGHT_HIP, LandmarkIdx.RIGHT_KNEE),
    (LandmarkIdx.RIGHT_KNEE, LandmarkIdx.RIGHT_ANKLE),
)
