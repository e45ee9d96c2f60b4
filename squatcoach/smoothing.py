"""
Keypoint smoothing: One-Euro filter per joint axis plus a single-frame despike clamp.
The One-Euro filter relaxes smoothing when a joint moves fast and tightens it when
the joint is nearly still (Casiez et al., CHI 2012).
"""
from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from .config import SmootherConfig
from .topology import NUM_LANDMARKS, Keypoint

# Smallest time step used for derivatives (s); guards duplicate timestamps.
DT_FLOOR = 1e-4


def smoothing_factor(dt, cutoff):
    """Low-pass coefficient for a first-order filter with the given cutoff (Hz)."""
    tau = 1.0 / (2.0 * math.pi * cutoff)
    return 1.0 / (1.0 + tau / dt)


def despike(raw: np.ndarray, previous: np.ndarray, max_jump: float) -> np.ndarray:
    """
    Clamp points (shape (..., 2)) that moved more than max_jump from previous.
    The clamped point lies on the previous->raw segment at exactly max_jump.
    """
    raw = np.asarray(raw, dtype=float)
    previous = np.asarray(previous, dtype=float)
    delta = raw - previous
    mag = np.linalg.norm(delta, axis=-1, keepdims=True)
    scale = np.where(mag > max_jump, max_jump / np.maximum(mag, 1e-12), 1.0)
    return previous + delta * scale


def _visibility(p: Sequence[float]) -> float:
    if len(p) > 2 and p[2] is not None:
        return float(p[2])
    return 1.0


class KeypointSmoother:
    """
    Per-joint One-Euro filtering over a fixed arena indexed by landmark id.
    apply() must be called at most once per frame with increasing timestamps.
    """

    def __init__(self, config: Optional[SmootherConfig] = None, num_joints: int = NUM_LANDMARKS):
        self.config = config or SmootherConfig()
        self.num_joints = num_joints
        n = num_joints
        self._x_hat = np.zeros((n, 2))
        self._dx_hat = np.zeros((n, 2))
        self._x_last = np.zeros((n, 2))
        self._t_last = np.zeros(n)
        self._initialized = np.zeros(n, dtype=bool)
        self._out = np.zeros((n, 2))

    def reset(self) -> None:
        self._initialized[:] = False
        self._dx_hat[:] = 0.0

    def apply(self, keypoints: Sequence[Sequence[float]], timestamp: float) -> list[Keypoint]:
        if len(keypoints) != self.num_joints:
            raise ValueError(f"expected {self.num_joints} keypoints, got {len(keypoints)}")
        cfg = self.config
        try:
            raw = np.array([(float(p[0]), float(p[1])) for p in keypoints])
            vis = np.array([_visibility(p) for p in keypoints])
        except (TypeError, IndexError, KeyError) as e:
            raise ValueError(f"malformed keypoint: {e}") from e
        visible = vis >= cfg.visibility_threshold

        # Invisible joints hold their last output; joints never seen visible pass raw input
        prev = np.where(self._initialized[:, None], self._out, raw)
        out = prev.copy()

        fresh = visible & ~self._initialized
        if fresh.any():
            self._x_hat[fresh] = raw[fresh]
            self._x_last[fresh] = raw[fresh]
            self._dx_hat[fresh] = 0.0
            self._t_last[fresh] = timestamp
            self._initialized[fresh] = True
            out[fresh] = raw[fresh]

        update = visible & ~fresh
        if update.any():
            x = despike(raw[update], prev[update], cfg.max_jump)
            dt = np.maximum(DT_FLOOR, timestamp - self._t_last[update])[:, None]
            dx = (x - self._x_last[update]) / dt
            edx = self._dx_hat[update] + smoothing_factor(dt, cfg.d_cutoff) * (dx - self._dx_hat[update])
            cutoff = cfg.min_cutoff + cfg.beta * np.abs(edx)
            alpha = smoothing_factor(dt, cutoff)
            x_hat = self._x_hat[update] + alpha * (x - self._x_hat[update])
            self._x_hat[update] = x_hat
            self._dx_hat[update] = edx
            self._x_last[update] = x
            self._t_last[update] = timestamp
            out[update] = x_hat

        self._out = out
        return [Keypoint(float(x), float(y), float(v)) for (x, y), v in zip(out, vis)]
