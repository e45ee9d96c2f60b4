"""
N-of-M debounce for noisy per-frame booleans.
"""
from __future__ import annotations

from collections import deque


class TemporalGate:
    """True only when at least `need` of the last `size` pushed values were true."""

    def __init__(self, size: int = 6, need: int = 4):
        if size < 1 or need < 0 or need > size:
            raise ValueError(f"invalid gate size={size} need={need}")
        self.need = need
        self._window: deque[bool] = deque(maxlen=size)

    @property
    def size(self) -> int:
        return self._window.maxlen

    def push(self, value: bool) -> bool:
        self._window.append(bool(value))
        return sum(self._window) >= self.need

    def reset(self) -> None:
        self._window.clear()
