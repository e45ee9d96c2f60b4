"""
Spoken cues via pyttsx3 on a background thread, rate-limited so the user
is not talked over. Speaking never blocks the frame loop.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _default_engine():
    import pyttsx3

    engine = pyttsx3.init()
    engine.setProperty("rate", 160)
    return engine


class CueSpeaker:
    """
    speak() enqueues text unless the previous utterance was less than
    min_gap_sec ago. The engine is created inside the worker thread.
    """

    def __init__(
        self,
        min_gap_sec: float = 1.2,
        engine_factory: Callable[[], object] = _default_engine,
    ):
        self.min_gap_sec = min_gap_sec
        self._engine_factory = engine_factory
        self._queue: queue.Queue[Optional[str]] = queue.Queue()
        self._last_spoke: Optional[float] = None
        self._thread: Optional[threading.Thread] = None

    def _worker(self) -> None:
        try:
            engine = self._engine_factory()
        except Exception as e:
            logger.warning("speech: engine unavailable (%s); cues will be visual only", e)
            engine = None
        while True:
            text = self._queue.get()
            if text is None:
                break
            if engine is None:
                continue
            try:
                engine.say(text)
                engine.runAndWait()
            except RuntimeError as e:
                logger.warning("speech: failed to speak %r: %s", text, e)

    def speak(self, text: str, now: Optional[float] = None) -> bool:
        now = time.perf_counter() if now is None else now
        if self._last_spoke is not None and now - self._last_spoke < self.min_gap_sec:
            return False
        if self._thread is None:
            self._thread = threading.Thread(target=self._worker, daemon=True)
            self._thread.start()
        self._last_spoke = now
        self._queue.put(text)
        return True

    def close(self, timeout: float = 2.0) -> None:
        if self._thread is None:
            return
        self._queue.put(None)
        self._thread.join(timeout)
        self._thread = None
