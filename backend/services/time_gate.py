"""
time_gate.py — Leading-edge rate limiter.
The scroll handler calls ``try_acquire`` synchronously on every event; only the
first call in each window is let through.
"""
import time
from typing import Callable


class TimeGate:
    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last_fired: float | None = None

    def try_acquire(self) -> bool:
        now = self._clock()
        if self._last_fired is not None and now - self._last_fired < self.interval:
            return False
        self._last_fired = now
        return True

    def reset(self):
        self._last_fired = None
