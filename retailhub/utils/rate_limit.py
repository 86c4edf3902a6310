"""Minimum-interval throttle shared by the discovery API clients."""

import threading
import time


class MinIntervalLimiter:
    def __init__(self, interval_seconds: float):
        self.interval = interval_seconds
        self._last = 0.0
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until ``interval`` has passed since the previous call; returns the time slept."""
        with self._lock:
            elapsed = time.monotonic() - self._last
            delay = self.interval - elapsed if self._last else 0.0
            if delay > 0:
                time.sleep(delay)
            else:
                delay = 0.0
            self._last = time.monotonic()
            return delay
