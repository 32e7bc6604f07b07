"""Clock sources for round timing (integer seconds)."""

import time
from threading import Lock


class SystemClock:
    """Wall clock, truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock that only moves when told to; used by tests and the demo."""

    def __init__(self, start: int = 0) -> None:
        self._lock = Lock()
        self._now = int(start)

    def now(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        with self._lock:
            self._now += int(seconds)
            return self._now

    def set(self, timestamp: int) -> None:
        with self._lock:
            if timestamp < self._now:
                raise ValueError("Clock cannot move backwards")
            self._now = int(timestamp)
