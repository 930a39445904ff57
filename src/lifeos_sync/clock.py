"""Wall-clock time source used for stamping and dedup windows."""

import threading
import time
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int:
        """Current time in milliseconds since the epoch."""
        ...


class SystemClock:
    """Wall clock that never goes backwards within one process.

    If the system clock is adjusted backwards, readings hold at the last
    value returned until real time catches up.
    """

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        with self._lock:
            now = int(time.time() * 1000)
            if now < self._last:
                now = self._last
            self._last = now
            return now
