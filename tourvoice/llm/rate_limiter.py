"""Request pacing for provider endpoints shared by concurrent job workers."""

from __future__ import annotations

import threading
from time import monotonic, sleep
from typing import Callable


class RateLimiter:
    """Space calls to the same endpoint key at least `min_interval_seconds` apart.

    Keys look like `openai:/chat/completions`. A caller reserves its slot under
    the lock and sleeps outside it, so workers pacing different keys never
    block each other.
    """

    def __init__(
        self,
        min_interval_seconds: float = 0.05,
        clock: Callable[[], float] = monotonic,
        sleeper: Callable[[float], None] = sleep,
    ) -> None:
        self.min_interval_seconds = min_interval_seconds
        self.clock = clock
        self.sleeper = sleeper
        self._next_slot: dict[str, float] = {}
        self._lock = threading.Lock()

    def acquire(self, key: str) -> None:
        """Block until a call for `key` may be sent."""

        if self.min_interval_seconds <= 0.0:
            return
        with self._lock:
            now = self.clock()
            slot = max(now, self._next_slot.get(key, now))
            self._next_slot[key] = slot + self.min_interval_seconds
        if slot > now:
            self.sleeper(slot - now)
