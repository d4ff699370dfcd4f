"""In-memory throttling for credential and recovery endpoints."""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict

# How often idle keys are swept out of the limiter
SWEEP_INTERVAL_SECONDS = 60


@dataclass
class _Window:
    seconds: int
    hits: Deque[float] = field(default_factory=deque)

    def prune(self, now: float) -> None:
        while self.hits and self.hits[0] <= now - self.seconds:
            self.hits.popleft()


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by caller; state is per process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._windows: Dict[str, _Window] = {}
        self._last_sweep = time.monotonic()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        for key in list(self._windows):
            window = self._windows[key]
            window.prune(now)
            if not window.hits:
                del self._windows[key]
        self._last_sweep = now

    def hit(self, key: str, limit: int, window_seconds: int) -> int:
        """
        Count one attempt against ``key``.

        Returns 0 when the attempt is allowed, otherwise the whole number of
        seconds until the oldest counted attempt leaves the window. Rejected
        attempts are not counted. Keys whose windows have emptied are
        dropped, so one-off callers do not accumulate.
        """
        now = time.monotonic()

        with self._lock:
            if now - self._last_sweep >= SWEEP_INTERVAL_SECONDS:
                self._sweep(now)

            window = self._windows.get(key)
            if window is not None:
                window.prune(now)
                if len(window.hits) >= limit:
                    return max(1, math.ceil(window.hits[0] + window.seconds - now))
            else:
                window = self._windows[key] = _Window(seconds=window_seconds)

            window.hits.append(now)
            return 0

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


rate_limiter = InMemoryRateLimiter()
