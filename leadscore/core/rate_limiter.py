"""Fixed-window request limiter keyed by user and operation."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, MutableMapping, Optional, Tuple

logger = logging.getLogger(__name__)

# (count, reset_time) per key
Window = Tuple[int, float]


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_time: float


def rate_limit_key(user_id: str, operation: str) -> str:
    return f"{operation}:{user_id}"


class RateLimiter:
    """
    Allow at most ``max_requests`` per key inside a window of ``window_seconds``.

    The window opens on the first request for a key and resets once the clock
    passes its reset time. The clock and the backing mapping are injected so
    the limiter can be shared through an external cache or driven by a fake
    clock in tests. Windows are stored as plain ``(count, reset_time)`` tuples.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.time,
        storage: Optional[MutableMapping[str, Window]] = None,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._storage: MutableMapping[str, Window] = storage if storage is not None else {}
        self._lock = threading.Lock()

    def check_limit(self, key: str) -> RateLimitDecision:
        """Count one request against ``key`` and report whether it is allowed."""
        now = self._clock()
        with self._lock:
            window = self._storage.get(key)

            if window is None or now >= window[1]:
                reset_time = now + self.window_seconds
                self._storage[key] = (1, reset_time)
                return RateLimitDecision(True, self.max_requests - 1, reset_time)

            count, reset_time = window
            if count >= self.max_requests:
                logger.info("Rate limit exceeded for %s", key)
                return RateLimitDecision(False, 0, reset_time)

            count += 1
            self._storage[key] = (count, reset_time)
            return RateLimitDecision(True, self.max_requests - count, reset_time)

    def get_remaining_time(self, key: str) -> float:
        """Seconds until the window for ``key`` resets, 0 when there is none."""
        with self._lock:
            window = self._storage.get(key)
        if window is None:
            return 0.0
        return max(0.0, window[1] - self._clock())

    def cleanup(self) -> int:
        """Drop expired windows and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, reset_time) in self._storage.items() if now >= reset_time]
            for key in expired:
                del self._storage[key]
        return len(expired)
