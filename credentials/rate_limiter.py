"""
Rate Limiter
============

Fixed-window limiter for OAuth flow initiation. Limiting is advisory: the
in-memory implementation is per process and forgets its windows on restart.
Callers depend only on ``RateLimiter.try_acquire`` so a shared backend can be
substituted without touching them.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 5 * 60
DEFAULT_MAX_REQUESTS = 10


class RateLimiter(ABC):
    """Interface for per-identity request limiting."""

    @abstractmethod
    def try_acquire(self, identity: str) -> bool:
        """Record an attempt for ``identity`` and return whether it is allowed."""

    def sweep(self) -> int:
        """Drop expired state. Returns the number of entries removed."""
        return 0


@dataclass
class RateLimitWindow:
    count: int
    reset_at: float


class InMemoryRateLimiter(RateLimiter):
    """
    Fixed-window limiter held in process memory.

    The first attempt opens a window of ``window_seconds``; up to
    ``max_requests`` attempts are allowed in it. Once the window has elapsed
    the next attempt opens a fresh window, so there is a hard cliff at the
    boundary rather than any smoothing.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    def try_acquire(self, identity: str) -> bool:
        now = self._clock()
        with self._lock:
            window = self._windows.get(identity)

            if window is None or now >= window.reset_at:
                self._windows[identity] = RateLimitWindow(count=1, reset_at=now + self.window_seconds)
                return True

            if window.count >= self.max_requests:
                logger.warning(f"Rate limit exceeded for {identity}")
                return False

            window.count += 1
            return True

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [identity for identity, window in self._windows.items() if now >= window.reset_at]
            for identity in expired:
                del self._windows[identity]
        return len(expired)
