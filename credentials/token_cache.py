"""
Temporary Token Cache
=====================

In-process cache mapping an OAuth request token to its plaintext secret for
the few minutes an authorization handshake lasts. It only saves a storage round
trip: every entry is also persisted (encrypted) by CredentialStore, so a miss
or an expired entry is never an error.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 10 * 60


@dataclass
class CacheEntry:
    secret: str
    created_at: float


class TemporaryTokenCache:
    """Thread-safe TTL cache of request token secrets."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def put(self, request_token: str, secret: str) -> None:
        with self._lock:
            self._entries[request_token] = CacheEntry(secret=secret, created_at=self._clock())

    def get(self, request_token: str) -> Optional[str]:
        """Return the cached secret, or None if missing or older than the TTL."""
        with self._lock:
            entry = self._entries.get(request_token)
        if entry is None or self._is_expired(entry, self._clock()):
            return None
        return entry.secret

    def remove(self, request_token: str) -> None:
        with self._lock:
            self._entries.pop(request_token, None)

    def sweep(self) -> int:
        """
        Drop expired entries.

        Returns:
            int: Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [token for token, entry in self._entries.items() if self._is_expired(entry, now)]
            for token in expired:
                del self._entries[token]
        if expired:
            logger.debug(f"Swept {len(expired)} expired temporary tokens")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds
