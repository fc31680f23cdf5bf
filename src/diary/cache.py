import threading
import time
from typing import Any, Callable


class ExpiringCache:
    """A small in-memory key/value cache whose entries expire after a fixed time.

    Instances are created and passed around explicitly by whoever needs
    caching (price and exchange rate managers), so two managers never share
    entries unless they are handed the same cache. Safe to use from the
    worker threads of ``fetch_current_prices``.
    """

    def __init__(self, ttl_seconds: float = 1800, clock: Callable[[], float] = time.monotonic):
        """Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry in seconds.
            clock: Function returning the current time in seconds. Tests
                inject a fake clock here.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Return the cached value for ``key``, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any):
        with self._lock:
            self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)
