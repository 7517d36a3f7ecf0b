"""
TTL Cache
=========

Small explicit cache for derived SLA reports.

The clock is injected so expiry is testable, and callers invalidate
explicitly whenever they change the data a cached value was built from.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """
    Key/value cache whose entries expire ``ttl_seconds`` after being set.

    A TTL of 0 disables caching.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds cannot be negative")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        if self._ttl == 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl, value)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when no key is given."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
