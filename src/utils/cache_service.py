"""
In-Memory LRU Cache Service.

Bounded TTL cache that survives across warm Lambda invocations.
Backs the local idempotency store, where each entry carries its own expiry.
"""

from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Callable, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LRUCache:
    """Thread-safe LRU cache with per-entry expiry."""

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: int = 300,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[Any, datetime]]" = OrderedDict()
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key``; expired entries are dropped on read."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store ``value``; ``ttl_seconds`` overrides the cache-wide TTL for this entry."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        expires_at = self._clock() + timedelta(seconds=ttl)
        with self._lock:
            self._entries[key] = (value, expires_at)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
