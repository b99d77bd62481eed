"""
In-process TTL cache with an injected clock.

Eviction is driven entirely by the clock passed in, so expiry is
deterministic and testable without sleeping. Thread-safe.
"""

import fnmatch
import logging
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar

from content_access.access.clock import Clock, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_SIZE = 10000

V = TypeVar("V")

_MISSING = object()


class TTLCache(Generic[V]):
    """
    Bounded key/value cache with per-entry time-to-live.

    Usage:
        cache = TTLCache(ttl_seconds=60, clock=clock)
        cache.set("delegates:u1", ["t1"])
        cache.get("delegates:u1")
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Optional[Clock] = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._ttl_seconds = ttl_seconds
        self._max_size = max_size
        self._clock = clock or utc_now
        self._entries: Dict[str, Tuple[Any, datetime]] = {}
        self._lock = Lock()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def _is_expired(self, stored_at: datetime, now: datetime) -> bool:
        return (now - stored_at).total_seconds() >= self._ttl_seconds

    def get(self, key: str, default: Optional[V] = None) -> Optional[V]:
        """Return the cached value, or default if missing or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key, _MISSING)
            if entry is _MISSING:
                return default
            value, stored_at = entry
            if self._is_expired(stored_at, now):
                del self._entries[key]
                return default
            return value

    def set(self, key: str, value: V) -> None:
        """Store a value stamped with the current clock time."""
        now = self._clock()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._evict_locked(now)
            self._entries[key] = (value, now)

    def _evict_locked(self, now: datetime) -> None:
        expired = [k for k, (_, ts) in self._entries.items() if self._is_expired(ts, now)]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self._max_size:
            oldest_key = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest_key]
            logger.debug("TTL cache full, evicted oldest entry", extra={"key": oldest_key})

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern."""
        with self._lock:
            keys = [k for k in self._entries if fnmatch.fnmatch(k, pattern)]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
