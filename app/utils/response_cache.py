"""Simple TTL cache for analytics snapshots.

Entries are immutable snapshots keyed per store, so writes are plain
last-writer-wins:

    cached = snapshot_cache.get(f"analytics:{store}")
    if cached is None:
        cached = await build()
        snapshot_cache.set(f"analytics:{store}", cached, ttl=900)
"""
import threading
import time
from typing import Any, Callable, Optional


class ResponseCache:
    """Thread-safe in-memory cache with TTL expiry and max-entry limit."""

    def __init__(self, max_entries: int = 200, clock: Callable[[], float] = time.time):
        self._store: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int = 900) -> None:
        with self._lock:
            # Evict expired entries first to stay under limit
            if len(self._store) >= self._max_entries:
                now = self._clock()
                expired = [k for k, (exp, _) in self._store.items() if now >= exp]
                for k in expired:
                    del self._store[k]
            # If still at limit, evict the entry closest to expiry
            if len(self._store) >= self._max_entries and key not in self._store:
                oldest_key = min(self._store, key=lambda k: self._store[k][0])
                del self._store[oldest_key]
            self._store[key] = (self._clock() + ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def invalidate(self, prefix: str) -> int:
        """Remove all keys starting with prefix. Returns count removed."""
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for k in keys:
                del self._store[k]
            return len(keys)


snapshot_cache = ResponseCache()
