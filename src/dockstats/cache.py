"""
TTL cache for Docker lookups that do not need repeating every cycle.

Two namespaces are used:
  - "image_size": keyed by image ID. An image ID is a content digest, so
    the size behind it never changes; the TTL only bounds memory.
  - "daemon_summary": info + image list, shared by every cycle for a few
    seconds.

A lookup that raises or returns None is never stored, so a transient error
is retried on the next cycle.

The collector's worker threads hit the image-size namespace concurrently;
every method takes the same lock.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from functools import wraps
from typing import Any, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL = 2.0

CacheKey = Tuple[str, Hashable]


@dataclass
class CacheEntry:
    value: Any
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    stores: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups * 100 if lookups else 0.0


class TTLCache:
    def __init__(self, ttls: Optional[Dict[str, float]] = None, default_ttl: float = DEFAULT_TTL):
        self.ttls = dict(ttls or {})
        self.default_ttl = default_ttl
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._stats = CacheStats()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, namespace: str, key: Hashable = None) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get((namespace, key))
            if entry is not None and entry.expired(time.monotonic()):
                del self._entries[(namespace, key)]
                self._stats.evictions += 1
                entry = None
            if entry is None:
                self._stats.misses += 1
                return None
            self._stats.hits += 1
            return entry.value

    def set(self, namespace: str, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        if ttl is None:
            ttl = self.ttls.get(namespace, self.default_ttl)
        with self._lock:
            self._entries[(namespace, key)] = CacheEntry(value, time.monotonic() + ttl)
            self._stats.stores += 1

    def invalidate(self, namespace: Optional[str] = None) -> int:
        """Drop one namespace, or everything when namespace is None."""
        with self._lock:
            if namespace is None:
                dropped = len(self._entries)
                self._entries.clear()
            else:
                doomed = [k for k in self._entries if k[0] == namespace]
                for k in doomed:
                    del self._entries[k]
                dropped = len(doomed)
        logger.debug(f"Invalidated {dropped} cache entries ({namespace or 'all'})")
        return dropped

    def cleanup_expired(self) -> int:
        with self._lock:
            now = time.monotonic()
            doomed = [k for k, entry in self._entries.items() if entry.expired(now)]
            for k in doomed:
                del self._entries[k]
            self._stats.evictions += len(doomed)
        if doomed:
            logger.debug(f"Evicted {len(doomed)} expired cache entries")
        return len(doomed)

    def stats(self) -> CacheStats:
        with self._lock:
            return replace(self._stats)


cache_manager = TTLCache({
    "image_size": 300.0,
    "daemon_summary": 5.0,
})


def cached(namespace: str, ttl: Optional[float] = None):
    """Cache a method's result in `namespace`, keyed by its first positional argument."""
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            key = args[0] if args else None
            hit = cache_manager.get(namespace, key)
            if hit is not None:
                return hit

            result = func(self, *args, **kwargs)
            if result is not None:
                cache_manager.set(namespace, key, result, ttl)
            return result

        return wrapper
    return decorator
