"""
Listing cache.

Process-wide key/value cache from a listing key to the ordered issues it
produced. Entries are only ever evicted whole, never patched.

Keys:
    ``global``               every issue (host view)
    ``resident:<username>``  one resident's issues
"""

import threading
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple

import structlog

from .schemas import Issue

logger = structlog.get_logger(__name__)

GLOBAL_KEY = "global"
RESIDENT_PREFIX = "resident:"

Listing = Tuple[Issue, ...]


def resident_key(username: str) -> str:
    return f"{RESIDENT_PREFIX}{username}"


class ListingCache:
    """Read-through cache for ordered issue listings.

    Every eviction bumps a generation counter. A value computed on a miss is
    stored only if the generation is unchanged when the computation finishes,
    so a listing read concurrently with a write is never cached after that
    write's eviction.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Listing] = {}
        self._lock = threading.Lock()
        self._generation = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Listing]:
        with self._lock:
            return self._entries.get(key)

    def get_or_compute(
        self, key: str, compute: Callable[[], Sequence[Issue]]
    ) -> Listing:
        """Return the cached listing for ``key``, computing it on a miss."""
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._hits += 1
                return cached
            self._misses += 1
            generation = self._generation

        # Compute outside the lock; store queries can be slow.
        value: Listing = tuple(compute())

        with self._lock:
            if self._generation == generation:
                self._entries[key] = value
            else:
                logger.debug("listing_cache_store_skipped", key=key)
        return value

    def evict(self, *keys: str) -> None:
        """Evict the given keys."""
        with self._lock:
            self._generation += 1
            removed = [k for k in keys if self._entries.pop(k, None) is not None]
            self._evictions += len(removed)
        logger.debug("listing_cache_evicted", keys=list(keys), removed=len(removed))

    def evict_prefix(self, prefix: str) -> None:
        """Evict every key starting with ``prefix``."""
        with self._lock:
            self._generation += 1
            removed = [k for k in self._entries if k.startswith(prefix)]
            for k in removed:
                del self._entries[k]
            self._evictions += len(removed)
        logger.debug("listing_cache_evicted", prefix=prefix, removed=len(removed))

    def clear(self) -> None:
        """Evict every entry."""
        with self._lock:
            self._generation += 1
            self._evictions += len(self._entries)
            self._entries.clear()
        logger.debug("listing_cache_cleared")

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._entries)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }


_listing_cache = ListingCache()


def get_listing_cache() -> ListingCache:
    """Get the process-wide listing cache."""
    return _listing_cache
