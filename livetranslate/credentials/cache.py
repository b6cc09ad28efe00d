"""
Time-boxed memoization in front of a credential source.

Cache-aside with one entry per key. Entries are evicted lazily on lookup; nothing
refreshes them ahead of expiry. Concurrent misses for the same key are NOT
coalesced: each caller runs the producer and the last write wins.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

from prometheus_client import Counter

from livetranslate.core.models import CacheEntry
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

V = TypeVar("V")

_CACHE_LOOKUPS = Counter(
    "livetranslate_credential_cache_lookups_total",
    "Credential cache lookups by result",
    labelnames=("result",),
)


class CredentialCache(Generic[V]):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}

    async def get(
        self,
        key: Hashable,
        producer: Callable[[], Awaitable[V]],
        ttl: float,
        ttl_for: Optional[Callable[[V], Optional[float]]] = None,
    ) -> V:
        """
        Return the cached value for ``key`` or run ``producer`` and store its result.

        ``ttl`` caps how long an entry lives. When ``ttl_for`` is given it is asked
        for the lifetime of each produced value and the shorter of the two wins;
        returning None leaves the cap in force.
        """
        entry = self._entries.get(key)
        if entry is not None:
            if entry.is_valid(self._clock()):
                _CACHE_LOOKUPS.labels(result="hit").inc()
                return entry.value
            # Expired entries are dropped before the producer runs
            self._entries.pop(key, None)

        _CACHE_LOOKUPS.labels(result="miss").inc()
        value = await producer()
        entry_ttl = ttl
        if ttl_for is not None:
            value_ttl = ttl_for(value)
            if value_ttl is not None:
                entry_ttl = min(ttl, max(0.0, value_ttl))
        self._entries[key] = CacheEntry(key=key, value=value, cached_at=self._clock(), ttl=entry_ttl)
        logger.debug("Credential cached", key=str(key), ttl=entry_ttl)
        return value

    def is_cached(self, key: Hashable) -> bool:
        """True if ``key`` has an entry that has not expired yet."""
        entry = self._entries.get(key)
        return entry is not None and entry.is_valid(self._clock())

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
