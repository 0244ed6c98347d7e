"""Bounded LRU cache with per-entry TTL."""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, List, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A single cache entry with an absolute expiry timestamp."""

    value: V
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Check if this entry has expired."""
        return now > self.expires_at


class LruCache(Generic[K, V]):
    """Least-recently-used cache whose entries expire after a fixed TTL.

    ``get`` promotes a live entry to most-recently-used and drops an expired
    one. ``set`` evicts the single least-recently-used entry when full.
    ``size`` may still count expired entries that nobody has touched; call
    ``prune`` to sweep them.

    Example::

        cache = LruCache(100, 300)   # 100 entries, 5 minute TTL
        cache.set("key", data)
        cache.get("key")             # None once expired or evicted
    """

    def __init__(self, max_size: int, ttl: float, clock: Callable[[], float] = time.monotonic):
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries before LRU eviction.
            ttl: Time-to-live in seconds.
            clock: Time source, injectable for tests.

        Raises:
            ValueError: ``max_size`` or ``ttl`` is not positive.
        """
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[K, CacheEntry[V]]" = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def _live_entry(self, key: K) -> Optional[CacheEntry[V]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    def get(self, key: K) -> Optional[V]:
        """Return the cached value, or None when missing or expired."""
        entry = self._live_entry(key)
        return entry.value if entry is not None else None

    def set(self, key: K, value: V) -> None:
        """Insert ``value`` as the most-recently-used entry."""
        self._entries.pop(key, None)
        if len(self._entries) >= self._max_size:
            self._entries.popitem(last=False)
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self._ttl)

    def has(self, key: K) -> bool:
        """Check presence of a live entry (promotes it like ``get``)."""
        return self._live_entry(key) is not None

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def delete(self, key: K) -> bool:
        if key not in self._entries:
            return False
        del self._entries[key]
        return True

    def clear(self) -> None:
        self._entries.clear()

    def prune(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def keys(self) -> List[K]:
        """All keys, least recently used first (expired ones included)."""
        return list(self._entries.keys())
