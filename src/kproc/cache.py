"""Short-lived memoisation of expensive process enumeration queries.

Port and name scans shell out to ``lsof``/``ps``/PowerShell, which is slow
compared to how often callers ask the same question. :class:`LookupCache`
keeps each answer for a short TTL (one second by default) and otherwise
stays out of the way: entries expire lazily on access and there is no
background sweeper.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, TypeVar

from .models import CacheStats

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_CACHE_TTL",
    "CacheEntry",
    "LookupCache",
    "port_key",
    "name_key",
]

T = TypeVar("T")

DEFAULT_CACHE_TTL = 1.0


def port_key(port: int) -> str:
    return f"port:{port}"


def name_key(pattern: str, use_regex: bool) -> str:
    # the flag is always the last segment
    return f"name:{pattern}:{'true' if use_regex else 'false'}"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A single cached answer and the time it was requested."""

    data: T
    timestamp: float


class LookupCache:
    """Cache-aside store for lookup results.

    Values of any type share one mapping; callers are responsible for reading
    back the type they stored under a key. Entries are only ever replaced
    whole. The lock guards the mapping itself and is never held while a
    fetcher runs.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_CACHE_TTL,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self.hits = 0
        self.misses = 0

    # -- public API -----------------------------------------------------
    async def get_cached(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the fresh value for *key* or await *fetcher* for a new one.

        An entry is fresh while ``now - timestamp < ttl``; an entry exactly
        ``ttl`` old counts as expired. Exceptions from *fetcher* propagate and
        leave the cache untouched.
        """

        ttl = self.default_ttl if ttl is None else ttl
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry.timestamp < ttl:
                self.hits += 1
                logger.debug("Cache hit for key: %s", key)
                return entry.data
            self.misses += 1

        logger.debug("Cache miss for key: %s, fetching...", key)
        data = await fetcher()
        with self._lock:
            self._entries[key] = CacheEntry(data, now)
        return data

    def clear(self) -> None:
        """Drop every entry."""

        with self._lock:
            logger.debug("Clearing cache (%d entries)", len(self._entries))
            self._entries.clear()

    def invalidate(self, key: str) -> bool:
        """Drop *key*, returning whether it was present."""

        with self._lock:
            existed = self._entries.pop(key, None) is not None
        if existed:
            logger.debug("Invalidated cache key: %s", key)
        return existed

    def stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            ages = [now - entry.timestamp for entry in self._entries.values()]
            return CacheStats(
                size=len(self._entries),
                oldest_age=max(ages) if ages else None,
                hits=self.hits,
                misses=self.misses,
                keys=sorted(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
