# File: apiwizard/cache.py
"""
NexaFlow APIWizard - Request Cache
===================================
Keyed result cache used by the coordinator for discovery and preview.

Each key carries three independent pieces of bookkeeping:

- the last good result with the time it was fetched and, optionally, a
  fingerprint of the inputs that produced it;
- the task currently fetching it, so concurrent callers can share one
  request;
- a request-generation counter.  Every new request for the key takes the
  next number; a result may only be applied while its number is still the
  latest.  ``invalidate`` also bumps the counter, so a request started
  before the invalidation can never repopulate the cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Hashable, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.cache")


class CacheEntry:
    """One cached result."""

    __slots__ = ("data", "fetched_at", "fingerprint")

    def __init__(self, data: Any, fetched_at: float, fingerprint: Optional[str] = None) -> None:
        self.data: Any = data
        self.fetched_at: float = fetched_at
        self.fingerprint: Optional[str] = fingerprint

    def __repr__(self) -> str:
        return f"<CacheEntry fetched_at={self.fetched_at:.3f} fp={self.fingerprint!s:.8}>"


class QueryCache:
    """
    Staleness-aware cache with in-flight tracking and supersession counters.

    Args:
        stale_after: Seconds after which an entry counts as stale.  Stale
            entries are still returned by ``get``; callers decide whether
            to refresh.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        stale_after: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stale_after: float = stale_after
        self._clock: Callable[[], float] = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._inflight: Dict[Hashable, "asyncio.Task[Any]"] = {}
        self._generations: Dict[Hashable, int] = {}

    # -- Entries ------------------------------------------------------------

    def get(self, key: Hashable) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def put(self, key: Hashable, data: Any, fingerprint: Optional[str] = None) -> CacheEntry:
        entry: CacheEntry = CacheEntry(data, self._clock(), fingerprint)
        self._entries[key] = entry
        return entry

    def is_stale(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.fetched_at >= self.stale_after

    def fresh(self, key: Hashable, fingerprint: Optional[str] = None) -> Optional[CacheEntry]:
        """The entry for ``key`` if it is fresh and was built from ``fingerprint``."""
        entry: Optional[CacheEntry] = self._entries.get(key)
        if entry is None or self.is_stale(entry):
            return None
        if fingerprint is not None and entry.fingerprint != fingerprint:
            return None
        return entry

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key (or every key) and supersede any request in flight."""
        keys = [key] if key is not None else list(set(self._entries) | set(self._generations))
        for k in keys:
            self._entries.pop(k, None)
            self._generations[k] = self._generations.get(k, 0) + 1
        logger.debug("Invalidated %d cache key(s).", len(keys))

    # -- In-flight requests -------------------------------------------------

    def inflight(self, key: Hashable) -> "Optional[asyncio.Task[Any]]":
        task = self._inflight.get(key)
        if task is not None and task.done():
            return None
        return task

    def track(self, key: Hashable, task: "asyncio.Task[Any]") -> None:
        self._inflight[key] = task

        def _release(done: "asyncio.Task[Any]") -> None:
            if self._inflight.get(key) is done:
                del self._inflight[key]

        task.add_done_callback(_release)

    # -- Supersession -------------------------------------------------------

    def next_generation(self, key: Hashable) -> int:
        generation: int = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation

    def is_latest(self, key: Hashable, generation: int) -> bool:
        return self._generations.get(key, 0) == generation

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
