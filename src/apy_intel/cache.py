# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Time-bounded caches for module indexes and library import lists.

Requests arrive on every keystroke, so re-reading and re-indexing a library
module for each one is too slow. This module memoizes:
- ModuleIndexCache: ParsedModuleIndex per module key (default TTL 3000ms)
- ImportListCache: top-level library imports per workspace (default TTL 5000ms)

Both caches are explicit service instances owned by the LanguageService.
They are populated lazily on first lookup, expire by TTL, and are
invalidated eagerly on library change notifications. Explicit invalidation
always takes precedence over TTL.

Thread Safety:
- ModuleIndexCache: _registry_lock guards the entry map and the per-key lock
  table; a per-key lock serializes the check-freshness / reload / store
  sequence so concurrent lookups of one key load it only once. A key lock
  lives only while some lookup holds or waits on it.
- ImportListCache: single _lock around the one entry.
- The file watcher thread calls invalidate() concurrently with lookups.
"""

import logging
import time
from collections import OrderedDict
from contextlib import contextmanager
from threading import Lock
from typing import Callable, Dict, Iterator, List, Optional

from apy_intel.models import (
    CacheStatistics,
    ImportListEntry,
    IndexCacheEntry,
    ParsedModuleIndex,
)

logger = logging.getLogger(__name__)

DEFAULT_MODULE_INDEX_TTL_MS = 3000
DEFAULT_IMPORT_LIST_TTL_MS = 5000
DEFAULT_MAX_ENTRIES = 1000

Clock = Callable[[], float]
IndexLoader = Callable[[], ParsedModuleIndex]
ImportsLoader = Callable[[], List[str]]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ModuleIndexCache:
    """TTL cache of ParsedModuleIndex keyed by module identity.

    Usage:
        cache = ModuleIndexCache(ttl_ms=3000)
        index = cache.get(module_path, lambda: build_index_from_disk(module_path))
        cache.invalidate(module_path)   # or cache.invalidate() for all
    """

    def __init__(
        self,
        ttl_ms: float = DEFAULT_MODULE_INDEX_TTL_MS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize module index cache.

        Args:
            ttl_ms: Freshness window in milliseconds (default: 3000).
            max_entries: Maximum cached modules before LRU eviction (default: 1000).
            clock: Millisecond clock (default: monotonic time). Injectable for tests.
        """
        self._ttl_ms = ttl_ms
        self._max_entries = max_entries
        self._clock: Clock = clock or _monotonic_ms

        self._entries: "OrderedDict[str, IndexCacheEntry]" = OrderedDict()
        self._key_locks: Dict[str, Lock] = {}
        self._key_lock_users: Dict[str, int] = {}
        self._registry_lock = Lock()
        # Bumped on every invalidation so in-flight loads can tell they are stale
        self._generation = 0

        self._stats = CacheStatistics()

        logger.debug(f"ModuleIndexCache initialized with ttl={ttl_ms}ms, max_entries={max_entries}")

    @property
    def ttl_ms(self) -> float:
        return self._ttl_ms

    @contextmanager
    def _key_lock(self, key: str) -> Iterator[None]:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = Lock()
                self._key_locks[key] = lock
            self._key_lock_users[key] = self._key_lock_users.get(key, 0) + 1

        try:
            with lock:
                yield
        finally:
            with self._registry_lock:
                users = self._key_lock_users[key] - 1
                if users:
                    self._key_lock_users[key] = users
                else:
                    del self._key_lock_users[key]
                    del self._key_locks[key]

    def _is_fresh(self, entry: IndexCacheEntry, now: float) -> bool:
        return now - entry.timestamp_ms < self._ttl_ms

    def get(self, key: str, loader: IndexLoader) -> ParsedModuleIndex:
        """Return the cached index for ``key`` if fresh, else load and cache it.

        Args:
            key: Module identity (path or URI string).
            loader: Builds the index when the entry is missing or stale. An
                exception from the loader propagates and nothing is cached.

        Returns:
            The cached or freshly built ParsedModuleIndex.
        """
        with self._key_lock(key):
            now = self._clock()
            with self._registry_lock:
                entry = self._entries.get(key)
                if entry is not None and self._is_fresh(entry, now):
                    self._entries.move_to_end(key)
                    self._stats.hits += 1
                    logger.debug(f"Index cache hit: {key}")
                    return entry.index
                generation = self._generation

            index = loader()

            with self._registry_lock:
                if entry is not None:
                    self._stats.stale_refreshes += 1
                else:
                    self._stats.misses += 1

                if generation != self._generation:
                    # Invalidated while loading: the result may predate the change
                    logger.debug(f"Index cache invalidated during load, not storing: {key}")
                    return index

                self._entries[key] = IndexCacheEntry(timestamp_ms=now, index=index)
                self._entries.move_to_end(key)
                while len(self._entries) > self._max_entries:
                    evicted_key, _ = self._entries.popitem(last=False)
                    logger.debug(f"Evicted index cache entry: {evicted_key}")
                self._stats.current_entry_count = len(self._entries)

            logger.debug(f"Index cache {'refresh' if entry else 'miss'}: {key}")
            return index

    def peek(self, key: str) -> Optional[ParsedModuleIndex]:
        """Return a fresh cached index without loading, or None."""
        with self._registry_lock:
            entry = self._entries.get(key)
            if entry is None or not self._is_fresh(entry, self._clock()):
                return None
            return entry.index

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        with self._registry_lock:
            self._generation += 1
            if key is None:
                dropped = len(self._entries)
                self._entries.clear()
                logger.debug(f"Index cache cleared ({dropped} entries)")
            elif self._entries.pop(key, None) is not None:
                logger.debug(f"Invalidated index cache entry: {key}")
            self._stats.invalidations += 1
            self._stats.current_entry_count = len(self._entries)

    def clear(self) -> None:
        """Alias for invalidate() with no key."""
        self.invalidate()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._entries)

    def get_statistics(self) -> CacheStatistics:
        """Return a copy of the cache statistics."""
        with self._registry_lock:
            return CacheStatistics(
                hits=self._stats.hits,
                misses=self._stats.misses,
                stale_refreshes=self._stats.stale_refreshes,
                invalidations=self._stats.invalidations,
                current_entry_count=len(self._entries),
            )


class ImportListCache:
    """Single-slot TTL cache for a workspace's top-level library imports.

    One workspace key is held at a time; a lookup for another key reloads.
    """

    def __init__(
        self,
        ttl_ms: float = DEFAULT_IMPORT_LIST_TTL_MS,
        clock: Optional[Clock] = None,
    ) -> None:
        self._ttl_ms = ttl_ms
        self._clock: Clock = clock or _monotonic_ms
        self._entry: Optional[ImportListEntry] = None
        self._lock = Lock()
        self._stats = CacheStatistics()

    def get(self, key: str, loader: ImportsLoader) -> List[str]:
        """Return the cached import list for ``key`` if fresh, else reload it."""
        with self._lock:
            now = self._clock()
            entry = self._entry
            if entry is not None and entry.key == key and now - entry.last_refresh_ms < self._ttl_ms:
                self._stats.hits += 1
                return list(entry.imports)

            imports = loader()
            if entry is not None and entry.key == key:
                self._stats.stale_refreshes += 1
            else:
                self._stats.misses += 1
            self._entry = ImportListEntry(key=key, imports=tuple(imports), last_refresh_ms=now)
            self._stats.current_entry_count = 1
            logger.debug(f"Import list refreshed for {key}: {len(imports)} modules")
            return list(imports)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop the cached list (only if it belongs to ``key``, when given)."""
        with self._lock:
            if self._entry is not None and (key is None or self._entry.key == key):
                self._entry = None
                logger.debug("Import list cache invalidated")
            self._stats.invalidations += 1
            self._stats.current_entry_count = 0 if self._entry is None else 1

    def get_statistics(self) -> CacheStatistics:
        """Return a copy of the cache statistics."""
        with self._lock:
            return CacheStatistics(
                hits=self._stats.hits,
                misses=self._stats.misses,
                stale_refreshes=self._stats.stale_refreshes,
                invalidations=self._stats.invalidations,
                current_entry_count=0 if self._entry is None else 1,
            )
