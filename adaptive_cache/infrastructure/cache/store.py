#!/usr/bin/env python3
"""
Bounded Cache Store

In-memory key/value store with TTL expiry, memory accounting and
LRU-biased eviction. It knows nothing about what is stored.

Implementation Details:
- OrderedDict doubles as the LRU index: reads move an entry to the back,
  eviction pops from the front, so victim selection is O(1)
- Entries written later sit behind older ones, which breaks access-time
  ties by oldest creation
- All operations are synchronous and never suspend, so under asyncio they
  are atomic with respect to each other without a lock
- A min-heap of (expires_at, write_seq, key) indexes expiry, so purging
  expired entries pops only expired heads instead of scanning the store.
  Records for overwritten or removed entries are skipped when popped
- Expired entries are removed lazily on read and eagerly by sweep_expired()
"""

import fnmatch
import heapq
import itertools
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from typing import Any

import orjson

from adaptive_cache.core.config.constants import (
    GLOB_METACHARACTERS,
    EvictionReason,
    Stage,
)
from adaptive_cache.core.exceptions import CacheError, CacheKeyError, CacheRejectedError
from adaptive_cache.core.logging.logger import get_logger, log_stage, truncate_key
from adaptive_cache.infrastructure.cache.models import CacheEntry
from adaptive_cache.infrastructure.monitoring import metrics_collector

logger = get_logger(__name__)


def estimate_size(key: str, value: Any) -> int:
    """
    Estimate the memory footprint of an entry from its serialized size.

    orjson serializes the common payloads (dicts, lists, dataclasses,
    datetimes) natively; anything else is stringified via ``default=str``.
    """
    try:
        payload = orjson.dumps(
            value,
            default=str,
            option=orjson.OPT_NON_STR_KEYS,
        )
    except orjson.JSONEncodeError:
        payload = repr(value).encode("utf-8")
    return len(key.encode("utf-8")) + len(payload)


def is_glob_pattern(key_or_pattern: str) -> bool:
    return any(char in GLOB_METACHARACTERS for char in key_or_pattern)


class BoundedCacheStore:
    """
    TTL/LRU cache with entry-count and memory limits.

    Admission policy:
        1. A value whose estimated size alone exceeds max_memory_bytes is
           rejected (CacheRejectedError) instead of flushing the store.
        2. Otherwise expired entries are purged, then least-recently
           accessed entries are evicted until the new entry fits both limits.

    Usage:
        store = BoundedCacheStore(max_entries=2, max_memory_bytes=1024)
        store.set("docs:a", {"name": "node_load"}, ttl=60)
        entry = store.lookup("docs:a")
    """

    def __init__(
        self,
        max_entries: int,
        max_memory_bytes: int,
        clock: Callable[[], float] = time.monotonic,
        instance: str = metrics_collector.DEFAULT_INSTANCE,
    ):
        if max_entries < 1 or max_memory_bytes < 1:
            raise CacheError(
                "Cache limits must be positive",
                details={"max_entries": max_entries, "max_memory_bytes": max_memory_bytes},
            )
        self._max_entries = max_entries
        self._max_memory_bytes = max_memory_bytes
        self._clock = clock
        self._instance = instance
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._expiry_heap: list[tuple[float, int, str]] = []
        self._memory_usage = 0
        self._write_seq = itertools.count(1)
        self._evictions: dict[str, int] = {reason.value: 0 for reason in EvictionReason}

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def lookup(self, key: str) -> CacheEntry | None:
        """
        Return the live entry for key, or None.

        An expired entry behaves exactly like a miss and is removed on the
        spot. A hit refreshes last_accessed_at, bumps access_count and moves
        the entry to the most-recently-used end.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        if entry.is_expired(now):
            self._remove(key, EvictionReason.EXPIRED)
            return None

        entry.touch(now)
        self._entries.move_to_end(key)
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        entry = self.lookup(key)
        return default if entry is None else entry.value

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        """Stored keys in LRU order (least recently used first)."""
        return list(self._entries.keys())

    def peek(self, key: str) -> CacheEntry | None:
        """Return the raw entry without touching recency or expiry."""
        return self._entries.get(key)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def next_write_seq(self) -> int:
        """Reserve a write sequence number (monotonic per store)."""
        return next(self._write_seq)

    def set(self, key: str, value: Any, ttl: float, write_seq: int | None = None) -> bool:
        """
        Store value under key for ttl seconds.

        Overwrites any existing entry for key, replacing its timestamps and
        size. When write_seq is given and the stored entry was produced by a
        newer write, the call is a no-op and returns False.

        Raises:
            CacheKeyError: key is empty
            CacheError: ttl is not positive
            CacheRejectedError: the entry alone exceeds max_memory_bytes; any
                existing entry for key is dropped so no stale value survives
        """
        if not isinstance(key, str) or not key:
            raise CacheKeyError("Cache key must be a non-empty string", details={"key": key})
        if ttl <= 0:
            raise CacheError("TTL must be positive", details={"key": key, "ttl": ttl})

        existing = self._entries.get(key)
        if write_seq is not None and existing is not None and existing.write_seq > write_seq:
            log_stage(
                logger,
                Stage.CACHE_WRITE,
                "Discarded stale write",
                level="debug",
                cache_key=truncate_key(key),
                write_seq=write_seq,
                stored_seq=existing.write_seq,
            )
            return False

        size = estimate_size(key, value)
        if size > self._max_memory_bytes:
            if existing is not None:
                self._entries.pop(key)
                self._memory_usage -= existing.size_bytes
            self._evictions[EvictionReason.REJECTED.value] += 1
            metrics_collector.record_eviction(EvictionReason.REJECTED.value)
            metrics_collector.update_store_gauges(
            len(self._entries), self._memory_usage, instance=self._instance
        )
            raise CacheRejectedError(
                "Value exceeds the cache memory limit",
                key=key,
                size_bytes=size,
                max_memory_bytes=self._max_memory_bytes,
            )

        if existing is not None:
            self._entries.pop(key)
            self._memory_usage -= existing.size_bytes

        self._make_room(size)

        now = self._clock()
        entry = CacheEntry(
            key=key,
            value=value,
            size_bytes=size,
            created_at=now,
            expires_at=now + ttl,
            last_accessed_at=now,
            write_seq=write_seq if write_seq is not None else self.next_write_seq(),
        )
        self._entries[key] = entry
        self._index_expiry(entry)
        self._memory_usage += size
        metrics_collector.update_store_gauges(
            len(self._entries), self._memory_usage, instance=self._instance
        )
        return True

    def _fits(self, size: int) -> bool:
        return (
            len(self._entries) < self._max_entries
            and self._memory_usage + size <= self._max_memory_bytes
        )

    def _index_expiry(self, entry: CacheEntry) -> None:
        heapq.heappush(self._expiry_heap, (entry.expires_at, entry.write_seq, entry.key))

        # Records of overwritten or removed entries linger until popped;
        # rebuild once they outnumber the live ones.
        if len(self._expiry_heap) > 2 * len(self._entries) + 64:
            self._expiry_heap = [
                (e.expires_at, e.write_seq, e.key) for e in self._entries.values()
            ]
            heapq.heapify(self._expiry_heap)

    def _drop_expired(self, now: float) -> int:
        removed = 0
        heap = self._expiry_heap
        while heap and heap[0][0] < now:
            expires_at, seq, key = heapq.heappop(heap)
            entry = self._entries.get(key)
            if entry is not None and (entry.expires_at, entry.write_seq) == (expires_at, seq):
                self._remove(key, EvictionReason.EXPIRED)
                removed += 1
        return removed

    def _make_room(self, size: int) -> None:
        if self._fits(size):
            return

        # Expired entries are logically absent already; drop them before
        # touching live ones.
        self._drop_expired(self._clock())

        evicted = 0
        while self._entries and not self._fits(size):
            victim_key = next(iter(self._entries))
            self._remove(victim_key, EvictionReason.LRU)
            evicted += 1

        if evicted:
            log_stage(
                logger,
                Stage.CACHE_EVICTION,
                "Evicted least recently used entries",
                level="debug",
                evicted=evicted,
                entries=len(self._entries),
                memory_bytes=self._memory_usage,
            )

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    def _remove(self, key: str, reason: EvictionReason) -> None:
        entry = self._entries.pop(key)
        self._memory_usage -= entry.size_bytes
        self._evictions[reason.value] += 1
        metrics_collector.record_eviction(reason.value)
        metrics_collector.update_store_gauges(
            len(self._entries), self._memory_usage, instance=self._instance
        )

    def invalidate(self, key_or_pattern: str) -> int:
        """
        Remove an exact key, or every key matching a glob pattern.

        Arguments containing '*', '?' or '[' are treated as fnmatch patterns
        (e.g. "search_drupal_functions:*").

        Returns:
            Number of entries removed
        """
        if is_glob_pattern(key_or_pattern):
            victims = [k for k in self._entries if fnmatch.fnmatchcase(k, key_or_pattern)]
        else:
            victims = [key_or_pattern] if key_or_pattern in self._entries else []

        for key in victims:
            self._remove(key, EvictionReason.INVALIDATED)
        return len(victims)

    def clear(self) -> int:
        removed = len(self._entries)
        for key in list(self._entries):
            self._remove(key, EvictionReason.INVALIDATED)
        self._expiry_heap.clear()
        return removed

    def sweep_expired(self) -> int:
        """
        Remove every TTL-expired entry.

        Bounds memory held by entries that are never requested again.

        Returns:
            Number of entries removed
        """
        return self._drop_expired(self._clock())

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def memory_usage_bytes(self) -> int:
        return self._memory_usage

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def max_memory_bytes(self) -> int:
        return self._max_memory_bytes

    @property
    def evictions(self) -> dict[str, int]:
        return dict(self._evictions)

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(list(self._entries.values()))
