"""
Single-Flight Coordinator.

Collapses concurrent lookups for the same key into one producer call.

ALGORITHM:
----------
1.  Check the bounded store. A live entry is returned immediately.
2.  Look for a pending fetch for the key. If one exists, attach to it and
    return its settled value; the producer is NOT invoked again.
3.  Otherwise become the leader: reserve a write sequence, start the
    producer in its own task, register it as pending, and await it.
4.  When the producer settles the task writes the value back to the store
    (success) and removes the pending record in the same step, whether or
    not the value was cached. A failure the producer did not absorb is
    raised to the leader and every waiter alike.

Every caller awaits the shared task through ``asyncio.shield`` so cancelling
one caller never cancels the fetch the others are waiting on.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from adaptive_cache.core.config.constants import CacheOutcome, Stage
from adaptive_cache.core.exceptions import CacheRejectedError
from adaptive_cache.core.logging.logger import get_logger, log_stage, truncate_key
from adaptive_cache.infrastructure.cache.models import FetchOutcome
from adaptive_cache.infrastructure.cache.store import BoundedCacheStore
from adaptive_cache.infrastructure.monitoring.instrumentation import InstrumentationEngine

logger = get_logger(__name__)

Producer = Callable[[], Awaitable[Any]]


class SingleFlightCoordinator:
    """
    At most one outstanding producer call per key.

    The producer may return a plain value or a FetchOutcome; an outcome's
    cache_ttl overrides the caller's TTL for the write-back (0 = do not
    store), which is how substitute values get their short lifetime.
    """

    def __init__(
        self,
        store: BoundedCacheStore,
        instrumentation: InstrumentationEngine | None = None,
        caching_enabled: bool = True,
    ):
        self._store = store
        self._instrumentation = instrumentation
        self._caching_enabled = caching_enabled
        self._pending: dict[str, asyncio.Task] = {}

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def resolve(self, key: str, producer: Producer, ttl: float) -> Any:
        """
        Return the value for key, invoking producer only as the leader.

        Args:
            key: Cache key
            producer: Zero-argument coroutine function computing the value
            ttl: Time-to-live for the write-back in seconds
        """
        start_time = time.perf_counter()

        if self._caching_enabled:
            entry = self._store.lookup(key)
            if entry is not None:
                log_stage(
                    logger, Stage.CACHE_LOOKUP, "Cache hit", level="debug", cache_key=truncate_key(key)
                )
                self._record(CacheOutcome.HIT, start_time)
                return entry.value

        task = self._pending.get(key)
        if task is not None:
            log_stage(
                logger,
                Stage.SINGLE_FLIGHT,
                "Joined in-flight fetch",
                level="debug",
                cache_key=truncate_key(key),
            )
            try:
                return await asyncio.shield(task)
            finally:
                self._record(CacheOutcome.HIT, start_time)

        log_stage(logger, Stage.CACHE_LOOKUP, "Cache miss", level="debug", cache_key=truncate_key(key))
        write_seq = self._store.next_write_seq()
        task = asyncio.ensure_future(self._run(key, producer, ttl, write_seq))
        task.add_done_callback(_consume_exception)
        self._pending[key] = task

        try:
            return await asyncio.shield(task)
        finally:
            self._record(CacheOutcome.MISS, start_time)

    async def _run(self, key: str, producer: Producer, ttl: float, write_seq: int) -> Any:
        try:
            result = await producer()

            if isinstance(result, FetchOutcome):
                value = result.value
                store_ttl = ttl if result.cache_ttl is None else result.cache_ttl
            else:
                value = result
                store_ttl = ttl

            if self._caching_enabled and store_ttl > 0:
                self._write_back(key, value, store_ttl, write_seq)
            return value
        finally:
            if self._pending.get(key) is asyncio.current_task():
                del self._pending[key]

    def _write_back(self, key: str, value: Any, ttl: float, write_seq: int) -> None:
        try:
            stored = self._store.set(key, value, ttl, write_seq=write_seq)
        except CacheRejectedError as exc:
            log_stage(
                logger,
                Stage.CACHE_WRITE,
                "Value too large to cache, returning uncached",
                level="warning",
                cache_key=truncate_key(key),
                size_bytes=exc.size_bytes,
                max_memory_bytes=exc.max_memory_bytes,
            )
            return

        if stored:
            log_stage(
                logger,
                Stage.CACHE_WRITE,
                "Cache set",
                level="debug",
                cache_key=truncate_key(key),
                ttl=ttl,
            )

    def _record(self, outcome: CacheOutcome, start_time: float) -> None:
        if self._instrumentation is not None:
            self._instrumentation.record(outcome, (time.perf_counter() - start_time) * 1000)


def _consume_exception(task: asyncio.Task) -> None:
    # A fetch whose leader was cancelled may have no one left to observe its
    # failure; retrieve it so asyncio does not log it as unhandled.
    if not task.cancelled():
        task.exception()
