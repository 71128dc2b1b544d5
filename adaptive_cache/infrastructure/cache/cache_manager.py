#!/usr/bin/env python3
"""
Adaptive Cache Manager

Architecture:
    CacheManager (Public API)
        ├── BoundedCacheStore (TTL/LRU/memory limits)
        ├── SingleFlightCoordinator (one producer call per key)
        │   └── FallbackFetchPipeline (retries, then static substitute)
        ├── InstrumentationEngine (counters, latency, recommendations)
        └── CacheWarmer (warming strategies)

Lookup path for resolve(key, ttl, producer):
    1. Store lookup            -> HIT, return
    2. Join in-flight fetch    -> HIT, return the shared value
    3. Leader                  -> MISS, pipeline.execute(producer)
    4. Write-back              -> real values with ttl, substitutes with the
                                  short fallback TTL (or not at all)

A background task sweeps expired entries every
CACHE_CLEANUP_INTERVAL_SECONDS, independent of request traffic.
"""

import asyncio
import hashlib
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from adaptive_cache.core.config.constants import CacheOutcome, Stage
from adaptive_cache.core.config.settings import (
    CacheSettings,
    MonitoringSettings,
    ResilienceSettings,
    get_settings,
)
from adaptive_cache.core.exceptions import CacheError, CacheKeyError, CacheRejectedError
from adaptive_cache.core.logging.logger import get_logger, log_stage, truncate_key
from adaptive_cache.core.resilience.fallback import FallbackFetchPipeline
from adaptive_cache.core.resilience.single_flight import SingleFlightCoordinator
from adaptive_cache.fallback_data import StaticFallbackDataset
from adaptive_cache.infrastructure.cache.models import CacheStatistics
from adaptive_cache.infrastructure.cache.store import BoundedCacheStore
from adaptive_cache.infrastructure.monitoring import metrics_collector
from adaptive_cache.infrastructure.monitoring.instrumentation import (
    InstrumentationEngine,
    PerformanceStats,
)

logger = get_logger(__name__)

Producer = Callable[[], Awaitable[Any] | Any]
Loader = Callable[[str], Awaitable[Any] | Any]


def make_cache_key(operation: str, *params: Any) -> str:
    """
    Generate a consistent cache key from an operation name and its arguments.

    Uses MD5 for fast hashing (collision risk acceptable for cache).

    Args:
        operation: Operation name (e.g., "search_drupal_functions")
        *params: Values to hash for the key

    Returns:
        Cache key (e.g., "search_drupal_functions:3f2a...")
    """
    data = ":".join(str(param) for param in params)
    hash_value = hashlib.md5(data.encode()).hexdigest()
    return f"{operation}:{hash_value}"


class CacheWarmer:
    """
    Implements cache warming strategies.

    Responsibility: Resolve known high-value keys before real traffic arrives.

    Strategies:
    1. Explicit producers: a mapping of key -> producer
    2. Loader: a list of keys, each fetched through loader(key)

    Warmed keys go through the normal resolve path, so they are
    single-flighted and protected by the fallback pipeline like any request.
    """

    def __init__(self, manager: "CacheManager", loader: Loader | None = None):
        self._manager = manager
        self._loader = loader

    async def warm(
        self,
        keys: Mapping[str, Producer] | Iterable[str],
        ttl_seconds: float | None = None,
    ) -> int:
        """
        Resolve every key concurrently.

        Args:
            keys: Mapping of key -> producer, or plain keys for the loader
            ttl_seconds: TTL for warmed entries (default: CACHE_TTL_SECONDS)

        Returns:
            Number of the requested keys now present in the cache
        """
        producers = self._producers_for(keys)
        if not producers:
            return 0

        await asyncio.gather(
            *(
                self._manager.resolve(key, ttl_seconds, producer)
                for key, producer in producers.items()
            )
        )

        warmed = sum(1 for key in producers if key in self._manager.store)
        log_stage(
            logger,
            Stage.WARMUP,
            "Cache warming complete",
            requested=len(producers),
            warmed_items=warmed,
        )
        return warmed

    def _producers_for(self, keys: Mapping[str, Producer] | Iterable[str]) -> dict[str, Producer]:
        if isinstance(keys, Mapping):
            return dict(keys)

        producers: dict[str, Producer] = {}
        for key in keys:
            if self._loader is None:
                log_stage(
                    logger,
                    Stage.WARMUP,
                    "No loader configured, skipping warmup key",
                    level="warning",
                    cache_key=truncate_key(key),
                )
                continue
            producers[key] = self._bind_loader(key)
        return producers

    def _bind_loader(self, key: str) -> Producer:
        loader = self._loader

        def produce() -> Awaitable[Any] | Any:
            return loader(key)

        return produce


class CacheManager:
    """
    Bounded, single-flighted, self-healing cache.

    Public API for all caching operations.

    Usage:
        cache = CacheManager(fallback_dataset=dataset)
        await cache.start()

        key = make_cache_key("search_drupal_functions", "node_load", "10.x")
        result = await cache.resolve(key, 600, lambda: api.search("node_load"))

        cache.invalidate("search_drupal_functions:*")
        stats = cache.stats()
        advice = cache.recommendations()

        await cache.shutdown()
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        fallback_dataset: StaticFallbackDataset | None = None,
        loader: Loader | None = None,
        resilience_settings: ResilienceSettings | None = None,
        monitoring_settings: MonitoringSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        instance: str = metrics_collector.DEFAULT_INSTANCE,
    ):
        """
        Initialize cache manager.

        STAGE-0.0: Cache manager initialization

        Args:
            instance: Label for this manager's store gauges
        """
        self._settings = settings or get_settings().cache
        self._enabled = self._settings.ENABLE_CACHING
        self._default_ttl = self._settings.CACHE_TTL_SECONDS

        # Build layers
        self._store = BoundedCacheStore(
            max_entries=self._settings.CACHE_MAX_ENTRIES,
            max_memory_bytes=self._settings.CACHE_MAX_MEMORY_BYTES,
            clock=clock,
            instance=instance,
        )
        self._instrumentation = InstrumentationEngine(monitoring_settings, clock=clock)
        self._pipeline = FallbackFetchPipeline(
            fallback_dataset=fallback_dataset,
            settings=resilience_settings,
            fallback_ttl=self._settings.CACHE_FALLBACK_TTL_SECONDS,
            instrumentation=self._instrumentation,
        )
        self._coordinator = SingleFlightCoordinator(
            self._store,
            instrumentation=self._instrumentation,
            caching_enabled=self._enabled,
        )
        self._warmer = CacheWarmer(self, loader=loader)
        self._sweep_task: asyncio.Task | None = None

        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache manager initialized",
            caching_enabled=self._enabled,
            max_entries=self._settings.CACHE_MAX_ENTRIES,
            max_memory_bytes=self._settings.CACHE_MAX_MEMORY_BYTES,
            default_ttl=self._default_ttl,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic TTL sweep."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def shutdown(self) -> None:
        """Stop the periodic TTL sweep."""
        if self._sweep_task is None:
            return

        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None

        log_stage(logger, Stage.SHUTDOWN, "Cache manager shutdown", entries=self._store.size)

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        interval = self._settings.CACHE_CLEANUP_INTERVAL_SECONDS
        while True:
            try:
                await asyncio.sleep(interval)
                self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Cache sweep failed", stage=Stage.CACHE_SWEEP.value, error=str(e))

    def sweep(self) -> int:
        """Remove every expired entry now. Returns the number removed."""
        removed = self._store.sweep_expired()
        if removed:
            log_stage(
                logger,
                Stage.CACHE_SWEEP,
                "Expired entries swept",
                level="debug",
                removed=removed,
                entries=self._store.size,
            )
        return removed

    # -------------------------------------------------------------------------
    # Core Cache Operations
    # -------------------------------------------------------------------------

    async def resolve(
        self,
        key: str,
        ttl_seconds: float | None,
        producer: Producer,
    ) -> Any:
        """
        Return the cached value for key, fetching it at most once on a miss.

        STAGE-2.0: Cache lookup
        STAGE-2.1: Single-flight join
        STAGE-3.0: Upstream fetch (retries, then substitute)
        STAGE-4.0: Write-back

        Args:
            key: Cache key (see make_cache_key)
            ttl_seconds: TTL for a real result (None: CACHE_TTL_SECONDS)
            producer: Zero-argument callable performing the upstream call

        Returns:
            The upstream value or, after exhausted retries, the substitute.
            Upstream failures never propagate.
        """
        if not isinstance(key, str) or not key:
            raise CacheKeyError("Cache key must be a non-empty string", details={"key": key})

        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise CacheError("TTL must be positive", details={"key": key, "ttl": ttl})

        async def fetch():
            return await self._pipeline.execute(key, producer)

        return await self._coordinator.resolve(key, fetch, ttl)

    def get(self, key: str) -> Any | None:
        """
        Get a value without fetching. Counts as a hit or a miss.

        Returns:
            Cached value or None if absent or expired
        """
        if not self._enabled:
            return None

        entry = self._store.lookup(key)
        self._instrumentation.record(CacheOutcome.MISS if entry is None else CacheOutcome.HIT)
        return None if entry is None else entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> bool:
        """
        Store a value directly, bypassing the fetch path.

        Returns:
            True if stored; False if caching is disabled or the value is too
            large for the memory limit
        """
        if not self._enabled:
            return False

        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        try:
            return self._store.set(key, value, ttl)
        except CacheRejectedError as exc:
            log_stage(
                logger,
                Stage.CACHE_WRITE,
                "Value too large to cache",
                level="warning",
                cache_key=truncate_key(key),
                size_bytes=exc.size_bytes,
                max_memory_bytes=exc.max_memory_bytes,
            )
            return False

    def invalidate(self, key_or_pattern: str) -> int:
        """
        Remove an exact key or every key matching a glob pattern.

        STAGE-C.3: Cache invalidation

        Returns:
            Number of entries removed
        """
        removed = self._store.invalidate(key_or_pattern)
        log_stage(
            logger,
            Stage.CACHE_INVALIDATION,
            "Cache invalidated",
            pattern=truncate_key(key_or_pattern),
            removed=removed,
        )
        return removed

    def clear(self) -> int:
        removed = self._store.clear()
        log_stage(logger, Stage.CACHE_INVALIDATION, "Cache cleared", removed=removed)
        return removed

    # -------------------------------------------------------------------------
    # Cache Warming
    # -------------------------------------------------------------------------

    async def warmup(
        self,
        keys: Mapping[str, Producer] | Iterable[str],
        ttl_seconds: float | None = None,
    ) -> int:
        """
        Proactively resolve known high-value keys.

        Args:
            keys: Mapping of key -> producer, or plain keys for the loader
            ttl_seconds: TTL for warmed entries

        Returns:
            Number of keys successfully warmed
        """
        return await self._warmer.warm(keys, ttl_seconds)

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def stats(self) -> CacheStatistics:
        engine = self._instrumentation
        return CacheStatistics(
            enabled=self._enabled,
            size=self._store.size,
            max_entries=self._store.max_entries,
            memory_usage_bytes=self._store.memory_usage_bytes,
            max_memory_bytes=self._store.max_memory_bytes,
            total_requests=engine.total_requests,
            hits=engine.hits,
            misses=engine.misses,
            errors=engine.errors,
            hit_ratio=engine.hit_ratio,
            evictions=self._store.evictions,
            in_flight=self._coordinator.in_flight,
        )

    def recommendations(self) -> list[str]:
        return self._instrumentation.recommendations(self.stats())

    def performance(self) -> PerformanceStats:
        return self._instrumentation.performance()

    @property
    def store(self) -> BoundedCacheStore:
        return self._store

    @property
    def instrumentation(self) -> InstrumentationEngine:
        return self._instrumentation

    @property
    def pipeline(self) -> FallbackFetchPipeline:
        return self._pipeline

    @property
    def coordinator(self) -> SingleFlightCoordinator:
        return self._coordinator

    @property
    def enabled(self) -> bool:
        return self._enabled
