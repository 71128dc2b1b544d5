#!/usr/bin/env python3
"""
Upstream Gateway

The single object the surrounding tool layer talks to. It combines the
adaptive cache (store, single-flight, fallback pipeline, instrumentation)
with the mode controller.

Request flow for resolve(key, ttl, producer, operation):
    1. Capability check      -> CapabilityDeniedError before any cache or
                                network work (the only error callers see)
    2. Cache / single-flight -> stored or shared value
    3. Fallback pipeline     -> upstream value, or the static substitute

Usage:
    async with build_gateway(probe=client.ping, fallback_dataset=dataset) as gateway:
        key = make_cache_key("search_drupal_functions", "node_load")
        result = await gateway.resolve(key, 600, lambda: client.search("node_load"))
"""

import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from adaptive_cache.core.config.constants import DOCS_CAPABILITIES, LIVE_CAPABILITIES, ServerMode, Stage
from adaptive_cache.core.config.settings import Settings, get_settings
from adaptive_cache.core.logging.logger import get_logger, log_stage, setup_logging
from adaptive_cache.fallback_data import StaticFallbackDataset
from adaptive_cache.infrastructure.cache.cache_manager import CacheManager
from adaptive_cache.infrastructure.cache.models import CacheStatistics
from adaptive_cache.infrastructure.monitoring.metrics_collector import DEFAULT_INSTANCE
from adaptive_cache.modes.mode_controller import ModeController, ModeStats, Probe

logger = get_logger(__name__)

KNOWN_OPERATIONS = DOCS_CAPABILITIES | LIVE_CAPABILITIES


class UpstreamGateway:
    """
    Adaptive caching and mode control behind one interface.

    Both collaborators are injected so tests can build independent
    instances; build_gateway() wires them from settings.
    """

    def __init__(self, cache: CacheManager, modes: ModeController):
        self._cache = cache
        self._modes = modes
        self._initialized = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> ServerMode:
        """
        Start the TTL sweep and settle the starting mode (probe).

        Returns:
            The mode the controller settled in
        """
        if self._initialized:
            return self._modes.current_mode

        await self._cache.start()
        mode = await self._modes.initialize()
        self._initialized = True

        log_stage(logger, Stage.INITIALIZATION, "Gateway initialized", mode=mode.value)
        return mode

    async def shutdown(self) -> None:
        await self._modes.shutdown()
        await self._cache.shutdown()
        self._initialized = False

    async def __aenter__(self) -> "UpstreamGateway":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def resolve(
        self,
        key: str,
        ttl_seconds: float | None,
        producer: Callable[[], Awaitable[Any] | Any],
        operation: str | None = None,
    ) -> Any:
        """
        Resolve key through the cache, fetching at most once on a miss.

        Args:
            key: Cache key, typically make_cache_key(operation, *params)
            ttl_seconds: TTL for a real result (None: CACHE_TTL_SECONDS)
            producer: Zero-argument callable performing the upstream call
            operation: Operation name to gate on. Defaults to the key's
                prefix when that prefix is a known operation.

        Raises:
            CapabilityDeniedError: operation is not available in the current mode
        """
        operation = operation or self._operation_from_key(key)
        if operation is not None:
            self._modes.require_capability(operation)

        return await self._cache.resolve(key, ttl_seconds, producer)

    @staticmethod
    def _operation_from_key(key: str) -> str | None:
        prefix = key.split(":", 1)[0] if isinstance(key, str) else ""
        return prefix if prefix in KNOWN_OPERATIONS else None

    def invalidate(self, key_or_pattern: str) -> int:
        return self._cache.invalidate(key_or_pattern)

    async def warmup(
        self,
        keys: Mapping[str, Callable[[], Awaitable[Any] | Any]] | Iterable[str],
        ttl_seconds: float | None = None,
    ) -> int:
        return await self._cache.warmup(keys, ttl_seconds)

    # -------------------------------------------------------------------------
    # Modes
    # -------------------------------------------------------------------------

    def is_capability_available(self, operation: str) -> bool:
        return self._modes.is_capability_available(operation)

    async def switch_mode(self, mode: ServerMode | str) -> bool:
        return await self._modes.switch_mode(mode)

    def get_optimal_mode_for_tool(self, operation: str) -> str | None:
        return self._modes.get_optimal_mode_for_tool(operation)

    @property
    def current_mode(self) -> ServerMode:
        return self._modes.current_mode

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def get_stats(self) -> CacheStatistics:
        return self._cache.stats()

    def get_recommendations(self) -> list[str]:
        return self._cache.recommendations()

    def get_mode_stats(self) -> ModeStats:
        return self._modes.get_stats()

    @property
    def cache(self) -> CacheManager:
        return self._cache

    @property
    def modes(self) -> ModeController:
        return self._modes


def build_gateway(
    probe: Probe | None = None,
    fallback_dataset: StaticFallbackDataset | None = None,
    loader: Callable[[str], Awaitable[Any] | Any] | None = None,
    settings: Settings | None = None,
    clock: Callable[[], float] = time.monotonic,
    configure_logging: bool = False,
    instance: str = DEFAULT_INSTANCE,
) -> UpstreamGateway:
    """
    Wire a gateway from settings.

    Args:
        probe: Connectivity check against the live source
        fallback_dataset: Static substitutes served after exhausted retries
        loader: loader(key) used by warmup() for plain key lists
        settings: Settings (default: get_settings())
        clock: Monotonic clock for expiry and request-rate windows
        configure_logging: Call setup_logging() with the logging settings
        instance: Metrics label shared by the cache and the mode controller
    """
    settings = settings or get_settings()

    if configure_logging:
        setup_logging(
            log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT
        )

    cache = CacheManager(
        settings=settings.cache,
        fallback_dataset=fallback_dataset,
        loader=loader,
        resilience_settings=settings.resilience,
        monitoring_settings=settings.monitoring,
        clock=clock,
        instance=instance,
    )
    modes = ModeController(probe=probe, settings=settings.mode, cache=cache, instance=instance)
    return UpstreamGateway(cache, modes)
