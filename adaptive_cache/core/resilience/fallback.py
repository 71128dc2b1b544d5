"""
Fallback Fetch Pipeline.

Wraps an upstream call with retries and a deterministic substitute.

MECHANISM OF ACTION:
-------------------
1.  **Attempt**:
    The producer is invoked under a per-attempt timeout. Any exception it
    raises (network error, 5xx, parse failure) or a timeout is converted to
    `UpstreamTransientError`.

2.  **Retry**:
    Transient errors are retried by tenacity up to FETCH_MAX_RETRIES total
    attempts, sleeping FETCH_RETRY_BASE_DELAY_MS, then twice that, and so on
    up to FETCH_RETRY_MAX_DELAY_MS between attempts.

3.  **Substitute**:
    When every attempt has failed the pipeline builds an
    `UpstreamExhaustedError`, logs it, counts one error and returns the
    static fallback value for the same key instead of raising. The outcome
    carries a short cache TTL (CACHE_FALLBACK_TTL_SECONDS, 0 = do not store)
    so the real upstream is retried soon.

Callers always receive some usable answer. Only cancellation propagates.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from adaptive_cache.core.config.constants import CacheOutcome, FetchSource, Stage
from adaptive_cache.core.config.settings import ResilienceSettings, get_settings
from adaptive_cache.core.exceptions import (
    UpstreamExhaustedError,
    UpstreamTimeoutError,
    UpstreamTransientError,
)
from adaptive_cache.core.logging.logger import get_logger, log_stage, truncate_key
from adaptive_cache.fallback_data import StaticFallbackDataset
from adaptive_cache.infrastructure.cache.models import FetchOutcome
from adaptive_cache.infrastructure.monitoring import metrics_collector
from adaptive_cache.infrastructure.monitoring.instrumentation import InstrumentationEngine

logger = get_logger(__name__)

UpstreamCall = Callable[[], Awaitable[Any] | Any]


def create_retrying(settings: ResilienceSettings) -> AsyncRetrying:
    """Build the tenacity controller for one fetch."""
    std_logger = logging.getLogger(__name__)  # Tenacity needs std lib logger

    return AsyncRetrying(
        stop=stop_after_attempt(settings.FETCH_MAX_RETRIES),
        wait=wait_exponential(
            multiplier=settings.FETCH_RETRY_BASE_DELAY_MS / 1000,
            max=settings.FETCH_RETRY_MAX_DELAY_MS / 1000,
        ),
        retry=retry_if_exception_type(UpstreamTransientError),
        before_sleep=before_sleep_log(std_logger, logging.WARNING),
        reraise=True,
    )


class FallbackFetchPipeline:
    """
    Retry with backoff, then serve a static substitute.

    Usage:
        pipeline = FallbackFetchPipeline(dataset)
        outcome = await pipeline.execute("search_drupal_functions:abc", fetch_functions)
        value = await pipeline.fetch("search_drupal_functions:abc", fetch_functions)
    """

    def __init__(
        self,
        fallback_dataset: StaticFallbackDataset | None = None,
        settings: ResilienceSettings | None = None,
        fallback_ttl: float | None = None,
        instrumentation: InstrumentationEngine | None = None,
    ):
        self._dataset = fallback_dataset or StaticFallbackDataset()
        self._settings = settings or get_settings().resilience
        self._fallback_ttl = (
            fallback_ttl if fallback_ttl is not None else get_settings().cache.CACHE_FALLBACK_TTL_SECONDS
        )
        self._instrumentation = instrumentation

    @property
    def fallback_dataset(self) -> StaticFallbackDataset:
        return self._dataset

    async def fetch(self, key: str, upstream_call: UpstreamCall) -> Any:
        """Return the upstream value, or the substitute once retries are exhausted."""
        outcome = await self.execute(key, upstream_call)
        return outcome.value

    async def execute(self, key: str, upstream_call: UpstreamCall) -> FetchOutcome:
        start_time = time.perf_counter()
        attempts = 0

        try:
            async for attempt in create_retrying(self._settings):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    value = await self._attempt(key, upstream_call, attempts)
        except UpstreamTransientError as exc:
            latency_ms = (time.perf_counter() - start_time) * 1000
            return self._substitute(key, attempts, exc, latency_ms)

        latency_ms = (time.perf_counter() - start_time) * 1000
        log_stage(
            logger,
            Stage.UPSTREAM_FETCH,
            "Upstream fetch succeeded",
            level="debug",
            cache_key=truncate_key(key),
            attempts=attempts,
            duration_ms=round(latency_ms, 2),
        )
        return FetchOutcome(
            value=value,
            source=FetchSource.UPSTREAM,
            attempts=attempts,
            latency_ms=latency_ms,
        )

    async def _attempt(self, key: str, upstream_call: UpstreamCall, attempt_number: int) -> Any:
        try:
            value = await asyncio.wait_for(
                self._invoke(upstream_call), timeout=self._settings.FETCH_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError as exc:
            metrics_collector.record_upstream_attempt(success=False)
            raise UpstreamTimeoutError(
                f"Upstream attempt timed out after {self._settings.FETCH_TIMEOUT_SECONDS}s",
                details={"key": key, "attempt": attempt_number},
            ) from exc
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            metrics_collector.record_upstream_attempt(success=False)
            raise UpstreamTransientError.from_exception(
                exc, key=key, attempt=attempt_number
            ) from exc

        metrics_collector.record_upstream_attempt(success=True)
        return value

    @staticmethod
    async def _invoke(upstream_call: UpstreamCall) -> Any:
        result = upstream_call()
        if inspect.isawaitable(result):
            result = await result
        return result

    def _substitute(
        self, key: str, attempts: int, last_error: UpstreamTransientError, latency_ms: float
    ) -> FetchOutcome:
        exhausted = UpstreamExhaustedError(
            "Upstream retries exhausted, serving substitute",
            attempts=attempts,
            last_error=last_error,
            details={"key": key},
        )
        log_stage(
            logger,
            Stage.FALLBACK,
            exhausted.message,
            level="warning",
            cache_key=truncate_key(key),
            **exhausted.details,
        )

        if self._instrumentation is not None:
            self._instrumentation.record(CacheOutcome.ERROR)
        metrics_collector.record_substitute()

        return FetchOutcome(
            value=self._dataset.lookup(key),
            source=FetchSource.FALLBACK,
            attempts=attempts,
            latency_ms=latency_ms,
            cache_ttl=self._fallback_ttl,
        )
