#!/usr/bin/env python3
"""
Instrumentation & Recommendation Engine

Tracks per-request outcomes and latency, and turns current statistics into
operational advice.

Counting rules:
- HIT and MISS each count as one request (a caller that joined an in-flight
  fetch counts as a HIT: it was served without upstream work)
- ERROR counts an exhausted upstream fetch; it never adds to total_requests
  because the request that triggered it was already counted as a MISS
"""

import time
from collections import deque
from collections.abc import Callable

from pydantic import BaseModel, Field

from adaptive_cache.core.config.constants import (
    REQUESTS_PER_MINUTE_WINDOW_SECONDS,
    CacheOutcome,
    Stage,
)
from adaptive_cache.core.config.settings import MonitoringSettings, get_settings
from adaptive_cache.core.logging.logger import get_logger, log_stage
from adaptive_cache.infrastructure.cache.models import CacheStatistics
from adaptive_cache.infrastructure.monitoring import metrics_collector

logger = get_logger(__name__)


class PerformanceStats(BaseModel):
    """Rolling performance figures exposed through the mode stats."""

    avg_response_time: float = Field(ge=0, description="Rolling average latency (ms)")
    requests_per_minute: float = Field(ge=0, description="Requests in the last 60 seconds")
    error_rate: float = Field(ge=0, description="errors / total_requests")


class InstrumentationEngine:
    """
    Rolling counters, latency window and threshold-based recommendations.

    Usage:
        engine = InstrumentationEngine()
        engine.record(CacheOutcome.HIT, latency_ms=0.4)
        advice = engine.recommendations(cache_stats)
    """

    def __init__(
        self,
        settings: MonitoringSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings or get_settings().monitoring
        self._clock = clock
        self._latencies: deque[float] = deque(maxlen=self._settings.LATENCY_WINDOW_SIZE)
        self._request_times: deque[float] = deque()
        self.reset()

    def reset(self) -> None:
        self.total_requests = 0
        self.hits = 0
        self.misses = 0
        self.errors = 0
        self._latencies.clear()
        self._request_times.clear()

    def record(self, outcome: CacheOutcome | str, latency_ms: float | None = None) -> None:
        """
        Record one outcome.

        Args:
            outcome: hit, miss or error
            latency_ms: Optional latency to fold into the rolling average
        """
        outcome = CacheOutcome(outcome)

        if outcome == CacheOutcome.HIT:
            self.hits += 1
            self.total_requests += 1
            self._request_times.append(self._clock())
        elif outcome == CacheOutcome.MISS:
            self.misses += 1
            self.total_requests += 1
            self._request_times.append(self._clock())
        else:
            self.errors += 1

        if latency_ms is not None:
            self._latencies.append(latency_ms)

        metrics_collector.record_request(
            outcome.value, None if latency_ms is None else latency_ms / 1000
        )

    # -------------------------------------------------------------------------
    # Derived figures
    # -------------------------------------------------------------------------

    @property
    def hit_ratio(self) -> float:
        return self.hits / self.total_requests if self.total_requests else 0.0

    @property
    def error_rate(self) -> float:
        return self.errors / self.total_requests if self.total_requests else 0.0

    @property
    def avg_response_time(self) -> float:
        if not self._latencies:
            return 0.0
        return sum(self._latencies) / len(self._latencies)

    @property
    def requests_per_minute(self) -> float:
        cutoff = self._clock() - REQUESTS_PER_MINUTE_WINDOW_SECONDS
        while self._request_times and self._request_times[0] < cutoff:
            self._request_times.popleft()
        return float(len(self._request_times))

    def performance(self) -> PerformanceStats:
        return PerformanceStats(
            avg_response_time=round(self.avg_response_time, 3),
            requests_per_minute=self.requests_per_minute,
            error_rate=round(self.error_rate, 4),
        )

    # -------------------------------------------------------------------------
    # Recommendations
    # -------------------------------------------------------------------------

    def recommendations(self, stats: CacheStatistics) -> list[str]:
        """
        Derive operational advice from the current statistics.

        Returns an empty list when nothing is actionable. Ratio-based advice
        waits for RECOMMEND_MIN_SAMPLE requests so a cold cache is not
        reported as misconfigured.
        """
        cfg = self._settings
        advice: list[str] = []

        if stats.memory_utilization >= cfg.RECOMMEND_MEMORY_HIGH_WATER:
            advice.append(
                f"Memory usage is {stats.memory_utilization:.0%} of the "
                f"{stats.max_memory_bytes} byte limit: reduce TTL or max entries"
            )

        if stats.entries_utilization >= cfg.RECOMMEND_ENTRIES_HIGH_WATER:
            advice.append(
                f"Cache holds {stats.size}/{stats.max_entries} entries: "
                "increase max entries or reduce TTL to limit LRU churn"
            )

        if stats.total_requests >= max(cfg.RECOMMEND_MIN_SAMPLE, 1):
            if stats.hit_ratio < cfg.RECOMMEND_HIT_RATIO_LOW_WATER:
                advice.append(
                    f"Hit ratio is {stats.hit_ratio:.0%}: "
                    "consider cache warmup or broader keys"
                )

            error_rate = stats.errors / stats.total_requests
            if error_rate > cfg.RECOMMEND_ERROR_RATE_THRESHOLD:
                advice.append(
                    f"Upstream error rate is {error_rate:.0%}: check upstream connectivity"
                )

        if advice:
            log_stage(logger, Stage.RECOMMENDATIONS, "Cache recommendations", count=len(advice))
        return advice
