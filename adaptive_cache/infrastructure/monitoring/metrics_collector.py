#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

Prometheus-compatible side-channel metrics for the caching layer:
- Request outcomes (hit / miss / error)
- Upstream attempt results and substitute usage
- Evictions by reason, entry count and memory gauges
- Probe results and the active operational mode

Architectural Decision: prometheus-client for industry-standard metrics
- Compatible with Grafana dashboards
- Counters are process-wide; the authoritative per-instance statistics
  remain CacheStatistics
- State gauges (entries, memory, current mode) carry an "instance" label so
  independent stores and controllers in one process do not overwrite
  each other
"""

from prometheus_client import Counter, Gauge, Histogram

from adaptive_cache.core.config.constants import ServerMode

DEFAULT_INSTANCE = "default"

# ============================================================================
# Metric Definitions
# ============================================================================

CACHE_REQUESTS = Counter(
    "adaptive_cache_requests_total",
    "Total resolve outcomes",
    ["outcome"],  # hit, miss, error
)

CACHE_EVICTIONS = Counter(
    "adaptive_cache_evictions_total",
    "Entries removed from the store",
    ["reason"],  # lru, expired, invalidated, rejected
)

CACHE_ENTRIES = Gauge("adaptive_cache_entries", "Entries currently stored", ["instance"])

CACHE_MEMORY_BYTES = Gauge(
    "adaptive_cache_memory_bytes", "Estimated memory of stored entries", ["instance"]
)

UPSTREAM_ATTEMPTS = Counter(
    "adaptive_cache_upstream_attempts_total",
    "Upstream attempts made by the fallback pipeline",
    ["result"],  # success, failure
)

FALLBACK_SUBSTITUTES = Counter(
    "adaptive_cache_fallback_substitutes_total",
    "Substitute values served after retries were exhausted",
)

FETCH_LATENCY = Histogram(
    "adaptive_cache_fetch_latency_seconds",
    "Latency of resolve calls",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

MODE_PROBES = Counter(
    "adaptive_cache_mode_probes_total",
    "Connectivity probes against the live source",
    ["result"],  # reachable, unreachable
)

CURRENT_MODE = Gauge(
    "adaptive_cache_current_mode",
    "1 for the active operational mode, 0 otherwise",
    ["instance", "mode"],
)


# ============================================================================
# Helpers
# ============================================================================


def record_request(outcome: str, latency_seconds: float | None = None) -> None:
    CACHE_REQUESTS.labels(outcome=outcome).inc()
    if latency_seconds is not None:
        FETCH_LATENCY.observe(latency_seconds)


def record_eviction(reason: str, count: int = 1) -> None:
    if count > 0:
        CACHE_EVICTIONS.labels(reason=reason).inc(count)


def update_store_gauges(entries: int, memory_bytes: int, instance: str = DEFAULT_INSTANCE) -> None:
    CACHE_ENTRIES.labels(instance=instance).set(entries)
    CACHE_MEMORY_BYTES.labels(instance=instance).set(memory_bytes)


def record_upstream_attempt(success: bool) -> None:
    UPSTREAM_ATTEMPTS.labels(result="success" if success else "failure").inc()


def record_substitute() -> None:
    FALLBACK_SUBSTITUTES.inc()


def record_probe(reachable: bool) -> None:
    MODE_PROBES.labels(result="reachable" if reachable else "unreachable").inc()


def set_current_mode(mode: ServerMode, instance: str = DEFAULT_INSTANCE) -> None:
    """Flip the per-mode gauge so exactly one mode reads 1 for this instance."""
    for candidate in ServerMode:
        CURRENT_MODE.labels(instance=instance, mode=candidate.value).set(1 if candidate == mode else 0)
