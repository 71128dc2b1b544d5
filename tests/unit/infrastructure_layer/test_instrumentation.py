"""
Unit Tests for InstrumentationEngine

Tests rolling counters, latency averaging, request rate and threshold-based
recommendations.
"""

import pytest

from adaptive_cache.core.config.constants import CacheOutcome
from adaptive_cache.infrastructure.cache.models import CacheStatistics
from adaptive_cache.infrastructure.monitoring.instrumentation import InstrumentationEngine
from tests.test_fixtures import CacheTestFactory


def make_stats(**overrides) -> CacheStatistics:
    values = {
        "size": 0,
        "max_entries": 100,
        "memory_usage_bytes": 0,
        "max_memory_bytes": 1000,
    }
    values.update(overrides)
    return CacheStatistics(**values)


@pytest.fixture
def engine(monitoring_settings, fake_clock):
    return InstrumentationEngine(monitoring_settings, clock=fake_clock)


@pytest.mark.unit
class TestCounters:
    """Test outcome counting."""

    def test_starts_empty(self, engine):
        assert engine.total_requests == 0
        assert engine.hit_ratio == 0.0
        assert engine.error_rate == 0.0
        assert engine.avg_response_time == 0.0

    def test_hits_and_misses_are_requests(self, engine):
        engine.record(CacheOutcome.HIT)
        engine.record(CacheOutcome.HIT)
        engine.record(CacheOutcome.MISS)

        assert engine.total_requests == 3
        assert engine.hit_ratio == pytest.approx(2 / 3)

    def test_error_is_not_a_request(self, engine):
        engine.record(CacheOutcome.MISS)
        engine.record(CacheOutcome.ERROR)

        assert engine.total_requests == 1
        assert engine.errors == 1
        assert engine.error_rate == 1.0

    def test_accepts_string_outcomes(self, engine):
        engine.record("hit")
        assert engine.hits == 1

    def test_invalid_outcome_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.record("bogus")

    def test_reset(self, engine):
        engine.record(CacheOutcome.HIT, latency_ms=3)
        engine.reset()

        assert engine.total_requests == 0
        assert engine.avg_response_time == 0.0


@pytest.mark.unit
class TestPerformance:
    """Test latency and request-rate figures."""

    def test_average_latency(self, engine):
        engine.record(CacheOutcome.HIT, latency_ms=2)
        engine.record(CacheOutcome.MISS, latency_ms=10)

        assert engine.avg_response_time == 6

    def test_latency_window_is_bounded(self, fake_clock):
        engine = InstrumentationEngine(
            CacheTestFactory.monitoring_settings(LATENCY_WINDOW_SIZE=2), clock=fake_clock
        )
        engine.record(CacheOutcome.MISS, latency_ms=100)
        engine.record(CacheOutcome.HIT, latency_ms=2)
        engine.record(CacheOutcome.HIT, latency_ms=4)

        assert engine.avg_response_time == 3

    def test_requests_per_minute_slides(self, engine, fake_clock):
        engine.record(CacheOutcome.HIT)
        fake_clock.advance(30)
        engine.record(CacheOutcome.MISS)

        assert engine.requests_per_minute == 2

        fake_clock.advance(31)
        assert engine.requests_per_minute == 1

    def test_performance_snapshot(self, engine):
        engine.record(CacheOutcome.MISS, latency_ms=4)
        engine.record(CacheOutcome.ERROR)

        perf = engine.performance()
        assert perf.avg_response_time == 4
        assert perf.requests_per_minute == 1
        assert perf.error_rate == 1.0


@pytest.mark.unit
class TestRecommendations:
    """Test threshold-based advice."""

    def test_nothing_actionable(self, engine):
        assert engine.recommendations(make_stats(total_requests=100, hits=90, hit_ratio=0.9)) == []

    def test_memory_pressure(self, engine):
        advice = engine.recommendations(make_stats(memory_usage_bytes=900))

        assert len(advice) == 1
        assert "reduce TTL or max entries" in advice[0]

    def test_entry_pressure(self, engine):
        advice = engine.recommendations(make_stats(size=95))

        assert len(advice) == 1
        assert "increase max entries" in advice[0]

    def test_low_hit_ratio(self, engine):
        advice = engine.recommendations(make_stats(total_requests=10, hits=1, hit_ratio=0.1))

        assert any("consider cache warmup or broader keys" in line for line in advice)

    def test_high_error_rate(self, engine):
        advice = engine.recommendations(
            make_stats(total_requests=10, hits=9, hit_ratio=0.9, errors=5)
        )

        assert advice == [advice[0]]
        assert "check upstream connectivity" in advice[0]

    def test_ratio_advice_waits_for_sample(self, engine):
        advice = engine.recommendations(make_stats(total_requests=2, hit_ratio=0.0, errors=2))
        assert advice == []
