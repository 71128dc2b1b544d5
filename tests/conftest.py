"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures import CacheTestFactory, FakeClock, UpstreamTestFactory  # noqa: E402

# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode via pyproject.toml configuration


# ============================================================================
# Clock and Settings Fixtures
# ============================================================================


@pytest.fixture
def fake_clock():
    """Clock injected into the store and instrumentation; advance() instead of sleeping."""
    return FakeClock()


@pytest.fixture
def cache_settings():
    return CacheTestFactory.cache_settings()


@pytest.fixture
def resilience_settings():
    """Three attempts, zero backoff, one second per-attempt timeout."""
    return CacheTestFactory.resilience_settings()


@pytest.fixture
def monitoring_settings():
    return CacheTestFactory.monitoring_settings()


@pytest.fixture
def mode_settings():
    return CacheTestFactory.mode_settings()


@pytest.fixture
def fallback_dataset():
    return CacheTestFactory.fallback_dataset()


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def store(fake_clock):
    return CacheTestFactory.store(clock=fake_clock)


@pytest.fixture
def cache_manager(fake_clock, fallback_dataset):
    """CacheManager on a fake clock. The sweep task is not started."""
    return CacheTestFactory.cache_manager(clock=fake_clock, fallback_dataset=fallback_dataset)


@pytest.fixture
def probe():
    """Probe that reports the live source reachable."""
    return UpstreamTestFactory.probe(True)


@pytest.fixture
def failing_probe():
    return UpstreamTestFactory.probe(False)
