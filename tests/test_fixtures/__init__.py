"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .cache_factory import CacheTestFactory, FakeClock
from .upstream_factory import (
    CountingProducer,
    GatedProducer,
    ScriptedProbe,
    UpstreamTestFactory,
)

__all__ = [
    "CacheTestFactory",
    "CountingProducer",
    "FakeClock",
    "GatedProducer",
    "ScriptedProbe",
    "UpstreamTestFactory",
]
