"""
Resilience Module - Core Resilience Components

Two layers sit between a caller and a slow, unreliable upstream:

ARCHITECTURE:
=============
Layer 1: Single-Flight Coordinator
    - Concurrent lookups for one key share a single producer call
    - Waiters observe exactly the leader's settled value

Layer 2: Fallback Fetch Pipeline
    - Per-attempt timeout, exponential backoff retries (tenacity)
    - Static substitute once retries are exhausted; callers always get an answer

COMPONENTS:
===========
- SingleFlightCoordinator
- FallbackFetchPipeline, create_retrying
"""

from .fallback import FallbackFetchPipeline, create_retrying
from .single_flight import SingleFlightCoordinator

__all__ = [
    "FallbackFetchPipeline",
    "SingleFlightCoordinator",
    "create_retrying",
]
