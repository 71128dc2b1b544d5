"""
Exception Module

Structured exception hierarchy for the adaptive caching layer.

Module Structure:
-----------------
- **base.py**: GatewayBaseError base class + ConfigurationError
- **cache.py**: Bounded cache store exceptions
- **upstream.py**: Upstream fetch exceptions (retried / absorbed internally)
- **mode.py**: Mode controller exceptions (the only ones callers see)

Usage:
------
```python
from adaptive_cache.core.exceptions import CapabilityDeniedError

try:
    await gateway.resolve(key, ttl, producer, operation="create_node")
except CapabilityDeniedError as e:
    print(e.suggested_mode)
```
"""

from adaptive_cache.core.exceptions.base import ConfigurationError, GatewayBaseError
from adaptive_cache.core.exceptions.cache import CacheError, CacheKeyError, CacheRejectedError
from adaptive_cache.core.exceptions.mode import CapabilityDeniedError, ModeError
from adaptive_cache.core.exceptions.upstream import (
    UpstreamError,
    UpstreamExhaustedError,
    UpstreamTimeoutError,
    UpstreamTransientError,
)

__all__ = [
    # Base
    "GatewayBaseError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheKeyError",
    "CacheRejectedError",
    # Upstream
    "UpstreamError",
    "UpstreamTransientError",
    "UpstreamTimeoutError",
    "UpstreamExhaustedError",
    # Mode
    "ModeError",
    "CapabilityDeniedError",
]
