"""
Configuration Module

Centralized, type-safe configuration for the adaptive caching layer.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, defaults and capability names

Usage:
------
```python
from adaptive_cache.core.config import get_settings
from adaptive_cache.core.config.constants import ServerMode, Stage

settings = get_settings()
max_entries = settings.cache.CACHE_MAX_ENTRIES
initial_mode = settings.mode.MODE_INITIAL  # ServerMode.SMART_FALLBACK
```
"""

from adaptive_cache.core.config.settings import (
    CacheSettings,
    LoggingSettings,
    ModeSettings,
    MonitoringSettings,
    ResilienceSettings,
    Settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "CacheSettings",
    "LoggingSettings",
    "ModeSettings",
    "MonitoringSettings",
    "ResilienceSettings",
    "Settings",
    "get_settings",
    "reload_settings",
]
