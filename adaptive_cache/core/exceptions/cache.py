"""
Cache-Related Exceptions

All exceptions raised by the bounded cache store.
"""

from adaptive_cache.core.exceptions.base import GatewayBaseError


class CacheError(GatewayBaseError):
    """Base exception for cache-related errors."""
    pass


class CacheKeyError(CacheError):
    """Raised when a cache key is empty or not a string."""
    pass


class CacheRejectedError(CacheError):
    """
    Raised when a value is too large to ever fit in the store.

    Non-fatal: the coordinator logs it and still hands the value to its
    callers, the value is simply not cached.
    """

    def __init__(self, message: str, key: str, size_bytes: int, max_memory_bytes: int, **kwargs):
        details = kwargs.pop("details", None) or {}
        details.update(key=key, size_bytes=size_bytes, max_memory_bytes=max_memory_bytes)
        super().__init__(message, details=details, **kwargs)
        self.key = key
        self.size_bytes = size_bytes
        self.max_memory_bytes = max_memory_bytes
