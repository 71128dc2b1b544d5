"""
adaptive_cache - adaptive caching and operational-mode control for slow upstream sources.

The public entry point is UpstreamGateway (see adaptive_cache.application.gateway).
"""

__version__ = "1.0.0"
