"""
Cache Module

- **models.py**: CacheEntry, FetchOutcome, CacheStatistics
- **store.py**: BoundedCacheStore (TTL / LRU / memory accounting)
- **cache_manager.py**: CacheManager, the resolve/invalidate/stats/warmup facade

Import from the submodules directly; this package does not re-export them
because the monitoring package depends on the models.
"""
