"""
Cache Data Models

CacheEntry and FetchOutcome are internal records (dataclasses); CacheStatistics
is the derived, externally visible snapshot (pydantic, serializable).
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from adaptive_cache.core.config.constants import FetchSource


@dataclass
class CacheEntry:
    """
    A stored value plus the metadata that drives expiry and LRU ranking.

    Attributes:
        key: Caller-constructed key (typically "operation:params-hash")
        value: Opaque payload, never mutated once stored
        size_bytes: Estimated serialized size (key included)
        created_at: Clock reading at write time
        expires_at: created_at + ttl
        last_accessed_at: Clock reading of the last read (or the write)
        access_count: Number of reads served from this entry
        write_seq: Monotonic sequence of the write that produced the entry
    """

    key: str
    value: Any
    size_bytes: int
    created_at: float
    expires_at: float
    last_accessed_at: float
    access_count: int = 0
    write_seq: int = 0

    def is_expired(self, now: float) -> bool:
        """An entry is logically absent once the clock passes expires_at."""
        return now > self.expires_at

    def touch(self, now: float) -> None:
        self.last_accessed_at = now
        self.access_count += 1


@dataclass
class FetchOutcome:
    """
    Result of one pass through the fallback fetch pipeline.

    Attributes:
        value: The upstream value or the substitute
        source: FetchSource.UPSTREAM or FetchSource.FALLBACK
        attempts: Number of upstream attempts made
        latency_ms: Wall time of the whole fetch
        cache_ttl: TTL override for the write-back. None keeps the caller's
            TTL, 0 means the value must not be stored.
    """

    value: Any
    source: FetchSource = FetchSource.UPSTREAM
    attempts: int = 1
    latency_ms: float = 0.0
    cache_ttl: float | None = None

    @property
    def is_substitute(self) -> bool:
        return self.source == FetchSource.FALLBACK


class CacheStatistics(BaseModel):
    """Point-in-time cache statistics (derived, never stored)."""

    enabled: bool = Field(default=True, description="Whether resolved values are stored")
    size: int = Field(ge=0, description="Entry count")
    max_entries: int = Field(ge=1, description="Configured entry limit")
    memory_usage_bytes: int = Field(ge=0, description="Estimated memory of stored entries")
    max_memory_bytes: int = Field(ge=1, description="Configured memory limit")
    total_requests: int = Field(default=0, ge=0)
    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    hit_ratio: float = Field(default=0.0, ge=0, le=1, description="hits / total_requests")
    evictions: dict[str, int] = Field(default_factory=dict, description="Removals by reason")
    in_flight: int = Field(default=0, ge=0, description="Pending single-flight fetches")

    @property
    def memory_utilization(self) -> float:
        return self.memory_usage_bytes / self.max_memory_bytes

    @property
    def entries_utilization(self) -> float:
        return self.size / self.max_entries
