#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
adaptive caching and mode-control layer. Every component receives its
settings group through its constructor and falls back to ``get_settings()``.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Grouped views so each component only sees what it needs
- Easy testing: build a group object directly with keyword arguments
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from adaptive_cache.core.config.constants import (
    CONNECTION_TIMEOUT_SECONDS,
    DEFAULT_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_FALLBACK_TTL_SECONDS,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_MAX_MEMORY_BYTES,
    DEFAULT_TTL_SECONDS,
    ENTRIES_HIGH_WATER,
    ERROR_RATE_THRESHOLD,
    FETCH_TIMEOUT_SECONDS,
    HEALTH_CHECK_INTERVAL_SECONDS,
    HIT_RATIO_LOW_WATER,
    LATENCY_WINDOW_SIZE,
    MAX_RECOVERY_ATTEMPTS,
    MAX_RETRIES,
    MEMORY_HIGH_WATER,
    RECOMMEND_MIN_SAMPLE,
    RETRY_BASE_DELAY_MS,
    RETRY_MAX_DELAY_MS,
    ServerMode,
)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class CacheSettings(BaseSettings):
    """
    Bounded cache store configuration.

    STAGE-2: Cache sizing and TTLs

    The fallback TTL is deliberately separate from the default TTL:
    substitute values must expire quickly so the real upstream is retried.
    """

    ENABLE_CACHING: bool = Field(default=True, description="Store resolved values")
    CACHE_TTL_SECONDS: float = Field(
        default=DEFAULT_TTL_SECONDS, gt=0, description="Default per-operation TTL"
    )
    CACHE_MAX_ENTRIES: int = Field(default=DEFAULT_MAX_ENTRIES, ge=1, description="Max entry count")
    CACHE_MAX_MEMORY_BYTES: int = Field(
        default=DEFAULT_MAX_MEMORY_BYTES, ge=1, description="Max estimated memory in bytes"
    )
    CACHE_CLEANUP_INTERVAL_SECONDS: float = Field(
        default=DEFAULT_CLEANUP_INTERVAL_SECONDS, gt=0, description="TTL sweep interval"
    )
    CACHE_FALLBACK_TTL_SECONDS: float = Field(
        default=DEFAULT_FALLBACK_TTL_SECONDS,
        ge=0,
        description="TTL for substitute values (0 = never cache substitutes)",
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ResilienceSettings(BaseSettings):
    """
    Fallback fetch pipeline configuration.

    STAGE-3: Upstream retries

    Architectural Decision: tenacity with exponential backoff
    - FETCH_MAX_RETRIES counts total attempts (first call included)
    - Delay doubles from FETCH_RETRY_BASE_DELAY_MS up to FETCH_RETRY_MAX_DELAY_MS
    """

    FETCH_MAX_RETRIES: int = Field(default=MAX_RETRIES, ge=1, description="Total upstream attempts")
    FETCH_RETRY_BASE_DELAY_MS: float = Field(
        default=RETRY_BASE_DELAY_MS, ge=0, description="First backoff delay (ms)"
    )
    FETCH_RETRY_MAX_DELAY_MS: float = Field(
        default=RETRY_MAX_DELAY_MS, ge=0, description="Backoff cap (ms)"
    )
    FETCH_TIMEOUT_SECONDS: float = Field(
        default=FETCH_TIMEOUT_SECONDS, gt=0, description="Per-attempt timeout"
    )

    @model_validator(mode="after")
    def validate_delay_bounds(self):
        """The cap can never be lower than the first delay."""
        if self.FETCH_RETRY_MAX_DELAY_MS < self.FETCH_RETRY_BASE_DELAY_MS:
            raise ValueError("FETCH_RETRY_MAX_DELAY_MS must be >= FETCH_RETRY_BASE_DELAY_MS")
        return self

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ModeSettings(BaseSettings):
    """
    Mode controller configuration.

    STAGE-M: Operational mode selection

    The three force flags mirror the deployment switches of the surrounding
    application and are checked in order DOCS_ONLY, LIVE, HYBRID.
    """

    MODE_INITIAL: ServerMode = Field(default=ServerMode.SMART_FALLBACK, description="Preferred mode")
    MODE_FALLBACK: ServerMode = Field(
        default=ServerMode.DOCS_ONLY, description="Mode adopted when live connectivity is lost"
    )
    MODE_CONNECTION_TIMEOUT_SECONDS: float = Field(
        default=CONNECTION_TIMEOUT_SECONDS, gt=0, description="Probe timeout"
    )
    MODE_HEALTH_CHECK_INTERVAL_SECONDS: float = Field(
        default=HEALTH_CHECK_INTERVAL_SECONDS, gt=0, description="Background probe interval"
    )
    MODE_AUTO_RECOVERY: bool = Field(default=True, description="Upgrade back to preferred mode")
    MODE_MAX_RECOVERY_ATTEMPTS: int = Field(
        default=MAX_RECOVERY_ATTEMPTS, ge=1, description="Failed recoveries before giving up"
    )

    DOCS_ONLY_MODE: bool = Field(default=False, description="Force docs_only mode")
    FORCE_LIVE_MODE: bool = Field(default=False, description="Force live_only mode")
    FORCE_HYBRID_MODE: bool = Field(default=False, description="Force hybrid mode")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class MonitoringSettings(BaseSettings):
    """
    Instrumentation and recommendation thresholds.

    STAGE-I: Operational advice
    """

    RECOMMEND_MEMORY_HIGH_WATER: float = Field(default=MEMORY_HIGH_WATER, gt=0, le=1)
    RECOMMEND_ENTRIES_HIGH_WATER: float = Field(default=ENTRIES_HIGH_WATER, gt=0, le=1)
    RECOMMEND_HIT_RATIO_LOW_WATER: float = Field(default=HIT_RATIO_LOW_WATER, ge=0, le=1)
    RECOMMEND_ERROR_RATE_THRESHOLD: float = Field(default=ERROR_RATE_THRESHOLD, ge=0, le=1)
    RECOMMEND_MIN_SAMPLE: int = Field(default=RECOMMEND_MIN_SAMPLE, ge=0)
    LATENCY_WINDOW_SIZE: int = Field(default=LATENCY_WINDOW_SIZE, ge=1)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from adaptive_cache.core.config import get_settings

        settings = get_settings()
        ttl = settings.cache.CACHE_TTL_SECONDS
        initial = settings.mode.MODE_INITIAL
    """

    # Cache settings
    ENABLE_CACHING: bool = Field(default=True)
    CACHE_TTL_SECONDS: float = Field(default=DEFAULT_TTL_SECONDS, gt=0)
    CACHE_MAX_ENTRIES: int = Field(default=DEFAULT_MAX_ENTRIES, ge=1)
    CACHE_MAX_MEMORY_BYTES: int = Field(default=DEFAULT_MAX_MEMORY_BYTES, ge=1)
    CACHE_CLEANUP_INTERVAL_SECONDS: float = Field(default=DEFAULT_CLEANUP_INTERVAL_SECONDS, gt=0)
    CACHE_FALLBACK_TTL_SECONDS: float = Field(default=DEFAULT_FALLBACK_TTL_SECONDS, ge=0)

    # Resilience settings
    FETCH_MAX_RETRIES: int = Field(default=MAX_RETRIES, ge=1)
    FETCH_RETRY_BASE_DELAY_MS: float = Field(default=RETRY_BASE_DELAY_MS, ge=0)
    FETCH_RETRY_MAX_DELAY_MS: float = Field(default=RETRY_MAX_DELAY_MS, ge=0)
    FETCH_TIMEOUT_SECONDS: float = Field(default=FETCH_TIMEOUT_SECONDS, gt=0)

    # Mode settings
    MODE_INITIAL: ServerMode = Field(default=ServerMode.SMART_FALLBACK)
    MODE_FALLBACK: ServerMode = Field(default=ServerMode.DOCS_ONLY)
    MODE_CONNECTION_TIMEOUT_SECONDS: float = Field(default=CONNECTION_TIMEOUT_SECONDS, gt=0)
    MODE_HEALTH_CHECK_INTERVAL_SECONDS: float = Field(default=HEALTH_CHECK_INTERVAL_SECONDS, gt=0)
    MODE_AUTO_RECOVERY: bool = Field(default=True)
    MODE_MAX_RECOVERY_ATTEMPTS: int = Field(default=MAX_RECOVERY_ATTEMPTS, ge=1)
    DOCS_ONLY_MODE: bool = Field(default=False)
    FORCE_LIVE_MODE: bool = Field(default=False)
    FORCE_HYBRID_MODE: bool = Field(default=False)

    # Monitoring settings
    RECOMMEND_MEMORY_HIGH_WATER: float = Field(default=MEMORY_HIGH_WATER, gt=0, le=1)
    RECOMMEND_ENTRIES_HIGH_WATER: float = Field(default=ENTRIES_HIGH_WATER, gt=0, le=1)
    RECOMMEND_HIT_RATIO_LOW_WATER: float = Field(default=HIT_RATIO_LOW_WATER, ge=0, le=1)
    RECOMMEND_ERROR_RATE_THRESHOLD: float = Field(default=ERROR_RATE_THRESHOLD, ge=0, le=1)
    RECOMMEND_MIN_SAMPLE: int = Field(default=RECOMMEND_MIN_SAMPLE, ge=0)
    LATENCY_WINDOW_SIZE: int = Field(default=LATENCY_WINDOW_SIZE, ge=1)

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}")
        return v.upper()

    # Nested configuration objects
    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            ENABLE_CACHING=self.ENABLE_CACHING,
            CACHE_TTL_SECONDS=self.CACHE_TTL_SECONDS,
            CACHE_MAX_ENTRIES=self.CACHE_MAX_ENTRIES,
            CACHE_MAX_MEMORY_BYTES=self.CACHE_MAX_MEMORY_BYTES,
            CACHE_CLEANUP_INTERVAL_SECONDS=self.CACHE_CLEANUP_INTERVAL_SECONDS,
            CACHE_FALLBACK_TTL_SECONDS=self.CACHE_FALLBACK_TTL_SECONDS,
        )

    @property
    def resilience(self) -> ResilienceSettings:
        """Get fallback pipeline settings."""
        return ResilienceSettings(
            FETCH_MAX_RETRIES=self.FETCH_MAX_RETRIES,
            FETCH_RETRY_BASE_DELAY_MS=self.FETCH_RETRY_BASE_DELAY_MS,
            FETCH_RETRY_MAX_DELAY_MS=self.FETCH_RETRY_MAX_DELAY_MS,
            FETCH_TIMEOUT_SECONDS=self.FETCH_TIMEOUT_SECONDS,
        )

    @property
    def mode(self) -> ModeSettings:
        """Get mode controller settings."""
        return ModeSettings(
            MODE_INITIAL=self.MODE_INITIAL,
            MODE_FALLBACK=self.MODE_FALLBACK,
            MODE_CONNECTION_TIMEOUT_SECONDS=self.MODE_CONNECTION_TIMEOUT_SECONDS,
            MODE_HEALTH_CHECK_INTERVAL_SECONDS=self.MODE_HEALTH_CHECK_INTERVAL_SECONDS,
            MODE_AUTO_RECOVERY=self.MODE_AUTO_RECOVERY,
            MODE_MAX_RECOVERY_ATTEMPTS=self.MODE_MAX_RECOVERY_ATTEMPTS,
            DOCS_ONLY_MODE=self.DOCS_ONLY_MODE,
            FORCE_LIVE_MODE=self.FORCE_LIVE_MODE,
            FORCE_HYBRID_MODE=self.FORCE_HYBRID_MODE,
        )

    @property
    def monitoring(self) -> MonitoringSettings:
        """Get instrumentation settings."""
        return MonitoringSettings(
            RECOMMEND_MEMORY_HIGH_WATER=self.RECOMMEND_MEMORY_HIGH_WATER,
            RECOMMEND_ENTRIES_HIGH_WATER=self.RECOMMEND_ENTRIES_HIGH_WATER,
            RECOMMEND_HIT_RATIO_LOW_WATER=self.RECOMMEND_HIT_RATIO_LOW_WATER,
            RECOMMEND_ERROR_RATE_THRESHOLD=self.RECOMMEND_ERROR_RATE_THRESHOLD,
            RECOMMEND_MIN_SAMPLE=self.RECOMMEND_MIN_SAMPLE,
            LATENCY_WINDOW_SIZE=self.LATENCY_WINDOW_SIZE,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
