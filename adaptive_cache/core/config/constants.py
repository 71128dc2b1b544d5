"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the adaptive caching and mode-control layer.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
- Capability names live next to the modes that gate them
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage`` field of structured log lines.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    - SEQUENCE: Numeric order for the lookup path, alphabetic prefix for
      cross-cutting concerns
    - DESCRIPTIVE_NAME: Clear, uppercase description with underscores

    Examples:
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", cache_key="docs:...")
        log_stage(logger, Stage.MODE_TRANSITION, "Mode switched", new_mode="hybrid")
    """

    # Lookup path (sequential)
    INITIALIZATION = "0.0_INITIALIZATION"
    CAPABILITY_CHECK = "1.0_CAPABILITY_CHECK"
    CACHE_LOOKUP = "2.0_CACHE_LOOKUP"
    SINGLE_FLIGHT = "2.1_SINGLE_FLIGHT"
    UPSTREAM_FETCH = "3.0_UPSTREAM_FETCH"
    FALLBACK = "3.1_FALLBACK_SUBSTITUTE"
    CACHE_WRITE = "4.0_CACHE_WRITE"
    SHUTDOWN = "9.0_SHUTDOWN"

    # Cross-cutting concerns (alphabetic prefixes)
    CACHE_EVICTION = "C.1_CACHE_EVICTION"
    CACHE_SWEEP = "C.2_CACHE_SWEEP"
    CACHE_INVALIDATION = "C.3_CACHE_INVALIDATION"
    WARMUP = "C.4_CACHE_WARMUP"
    MODE_PROBE = "M.1_MODE_PROBE"
    MODE_TRANSITION = "M.2_MODE_TRANSITION"
    MODE_RECOVERY = "M.3_MODE_RECOVERY"
    RECOMMENDATIONS = "I.1_RECOMMENDATIONS"


# ============================================================================
# Operational Modes
# ============================================================================


class ServerMode(str, Enum):
    """
    Operational modes of the mode controller.

    DOCS_ONLY: Only documentation sources are trusted
    LIVE_ONLY: The live content system is required
    HYBRID: Documentation plus live content
    SMART_FALLBACK: Prefer live content for reads, degrade to docs when it is gone
    """

    DOCS_ONLY = "docs_only"
    LIVE_ONLY = "live_only"
    HYBRID = "hybrid"
    SMART_FALLBACK = "smart_fallback"

    @property
    def requires_live_connection(self) -> bool:
        return self is not ServerMode.DOCS_ONLY


class ConnectionState(str, Enum):
    """Reachability of the live source, as set by the last probe."""

    UNKNOWN = "unknown"
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


# ============================================================================
# Cache Outcomes
# ============================================================================


class CacheOutcome(str, Enum):
    """
    Per-request outcomes recorded by the instrumentation engine.

    HIT: Served without upstream work (stored entry or joined an in-flight fetch)
    MISS: Leader request that invoked the producer
    ERROR: Upstream retries exhausted, substitute served
    """

    HIT = "hit"
    MISS = "miss"
    ERROR = "error"


class EvictionReason(str, Enum):
    """Why an entry left the store."""

    LRU = "lru"
    EXPIRED = "expired"
    INVALIDATED = "invalidated"
    REJECTED = "rejected"


class FetchSource(str, Enum):
    """Where a fetched value came from."""

    UPSTREAM = "upstream"
    FALLBACK = "fallback"


# ============================================================================
# Defaults
# ============================================================================

# Cache
DEFAULT_TTL_SECONDS = 1800  # 30 minutes, matches the docs index refresh cadence
DEFAULT_MAX_ENTRIES = 1000
DEFAULT_MAX_MEMORY_BYTES = 50 * 1024 * 1024  # 50 MiB
DEFAULT_CLEANUP_INTERVAL_SECONDS = 300
DEFAULT_FALLBACK_TTL_SECONDS = 30

# Retry settings
MAX_RETRIES = 3
RETRY_BASE_DELAY_MS = 200
RETRY_MAX_DELAY_MS = 5000
FETCH_TIMEOUT_SECONDS = 10.0

# Mode controller
CONNECTION_TIMEOUT_SECONDS = 10.0
HEALTH_CHECK_INTERVAL_SECONDS = 60.0
MAX_RECOVERY_ATTEMPTS = 3

# Recommendation thresholds
MEMORY_HIGH_WATER = 0.8
ENTRIES_HIGH_WATER = 0.9
HIT_RATIO_LOW_WATER = 0.5
ERROR_RATE_THRESHOLD = 0.1
RECOMMEND_MIN_SAMPLE = 20
LATENCY_WINDOW_SIZE = 100
REQUESTS_PER_MINUTE_WINDOW_SECONDS = 60.0

# Logging
LOG_KEY_MAX_LENGTH = 40

# Glob metacharacters that turn an invalidation argument into a pattern
GLOB_METACHARACTERS = frozenset("*?[")

# ============================================================================
# Capabilities
# ============================================================================

DOCS_CAPABILITIES = frozenset(
    {
        "search_drupal_functions",
        "search_drupal_classes",
        "search_drupal_hooks",
        "search_drupal_topics",
        "search_drupal_services",
        "search_drupal_all",
        "get_function_details",
        "get_class_details",
        "search_contrib_modules",
        "search_contrib_themes",
        "get_module_details",
        "get_popular_modules",
        "search_code_examples",
        "get_example_by_title",
        "list_example_categories",
        "get_examples_by_category",
        "get_examples_by_tag",
        "analyze_drupal_file",
        "check_drupal_standards",
        "generate_module_skeleton",
        "get_module_template_info",
    }
)

LIVE_READ_CAPABILITIES = frozenset(
    {
        "get_node",
        "list_nodes",
        "get_user",
        "list_users",
        "get_taxonomy_term",
        "list_taxonomy_terms",
        "get_module_list",
        "get_configuration",
        "get_site_info",
    }
)

LIVE_MUTATION_CAPABILITIES = frozenset(
    {
        "create_node",
        "update_node",
        "delete_node",
        "create_user",
        "update_user",
        "delete_user",
        "create_taxonomy_term",
        "update_taxonomy_term",
        "delete_taxonomy_term",
        "execute_query",
        "enable_module",
        "disable_module",
        "set_configuration",
        "clear_cache",
    }
)

LIVE_CAPABILITIES = LIVE_READ_CAPABILITIES | LIVE_MUTATION_CAPABILITIES
