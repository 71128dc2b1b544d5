"""
Capability Sets

Maps every operational mode to the fixed set of operation names that are
legal in it.

    docs_only       documentation operations
    live_only       documentation + live reads + live mutations
    hybrid          documentation + live reads + live mutations
    smart_fallback  documentation + live reads

Live operations additionally need the live source to be reachable; that
part of the check is dynamic and lives in the mode controller.
"""

from collections.abc import Callable

from adaptive_cache.core.config.constants import (
    DOCS_CAPABILITIES,
    LIVE_CAPABILITIES,
    LIVE_MUTATION_CAPABILITIES,
    LIVE_READ_CAPABILITIES,
    ServerMode,
)

MODE_CAPABILITIES: dict[ServerMode, frozenset[str]] = {
    ServerMode.DOCS_ONLY: DOCS_CAPABILITIES,
    ServerMode.LIVE_ONLY: DOCS_CAPABILITIES | LIVE_READ_CAPABILITIES | LIVE_MUTATION_CAPABILITIES,
    ServerMode.HYBRID: DOCS_CAPABILITIES | LIVE_READ_CAPABILITIES | LIVE_MUTATION_CAPABILITIES,
    ServerMode.SMART_FALLBACK: DOCS_CAPABILITIES | LIVE_READ_CAPABILITIES,
}

# Order in which a denied caller is pointed at another mode
SUGGESTION_ORDER = (
    ServerMode.HYBRID,
    ServerMode.LIVE_ONLY,
    ServerMode.SMART_FALLBACK,
    ServerMode.DOCS_ONLY,
)

# Coarse feature groups reported in mode stats, keyed by a representative operation
CAPABILITY_GROUPS: dict[str, tuple[str, ...]] = {
    "search_drupal_all": ("documentation", "code_examples", "module_generation"),
    "get_node": ("content_management", "user_management", "system_admin"),
}


def capabilities_for(mode: ServerMode) -> frozenset[str]:
    return MODE_CAPABILITIES[ServerMode(mode)]


def needs_live_connection(operation: str) -> bool:
    return operation in LIVE_CAPABILITIES


def is_allowed(mode: ServerMode, operation: str, connected: bool) -> bool:
    """
    Pure capability check.

    Args:
        mode: Mode to check against
        operation: Operation name
        connected: Whether the live source is currently reachable
    """
    if operation not in capabilities_for(mode):
        return False
    return connected or not needs_live_connection(operation)


def suggest_mode(operation: str) -> ServerMode | None:
    """Return the first mode whose capability set contains operation."""
    for mode in SUGGESTION_ORDER:
        if operation in MODE_CAPABILITIES[mode]:
            return mode
    return None


def optimal_mode_for_tool(operation: str, connected: bool) -> str | None:
    """
    Route an operation to a source.

    Returns:
        "live" for live operations while connected, None while disconnected;
        "docs" for documentation operations; for anything else "hybrid" when
        connected and "docs" otherwise.
    """
    if operation in LIVE_CAPABILITIES:
        return "live" if connected else None
    if operation in DOCS_CAPABILITIES:
        return "docs"
    return "hybrid" if connected else "docs"


def capability_summary(is_available: Callable[[str], bool]) -> list[str]:
    summary: list[str] = []
    for probe_operation, groups in CAPABILITY_GROUPS.items():
        if is_available(probe_operation):
            summary.extend(groups)
    return summary
