"""
Mode Controller Exceptions

Only CapabilityDeniedError is ever surfaced to the calling tool layer.
"""

from adaptive_cache.core.exceptions.base import GatewayBaseError


class ModeError(GatewayBaseError):
    """Base exception for mode controller errors."""
    pass


class CapabilityDeniedError(ModeError):
    """
    Raised when an operation is not permitted in the current mode.

    Raised before any cache or network interaction so doomed calls fail
    fast. Carries the current mode and, when one exists, a mode that would
    permit the operation.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        current_mode: str,
        suggested_mode: str | None = None,
        **kwargs,
    ):
        details = kwargs.pop("details", None) or {}
        details.update(operation=operation, current_mode=current_mode)
        super().__init__(message, details=details, **kwargs)
        self.operation = operation
        self.current_mode = current_mode
        self.suggested_mode = suggested_mode
        if suggested_mode:
            self.with_suggestion(f"Switch to '{suggested_mode}' mode to use '{operation}'")
