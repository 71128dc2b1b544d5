"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.
"""

from typing import Any


class GatewayBaseError(Exception):
    """
    Base exception for all adaptive cache errors.

    All custom exceptions inherit from this class to enable:
    - Consistent error handling
    - Correlation ID propagation
    - Structured error logging

    Attributes:
        message: Error message
        correlation_id: Correlation ID (if available)
        details: Additional error details (dict)

    Example:
        raise CapabilityDeniedError(
            "create_node is not available in docs_only mode",
            details={"operation": "create_node", "current_mode": "docs_only"},
        )
    """

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.correlation_id = correlation_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/tool responses.

        Returns:
            Dict with error_type, message, correlation_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "GatewayBaseError":
        """Add a suggestion to help callers recover. Returns self for chaining."""
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "GatewayBaseError":
        """Add additional context to the error details. Returns self for chaining."""
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        correlation_str = f", correlation_id='{self.correlation_id}'" if self.correlation_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{correlation_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: str | None = None,
        correlation_id: str | None = None,
        **details,
    ) -> "GatewayBaseError":
        """
        Create an error from another exception.

        Useful for wrapping producer or probe exceptions with additional context.

        Example:
            >>> try:
            ...     await producer()
            ... except OSError as e:
            ...     raise UpstreamTransientError.from_exception(e, key="docs:abc")
        """
        error_message = message or str(exc) or exc.__class__.__name__
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details,
        }
        return cls(error_message, correlation_id=correlation_id, details=error_details)


class ConfigurationError(GatewayBaseError):
    """Raised when configuration is invalid or inconsistent."""
    pass
