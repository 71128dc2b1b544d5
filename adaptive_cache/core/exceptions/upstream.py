"""
Upstream Exceptions

Failures of producer calls against documentation indexes, the package
registry or the content API. None of these reach the tool layer: the
fallback pipeline retries transient errors and converts exhaustion into a
substitute value.
"""

from adaptive_cache.core.exceptions.base import GatewayBaseError


class UpstreamError(GatewayBaseError):
    """Base exception for upstream fetch errors."""
    pass


class UpstreamTransientError(UpstreamError):
    """
    A single upstream attempt failed and may be retried.

    Common causes:
    - Network errors
    - 5xx responses or rate limiting
    - Any exception raised by the producer
    """
    pass


class UpstreamTimeoutError(UpstreamTransientError):
    """A single upstream attempt exceeded its per-attempt timeout."""
    pass


class UpstreamExhaustedError(UpstreamError):
    """
    Every attempt failed.

    Absorbed by the fallback pipeline: logged, counted as an error and
    replaced by a substitute value.
    """

    def __init__(self, message: str, attempts: int, last_error: BaseException | None = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        details["attempts"] = attempts
        if last_error is not None:
            details["last_error"] = f"{last_error.__class__.__name__}: {last_error}"
        super().__init__(message, details=details, **kwargs)
        self.attempts = attempts
        self.last_error = last_error
