"""Error taxonomy for the dashboard orchestration core.

Adapters translate transport outcomes into these types; services decide
whether to recover locally (corruption, one rate-limit retry) or surface.
"""

from __future__ import annotations


class NexraError(Exception):
    """Base exception for orchestration failures."""

    kind = "Error"
    retryable = True

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(NexraError):
    """Handle does not resolve. Terminal, user-correctable."""

    kind = "NotFound"
    retryable = False


class InvalidHandleError(NotFoundError):
    """Handle is not in `GameName#Tag` form."""


class RateLimitedError(NexraError):
    kind = "RateLimited"

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class UnauthorizedError(NexraError):
    kind = "Unauthorized"
    retryable = False


class InsufficientCreditsError(NexraError):
    """Credit balance exhausted; the host view should offer a purchase flow."""

    kind = "InsufficientCredits"
    retryable = False

    def __init__(self, message: str = "No credits remaining", status_code: int | None = 402) -> None:
        super().__init__(message, status_code=status_code)


class UnavailableError(NexraError):
    """Transport or server failure."""

    kind = "Unavailable"


class CorruptEntryError(NexraError):
    """Cache entry failed to deserialize. Recovered inside the cache manager."""

    kind = "Corrupt"


class AnalysisStateError(NexraError):
    """Requested transition is not allowed from the job's current state."""

    kind = "AnalysisState"
    retryable = False


class AnalysisInProgressError(AnalysisStateError):
    """An analysis for this match is already in flight."""

    kind = "AnalysisInProgress"
