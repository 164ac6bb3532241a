"""Custom exceptions for the dispatch ranker.

Only conditions the caller must act on are exceptions. Degraded routing, insufficient
duration history and suggestions dropped by validation are ordinary return values.
"""

from __future__ import annotations


class DispatchRankerError(Exception):
    """Base exception for all dispatch ranker errors."""

    pass


class AuthenticationError(DispatchRankerError):
    """Raised when a provider rejects our credentials (401/403).

    This is fatal for the current request; retrying will not help.
    """

    def __init__(self, message: str = "Provider authentication failed") -> None:
        super().__init__(f"{message}\nCheck the API key or token configured in .env.")

    @classmethod
    def for_status(cls, provider: str, status_code: int, details: str) -> AuthenticationError:
        return cls(f"{provider} rejected credentials (HTTP {status_code}): {details}")


class RateLimitError(DispatchRankerError):
    """Raised when a provider answers 429 Too Many Requests."""

    def __init__(self, retry_after: int = 60) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after {retry_after} seconds.")


class QuotaExhaustedError(DispatchRankerError):
    """Raised when a provider reports that paid credits or quota are used up (402)."""

    def __init__(self, provider: str = "reasoning service") -> None:
        self.provider = provider
        super().__init__(f"Quota exhausted for {provider}. Add credits to continue.")


class UpstreamServiceError(DispatchRankerError):
    """Raised when a provider is unreachable or answers with an unexpected failure."""

    def __init__(self, provider: str, details: str) -> None:
        self.provider = provider
        self.details = details
        super().__init__(f"{provider} request failed: {details}")


class CircuitBreakerOpen(DispatchRankerError):
    """Raised when the circuit breaker trips due to repeated failures."""

    def __init__(self, failure_count: int, threshold: int) -> None:
        self.failure_count = failure_count
        self.threshold = threshold
        super().__init__(
            f"Circuit breaker tripped: {failure_count} consecutive failures "
            f"(threshold: {threshold}). Skipping provider until it recovers."
        )


class RankingFailedError(DispatchRankerError):
    """Raised by `RankingResult.raise_for_failure()` for failed ranking operations.

    `reason` is one of the typed failure reasons; `retryable` tells the caller whether
    trying again later can succeed.
    """

    _MESSAGES = {
        "rate_limited": "Scheduling assistant is busy. Please try again in a moment.",
        "quota_exhausted": "Scheduling assistant credits are exhausted. Add funds to continue.",
        "unparseable_response": "Scheduling assistant returned an unreadable answer.",
        "upstream_error": "Scheduling assistant is temporarily unavailable.",
    }

    def __init__(self, reason: str, *, retryable: bool) -> None:
        self.reason = reason
        self.retryable = retryable
        super().__init__(self._MESSAGES.get(reason, f"Ranking failed: {reason}"))


class EmptyRingError(ValueError):
    """Raised when a polygon ring has no vertices."""

    def __init__(self) -> None:
        super().__init__("Polygon ring must contain at least one coordinate.")


class InvalidTimeError(ValueError):
    """Raised when a time-of-day string is not HH:MM."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Invalid time of day: {value!r} (expected HH:MM).")


class SnapshotNotFoundError(DispatchRankerError):
    """Raised when a schedule snapshot file is missing."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Schedule snapshot not found: {path}")


class RequestFileNotFoundError(DispatchRankerError):
    """Raised when a job request file is missing."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Job request file not found: {path}")


class ZoneDefinitionsNotFoundError(DispatchRankerError):
    """Raised when a zone definitions file is missing."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Zone definitions file not found: {path}")


class DependencyMissingError(DispatchRankerError):
    """Raised when a required collaborator was not injected."""

    def __init__(self, dependency: str, *, reason: str = "") -> None:
        suffix = f" {reason}" if reason else ""
        super().__init__(f"{dependency} is required.{suffix}")


class ConfigFileNotFoundError(DispatchRankerError):
    """Raised when a config file path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(DispatchRankerError):
    """Raised when a config file is not valid TOML."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(f"Config file {path} is not valid TOML: {details}")


class ConfigFileValidationError(DispatchRankerError):
    """Raised when a config file has invalid keys or values."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(f"Config file {path} is invalid: {details}")
