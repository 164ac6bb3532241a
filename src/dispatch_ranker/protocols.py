"""Protocol definitions for dependency injection.

These protocols define the abstract interfaces the ranking engine depends on, so the
geometry, statistics and constraint logic can be tested with in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .types import (
    Coordinate,
    ExistingJob,
    ReasoningOutcome,
    Ring,
    RoutedDistance,
    ServiceZone,
    SkillRecord,
    Technician,
)

if TYPE_CHECKING:
    from .application.context import SchedulingContext


@runtime_checkable
class HttpClient(Protocol):
    """Abstract HTTP client for JSON APIs."""

    def get_json(
        self, url: str, *, params: Mapping[str, str] | None = None
    ) -> dict[str, object]:
        """Fetch a JSON object from URL.

        Raises:
            AuthenticationError: On 401/403.
            RateLimitError: On 429 after retries are exhausted.
            QuotaExhaustedError: On 402.
            UpstreamServiceError: On network errors and other failures.
        """
        ...

    def post_json(self, url: str, payload: Mapping[str, object]) -> dict[str, object]:
        """POST a JSON body and return the decoded JSON object response."""
        ...


@runtime_checkable
class DrivingDistanceProvider(Protocol):
    """Routed distance between two coordinates."""

    def driving_distance(
        self, origin: Coordinate, destination: Coordinate
    ) -> RoutedDistance | None:
        """Return the routed distance, or None when no route is available.

        Implementations may raise on network failure; callers treat any failure as
        "no routed distance" for that pair.
        """
        ...


@runtime_checkable
class Geocoder(Protocol):
    """Free-text address to coordinate (ingestion only)."""

    def geocode(self, address: str) -> Coordinate | None:
        ...


@runtime_checkable
class BoundaryProvider(Protocol):
    """Postal code to boundary rings (ingestion only)."""

    def boundary_for_postal_code(self, postal_code: str) -> tuple[Ring, ...] | None:
        ...


@runtime_checkable
class ReasoningService(Protocol):
    """Generative service that turns a scheduling context into ranked suggestions."""

    def rank(self, context: SchedulingContext) -> ReasoningOutcome:
        """Return `Parsed` suggestions or `Unparseable` raw text.

        Raises:
            RateLimitError: The service is throttling us.
            QuotaExhaustedError: Credits or quota are used up.
            UpstreamServiceError: The service is unreachable or failed.
        """
        ...


@runtime_checkable
class ScheduleStore(Protocol):
    """Read-only view of jobs, technicians, zones and skills for one organisation."""

    def existing_jobs(self, start: date, end: date) -> Sequence[ExistingJob]:
        """Bookings scheduled between start and end (inclusive)."""
        ...

    def completed_jobs(self) -> Sequence[ExistingJob]:
        """Historical completed jobs used for duration estimation."""
        ...

    def technicians(self) -> Sequence[Technician]:
        ...

    def service_zones(self) -> Sequence[ServiceZone]:
        ...

    def skill_records(self) -> Sequence[SkillRecord]:
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Abstract filesystem for reading snapshots and config files."""

    def read_text(self, path: Path) -> str:
        """Read text file."""
        ...

    def write_text(self, content: str, path: Path) -> None:
        """Write text file."""
        ...

    def read_json(self, path: Path) -> object:
        """Read and decode a JSON file."""
        ...

    def exists(self, path: Path) -> bool:
        """Check if path exists."""
        ...


@runtime_checkable
class RateLimiter(Protocol):
    """Abstract rate limiter for outbound requests."""

    def wait_if_needed(self) -> None:
        """Block until a request is allowed."""
        ...


@runtime_checkable
class CircuitBreaker(Protocol):
    """Abstract circuit breaker for outbound requests."""

    def check(self) -> None:
        """Raise if the circuit is open."""
        ...

    def record_success(self) -> None:
        """Record a successful request."""
        ...

    def record_failure(self) -> None:
        """Record a failed request."""
        ...


@runtime_checkable
class RetryPolicy(Protocol):
    """Abstract retry policy for transient failures."""

    max_retries: int
    retry_statuses: tuple[int, ...]
    retry_exceptions: tuple[type[Exception], ...]

    def compute_backoff(self, attempt: int, retry_after: int | None = None) -> float:
        """Return a delay for the next retry attempt."""
        ...
