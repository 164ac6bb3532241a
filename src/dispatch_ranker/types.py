"""Domain value types used throughout the ranking engine.

Every record here is immutable. Entities are read fresh for each ranking request and
never mutated in place; derived views are new objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from typing import Literal

SkillLevel = Literal["preferred", "standard", "avoid", "never"]
SkillMatch = Literal["preferred", "standard", "avoid"]
Confidence = Literal["high", "medium", "low"]
Weekday = Literal[
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]
RankingState = Literal["building", "awaiting_external_ranking", "validated", "failed"]
FailureReason = Literal[
    "rate_limited",
    "quota_exhausted",
    "unparseable_response",
    "upstream_error",
]
DurationSource = Literal["request", "history", "fallback"]

SKILL_LEVELS: tuple[SkillLevel, ...] = ("preferred", "standard", "avoid", "never")
CONFIDENCE_LEVELS: tuple[Confidence, ...] = ("high", "medium", "low")
WEEKDAYS: tuple[Weekday, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point."""

    latitude: float
    longitude: float


Ring = tuple[Coordinate, ...]


@dataclass(frozen=True)
class ServiceZone:
    """Named service area.

    `boundary` holds the outer rings of the zone: one ring for a polygon, several for a
    multipolygon, none when the zone has no geometry.
    """

    id: str
    name: str
    color: str | None = None
    boundary: tuple[Ring, ...] = ()


@dataclass(frozen=True)
class ExistingJob:
    """A booking already on the calendar, or a completed historical job."""

    id: str
    coordinate: Coordinate | None = None
    scheduled_date: date | None = None
    scheduled_start: time | None = None
    scheduled_end: time | None = None
    technician_id: str | None = None
    technician_name: str | None = None
    city: str | None = None
    service_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class Technician:
    id: str
    name: str
    home_coordinate: Coordinate | None = None


@dataclass(frozen=True)
class SkillRecord:
    technician_id: str
    service_type: str
    level: SkillLevel
    note: str | None = None


@dataclass(frozen=True)
class TimeWindow:
    start: time
    end: time


@dataclass(frozen=True)
class NewJobRequest:
    """Input to one ranking operation."""

    target: Coordinate
    requested_service_names: tuple[str, ...]
    duration_minutes: int | None = None
    preferred_days: tuple[Weekday, ...] | None = None
    preferred_time_window: TimeWindow | None = None
    restrictions: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class CandidateSuggestion:
    """One validated (date, time slot, technician) proposal."""

    date: date
    day_name: str
    time_slot: TimeWindow
    confidence: Confidence
    suggested_technician_id: str | None
    nearby_job_count: int
    skill_match: SkillMatch
    justification: str
    nearest_existing_job: str | None = None


@dataclass(frozen=True)
class TechnicianDistance:
    technician_id: str
    name: str
    straight_line_miles: float
    driving_miles: float | None = None
    driving_minutes: float | None = None

    @property
    def effective_miles(self) -> float:
        return self.driving_miles if self.driving_miles is not None else self.straight_line_miles


@dataclass(frozen=True)
class RoutedDistance:
    distance_miles: float
    duration_minutes: float


@dataclass(frozen=True)
class RawSuggestion:
    """A suggestion as returned by the reasoning service, before validation.

    Every field is optional: missing upstream fields stay `None`.
    """

    date: str | None = None
    day_name: str | None = None
    time_slot: str | None = None
    reason: str | None = None
    confidence: str | None = None
    nearby_jobs_count: int | None = None
    suggested_technician: str | None = None
    nearest_existing_job: str | None = None
    skill_match: str | None = None


@dataclass(frozen=True)
class Parsed:
    """Structured reasoning response."""

    suggestions: tuple[RawSuggestion, ...]
    analysis: str = ""
    warnings: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Unparseable:
    """Reasoning response that could not be read as the expected shape."""

    raw_text: str


ReasoningOutcome = Parsed | Unparseable
