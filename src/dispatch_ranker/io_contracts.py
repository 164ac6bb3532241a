"""Boundary-neutral IO contracts for snapshot, request and result payloads.

Usage example:
    from dispatch_ranker.io_contracts import JobRequestIO

    request: JobRequestIO = {
        "latitude": 39.77,
        "longitude": -86.16,
        "service_names": ["Carpet Cleaning"],
        "duration_minutes": None,
        "preferred_days": ["monday", "wednesday"],
        "preferred_time_window": {"start": "08:00", "end": "12:00"},
        "restrictions": "Dog in the yard",
        "address": "123 Main St, Indianapolis, IN",
    }
"""

from __future__ import annotations

from typing import TypedDict


class TimeWindowIO(TypedDict):
    start: str
    end: str


class JobRequestIO(TypedDict):
    """New-job request file shape."""

    latitude: float
    longitude: float
    service_names: list[str]
    duration_minutes: int | None
    preferred_days: list[str] | None
    preferred_time_window: TimeWindowIO | None
    restrictions: str | None
    address: str | None


class TechnicianIO(TypedDict):
    id: str
    name: str
    home_latitude: float | None
    home_longitude: float | None


class SkillRecordIO(TypedDict):
    technician_id: str
    service_type: str
    level: str
    note: str | None


class ServiceZoneIO(TypedDict):
    """Service zone with a GeoJSON Polygon or MultiPolygon geometry."""

    id: str
    name: str
    color: str | None
    geometry: dict[str, object] | None


class JobIO(TypedDict):
    """Scheduled or completed job. Dates are ISO, times are HH:MM."""

    id: str
    status: str
    latitude: float | None
    longitude: float | None
    scheduled_date: str | None
    scheduled_start: str | None
    scheduled_end: str | None
    technician_id: str | None
    technician_name: str | None
    city: str | None
    service_names: list[str]
    address: str | None


class CoordinateIO(TypedDict):
    latitude: float
    longitude: float


class ZoneDefinitionIO(TypedDict):
    """Zone as entered by an operator, before its boundary is resolved.

    The boundary comes from `geometry` if usable, else `points`, else `postal_codes`.
    """

    id: str
    name: str
    color: str | None
    geometry: dict[str, object] | None
    points: list[CoordinateIO]
    postal_codes: list[str]


class ScheduleSnapshotIO(TypedDict):
    """Point-in-time export of one organisation's schedule data."""

    technicians: list[TechnicianIO]
    service_zones: list[ServiceZoneIO]
    skills: list[SkillRecordIO]
    jobs: list[JobIO]


class SuggestionIO(TypedDict):
    """Validated suggestion as written by the CLI `--json` output."""

    date: str
    day_name: str
    start: str
    end: str
    confidence: str
    technician_id: str | None
    nearby_job_count: int
    skill_match: str
    justification: str
    nearest_existing_job: str | None


class RankingResultIO(TypedDict):
    state: str
    failure_reason: str | None
    estimated_duration_minutes: int | None
    duration_source: str | None
    analysis: str
    warnings: list[str]
    suggestions: list[SuggestionIO]
    context: dict[str, object] | None
