"""Pydantic-based validation helpers for inbound IO payloads."""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date, time
from typing import Required, TypedDict

from pydantic import TypeAdapter, ValidationError

from ...domain.clock import parse_time_of_day
from ...domain.zones import (
    is_valid_ring,
    rings_from_geojson,
    rings_to_geojson,
    zone_from_geojson,
)
from ...exceptions import InvalidTimeError
from ...io_contracts import (
    CoordinateIO,
    JobIO,
    JobRequestIO,
    ScheduleSnapshotIO,
    ServiceZoneIO,
    SkillRecordIO,
    TechnicianIO,
    ZoneDefinitionIO,
)
from ...types import (
    SKILL_LEVELS,
    WEEKDAYS,
    Coordinate,
    ExistingJob,
    NewJobRequest,
    Parsed,
    RawSuggestion,
    ReasoningOutcome,
    Ring,
    RoutedDistance,
    ServiceZone,
    SkillRecord,
    Technician,
    TimeWindow,
    Unparseable,
    Weekday,
)

METRES_PER_MILE = 1609.34

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


def validate_as[SchemaT](schema: type[SchemaT], payload: object) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as exc:
        message = f"Invalid payload for {schema}."
        raise IncomingDataError(message) from exc


def validate_json_as[SchemaT](schema: type[SchemaT], payload: str | bytes | bytearray) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_json(payload)
    except ValidationError as exc:
        message = f"Invalid JSON payload for {schema}."
        raise IncomingDataError(message) from exc


def _as_str(value: object) -> str:
    return value if isinstance(value, str) else ""


def _as_optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_str_list(value: object) -> list[str]:
    if value is None:
        return []
    try:
        items = validate_as(list[object], value)
    except IncomingDataError:
        return []
    cleaned: list[str] = []
    for item in items:
        text = str(item).strip()
        if text:
            cleaned.append(text)
    return cleaned


def _as_time(value: object) -> time | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return parse_time_of_day(value)
    except InvalidTimeError:
        return None


def _as_date(value: object) -> date | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _coordinate(latitude: object, longitude: object) -> Coordinate | None:
    lat = _as_float(latitude)
    lng = _as_float(longitude)
    if lat is None or lng is None:
        return None
    return Coordinate(latitude=lat, longitude=lng)


# --- Reasoning service ---------------------------------------------------------------


class ReasoningResponseInput(TypedDict, total=False):
    suggestions: list[object] | None
    analysis: object
    warnings: object


def _as_raw_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _as_count(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _raw_suggestion(item: object) -> RawSuggestion | None:
    """One suggestion with off-type fields read as absent; None if not an object."""
    try:
        fields = validate_as(dict[str, object], item)
    except IncomingDataError:
        return None
    return RawSuggestion(
        date=_as_raw_str(fields.get("date")),
        day_name=_as_raw_str(fields.get("dayName")),
        time_slot=_as_raw_str(fields.get("timeSlot")),
        reason=_as_raw_str(fields.get("reason")),
        confidence=_as_raw_str(fields.get("confidence")),
        nearby_jobs_count=_as_count(fields.get("nearbyJobsCount")),
        suggested_technician=_as_raw_str(fields.get("suggestedTechnician")),
        nearest_existing_job=_as_raw_str(fields.get("nearestExistingJob")),
        skill_match=_as_raw_str(fields.get("skillMatch")),
    )


class ChatMessageInput(TypedDict, total=False):
    content: str | None


class ChatChoiceInput(TypedDict, total=False):
    message: ChatMessageInput


class ChatCompletionInput(TypedDict, total=False):
    choices: list[ChatChoiceInput]


def parse_chat_completion_content(payload: object) -> str:
    """Message text of the first choice, or an empty string."""
    completion = validate_as(ChatCompletionInput, payload)
    choices = completion.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    return _as_str(message.get("content"))


def parse_reasoning_content(text: str) -> ReasoningOutcome:
    """Read the JSON object embedded in a model answer.

    The answer may wrap the object in prose or code fences; the outermost braces are
    taken as the object. Only broken JSON or a `suggestions` value that is not a list
    makes the answer `Unparseable`; items that are not objects are skipped and off-type
    fields inside an item count as missing.
    """
    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        return Unparseable(raw_text=text)
    try:
        response = validate_json_as(ReasoningResponseInput, match.group(0))
    except IncomingDataError:
        return Unparseable(raw_text=text)

    suggestions = tuple(
        suggestion
        for suggestion in map(_raw_suggestion, response.get("suggestions") or [])
        if suggestion is not None
    )
    return Parsed(
        suggestions=suggestions,
        analysis=_as_str(response.get("analysis")),
        warnings=tuple(_as_str_list(response.get("warnings"))),
    )


# --- Mapbox ----------------------------------------------------------------------------


class DirectionsRouteInput(TypedDict, total=False):
    distance: float | None
    duration: float | None


class DirectionsResponseInput(TypedDict, total=False):
    routes: list[DirectionsRouteInput]


def parse_directions_response(payload: object) -> RoutedDistance | None:
    """First route in miles and minutes, or None when no route was found."""
    response = validate_as(DirectionsResponseInput, payload)
    routes = response.get("routes") or []
    if not routes:
        return None
    distance = routes[0].get("distance")
    duration = routes[0].get("duration")
    if distance is None or duration is None:
        return None
    return RoutedDistance(
        distance_miles=distance / METRES_PER_MILE,
        duration_minutes=duration / 60,
    )


class GeocodeFeatureInput(TypedDict, total=False):
    center: list[float] | None


class GeocodeResponseInput(TypedDict, total=False):
    features: list[GeocodeFeatureInput]


def parse_geocode_response(payload: object) -> Coordinate | None:
    response = validate_as(GeocodeResponseInput, payload)
    features = response.get("features") or []
    if not features:
        return None
    center = features[0].get("center") or []
    if len(center) < 2:
        return None
    return Coordinate(latitude=center[1], longitude=center[0])


# --- Census Reporter ---------------------------------------------------------------------


class CensusGeoInput(TypedDict, total=False):
    geometry: dict[str, object] | None


def parse_census_geometry(payload: object) -> tuple[Ring, ...] | None:
    response = validate_as(CensusGeoInput, payload)
    geometry = response.get("geometry")
    if not geometry or "coordinates" not in geometry:
        return None
    rings = tuple(ring for ring in rings_from_geojson(geometry) if is_valid_ring(ring))
    return rings or None


# --- Snapshot and request files -----------------------------------------------------


class TimeWindowInput(TypedDict, total=False):
    start: str | None
    end: str | None


class JobRequestInput(TypedDict, total=False):
    latitude: float | None
    longitude: float | None
    service_names: list[str] | None
    duration_minutes: int | None
    preferred_days: list[str] | None
    preferred_time_window: TimeWindowInput | None
    restrictions: str | None
    address: str | None


class TechnicianInput(TypedDict, total=False):
    id: Required[str]
    name: str | None
    home_latitude: float | None
    home_longitude: float | None


class SkillRecordInput(TypedDict, total=False):
    technician_id: Required[str]
    service_type: Required[str]
    level: Required[str]
    note: str | None


class ServiceZoneInput(TypedDict, total=False):
    id: Required[str]
    name: str | None
    color: str | None
    geometry: dict[str, object] | None


class JobInput(TypedDict, total=False):
    id: Required[str]
    status: str | None
    latitude: float | None
    longitude: float | None
    scheduled_date: str | None
    scheduled_start: str | None
    scheduled_end: str | None
    technician_id: str | None
    technician_name: str | None
    city: str | None
    service_names: list[str] | None
    address: str | None


class ScheduleSnapshotInput(TypedDict, total=False):
    technicians: list[TechnicianInput]
    service_zones: list[ServiceZoneInput]
    skills: list[SkillRecordInput]
    jobs: list[JobInput]


def parse_schedule_snapshot(payload: object) -> ScheduleSnapshotIO:
    snapshot = validate_as(ScheduleSnapshotInput, payload)
    return {
        "technicians": [
            {
                "id": item["id"],
                "name": _as_str(item.get("name")) or item["id"],
                "home_latitude": _as_float(item.get("home_latitude")),
                "home_longitude": _as_float(item.get("home_longitude")),
            }
            for item in snapshot.get("technicians", [])
        ],
        "service_zones": [
            {
                "id": item["id"],
                "name": _as_str(item.get("name")) or item["id"],
                "color": _as_optional_str(item.get("color")),
                "geometry": item.get("geometry"),
            }
            for item in snapshot.get("service_zones", [])
        ],
        "skills": [
            {
                "technician_id": item["technician_id"],
                "service_type": item["service_type"],
                "level": item["level"].strip().lower(),
                "note": _as_optional_str(item.get("note")),
            }
            for item in snapshot.get("skills", [])
        ],
        "jobs": [
            {
                "id": item["id"],
                "status": (_as_str(item.get("status")) or "scheduled").strip().lower(),
                "latitude": _as_float(item.get("latitude")),
                "longitude": _as_float(item.get("longitude")),
                "scheduled_date": _as_optional_str(item.get("scheduled_date")),
                "scheduled_start": _as_optional_str(item.get("scheduled_start")),
                "scheduled_end": _as_optional_str(item.get("scheduled_end")),
                "technician_id": _as_optional_str(item.get("technician_id")),
                "technician_name": _as_optional_str(item.get("technician_name")),
                "city": _as_optional_str(item.get("city")),
                "service_names": _as_str_list(item.get("service_names")),
                "address": _as_optional_str(item.get("address")),
            }
            for item in snapshot.get("jobs", [])
        ],
    }


def technician_from_io(item: TechnicianIO) -> Technician:
    return Technician(
        id=item["id"],
        name=item["name"],
        home_coordinate=_coordinate(item["home_latitude"], item["home_longitude"]),
    )


def skill_record_from_io(item: SkillRecordIO) -> SkillRecord | None:
    """Domain skill record, or None for an unknown level."""
    for known in SKILL_LEVELS:
        if item["level"] == known:
            return SkillRecord(
                technician_id=item["technician_id"],
                service_type=item["service_type"],
                level=known,
                note=item["note"],
            )
    return None


def zone_from_io(item: ServiceZoneIO) -> ServiceZone:
    zone = zone_from_geojson(
        zone_id=item["id"],
        name=item["name"],
        color=item["color"],
        geometry=item["geometry"],
    )
    valid = tuple(ring for ring in zone.boundary if is_valid_ring(ring))
    return replace(zone, boundary=valid)


def zone_to_io(zone: ServiceZone) -> ServiceZoneIO:
    """Snapshot entry for a zone; the boundary is written as GeoJSON."""
    return {
        "id": zone.id,
        "name": zone.name,
        "color": zone.color,
        "geometry": rings_to_geojson(zone.boundary),
    }


class ZonePointInput(TypedDict, total=False):
    latitude: object
    longitude: object


class ZoneDefinitionInput(TypedDict, total=False):
    id: Required[str]
    name: str | None
    color: str | None
    geometry: dict[str, object] | None
    points: list[ZonePointInput] | None
    postal_codes: object


def _points(items: list[ZonePointInput] | None) -> list[CoordinateIO]:
    points: list[CoordinateIO] = []
    for item in items or []:
        coordinate = _coordinate(item.get("latitude"), item.get("longitude"))
        if coordinate is not None:
            points.append({"latitude": coordinate.latitude, "longitude": coordinate.longitude})
    return points


def parse_zone_definitions(payload: object) -> list[ZoneDefinitionIO]:
    """Operator zone definitions; postal codes may be given as numbers or strings."""
    definitions = validate_as(list[ZoneDefinitionInput], payload)
    return [
        {
            "id": item["id"],
            "name": _as_str(item.get("name")) or item["id"],
            "color": _as_optional_str(item.get("color")),
            "geometry": item.get("geometry"),
            "points": _points(item.get("points")),
            "postal_codes": _as_str_list(item.get("postal_codes")),
        }
        for item in definitions
    ]


def job_from_io(item: JobIO) -> ExistingJob:
    return ExistingJob(
        id=item["id"],
        coordinate=_coordinate(item["latitude"], item["longitude"]),
        scheduled_date=_as_date(item["scheduled_date"]),
        scheduled_start=_as_time(item["scheduled_start"]),
        scheduled_end=_as_time(item["scheduled_end"]),
        technician_id=item["technician_id"],
        technician_name=item["technician_name"],
        city=item["city"],
        service_names=tuple(item["service_names"]),
    )


def parse_job_request(payload: object) -> JobRequestIO:
    request = validate_as(JobRequestInput, payload)
    latitude = request.get("latitude")
    longitude = request.get("longitude")
    if latitude is None or longitude is None:
        raise IncomingDataError("Job request must include latitude and longitude.")
    window = request.get("preferred_time_window")
    days = request.get("preferred_days")
    return {
        "latitude": latitude,
        "longitude": longitude,
        "service_names": _as_str_list(request.get("service_names")),
        "duration_minutes": request.get("duration_minutes"),
        "preferred_days": None if days is None else _as_str_list(days),
        "preferred_time_window": {
            "start": _as_str(window.get("start")),
            "end": _as_str(window.get("end")),
        }
        if window
        else None,
        "restrictions": _as_optional_str(request.get("restrictions")),
        "address": _as_optional_str(request.get("address")),
    }


def _weekday(value: str) -> Weekday | None:
    text = value.strip().lower()
    for day in WEEKDAYS:
        if text == day:
            return day
    return None


def request_from_io(request: JobRequestIO) -> NewJobRequest:
    """Domain request from a validated request payload.

    Unknown weekday names and unparseable windows are dropped rather than rejected.
    """
    days: tuple[Weekday, ...] | None = None
    if request["preferred_days"] is not None:
        days = tuple(
            day for day in (_weekday(name) for name in request["preferred_days"]) if day
        )
    window: TimeWindow | None = None
    raw_window = request["preferred_time_window"]
    if raw_window is not None:
        start = _as_time(raw_window["start"])
        end = _as_time(raw_window["end"])
        if start is not None and end is not None and start < end:
            window = TimeWindow(start=start, end=end)
    duration = request["duration_minutes"]
    return NewJobRequest(
        target=Coordinate(latitude=request["latitude"], longitude=request["longitude"]),
        requested_service_names=tuple(request["service_names"]),
        duration_minutes=duration if duration is not None and duration > 0 else None,
        preferred_days=days,
        preferred_time_window=window,
        restrictions=request["restrictions"],
        address=request["address"],
    )
