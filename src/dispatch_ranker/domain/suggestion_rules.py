"""Hard scheduling rules applied to suggestions returned by the reasoning service.

Rules, in order, for each suggestion:

- the date must be an ISO date;
- the slot start must be one of the standard start times (never snapped);
- the slot end is rewritten to start + the exact requested duration;
- a technician with a `never` level for any requested service is dropped;
- a slot that overlaps the same technician's existing booking, or an earlier kept
  suggestion for the same technician and date, is dropped.

Kept suggestions stay in upstream order and are truncated to the maximum count.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, time
from typing import Literal

from ..exceptions import InvalidTimeError
from ..types import (
    CONFIDENCE_LEVELS,
    CandidateSuggestion,
    Confidence,
    ExistingJob,
    RawSuggestion,
    SkillMatch,
    Technician,
    TimeWindow,
)
from .clock import day_name, minutes_of_day, parse_time_of_day, time_from_minutes
from .skills import SkillConstraintModel

RejectionReason = Literal[
    "invalid_date",
    "invalid_time_slot",
    "non_canonical_start",
    "slot_past_midnight",
    "hard_excluded",
    "overlaps_existing_booking",
    "overlaps_other_suggestion",
]

_SLOT_SPLIT_RE = re.compile(r"\s*(?:-|–|to)\s*")
_LAST_MINUTE_OF_DAY = 23 * 60 + 59


@dataclass(frozen=True)
class RejectedSuggestion:
    raw: RawSuggestion
    reason: RejectionReason


@dataclass(frozen=True)
class ValidationReport:
    accepted: tuple[CandidateSuggestion, ...]
    rejected: tuple[RejectedSuggestion, ...]
    corrected_durations: int = 0


def parse_slot_start(text: str | None) -> time | None:
    """Start time of an upstream slot such as `09:00-11:00` or `09:00`."""
    if not text:
        return None
    first = _SLOT_SPLIT_RE.split(text.strip(), maxsplit=1)[0]
    try:
        return parse_time_of_day(first)
    except InvalidTimeError:
        return None


def _parse_date(text: str | None) -> date | None:
    if not text:
        return None
    try:
        return date.fromisoformat(text.strip()[:10])
    except ValueError:
        return None


def _normalise_confidence(value: str | None) -> Confidence:
    text = (value or "").strip().lower()
    for level in CONFIDENCE_LEVELS:
        if text == level:
            return level
    return "low"


def _overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and b_start < a_end


class TechnicianResolver:
    """Resolve an upstream technician reference by id or case-insensitive name."""

    def __init__(self, technicians: Iterable[Technician]) -> None:
        self._by_id: dict[str, Technician] = {}
        self._by_name: dict[str, Technician] = {}
        for technician in technicians:
            self._by_id[technician.id] = technician
            self._by_name.setdefault(technician.name.strip().lower(), technician)

    def resolve(self, reference: str | None) -> Technician | None:
        if not reference:
            return None
        text = reference.strip()
        return self._by_id.get(text) or self._by_name.get(text.lower())


def validate_suggestions(
    raw_suggestions: Sequence[RawSuggestion],
    *,
    standard_start_times: Iterable[time],
    exact_duration_minutes: int,
    max_suggestions: int,
    requested_service_types: Sequence[str],
    skills: SkillConstraintModel,
    resolver: TechnicianResolver,
    existing_jobs: Sequence[ExistingJob] = (),
    nearby_count_on: Callable[[date], int] | None = None,
) -> ValidationReport:
    canonical = {minutes_of_day(start) for start in standard_start_times}
    accepted: list[CandidateSuggestion] = []
    rejected: list[RejectedSuggestion] = []
    booked: dict[tuple[str, date], list[tuple[int, int]]] = {}
    for job in existing_jobs:
        if (
            job.technician_id is None
            or job.scheduled_date is None
            or job.scheduled_start is None
            or job.scheduled_end is None
        ):
            continue
        booked.setdefault((job.technician_id, job.scheduled_date), []).append(
            (minutes_of_day(job.scheduled_start), minutes_of_day(job.scheduled_end))
        )
    proposed: dict[tuple[str, date], list[tuple[int, int]]] = {}
    corrected = 0

    for raw in raw_suggestions:
        if len(accepted) >= max_suggestions:
            break

        day = _parse_date(raw.date)
        if day is None:
            rejected.append(RejectedSuggestion(raw=raw, reason="invalid_date"))
            continue

        start = parse_slot_start(raw.time_slot)
        if start is None:
            rejected.append(RejectedSuggestion(raw=raw, reason="invalid_time_slot"))
            continue
        start_minutes = minutes_of_day(start)
        if start_minutes not in canonical:
            rejected.append(RejectedSuggestion(raw=raw, reason="non_canonical_start"))
            continue

        end_minutes = start_minutes + exact_duration_minutes
        if end_minutes > _LAST_MINUTE_OF_DAY:
            rejected.append(RejectedSuggestion(raw=raw, reason="slot_past_midnight"))
            continue
        if _upstream_end_minutes(raw.time_slot) != end_minutes:
            corrected += 1

        technician = resolver.resolve(raw.suggested_technician)
        skill_match: SkillMatch = "standard"
        if technician is not None:
            if skills.is_excluded_for_any(technician.id, requested_service_types):
                rejected.append(RejectedSuggestion(raw=raw, reason="hard_excluded"))
                continue
            key = (technician.id, day)
            if any(
                _overlaps(start_minutes, end_minutes, s, e) for s, e in booked.get(key, [])
            ):
                rejected.append(RejectedSuggestion(raw=raw, reason="overlaps_existing_booking"))
                continue
            if any(
                _overlaps(start_minutes, end_minutes, s, e) for s, e in proposed.get(key, [])
            ):
                rejected.append(RejectedSuggestion(raw=raw, reason="overlaps_other_suggestion"))
                continue
            proposed.setdefault(key, []).append((start_minutes, end_minutes))
            skill_match = skills.skill_match(technician.id, requested_service_types)
        elif raw.skill_match in ("preferred", "standard", "avoid"):
            skill_match = raw.skill_match

        if nearby_count_on is not None:
            nearby = nearby_count_on(day)
        else:
            nearby = max(raw.nearby_jobs_count or 0, 0)

        accepted.append(
            CandidateSuggestion(
                date=day,
                day_name=day_name(day),
                time_slot=TimeWindow(start=start, end=time_from_minutes(end_minutes)),
                confidence=_normalise_confidence(raw.confidence),
                suggested_technician_id=technician.id if technician else None,
                nearby_job_count=nearby,
                skill_match=skill_match,
                justification=(raw.reason or "").strip(),
                nearest_existing_job=raw.nearest_existing_job,
            )
        )

    return ValidationReport(
        accepted=tuple(accepted),
        rejected=tuple(rejected),
        corrected_durations=corrected,
    )


def _upstream_end_minutes(slot: str | None) -> int | None:
    if not slot:
        return None
    parts = _SLOT_SPLIT_RE.split(slot.strip(), maxsplit=1)
    if len(parts) < 2:
        return None
    try:
        return minutes_of_day(parse_time_of_day(parts[1]))
    except InvalidTimeError:
        return None
