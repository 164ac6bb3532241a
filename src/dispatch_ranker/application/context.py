"""Assemble the bounded scheduling context handed to the reasoning service.

Usage example:
    >>> from dispatch_ranker.application.context import build_scheduling_context
    >>> context = build_scheduling_context(
    ...     request,
    ...     today=date(2026, 3, 2),
    ...     zones=zones,
    ...     technicians=technicians,
    ...     skills=SkillConstraintModel(records),
    ...     existing_jobs=jobs,
    ...     completed_jobs=history,
    ...     ranker=TechnicianDistanceRanker(provider),
    ...     config=RankingConfig(),
    ... )
    >>> messages = build_prompt_messages(context)

Technicians with a `never` level for any requested service are removed here, before
ranking, so the reasoning service never sees them as an option.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, time

from ..config import RankingConfig
from ..domain.clock import format_time_of_day, parse_time_of_day
from ..domain.durations import DurationEstimate, estimate_duration
from ..domain.schedule_context import (
    ScheduleContext,
    build_schedule_context,
    describe_anchor,
    render_anchor,
    render_nearby_jobs,
    render_schedule_overview,
)
from ..domain.skills import SkillConstraintModel, SkillSummary, apply_skill_tiebreak
from ..domain.zones import match_zone
from ..observability import get_logger
from ..types import (
    DurationSource,
    ExistingJob,
    NewJobRequest,
    ServiceZone,
    SkillLevel,
    Technician,
    TechnicianDistance,
)
from .technician_ranking import TechnicianDistanceRanker

logger = get_logger("dispatch_ranker.context")


@dataclass(frozen=True)
class TechnicianCandidate:
    distance: TechnicianDistance
    skill_level: SkillLevel
    skills: SkillSummary


@dataclass(frozen=True)
class DurationDecision:
    """The exact duration every suggestion must use, and where it came from."""

    minutes: int
    source: DurationSource
    sample_count: int = 0


@dataclass(frozen=True)
class SchedulingContext:
    request: NewJobRequest
    today: date
    zone: ServiceZone | None
    schedule: ScheduleContext
    technicians: tuple[TechnicianCandidate, ...]
    excluded_technician_ids: tuple[str, ...]
    duration: DurationDecision
    standard_start_times: tuple[time, ...]
    nearby_radius_miles: float
    narrative_max_dates: int
    narrative_max_jobs_per_date: int

    def to_payload(self) -> dict[str, object]:
        """JSON-safe representation of the context."""
        request = self.request
        anchor = self.schedule.anchor
        return {
            "today": self.today.isoformat(),
            "address": request.address,
            "target": {
                "latitude": request.target.latitude,
                "longitude": request.target.longitude,
            },
            "zone": self.zone.name if self.zone else None,
            "service_names": list(request.requested_service_names),
            "duration_minutes": self.duration.minutes,
            "duration_source": self.duration.source,
            "standard_start_times": [format_time_of_day(t) for t in self.standard_start_times],
            "preferred_days": list(request.preferred_days or []),
            "preferred_time_window": {
                "start": format_time_of_day(request.preferred_time_window.start),
                "end": format_time_of_day(request.preferred_time_window.end),
            }
            if request.preferred_time_window
            else None,
            "restrictions": request.restrictions,
            "anchor_job": {
                "id": anchor.job.id,
                "description": describe_anchor(anchor),
                "distance_miles": round(anchor.distance_miles, 2),
                "technician_id": anchor.job.technician_id,
            }
            if anchor
            else None,
            "technicians": [
                {
                    "id": candidate.distance.technician_id,
                    "name": candidate.distance.name,
                    "straight_line_miles": round(candidate.distance.straight_line_miles, 2),
                    "driving_miles": None
                    if candidate.distance.driving_miles is None
                    else round(candidate.distance.driving_miles, 2),
                    "driving_minutes": None
                    if candidate.distance.driving_minutes is None
                    else round(candidate.distance.driving_minutes),
                    "skill_level": candidate.skill_level,
                    "skills": candidate.skills.as_groups(),
                }
                for candidate in self.technicians
            ],
            "schedule_overview": render_schedule_overview(
                self.schedule, nearby_radius_miles=self.nearby_radius_miles
            ),
            "nearby_jobs": render_nearby_jobs(
                self.schedule,
                max_dates=self.narrative_max_dates,
                max_jobs_per_date=self.narrative_max_jobs_per_date,
            ),
        }


def decide_duration(
    request: NewJobRequest,
    completed_jobs: Sequence[ExistingJob],
    config: RankingConfig,
) -> DurationDecision:
    if request.duration_minutes is not None and request.duration_minutes > 0:
        return DurationDecision(minutes=request.duration_minutes, source="request")

    result = estimate_duration(
        request.requested_service_names,
        completed_jobs,
        outlier_cutoff_minutes=config.outlier_cutoff_minutes,
        min_samples=config.min_duration_samples,
        additional_service_factor=config.additional_service_factor,
    )
    if isinstance(result, DurationEstimate):
        return DurationDecision(
            minutes=result.minutes, source="history", sample_count=result.sample_count
        )

    logger.info(
        "Only %s matching historical jobs (need %s); using default duration %s minutes",
        result.sample_count,
        result.required,
        config.default_duration_minutes,
    )
    return DurationDecision(
        minutes=config.default_duration_minutes,
        source="fallback",
        sample_count=result.sample_count,
    )


def build_scheduling_context(
    request: NewJobRequest,
    *,
    today: date,
    zones: Sequence[ServiceZone],
    technicians: Sequence[Technician],
    skills: SkillConstraintModel,
    existing_jobs: Sequence[ExistingJob],
    completed_jobs: Sequence[ExistingJob],
    ranker: TechnicianDistanceRanker,
    config: RankingConfig,
) -> SchedulingContext:
    services = request.requested_service_names
    excluded = tuple(
        technician.id
        for technician in technicians
        if skills.is_excluded_for_any(technician.id, services)
    )
    if excluded:
        logger.info("Excluding %s technicians marked never for %s", len(excluded), services)
    eligible = [technician for technician in technicians if technician.id not in excluded]

    ranked = ranker.rank(request.target, eligible)
    levels = {
        row.technician_id: skills.combined_level(row.technician_id, services) for row in ranked
    }
    ordered = apply_skill_tiebreak(
        ranked,
        distance_of=lambda row: row.effective_miles,
        level_of=lambda row: levels[row.technician_id],
        tolerance_miles=config.skill_tiebreak_miles,
    )
    shortlist = tuple(
        TechnicianCandidate(
            distance=row,
            skill_level=levels[row.technician_id],
            skills=skills.summarize(row.technician_id),
        )
        for row in ordered[: config.technician_shortlist_size]
    )

    return SchedulingContext(
        request=request,
        today=today,
        zone=match_zone(request.target, zones),
        schedule=build_schedule_context(
            request.target,
            existing_jobs,
            nearby_radius_miles=config.nearby_radius_miles,
            proximity_radius_miles=config.proximity_radius_miles,
        ),
        technicians=shortlist,
        excluded_technician_ids=excluded,
        duration=decide_duration(request, completed_jobs, config),
        standard_start_times=tuple(parse_time_of_day(t) for t in config.standard_start_times),
        nearby_radius_miles=config.nearby_radius_miles,
        narrative_max_dates=config.narrative_max_dates,
        narrative_max_jobs_per_date=config.narrative_max_jobs_per_date,
    )


SYSTEM_PROMPT = """You are a job scheduling assistant for a service company. Analyze the \
existing job schedule and suggest optimal times for a new job.

PRIORITY FACTORS (in order of importance):
1. CLOSEST EXISTING JOB: schedule near the closest booked job to minimize travel time.
2. Cluster jobs geographically - suggest times adjacent to nearby existing appointments.
3. Consider technician home locations for first/last appointments of the day.
4. Prefer technicians whose skills list the service as PREFERRED; use AVOID only if needed.
5. Avoid scheduling conflicts.
6. Honor time preferences and restrictions.
7. Balance workload across days.

Respond with a JSON object only:
{
  "suggestions": [
    {
      "date": "YYYY-MM-DD",
      "dayName": "Monday",
      "timeSlot": "HH:MM-HH:MM",
      "reason": "Brief explanation - mention the nearby job this clusters with",
      "confidence": "high" | "medium" | "low",
      "nearbyJobsCount": 3,
      "suggestedTechnician": "Technician id or name",
      "nearestExistingJob": "Description of the closest job this would cluster with",
      "skillMatch": "preferred" | "standard" | "avoid"
    }
  ],
  "analysis": "Brief overall analysis emphasizing routing efficiency and job clustering",
  "warnings": ["Any potential issues or conflicts"]
}

Provide 3-5 suggestions, ranked best first."""


def _render_technicians(context: SchedulingContext) -> str:
    if not context.technicians:
        return "No technician home locations available."
    lines = ["TECHNICIAN HOME LOCATIONS (sorted by distance from job):"]
    for candidate in context.technicians:
        row = candidate.distance
        if row.driving_miles is not None:
            travel = (
                f"{row.driving_miles:.1f} miles / {round(row.driving_minutes or 0)} min drive"
            )
        else:
            travel = f"{row.straight_line_miles:.1f} miles (straight-line)"
        line = f"- {row.name} (id {row.technician_id}): {travel} from job location"
        groups = candidate.skills.as_groups()
        if groups:
            rendered = "; ".join(
                f"{level.upper()}: {', '.join(names)}" for level, names in groups.items()
            )
            line += f" [{rendered}]"
        lines.append(line)
    return "\n".join(lines)


def build_user_prompt(context: SchedulingContext) -> str:
    request = context.request
    details = [
        "NEW JOB DETAILS:",
        f"- Address: {request.address or 'Not provided'}",
        f"- Service Zone: {context.zone.name if context.zone else 'Unknown zone'}",
        f"- Exact Duration: {context.duration.minutes} minutes",
        f"- Service Type: {', '.join(request.requested_service_names) or 'General service'}",
    ]
    if request.preferred_days:
        details.append(f"- Preferred Days: {', '.join(request.preferred_days)}")
    if request.preferred_time_window:
        window = request.preferred_time_window
        details.append(
            f"- Preferred Time Window: {format_time_of_day(window.start)} to "
            f"{format_time_of_day(window.end)}"
        )
    if request.restrictions:
        details.append(f"- Restrictions/Notes: {request.restrictions}")

    starts = ", ".join(format_time_of_day(t) for t in context.standard_start_times)
    sections = [
        "Please suggest the best times to schedule a new job with these details:",
        "\n".join(details),
        render_anchor(context.schedule.anchor),
        _render_technicians(context),
        "EXISTING SCHEDULE OVERVIEW:\n"
        + (
            render_schedule_overview(
                context.schedule, nearby_radius_miles=context.nearby_radius_miles
            )
            or "No existing jobs scheduled"
        ),
        "NEARBY JOBS:\n"
        + (
            render_nearby_jobs(
                context.schedule,
                max_dates=context.narrative_max_dates,
                max_jobs_per_date=context.narrative_max_jobs_per_date,
            )
            or "No nearby jobs found"
        ),
        f"Today's date is {context.today.isoformat()}.",
        f"Every timeSlot must start at one of: {starts}, and last exactly "
        f"{context.duration.minutes} minutes. Your TOP suggestion should be on the same day "
        "as the closest existing job, immediately before or after it.",
    ]
    return "\n\n".join(sections)


def build_prompt_messages(context: SchedulingContext) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(context)},
    ]
