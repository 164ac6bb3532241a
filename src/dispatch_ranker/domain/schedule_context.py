"""Partition the look-ahead schedule by date and by proximity to a new job.

Usage example:
    from dispatch_ranker.domain.schedule_context import build_schedule_context

    context = build_schedule_context(target, jobs)
    if context.anchor is not None:
        print(context.anchor.job.scheduled_date, context.anchor.distance_miles)

The caller restricts `jobs` to the look-ahead window before calling. The anchor (closest
job) drives the main heuristic: new jobs should sit immediately before or after it on
the same day.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from types import MappingProxyType

from ..types import Coordinate, ExistingJob
from .clock import day_name, format_time_of_day
from .geo import distance_miles


@dataclass(frozen=True)
class DateTotals:
    total_job_count: int
    nearby_job_count: int


@dataclass(frozen=True)
class NearbyJob:
    job: ExistingJob
    distance_miles: float


@dataclass(frozen=True)
class ScheduleContext:
    """Derived views over the look-ahead window. Date keys are in ascending order."""

    totals_by_date: Mapping[date, DateTotals]
    nearby_by_date: Mapping[date, tuple[NearbyJob, ...]]
    anchor: NearbyJob | None

    @property
    def has_located_jobs(self) -> bool:
        return self.anchor is not None

    def nearby_count_on(self, day: date) -> int:
        totals = self.totals_by_date.get(day)
        return totals.nearby_job_count if totals else 0


def build_schedule_context(
    target: Coordinate,
    jobs: Iterable[ExistingJob],
    *,
    nearby_radius_miles: float = 15.0,
    proximity_radius_miles: float = 10.0,
) -> ScheduleContext:
    """Build by-date totals, proximity buckets and the anchor in one pass.

    Jobs without a coordinate count toward totals only. Jobs without a date can still
    be the anchor but do not appear in the per-date views.
    """
    totals: dict[date, list[int]] = {}
    buckets: dict[date, list[NearbyJob]] = {}
    anchor: NearbyJob | None = None

    for job in jobs:
        distance: float | None = None
        if job.coordinate is not None:
            distance = distance_miles(target, job.coordinate)
            if anchor is None or distance < anchor.distance_miles:
                anchor = NearbyJob(job=job, distance_miles=distance)

        if job.scheduled_date is None:
            continue
        counts = totals.setdefault(job.scheduled_date, [0, 0])
        counts[0] += 1
        if distance is None:
            continue
        if distance < nearby_radius_miles:
            counts[1] += 1
        if distance < proximity_radius_miles:
            buckets.setdefault(job.scheduled_date, []).append(
                NearbyJob(job=job, distance_miles=distance)
            )

    totals_by_date = {
        day: DateTotals(total_job_count=counts[0], nearby_job_count=counts[1])
        for day, counts in sorted(totals.items())
    }
    nearby_by_date = {
        day: tuple(sorted(entries, key=lambda entry: entry.distance_miles))
        for day, entries in sorted(buckets.items())
    }
    return ScheduleContext(
        totals_by_date=MappingProxyType(totals_by_date),
        nearby_by_date=MappingProxyType(nearby_by_date),
        anchor=anchor,
    )


def _job_time(job: ExistingJob) -> str:
    if job.scheduled_start is None:
        return "TBD"
    if job.scheduled_end is None:
        return format_time_of_day(job.scheduled_start)
    return f"{format_time_of_day(job.scheduled_start)}-{format_time_of_day(job.scheduled_end)}"


def render_schedule_overview(context: ScheduleContext, *, nearby_radius_miles: float) -> str:
    lines = [
        f"{day_name(day)} {day.isoformat()}: {totals.total_job_count} total jobs, "
        f"{totals.nearby_job_count} within {nearby_radius_miles:g} miles of target location"
        for day, totals in context.totals_by_date.items()
    ]
    return "\n".join(lines)


def render_nearby_jobs(
    context: ScheduleContext,
    *,
    max_dates: int = 7,
    max_jobs_per_date: int = 5,
) -> str:
    """Human-readable nearby jobs for the soonest dates, closest first within each."""
    blocks: list[str] = []
    for day, entries in list(context.nearby_by_date.items())[:max_dates]:
        job_lines = [
            f"  - {_job_time(entry.job)}: {entry.job.city or 'Unknown'} "
            f"({entry.distance_miles:.1f} mi away, "
            f"{entry.job.technician_name or entry.job.technician_id or 'unassigned'})"
            for entry in entries[:max_jobs_per_date]
        ]
        blocks.append(f"{day_name(day)} {day.isoformat()}:\n" + "\n".join(job_lines))
    return "\n\n".join(blocks)


def describe_anchor(anchor: NearbyJob) -> str:
    job = anchor.job
    when = job.scheduled_date.isoformat() if job.scheduled_date else "Unknown date"
    return (
        f"{when} {_job_time(job)} in {job.city or 'Unknown'} "
        f"({anchor.distance_miles:.1f} mi away)"
    )


def render_anchor(anchor: NearbyJob | None) -> str:
    if anchor is None:
        return (
            "No nearby existing jobs found - schedule based on technician availability "
            "and home locations."
        )
    job = anchor.job
    return "\n".join(
        [
            "CLOSEST EXISTING JOB TO NEW LOCATION:",
            f"- Date: {job.scheduled_date.isoformat() if job.scheduled_date else 'Unknown'}",
            f"- Time: {_job_time(job)}",
            f"- Distance from new job: {anchor.distance_miles:.1f} miles",
            f"- Location: {job.city or 'Unknown'}",
            f"- Assigned technician: {job.technician_name or job.technician_id or 'Unassigned'}",
        ]
    )


def lookahead_window(today: date, days: int) -> tuple[date, date]:
    """Inclusive (start, end) dates for the store query backing a ranking request."""
    return today, today + timedelta(days=days)
