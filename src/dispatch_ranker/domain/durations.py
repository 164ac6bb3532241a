"""Job duration inference from historical completed jobs.

Usage example:
    from dispatch_ranker.domain.durations import DurationEstimate, estimate_duration

    result = estimate_duration(["Carpet Cleaning"], history)
    if isinstance(result, DurationEstimate):
        minutes = result.minutes
    else:
        minutes = fallback_minutes
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..types import ExistingJob
from .clock import minutes_of_day


@dataclass(frozen=True)
class DurationEstimate:
    minutes: int
    sample_count: int
    service_count: int


@dataclass(frozen=True)
class InsufficientDurationData:
    """Too few matching samples; the caller must use its own default duration."""

    sample_count: int
    required: int


def job_duration_minutes(job: ExistingJob) -> int | None:
    """Minutes between start and end on the same day, or None if either is missing."""
    if job.scheduled_start is None or job.scheduled_end is None:
        return None
    return minutes_of_day(job.scheduled_end) - minutes_of_day(job.scheduled_start)


def distinct_service_names(names: Iterable[str]) -> tuple[str, ...]:
    """Lowercased, stripped, de-duplicated names in first-seen order."""
    seen: dict[str, None] = {}
    for name in names:
        key = name.strip().lower()
        if key:
            seen.setdefault(key, None)
    return tuple(seen)


def services_match(historical: Iterable[str], requested: Sequence[str]) -> bool:
    """Loose match: any pair where one name contains the other, case-insensitive."""
    for name in historical:
        candidate = name.strip().lower()
        if not candidate:
            continue
        for wanted in requested:
            if wanted in candidate or candidate in wanted:
                return True
    return False


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def estimate_duration(
    requested_service_names: Iterable[str],
    historical_jobs: Iterable[ExistingJob],
    *,
    outlier_cutoff_minutes: int = 720,
    min_samples: int = 3,
    additional_service_factor: float = 0.5,
) -> DurationEstimate | InsufficientDurationData:
    """Estimate minutes for the requested services from matching history.

    Durations <= 0 or >= the outlier cutoff are discarded. The single-service estimate is
    the average of the sample median and mean; each additional distinct service adds
    `additional_service_factor` of that estimate.
    """
    requested = distinct_service_names(requested_service_names)
    samples: list[int] = []
    if requested:
        for job in historical_jobs:
            duration = job_duration_minutes(job)
            if duration is None or duration <= 0 or duration >= outlier_cutoff_minutes:
                continue
            if services_match(job.service_names, requested):
                samples.append(duration)

    if len(samples) < min_samples:
        return InsufficientDurationData(sample_count=len(samples), required=min_samples)

    estimate = (statistics.median(samples) + statistics.fmean(samples)) / 2
    service_count = len(requested)
    if service_count > 1:
        estimate *= 1 + additional_service_factor * (service_count - 1)
    return DurationEstimate(
        minutes=_round_half_up(estimate),
        sample_count=len(samples),
        service_count=service_count,
    )
