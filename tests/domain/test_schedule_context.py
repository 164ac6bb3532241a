"""Tests for schedule partitioning around a target location."""

from datetime import date, timedelta

import pytest

from dispatch_ranker.domain.schedule_context import (
    build_schedule_context,
    describe_anchor,
    lookahead_window,
    render_anchor,
    render_nearby_jobs,
    render_schedule_overview,
)
from tests.support.builders import MONDAY, TARGET, make_job, offset_east

TUESDAY = MONDAY + timedelta(days=1)


class TestBuildScheduleContext:
    """Tests for by-date totals, proximity buckets and the anchor."""

    def test_empty_schedule(self) -> None:
        context = build_schedule_context(TARGET, [])
        assert context.anchor is None
        assert context.has_located_jobs is False
        assert dict(context.totals_by_date) == {}
        assert dict(context.nearby_by_date) == {}

    def test_totals_count_every_dated_job(self) -> None:
        jobs = [
            make_job("near", coordinate=offset_east(TARGET, 1)),
            make_job("far", coordinate=offset_east(TARGET, 40)),
            make_job("unlocated", coordinate=None),
        ]
        context = build_schedule_context(TARGET, jobs)
        totals = context.totals_by_date[MONDAY]
        assert totals.total_job_count == 3
        assert totals.nearby_job_count == 1

    def test_nearby_radius_is_strict(self) -> None:
        jobs = [
            make_job("inside", coordinate=offset_east(TARGET, 12)),
            make_job("outside", coordinate=offset_east(TARGET, 20)),
        ]
        context = build_schedule_context(TARGET, jobs)
        assert context.nearby_count_on(MONDAY) == 1
        # 12 miles is nearby but outside the 10 mile proximity bucket.
        assert MONDAY not in context.nearby_by_date

    def test_buckets_are_sorted_by_distance(self) -> None:
        jobs = [
            make_job("five", coordinate=offset_east(TARGET, 5)),
            make_job("one", coordinate=offset_east(TARGET, 1)),
            make_job("three", coordinate=offset_east(TARGET, 3)),
        ]
        context = build_schedule_context(TARGET, jobs)
        ids = [entry.job.id for entry in context.nearby_by_date[MONDAY]]
        assert ids == ["one", "three", "five"]

    def test_dates_are_ascending(self) -> None:
        jobs = [make_job("tue", day=TUESDAY), make_job("mon", day=MONDAY)]
        context = build_schedule_context(TARGET, jobs)
        assert list(context.totals_by_date) == [MONDAY, TUESDAY]
        assert list(context.nearby_by_date) == [MONDAY, TUESDAY]

    def test_anchor_is_closest_located_job(self) -> None:
        jobs = [
            make_job("far", coordinate=offset_east(TARGET, 30)),
            make_job("closest", coordinate=offset_east(TARGET, 2), day=TUESDAY),
            make_job("unlocated", coordinate=None),
        ]
        context = build_schedule_context(TARGET, jobs)
        assert context.anchor is not None
        assert context.anchor.job.id == "closest"
        assert context.anchor.distance_miles == pytest.approx(2.0, rel=0.01)

    def test_undated_job_can_anchor_but_is_not_bucketed(self) -> None:
        context = build_schedule_context(TARGET, [make_job("undated", day=None)])
        assert context.anchor is not None
        assert context.anchor.job.id == "undated"
        assert dict(context.totals_by_date) == {}

    def test_radii_are_configurable(self) -> None:
        jobs = [make_job("three", coordinate=offset_east(TARGET, 3))]
        context = build_schedule_context(
            TARGET, jobs, nearby_radius_miles=2.0, proximity_radius_miles=2.0
        )
        assert context.nearby_count_on(MONDAY) == 0
        assert MONDAY not in context.nearby_by_date

    def test_nearby_count_on_unknown_date(self) -> None:
        assert build_schedule_context(TARGET, []).nearby_count_on(MONDAY) == 0


class TestRendering:
    """Tests for narrative rendering of the schedule context."""

    def test_overview_lines(self) -> None:
        context = build_schedule_context(TARGET, [make_job("j1")])
        overview = render_schedule_overview(context, nearby_radius_miles=15.0)
        assert overview == (
            "Monday 2026-03-02: 1 total jobs, 1 within 15 miles of target location"
        )

    def test_nearby_jobs_are_truncated(self) -> None:
        jobs = [
            make_job(f"j{index}", day=MONDAY + timedelta(days=index), technician_id="tech-b")
            for index in range(4)
        ]
        context = build_schedule_context(TARGET, jobs)
        rendered = render_nearby_jobs(context, max_dates=2, max_jobs_per_date=1)
        assert "2026-03-02" in rendered
        assert "2026-03-03" in rendered
        assert "2026-03-04" not in rendered
        assert "09:00-11:00: Indianapolis (0.0 mi away, tech-b)" in rendered

    def test_unassigned_job(self) -> None:
        context = build_schedule_context(TARGET, [make_job("j1", technician_id=None)])
        assert "unassigned" in render_nearby_jobs(context)

    def test_anchor_block(self) -> None:
        context = build_schedule_context(TARGET, [make_job("j1", start=None)])
        rendered = render_anchor(context.anchor)
        assert rendered.startswith("CLOSEST EXISTING JOB TO NEW LOCATION:")
        assert "- Time: TBD" in rendered
        assert "- Assigned technician: tech-a" in rendered

    def test_no_anchor(self) -> None:
        assert render_anchor(None).startswith("No nearby existing jobs found")

    def test_describe_anchor(self) -> None:
        context = build_schedule_context(TARGET, [make_job("j1", end=None)])
        assert context.anchor is not None
        assert describe_anchor(context.anchor) == "2026-03-02 09:00 in Indianapolis (0.0 mi away)"


def test_lookahead_window_is_inclusive() -> None:
    assert lookahead_window(date(2026, 3, 2), 14) == (date(2026, 3, 2), date(2026, 3, 16))
