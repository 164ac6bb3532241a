"""Read-only schedule store backed by a JSON snapshot file.

Usage example:
    from pathlib import Path

    from dispatch_ranker.infrastructure.filesystem import LocalFileSystem
    from dispatch_ranker.infrastructure.snapshot_store import JsonScheduleSnapshot

    store = JsonScheduleSnapshot.load(Path("data/schedule.json"), fs=LocalFileSystem())
    jobs = store.existing_jobs(date(2026, 3, 2), date(2026, 3, 16))

Jobs with status `completed` feed duration estimation. Jobs with status `cancelled`
are ignored. Every other status counts as a booking.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Self, override

from ..exceptions import SnapshotNotFoundError
from ..observability import get_logger
from ..protocols import FileSystem, ScheduleStore
from ..types import ExistingJob, ServiceZone, SkillRecord, Technician
from .io.validation import (
    job_from_io,
    parse_schedule_snapshot,
    skill_record_from_io,
    technician_from_io,
    zone_from_io,
)

logger = get_logger("dispatch_ranker.snapshot_store")

COMPLETED_STATUS = "completed"
CANCELLED_STATUS = "cancelled"


class JsonScheduleSnapshot(ScheduleStore):
    """In-memory store built once from a snapshot; every read returns fresh tuples."""

    def __init__(
        self,
        *,
        technicians: Sequence[Technician],
        service_zones: Sequence[ServiceZone],
        skill_records: Sequence[SkillRecord],
        bookings: Sequence[ExistingJob],
        completed: Sequence[ExistingJob],
    ) -> None:
        self._technicians = tuple(technicians)
        self._service_zones = tuple(service_zones)
        self._skill_records = tuple(skill_records)
        self._bookings = tuple(bookings)
        self._completed = tuple(completed)

    @classmethod
    def load(cls, path: Path, *, fs: FileSystem) -> Self:
        if not fs.exists(path):
            raise SnapshotNotFoundError(str(path))
        return cls.from_payload(fs.read_json(path))

    @classmethod
    def from_payload(cls, payload: object) -> Self:
        snapshot = parse_schedule_snapshot(payload)

        skill_records: list[SkillRecord] = []
        for item in snapshot["skills"]:
            record = skill_record_from_io(item)
            if record is None:
                logger.warning(
                    "Ignoring skill record with unknown level %r for technician %s",
                    item["level"],
                    item["technician_id"],
                )
                continue
            skill_records.append(record)

        bookings: list[ExistingJob] = []
        completed: list[ExistingJob] = []
        for item in snapshot["jobs"]:
            if item["status"] == CANCELLED_STATUS:
                continue
            job = job_from_io(item)
            if item["status"] == COMPLETED_STATUS:
                completed.append(job)
            else:
                bookings.append(job)

        return cls(
            technicians=[technician_from_io(item) for item in snapshot["technicians"]],
            service_zones=[zone_from_io(item) for item in snapshot["service_zones"]],
            skill_records=skill_records,
            bookings=bookings,
            completed=completed,
        )

    @override
    def existing_jobs(self, start: date, end: date) -> Sequence[ExistingJob]:
        return tuple(
            job
            for job in self._bookings
            if job.scheduled_date is not None and start <= job.scheduled_date <= end
        )

    @override
    def completed_jobs(self) -> Sequence[ExistingJob]:
        return self._completed

    @override
    def technicians(self) -> Sequence[Technician]:
        return self._technicians

    @override
    def service_zones(self) -> Sequence[ServiceZone]:
        return self._service_zones

    @override
    def skill_records(self) -> Sequence[SkillRecord]:
        return self._skill_records
