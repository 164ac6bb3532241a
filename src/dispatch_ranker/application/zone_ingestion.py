"""Ingestion-time helpers: zone boundaries and geocoding of unlocated jobs.

Usage example:
    >>> from dispatch_ranker.application.zone_ingestion import build_service_zone
    >>> zone = build_service_zone(
    ...     zone_id="north",
    ...     name="North",
    ...     postal_codes=["46220", "46240"],
    ...     boundary_provider=census,
    ... )
    >>> len(zone.boundary)
    2

These run when data is synchronised into the store, never per ranking request.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path

from ..domain.zones import close_ring, is_valid_ring, rings_from_geojson
from ..exceptions import (
    CircuitBreakerOpen,
    RateLimitError,
    SnapshotNotFoundError,
    UpstreamServiceError,
    ZoneDefinitionsNotFoundError,
)
from ..infrastructure.io.validation import (
    job_from_io,
    parse_schedule_snapshot,
    parse_zone_definitions,
    zone_to_io,
)
from ..io_contracts import JobIO, ZoneDefinitionIO
from ..observability import get_logger
from ..protocols import BoundaryProvider, FileSystem, Geocoder, RateLimiter
from ..types import Coordinate, ExistingJob, Ring, ServiceZone

logger = get_logger("dispatch_ranker.zone_ingestion")

DEFAULT_POSTAL_CODE_LIMIT = 25
DEFAULT_GEOCODE_LIMIT = 75


def boundary_from_points(points: Sequence[Coordinate]) -> Ring | None:
    """Closed ring from a vertex list, or None with fewer than three distinct points."""
    if len(points) < 3:
        return None
    ring = close_ring(points)
    return ring if is_valid_ring(ring) else None


def boundary_from_postal_codes(
    postal_codes: Iterable[str],
    provider: BoundaryProvider,
    *,
    limit: int = DEFAULT_POSTAL_CODE_LIMIT,
    rate_limiter: RateLimiter | None = None,
) -> tuple[Ring, ...]:
    """Merge the boundaries of up to `limit` postal codes into one multipolygon.

    Codes with no geometry, or whose lookup fails, are skipped.
    """
    codes = [code.strip() for code in postal_codes if code.strip()][:limit]
    rings: list[Ring] = []
    fetched = 0
    for code in codes:
        if rate_limiter is not None:
            rate_limiter.wait_if_needed()
        try:
            boundary = provider.boundary_for_postal_code(code)
        except (UpstreamServiceError, RateLimitError, CircuitBreakerOpen) as exc:
            logger.warning("Boundary lookup failed for postal code %s: %s", code, exc)
            continue
        if not boundary:
            continue
        fetched += 1
        rings.extend(boundary)

    logger.info("Fetched %s/%s postal code boundaries", fetched, len(codes))
    return tuple(rings)


def build_zone_boundary(
    *,
    geometry: Mapping[str, object] | None = None,
    points: Sequence[Coordinate] | None = None,
    postal_codes: Sequence[str] = (),
    boundary_provider: BoundaryProvider | None = None,
    postal_code_limit: int = DEFAULT_POSTAL_CODE_LIMIT,
    rate_limiter: RateLimiter | None = None,
) -> tuple[Ring, ...]:
    """Resolve a zone boundary from the first usable source.

    Sources in order: a GeoJSON geometry, a native point list, postal codes.
    """
    if geometry is not None:
        rings = tuple(ring for ring in rings_from_geojson(geometry) if is_valid_ring(ring))
        if rings:
            return rings

    if points:
        ring = boundary_from_points(points)
        if ring is not None:
            return (ring,)

    if postal_codes and boundary_provider is not None:
        return boundary_from_postal_codes(
            postal_codes,
            boundary_provider,
            limit=postal_code_limit,
            rate_limiter=rate_limiter,
        )
    return ()


def build_service_zone(
    *,
    zone_id: str,
    name: str,
    color: str | None = None,
    geometry: Mapping[str, object] | None = None,
    points: Sequence[Coordinate] | None = None,
    postal_codes: Sequence[str] = (),
    boundary_provider: BoundaryProvider | None = None,
    postal_code_limit: int = DEFAULT_POSTAL_CODE_LIMIT,
    rate_limiter: RateLimiter | None = None,
) -> ServiceZone:
    boundary = build_zone_boundary(
        geometry=geometry,
        points=points,
        postal_codes=postal_codes,
        boundary_provider=boundary_provider,
        postal_code_limit=postal_code_limit,
        rate_limiter=rate_limiter,
    )
    if not boundary:
        logger.warning("Zone %s has no usable boundary", zone_id)
    return ServiceZone(id=zone_id, name=name, color=color, boundary=boundary)


@dataclass(frozen=True)
class GeocodingReport:
    jobs: tuple[ExistingJob, ...]
    geocoded_count: int
    unresolved_job_ids: tuple[str, ...]


def geocode_missing_coordinates(
    jobs: Sequence[ExistingJob],
    addresses: Mapping[str, str],
    geocoder: Geocoder,
    *,
    limit: int = DEFAULT_GEOCODE_LIMIT,
) -> GeocodingReport:
    """Fill in coordinates for jobs that lack them, using each job's address.

    Identical addresses are looked up once per run. At most `limit` successful lookups
    are made; jobs beyond the cap stay unlocated.
    """
    memo: dict[str, Coordinate | None] = {}
    geocoded = 0
    updated: list[ExistingJob] = []
    unresolved: list[str] = []

    for job in jobs:
        if job.coordinate is not None:
            updated.append(job)
            continue
        address = addresses.get(job.id, "").strip()
        if not address:
            unresolved.append(job.id)
            updated.append(job)
            continue

        key = address.lower()
        if key not in memo:
            if geocoded >= limit:
                unresolved.append(job.id)
                updated.append(job)
                continue
            try:
                memo[key] = geocoder.geocode(address)
            except (UpstreamServiceError, RateLimitError, CircuitBreakerOpen) as exc:
                logger.warning("Geocoding failed for job %s: %s", job.id, exc)
                memo[key] = None
            if memo[key] is not None:
                geocoded += 1

        coordinate = memo[key]
        if coordinate is None:
            unresolved.append(job.id)
            updated.append(job)
        else:
            updated.append(replace(job, coordinate=coordinate))

    if geocoded:
        logger.info("Geocoded %s jobs missing coordinates", geocoded)
    return GeocodingReport(
        jobs=tuple(updated),
        geocoded_count=geocoded,
        unresolved_job_ids=tuple(unresolved),
    )


def build_zones_from_definitions(
    definitions: Sequence[ZoneDefinitionIO],
    *,
    boundary_provider: BoundaryProvider | None,
    postal_code_limit: int = DEFAULT_POSTAL_CODE_LIMIT,
    rate_limiter: RateLimiter | None = None,
) -> list[ServiceZone]:
    return [
        build_service_zone(
            zone_id=definition["id"],
            name=definition["name"],
            color=definition["color"],
            geometry=definition["geometry"],
            points=[
                Coordinate(latitude=point["latitude"], longitude=point["longitude"])
                for point in definition["points"]
            ],
            postal_codes=definition["postal_codes"],
            boundary_provider=boundary_provider,
            postal_code_limit=postal_code_limit,
            rate_limiter=rate_limiter,
        )
        for definition in definitions
    ]


@dataclass(frozen=True)
class BuildZonesResult:
    output_path: Path
    zones: tuple[ServiceZone, ...]

    @property
    def unmapped_zone_ids(self) -> tuple[str, ...]:
        return tuple(zone.id for zone in self.zones if not zone.boundary)


def run_build_zones(
    *,
    definitions_path: Path,
    out_path: Path,
    fs: FileSystem,
    boundary_provider: BoundaryProvider | None,
    postal_code_limit: int = DEFAULT_POSTAL_CODE_LIMIT,
) -> BuildZonesResult:
    """Resolve zone definitions into snapshot-ready `service_zones` entries.

    Args:
        definitions_path: JSON list of zone definitions.
        out_path: Where to write the resolved zones (GeoJSON geometry per zone).
        fs: Filesystem for reading and writing.
        boundary_provider: Postal-code boundary source; postal-code-only zones stay
            unmapped without one.
        postal_code_limit: Maximum postal codes looked up per zone.
    """
    if not fs.exists(definitions_path):
        raise ZoneDefinitionsNotFoundError(str(definitions_path))
    definitions = parse_zone_definitions(fs.read_json(definitions_path))
    if boundary_provider is None and any(
        definition["postal_codes"] for definition in definitions
    ):
        logger.warning("No boundary provider configured; postal codes will be ignored")

    zones = build_zones_from_definitions(
        definitions,
        boundary_provider=boundary_provider,
        postal_code_limit=postal_code_limit,
    )
    fs.write_text(json.dumps([zone_to_io(zone) for zone in zones], indent=2), out_path)
    logger.info("Wrote %s zones to %s", len(zones), out_path)
    return BuildZonesResult(output_path=out_path, zones=tuple(zones))


@dataclass(frozen=True)
class GeocodeJobsResult:
    output_path: Path
    report: GeocodingReport


def run_geocode_jobs(
    *,
    snapshot_path: Path,
    out_path: Path,
    fs: FileSystem,
    geocoder: Geocoder,
    limit: int = DEFAULT_GEOCODE_LIMIT,
) -> GeocodeJobsResult:
    """Write a copy of the snapshot with coordinates filled in from job addresses.

    Cancelled jobs are left untouched and do not count toward the lookup cap.
    """
    if not fs.exists(snapshot_path):
        raise SnapshotNotFoundError(str(snapshot_path))
    snapshot = parse_schedule_snapshot(fs.read_json(snapshot_path))

    active = [item for item in snapshot["jobs"] if item["status"] != "cancelled"]
    addresses = {item["id"]: item["address"] for item in active if item["address"]}
    jobs_before = [job_from_io(item) for item in active]
    unlocated_ids = {job.id for job in jobs_before if job.coordinate is None}
    report = geocode_missing_coordinates(jobs_before, addresses, geocoder, limit=limit)

    located = {
        job.id: job.coordinate
        for job in report.jobs
        if job.id in unlocated_ids and job.coordinate is not None
    }
    jobs: list[JobIO] = []
    for item in snapshot["jobs"]:
        coordinate = located.get(item["id"])
        if coordinate is None:
            jobs.append(item)
            continue
        located_item: JobIO = {
            **item,
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
        }
        jobs.append(located_item)

    fs.write_text(json.dumps({**snapshot, "jobs": jobs}, indent=2), out_path)
    return GeocodeJobsResult(output_path=out_path, report=report)
