"""CLI for the dispatch candidate ranker.

Commands:
- suggest: Rank (date, time slot, technician) candidates for a new job
- estimate-duration: Estimate a job duration from completed-job history
- match-zone: Resolve the service zone containing a coordinate
- build-zones: Resolve zone definitions into snapshot-ready service zones
- geocode-jobs: Fill in coordinates for jobs that only have an address
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Annotated, Protocol

import typer
from rich import print as rprint
from rich.table import Table

from . import __version__
from .application.assembler import CandidateAssembler, RankingResult
from .application.zone_ingestion import run_build_zones, run_geocode_jobs
from .config import RankingConfig
from .config_file import load_ranking_config_file
from .domain.clock import format_time_of_day
from .domain.durations import DurationEstimate, estimate_duration
from .domain.zones import match_zone
from .exceptions import (
    DispatchRankerError,
    RankingFailedError,
    RequestFileNotFoundError,
)
from .infrastructure.io.validation import IncomingDataError, parse_job_request, request_from_io
from .infrastructure.snapshot_store import JsonScheduleSnapshot
from .io_contracts import RankingResultIO
from .observability import set_log_level
from .protocols import (
    BoundaryProvider,
    DrivingDistanceProvider,
    FileSystem,
    Geocoder,
    ReasoningService,
)
from .types import Coordinate, NewJobRequest


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(
        self,
        *,
        config: RankingConfig,
        build_providers: bool,
    ) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliDependencies:
    """Concrete dependencies required by the CLI."""

    fs: FileSystem
    distance_provider: DrivingDistanceProvider | None
    reasoning_service: ReasoningService | None
    geocoder: Geocoder | None = None
    boundary_provider: BoundaryProvider | None = None


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: RankingConfig
    deps_builder: DependenciesBuilder

    def build_dependencies(
        self,
        *,
        build_providers: bool,
        config: RankingConfig | None = None,
    ) -> CliDependencies:
        """Return dependencies using the configured builder."""
        return self.deps_builder(config=config or self.config, build_providers=build_providers)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the dispatch-ranker entry point.")


class InvalidTodayError(typer.BadParameter):
    """Raised when --today is not an ISO date."""

    def __init__(self, value: str) -> None:
        super().__init__(f"--today must be an ISO date (YYYY-MM-DD), got {value!r}.")


DEFAULT_SNAPSHOT = Path("data/schedule.json")
DEFAULT_REQUEST = Path("data/request.json")
DEFAULT_ZONE_DEFINITIONS = Path("data/zones.json")
DEFAULT_ZONES_OUT = Path("data/service_zones.json")
DEFAULT_GEOCODED_SNAPSHOT = Path("data/schedule.geocoded.json")


def _version_callback(value: bool) -> None:
    if value:
        rprint(f"dispatch-ranker {__version__}")
        raise typer.Exit()


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _parse_today(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidTodayError(value) from exc


def _load_request(path: Path, fs: FileSystem) -> NewJobRequest:
    if not fs.exists(path):
        raise RequestFileNotFoundError(str(path))
    return request_from_io(parse_job_request(fs.read_json(path)))


def result_to_io(result: RankingResult) -> RankingResultIO:
    return {
        "state": result.state,
        "failure_reason": result.failure_reason,
        "estimated_duration_minutes": result.estimated_duration_minutes,
        "duration_source": result.duration_source,
        "analysis": result.analysis,
        "warnings": list(result.warnings),
        "suggestions": [
            {
                "date": suggestion.date.isoformat(),
                "day_name": suggestion.day_name,
                "start": format_time_of_day(suggestion.time_slot.start),
                "end": format_time_of_day(suggestion.time_slot.end),
                "confidence": suggestion.confidence,
                "technician_id": suggestion.suggested_technician_id,
                "nearby_job_count": suggestion.nearby_job_count,
                "skill_match": suggestion.skill_match,
                "justification": suggestion.justification,
                "nearest_existing_job": suggestion.nearest_existing_job,
            }
            for suggestion in result.suggestions
        ],
        "context": result.context,
    }


def _render_result(result: RankingResult, technician_names: dict[str, str]) -> None:
    source = result.duration_source or "unknown"
    rprint(
        f"[green]✓ Ranking complete:[/green] {len(result.suggestions)} suggestions, "
        f"{result.estimated_duration_minutes} min ({source})"
    )
    if result.suggestions:
        table = Table(title="Suggested slots")
        table.add_column("#", justify="right")
        table.add_column("Date")
        table.add_column("Slot")
        table.add_column("Technician")
        table.add_column("Skill")
        table.add_column("Nearby", justify="right")
        table.add_column("Confidence")
        table.add_column("Why")
        for index, suggestion in enumerate(result.suggestions, start=1):
            technician_id = suggestion.suggested_technician_id
            table.add_row(
                str(index),
                f"{suggestion.day_name} {suggestion.date.isoformat()}",
                f"{format_time_of_day(suggestion.time_slot.start)}-"
                f"{format_time_of_day(suggestion.time_slot.end)}",
                technician_names.get(technician_id, technician_id) if technician_id else "-",
                suggestion.skill_match,
                str(suggestion.nearby_job_count),
                suggestion.confidence,
                suggestion.justification,
            )
        rprint(table)
    if result.analysis:
        rprint(f"[bold]Analysis:[/bold] {result.analysis}")
    for warning in result.warnings:
        rprint(f"[yellow]! {warning}[/yellow]")


def create_app(deps_builder: DependenciesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder."""
    app = typer.Typer(
        add_completion=False,
        help="Dispatch candidate ranker: rank (date, slot, technician) options for new jobs",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Ranking policy TOML file (overrides environment values)",
            ),
        ] = None,
        verbose: Annotated[
            bool,
            typer.Option("--verbose", "-v", help="Enable debug logging"),
        ] = False,
        version: Annotated[
            bool,
            typer.Option(
                "--version",
                callback=_version_callback,
                is_eager=True,
                help="Show the installed version and exit",
            ),
        ] = False,
    ) -> None:
        """Initialise CLI context."""
        _ = version
        if verbose:
            set_log_level(logging.DEBUG)
        config = RankingConfig.from_env()
        if config_path is not None:
            bootstrap = deps_builder(config=config, build_providers=False)
            try:
                file_config = load_ranking_config_file(path=config_path, fs=bootstrap.fs)
            except DispatchRankerError as exc:
                rprint(f"[red]✗ {exc}[/red]")
                raise typer.Exit(code=1) from exc
            config = config.with_file_overrides(file_config)
        ctx.obj = CliContext(config=config, deps_builder=deps_builder)

    @app.command()
    def suggest(
        ctx: typer.Context,
        snapshot_path: Annotated[
            Path,
            typer.Option("--snapshot", "-s", help="Schedule snapshot JSON file"),
        ] = DEFAULT_SNAPSHOT,
        request_path: Annotated[
            Path,
            typer.Option("--request", "-r", help="New job request JSON file"),
        ] = DEFAULT_REQUEST,
        max_suggestions: Annotated[
            int | None,
            typer.Option("--max-suggestions", "-n", min=1, help="Maximum suggestions"),
        ] = None,
        today: Annotated[
            str | None,
            typer.Option("--today", help="Treat this ISO date as today"),
        ] = None,
        as_json: Annotated[
            bool,
            typer.Option("--json", help="Print the result as JSON"),
        ] = False,
    ) -> None:
        """Rank candidate slots for a new job."""
        state = _get_context(ctx)
        config = state.config.with_overrides(max_suggestions=max_suggestions)
        deps = state.build_dependencies(build_providers=True, config=config)
        fixed_today = _parse_today(today)

        try:
            store = JsonScheduleSnapshot.load(snapshot_path, fs=deps.fs)
            request = _load_request(request_path, deps.fs)
            assembler = CandidateAssembler(
                config=config,
                reasoning_service=deps.reasoning_service,
                distance_provider=deps.distance_provider,
                today=(lambda: fixed_today) if fixed_today else date.today,
            )
            result = assembler.suggest_from_store(request, store)
            result.raise_for_failure()
        except RankingFailedError as exc:
            rprint(f"[red]✗ {exc}[/red]")
            if exc.retryable:
                rprint("  This is temporary; try again shortly.")
            raise typer.Exit(code=1) from exc
        except (DispatchRankerError, IncomingDataError) as exc:
            rprint(f"[red]✗ {exc}[/red]")
            raise typer.Exit(code=1) from exc

        if as_json:
            typer.echo(json.dumps(result_to_io(result), indent=2))
            return
        names = {technician.id: technician.name for technician in store.technicians()}
        _render_result(result, names)

    @app.command(name="estimate-duration")
    def estimate_duration_command(
        ctx: typer.Context,
        services: Annotated[
            list[str],
            typer.Option("--service", help="Requested service name (repeatable)"),
        ],
        snapshot_path: Annotated[
            Path,
            typer.Option("--snapshot", "-s", help="Schedule snapshot JSON file"),
        ] = DEFAULT_SNAPSHOT,
    ) -> None:
        """Estimate a job duration from completed jobs with matching services."""
        state = _get_context(ctx)
        deps = state.build_dependencies(build_providers=False)
        config = state.config
        try:
            store = JsonScheduleSnapshot.load(snapshot_path, fs=deps.fs)
        except (DispatchRankerError, IncomingDataError) as exc:
            rprint(f"[red]✗ {exc}[/red]")
            raise typer.Exit(code=1) from exc

        result = estimate_duration(
            services,
            store.completed_jobs(),
            outlier_cutoff_minutes=config.outlier_cutoff_minutes,
            min_samples=config.min_duration_samples,
            additional_service_factor=config.additional_service_factor,
        )
        if isinstance(result, DurationEstimate):
            rprint(
                f"[green]✓ Estimated duration:[/green] {result.minutes} minutes "
                f"({result.sample_count} samples, {result.service_count} services)"
            )
            return
        rprint(
            f"[yellow]Insufficient history:[/yellow] {result.sample_count} matching jobs "
            f"(need {result.required}). Default is {config.default_duration_minutes} minutes."
        )

    @app.command(name="match-zone")
    def match_zone_command(
        ctx: typer.Context,
        latitude: Annotated[float, typer.Option("--lat", help="Latitude")],
        longitude: Annotated[float, typer.Option("--lng", help="Longitude")],
        snapshot_path: Annotated[
            Path,
            typer.Option("--snapshot", "-s", help="Schedule snapshot JSON file"),
        ] = DEFAULT_SNAPSHOT,
    ) -> None:
        """Print the service zone containing a coordinate."""
        state = _get_context(ctx)
        deps = state.build_dependencies(build_providers=False)
        try:
            store = JsonScheduleSnapshot.load(snapshot_path, fs=deps.fs)
        except (DispatchRankerError, IncomingDataError) as exc:
            rprint(f"[red]✗ {exc}[/red]")
            raise typer.Exit(code=1) from exc

        target = Coordinate(latitude=latitude, longitude=longitude)
        zone = match_zone(target, store.service_zones())
        if zone is None:
            rprint("[yellow]No service zone contains this location.[/yellow]")
            raise typer.Exit(code=2)
        rprint(f"[green]✓ Zone:[/green] {zone.name} ({zone.id})")

    @app.command(name="build-zones")
    def build_zones(
        ctx: typer.Context,
        definitions_path: Annotated[
            Path,
            typer.Option(
                "--definitions",
                "-d",
                help="Zone definitions JSON (geometry, points or postal codes per zone)",
            ),
        ] = DEFAULT_ZONE_DEFINITIONS,
        out_path: Annotated[
            Path,
            typer.Option("--output", "-o", help="Output path for snapshot-ready zones"),
        ] = DEFAULT_ZONES_OUT,
    ) -> None:
        """Resolve zone boundaries, fetching postal-code shapes where needed."""
        state = _get_context(ctx)
        config = state.config
        deps = state.build_dependencies(build_providers=True)
        try:
            result = run_build_zones(
                definitions_path=definitions_path,
                out_path=out_path,
                fs=deps.fs,
                boundary_provider=deps.boundary_provider,
                postal_code_limit=config.boundary_postal_code_limit,
            )
        except (DispatchRankerError, IncomingDataError) as exc:
            rprint(f"[red]✗ {exc}[/red]")
            raise typer.Exit(code=1) from exc

        rprint(
            f"[green]✓ Build zones complete:[/green] {result.output_path} "
            f"({len(result.zones)} zones)"
        )
        if result.unmapped_zone_ids:
            rprint(f"[yellow]! No boundary for: {', '.join(result.unmapped_zone_ids)}[/yellow]")

    @app.command(name="geocode-jobs")
    def geocode_jobs(
        ctx: typer.Context,
        snapshot_path: Annotated[
            Path,
            typer.Option("--snapshot", "-s", help="Schedule snapshot JSON file"),
        ] = DEFAULT_SNAPSHOT,
        out_path: Annotated[
            Path,
            typer.Option("--output", "-o", help="Output path for the geocoded snapshot"),
        ] = DEFAULT_GEOCODED_SNAPSHOT,
        limit: Annotated[
            int | None,
            typer.Option("--limit", min=0, help="Maximum geocoding lookups this run"),
        ] = None,
    ) -> None:
        """Fill in coordinates for jobs that only have an address."""
        state = _get_context(ctx)
        config = state.config
        deps = state.build_dependencies(build_providers=True)
        if deps.geocoder is None:
            rprint("[red]✗ Geocoding needs MAPBOX_TOKEN to be set.[/red]")
            raise typer.Exit(code=1)
        try:
            result = run_geocode_jobs(
                snapshot_path=snapshot_path,
                out_path=out_path,
                fs=deps.fs,
                geocoder=deps.geocoder,
                limit=config.geocode_limit if limit is None else limit,
            )
        except (DispatchRankerError, IncomingDataError) as exc:
            rprint(f"[red]✗ {exc}[/red]")
            raise typer.Exit(code=1) from exc

        report = result.report
        rprint(
            f"[green]✓ Geocode jobs complete:[/green] {result.output_path} "
            f"({report.geocoded_count} geocoded, {len(report.unresolved_job_ids)} unresolved)"
        )

    return app
