"""Composition root for wiring CLI dependencies."""

from __future__ import annotations

from .cli import CliDependencies, create_app
from .config import RankingConfig
from .infrastructure import (
    CensusBoundaryProvider,
    ChatCompletionsReasoningService,
    LocalFileSystem,
    MapboxDrivingDistanceProvider,
    MapboxGeocoder,
)
from .infrastructure.io.http import (
    build_ingestion_client,
    build_mapbox_client,
    build_reasoning_client,
)
from .observability import get_logger
from .protocols import BoundaryProvider, DrivingDistanceProvider, Geocoder, ReasoningService

logger = get_logger("dispatch_ranker.composition")


def build_cli_dependencies(
    *,
    config: RankingConfig,
    build_providers: bool,
) -> CliDependencies:
    """Build concrete dependencies for CLI commands.

    Args:
        config: Ranking configuration (used for provider wiring).
        build_providers: Whether to construct HTTP-backed providers when credentials exist.
    """
    fs = LocalFileSystem()
    distance_provider: DrivingDistanceProvider | None = None
    reasoning_service: ReasoningService | None = None
    geocoder: Geocoder | None = None
    boundary_provider: BoundaryProvider | None = None
    if build_providers:
        if config.mapbox_token:
            distance_provider = MapboxDrivingDistanceProvider(
                client=build_mapbox_client(
                    timeout_seconds=config.mapbox_timeout_seconds,
                    circuit_breaker_threshold=config.distance_circuit_breaker_threshold,
                    circuit_breaker_timeout_seconds=config.distance_circuit_breaker_timeout_seconds,
                ),
                access_token=config.mapbox_token,
            )
            geocoder = MapboxGeocoder(
                client=build_ingestion_client(
                    provider_name="Mapbox geocoding",
                    min_delay_seconds=0.0,
                    max_retries=config.ingestion_max_retries,
                    backoff_factor=config.ingestion_backoff_factor,
                    timeout_seconds=config.mapbox_timeout_seconds,
                ),
                access_token=config.mapbox_token,
            )
        else:
            logger.info("MAPBOX_TOKEN not set; technicians ranked by straight-line distance")
        if config.reasoning_api_key:
            reasoning_service = ChatCompletionsReasoningService(
                client=build_reasoning_client(
                    api_key=config.reasoning_api_key,
                    timeout_seconds=config.reasoning_timeout_seconds,
                ),
                api_url=config.reasoning_api_url,
                model=config.reasoning_model,
                temperature=config.reasoning_temperature,
            )
        boundary_provider = CensusBoundaryProvider(
            client=build_ingestion_client(
                provider_name="Census Reporter",
                min_delay_seconds=config.boundary_min_delay_seconds,
                max_retries=config.ingestion_max_retries,
                backoff_factor=config.ingestion_backoff_factor,
            ),
            api_base=config.census_api_base,
        )
    return CliDependencies(
        fs=fs,
        distance_provider=distance_provider,
        reasoning_service=reasoning_service,
        geocoder=geocoder,
        boundary_provider=boundary_provider,
    )


app = create_app(build_cli_dependencies)
