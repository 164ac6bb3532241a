"""Tests for the composition root."""

from dispatch_ranker.composition import build_cli_dependencies
from dispatch_ranker.config import RankingConfig
from dispatch_ranker.infrastructure import (
    CensusBoundaryProvider,
    ChatCompletionsReasoningService,
    JsonHttpClient,
    LocalFileSystem,
    MapboxDrivingDistanceProvider,
    MapboxGeocoder,
)


def test_build_cli_dependencies_wires_providers_when_credentials_exist() -> None:
    config = RankingConfig(
        mapbox_token="pk.test",
        reasoning_api_key="sk-test",
        reasoning_model="test/model",
    )

    deps = build_cli_dependencies(config=config, build_providers=True)

    assert isinstance(deps.fs, LocalFileSystem)
    assert isinstance(deps.distance_provider, MapboxDrivingDistanceProvider)
    assert deps.distance_provider.access_token == "pk.test"
    assert isinstance(deps.distance_provider.client, JsonHttpClient)
    assert isinstance(deps.reasoning_service, ChatCompletionsReasoningService)
    assert deps.reasoning_service.model == "test/model"
    assert deps.reasoning_service.api_url == config.reasoning_api_url
    assert isinstance(deps.geocoder, MapboxGeocoder)
    assert deps.geocoder.access_token == "pk.test"
    assert isinstance(deps.boundary_provider, CensusBoundaryProvider)
    assert deps.boundary_provider.api_base == config.census_api_base


def test_build_cli_dependencies_without_credentials_falls_back() -> None:
    deps = build_cli_dependencies(config=RankingConfig(), build_providers=True)

    assert isinstance(deps.fs, LocalFileSystem)
    assert deps.distance_provider is None
    assert deps.reasoning_service is None
    assert deps.geocoder is None
    assert isinstance(deps.boundary_provider, CensusBoundaryProvider)


def test_build_cli_dependencies_can_skip_providers() -> None:
    config = RankingConfig(mapbox_token="pk.test", reasoning_api_key="sk-test")

    deps = build_cli_dependencies(config=config, build_providers=False)

    assert deps.distance_provider is None
    assert deps.reasoning_service is None
    assert deps.geocoder is None
    assert deps.boundary_provider is None
