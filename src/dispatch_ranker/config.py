"""Centralised, injectable configuration for the dispatch ranker."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import RankingConfigFile
from .domain.clock import parse_time_of_day
from .exceptions import InvalidTimeError

_DEFAULT_START_TIMES = ("08:00", "11:00", "14:00")


class PositiveIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive integer.")


class NonNegativeIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be zero or a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative integer.")


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a non-negative number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative number.")


class StandardStartTimesError(ValueError):
    """Raised when standard start times are missing or not HH:MM."""

    def __init__(self, value: str) -> None:
        super().__init__(
            f"STANDARD_START_TIMES must be a comma-separated list of HH:MM values, got {value!r}."
        )


@dataclass(frozen=True)
class RankingConfig:
    """Immutable configuration object for one ranking engine.

    Load from environment with `RankingConfig.from_env()` or construct directly for testing.
    """

    # Scheduling policy
    standard_start_times: tuple[str, ...] = _DEFAULT_START_TIMES
    nearby_radius_miles: float = 15.0
    proximity_radius_miles: float = 10.0
    lookahead_days: int = 14
    outlier_cutoff_minutes: int = 720
    min_duration_samples: int = 3
    additional_service_factor: float = 0.5
    default_duration_minutes: int = 120
    technician_shortlist_size: int = 5
    max_suggestions: int = 5
    narrative_max_dates: int = 7
    narrative_max_jobs_per_date: int = 5
    skill_tiebreak_miles: float = 1.0

    # Driving-distance provider (Mapbox Directions)
    mapbox_token: str = ""
    mapbox_timeout_seconds: float = 5.0
    distance_lookup_timeout_seconds: float = 8.0
    distance_circuit_breaker_threshold: int = 5
    distance_circuit_breaker_timeout_seconds: float = 60.0

    # Reasoning service (chat completions gateway)
    reasoning_api_key: str = ""
    reasoning_api_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    reasoning_model: str = "google/gemini-3-flash-preview"
    reasoning_temperature: float = 0.3
    reasoning_timeout_seconds: float = 60.0

    # Ingestion (geocoding and zone boundaries)
    geocode_limit: int = 75
    boundary_postal_code_limit: int = 25
    boundary_min_delay_seconds: float = 0.1
    census_api_base: str = "https://api.censusreporter.org/1.0/geo/tiger2023"
    ingestion_max_retries: int = 3
    ingestion_backoff_factor: float = 0.5

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            RankingConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            standard_start_times=_parse_start_times(
                os.getenv("STANDARD_START_TIMES", ",".join(_DEFAULT_START_TIMES))
            ),
            nearby_radius_miles=_parse_non_negative_float(
                os.getenv("NEARBY_RADIUS_MILES", "15"), env_name="NEARBY_RADIUS_MILES"
            ),
            proximity_radius_miles=_parse_non_negative_float(
                os.getenv("PROXIMITY_RADIUS_MILES", "10"), env_name="PROXIMITY_RADIUS_MILES"
            ),
            lookahead_days=_parse_positive_int(
                os.getenv("LOOKAHEAD_DAYS", "14"), env_name="LOOKAHEAD_DAYS"
            ),
            outlier_cutoff_minutes=_parse_positive_int(
                os.getenv("OUTLIER_CUTOFF_MINUTES", "720"), env_name="OUTLIER_CUTOFF_MINUTES"
            ),
            min_duration_samples=_parse_positive_int(
                os.getenv("MIN_DURATION_SAMPLES", "3"), env_name="MIN_DURATION_SAMPLES"
            ),
            additional_service_factor=_parse_non_negative_float(
                os.getenv("ADDITIONAL_SERVICE_FACTOR", "0.5"),
                env_name="ADDITIONAL_SERVICE_FACTOR",
            ),
            default_duration_minutes=_parse_positive_int(
                os.getenv("DEFAULT_DURATION_MINUTES", "120"),
                env_name="DEFAULT_DURATION_MINUTES",
            ),
            technician_shortlist_size=_parse_positive_int(
                os.getenv("TECHNICIAN_SHORTLIST_SIZE", "5"),
                env_name="TECHNICIAN_SHORTLIST_SIZE",
            ),
            max_suggestions=_parse_positive_int(
                os.getenv("MAX_SUGGESTIONS", "5"), env_name="MAX_SUGGESTIONS"
            ),
            skill_tiebreak_miles=_parse_non_negative_float(
                os.getenv("SKILL_TIEBREAK_MILES", "1.0"), env_name="SKILL_TIEBREAK_MILES"
            ),
            mapbox_token=os.getenv("MAPBOX_TOKEN", "").strip(),
            mapbox_timeout_seconds=_parse_non_negative_float(
                os.getenv("MAPBOX_TIMEOUT_SECONDS", "5"), env_name="MAPBOX_TIMEOUT_SECONDS"
            ),
            distance_lookup_timeout_seconds=_parse_non_negative_float(
                os.getenv("DISTANCE_LOOKUP_TIMEOUT_SECONDS", "8"),
                env_name="DISTANCE_LOOKUP_TIMEOUT_SECONDS",
            ),
            distance_circuit_breaker_threshold=_parse_positive_int(
                os.getenv("DISTANCE_CIRCUIT_BREAKER_THRESHOLD", "5"),
                env_name="DISTANCE_CIRCUIT_BREAKER_THRESHOLD",
            ),
            distance_circuit_breaker_timeout_seconds=_parse_non_negative_float(
                os.getenv("DISTANCE_CIRCUIT_BREAKER_TIMEOUT_SECONDS", "60"),
                env_name="DISTANCE_CIRCUIT_BREAKER_TIMEOUT_SECONDS",
            ),
            reasoning_api_key=os.getenv("REASONING_API_KEY", "").strip(),
            reasoning_api_url=os.getenv(
                "REASONING_API_URL", "https://ai.gateway.lovable.dev/v1/chat/completions"
            ).strip(),
            reasoning_model=os.getenv("REASONING_MODEL", "google/gemini-3-flash-preview").strip(),
            reasoning_temperature=_parse_non_negative_float(
                os.getenv("REASONING_TEMPERATURE", "0.3"), env_name="REASONING_TEMPERATURE"
            ),
            reasoning_timeout_seconds=_parse_non_negative_float(
                os.getenv("REASONING_TIMEOUT_SECONDS", "60"), env_name="REASONING_TIMEOUT_SECONDS"
            ),
            geocode_limit=_parse_positive_int(
                os.getenv("GEOCODE_LIMIT", "75"), env_name="GEOCODE_LIMIT"
            ),
            boundary_postal_code_limit=_parse_positive_int(
                os.getenv("BOUNDARY_POSTAL_CODE_LIMIT", "25"),
                env_name="BOUNDARY_POSTAL_CODE_LIMIT",
            ),
            boundary_min_delay_seconds=_parse_non_negative_float(
                os.getenv("BOUNDARY_MIN_DELAY_SECONDS", "0.1"),
                env_name="BOUNDARY_MIN_DELAY_SECONDS",
            ),
            census_api_base=os.getenv(
                "CENSUS_API_BASE", "https://api.censusreporter.org/1.0/geo/tiger2023"
            ).strip(),
            ingestion_max_retries=_parse_non_negative_int(
                os.getenv("INGESTION_MAX_RETRIES", "3"), env_name="INGESTION_MAX_RETRIES"
            ),
            ingestion_backoff_factor=_parse_non_negative_float(
                os.getenv("INGESTION_BACKOFF_FACTOR", "0.5"), env_name="INGESTION_BACKOFF_FACTOR"
            ),
        )

    @property
    def lookup_bound(self) -> int:
        """Number of technicians that get a routed-distance lookup (K)."""
        return self.technician_shortlist_size

    def with_overrides(
        self,
        *,
        standard_start_times: tuple[str, ...] | None = None,
        default_duration_minutes: int | None = None,
        max_suggestions: int | None = None,
        technician_shortlist_size: int | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            standard_start_times=self.standard_start_times
            if standard_start_times is None
            else standard_start_times,
            default_duration_minutes=self.default_duration_minutes
            if default_duration_minutes is None
            else default_duration_minutes,
            max_suggestions=self.max_suggestions if max_suggestions is None else max_suggestions,
            technician_shortlist_size=self.technician_shortlist_size
            if technician_shortlist_size is None
            else technician_shortlist_size,
        )

    def with_file_overrides(self, file_config: RankingConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        return replace(
            self,
            standard_start_times=self.standard_start_times
            if file_config.standard_start_times is None
            else file_config.standard_start_times,
            nearby_radius_miles=self.nearby_radius_miles
            if file_config.nearby_radius_miles is None
            else file_config.nearby_radius_miles,
            proximity_radius_miles=self.proximity_radius_miles
            if file_config.proximity_radius_miles is None
            else file_config.proximity_radius_miles,
            lookahead_days=self.lookahead_days
            if file_config.lookahead_days is None
            else file_config.lookahead_days,
            outlier_cutoff_minutes=self.outlier_cutoff_minutes
            if file_config.outlier_cutoff_minutes is None
            else file_config.outlier_cutoff_minutes,
            min_duration_samples=self.min_duration_samples
            if file_config.min_duration_samples is None
            else file_config.min_duration_samples,
            default_duration_minutes=self.default_duration_minutes
            if file_config.default_duration_minutes is None
            else file_config.default_duration_minutes,
            technician_shortlist_size=self.technician_shortlist_size
            if file_config.technician_shortlist_size is None
            else file_config.technician_shortlist_size,
            max_suggestions=self.max_suggestions
            if file_config.max_suggestions is None
            else file_config.max_suggestions,
            skill_tiebreak_miles=self.skill_tiebreak_miles
            if file_config.skill_tiebreak_miles is None
            else file_config.skill_tiebreak_miles,
        )


def _parse_start_times(s: str) -> tuple[str, ...]:
    """Parse a comma-separated list of HH:MM values."""
    items = tuple(item.strip() for item in s.split(",") if item.strip())
    if not items:
        raise StandardStartTimesError(s)
    try:
        for item in items:
            parse_time_of_day(item)
    except InvalidTimeError as exc:
        raise StandardStartTimesError(s) from exc
    return items


def _parse_positive_int(value: str, *, env_name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise PositiveIntegerEnvVarError(env_name) from exc
    if parsed < 1:
        raise PositiveIntegerEnvVarError(env_name)
    return parsed


def _parse_non_negative_float(value: str, *, env_name: str) -> float:
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if parsed < 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_non_negative_int(value: str, *, env_name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise NonNegativeIntegerEnvVarError(env_name) from exc
    if parsed < 0:
        raise NonNegativeIntegerEnvVarError(env_name)
    return parsed
