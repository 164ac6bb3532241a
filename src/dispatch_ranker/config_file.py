"""Typed parsing and validation for ranking policy config files.

Example file:

    schema_version = 1

    [ranking]
    standard_start_times = ["08:00", "11:00", "14:00"]
    nearby_radius_miles = 15
    max_suggestions = 5
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .domain.clock import parse_time_of_day
from .exceptions import (
    ConfigFileNotFoundError,
    ConfigFileParseError,
    ConfigFileValidationError,
    InvalidTimeError,
)
from .protocols import FileSystem

_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class RankingConfigFile:
    """Validated ranking policy values loaded from a TOML file."""

    standard_start_times: tuple[str, ...] | None = None
    nearby_radius_miles: float | None = None
    proximity_radius_miles: float | None = None
    lookahead_days: int | None = None
    outlier_cutoff_minutes: int | None = None
    min_duration_samples: int | None = None
    default_duration_minutes: int | None = None
    technician_shortlist_size: int | None = None
    max_suggestions: int | None = None
    skill_tiebreak_miles: float | None = None


class _RankingSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    standard_start_times: tuple[str, ...] | None = None
    nearby_radius_miles: float | None = None
    proximity_radius_miles: float | None = None
    lookahead_days: int | None = None
    outlier_cutoff_minutes: int | None = None
    min_duration_samples: int | None = None
    default_duration_minutes: int | None = None
    technician_shortlist_size: int | None = None
    max_suggestions: int | None = None
    skill_tiebreak_miles: float | None = None

    @field_validator("standard_start_times")
    @classmethod
    def _validate_start_times(cls, value: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if value is None:
            return None
        cleaned = tuple(item.strip() for item in value if item.strip())
        if not cleaned:
            raise ValueError
        try:
            for item in cleaned:
                parse_time_of_day(item)
        except InvalidTimeError as exc:
            raise ValueError(str(exc)) from exc
        return cleaned

    @field_validator(
        "lookahead_days",
        "outlier_cutoff_minutes",
        "min_duration_samples",
        "default_duration_minutes",
        "technician_shortlist_size",
        "max_suggestions",
    )
    @classmethod
    def _validate_positive_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 1:
            raise ValueError
        return value

    @field_validator("nearby_radius_miles", "proximity_radius_miles", "skill_tiebreak_miles")
    @classmethod
    def _validate_distance(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value < 0.0:
            raise ValueError
        return value


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    ranking: _RankingSectionModel

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_ranking_config_file(*, path: Path, fs: FileSystem) -> RankingConfigFile:
    """Load and validate a ranking policy TOML file."""
    if not fs.exists(path):
        raise ConfigFileNotFoundError(str(path))

    raw_payload = fs.read_text(path)
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), _format_validation_error(exc)) from exc

    section = model.ranking
    return RankingConfigFile(
        standard_start_times=section.standard_start_times,
        nearby_radius_miles=section.nearby_radius_miles,
        proximity_radius_miles=section.proximity_radius_miles,
        lookahead_days=section.lookahead_days,
        outlier_cutoff_minutes=section.outlier_cutoff_minutes,
        min_duration_samples=section.min_duration_samples,
        default_duration_minutes=section.default_duration_minutes,
        technician_shortlist_size=section.technician_shortlist_size,
        max_suggestions=section.max_suggestions,
        skill_tiebreak_miles=section.skill_tiebreak_miles,
    )
