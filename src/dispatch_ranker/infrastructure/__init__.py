"""Concrete infrastructure implementations and shared helpers."""

from .filesystem import LocalFileSystem
from .io.http import (
    CensusBoundaryProvider,
    ChatCompletionsReasoningService,
    JsonHttpClient,
    MapboxDrivingDistanceProvider,
    MapboxGeocoder,
)
from .resilience import CircuitBreaker, RateLimiter, RetryPolicy
from .snapshot_store import JsonScheduleSnapshot

__all__ = [
    "CensusBoundaryProvider",
    "ChatCompletionsReasoningService",
    "CircuitBreaker",
    "JsonHttpClient",
    "JsonScheduleSnapshot",
    "LocalFileSystem",
    "MapboxDrivingDistanceProvider",
    "MapboxGeocoder",
    "RateLimiter",
    "RetryPolicy",
]
