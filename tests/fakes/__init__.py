"""Exports for test fakes."""

from .filesystem import InMemoryFileSystem
from .http import FakeHttpClient
from .providers import (
    CannedDistanceProvider,
    FailingDistanceProvider,
    FakeBoundaryProvider,
    FakeGeocoder,
    RaisingReasoningService,
    SlowDistanceProvider,
    StubReasoningService,
)
from .resilience import RecordingRateLimiter, ScriptedCircuitBreaker
from .store import InMemoryScheduleStore

__all__ = [
    "CannedDistanceProvider",
    "FailingDistanceProvider",
    "FakeBoundaryProvider",
    "FakeGeocoder",
    "FakeHttpClient",
    "InMemoryFileSystem",
    "InMemoryScheduleStore",
    "RaisingReasoningService",
    "RecordingRateLimiter",
    "ScriptedCircuitBreaker",
    "SlowDistanceProvider",
    "StubReasoningService",
]
