"""Provider fakes: routed distance, geocoding, boundaries and reasoning."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import override

from dispatch_ranker.application.context import SchedulingContext
from dispatch_ranker.exceptions import UpstreamServiceError
from dispatch_ranker.protocols import (
    BoundaryProvider,
    DrivingDistanceProvider,
    Geocoder,
    ReasoningService,
)
from dispatch_ranker.types import Coordinate, ReasoningOutcome, Ring, RoutedDistance


@dataclass
class CannedDistanceProvider(DrivingDistanceProvider):
    """Routed distances keyed by origin coordinate; unknown origins have no route."""

    routes: Mapping[Coordinate, RoutedDistance] = field(default_factory=dict)
    calls: list[Coordinate] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @override
    def driving_distance(
        self, origin: Coordinate, destination: Coordinate
    ) -> RoutedDistance | None:
        with self._lock:
            self.calls.append(origin)
        return self.routes.get(origin)


@dataclass
class FailingDistanceProvider(DrivingDistanceProvider):
    """Every lookup raises."""

    calls: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @override
    def driving_distance(
        self, origin: Coordinate, destination: Coordinate
    ) -> RoutedDistance | None:
        with self._lock:
            self.calls += 1
        raise UpstreamServiceError("Mapbox", "connection refused")


@dataclass
class SlowDistanceProvider(DrivingDistanceProvider):
    """Blocks until released, so lookups outlive the ranking timeout."""

    release: threading.Event = field(default_factory=threading.Event)

    @override
    def driving_distance(
        self, origin: Coordinate, destination: Coordinate
    ) -> RoutedDistance | None:
        self.release.wait(timeout=5)
        return RoutedDistance(distance_miles=0.1, duration_minutes=1)


@dataclass
class FakeGeocoder(Geocoder):
    results: Mapping[str, Coordinate] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    @override
    def geocode(self, address: str) -> Coordinate | None:
        self.calls.append(address)
        return self.results.get(address)


@dataclass
class FakeBoundaryProvider(BoundaryProvider):
    boundaries: Mapping[str, tuple[Ring, ...]] = field(default_factory=dict)
    errors: Mapping[str, Exception] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    @override
    def boundary_for_postal_code(self, postal_code: str) -> tuple[Ring, ...] | None:
        self.calls.append(postal_code)
        if postal_code in self.errors:
            raise self.errors[postal_code]
        return self.boundaries.get(postal_code)


@dataclass
class StubReasoningService(ReasoningService):
    """Returns a fixed outcome and records the contexts it was asked to rank."""

    outcome: ReasoningOutcome
    contexts: list[SchedulingContext] = field(default_factory=list)

    @override
    def rank(self, context: SchedulingContext) -> ReasoningOutcome:
        self.contexts.append(context)
        return self.outcome


@dataclass
class RaisingReasoningService(ReasoningService):
    error: Exception

    @override
    def rank(self, context: SchedulingContext) -> ReasoningOutcome:
        raise self.error
