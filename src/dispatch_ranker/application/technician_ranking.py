"""Rank technicians by distance from a job, refining the closest few with routed distance.

Usage example:
    >>> from dispatch_ranker.application.technician_ranking import TechnicianDistanceRanker
    >>> ranker = TechnicianDistanceRanker(provider, lookup_bound=5, lookup_timeout_seconds=8)
    >>> ranked = ranker.rank(target, technicians)
    >>> ranked[0].driving_miles  # None when the routed lookup failed

The routed provider is best effort. Failures, timeouts and "no route" answers degrade
that technician to straight-line distance; nothing is raised to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from ..domain.geo import distance_miles
from ..observability import get_logger
from ..protocols import DrivingDistanceProvider
from ..types import Coordinate, RoutedDistance, Technician, TechnicianDistance

logger = get_logger("dispatch_ranker.technician_ranking")


def rank_by_straight_line(
    target: Coordinate, technicians: Iterable[Technician]
) -> list[TechnicianDistance]:
    """Straight-line ranking of technicians with a home coordinate, closest first."""
    ranked = [
        TechnicianDistance(
            technician_id=technician.id,
            name=technician.name,
            straight_line_miles=distance_miles(technician.home_coordinate, target),
        )
        for technician in technicians
        if technician.home_coordinate is not None
    ]
    ranked.sort(key=lambda row: row.straight_line_miles)
    return ranked


class TechnicianDistanceRanker:
    """Straight-line ranking with concurrent routed lookups for the top `lookup_bound`."""

    def __init__(
        self,
        provider: DrivingDistanceProvider | None,
        *,
        lookup_bound: int = 5,
        lookup_timeout_seconds: float = 8.0,
    ) -> None:
        self.provider = provider
        self.lookup_bound = lookup_bound
        self.lookup_timeout_seconds = lookup_timeout_seconds

    def rank(
        self, target: Coordinate, technicians: Iterable[Technician]
    ) -> list[TechnicianDistance]:
        located = [t for t in technicians if t.home_coordinate is not None]
        straight = rank_by_straight_line(target, located)
        if self.provider is None or self.lookup_bound <= 0 or not straight:
            return straight

        head = straight[: self.lookup_bound]
        tail = straight[self.lookup_bound :]
        homes = {t.id: t.home_coordinate for t in located}
        routed = self._lookup_routes(target, head, homes)

        refined = [
            TechnicianDistance(
                technician_id=row.technician_id,
                name=row.name,
                straight_line_miles=row.straight_line_miles,
                driving_miles=routed[row.technician_id].distance_miles
                if row.technician_id in routed
                else None,
                driving_minutes=routed[row.technician_id].duration_minutes
                if row.technician_id in routed
                else None,
            )
            for row in head
        ]
        refined.sort(key=lambda row: row.effective_miles)
        return refined + tail

    def _lookup_routes(
        self,
        target: Coordinate,
        head: list[TechnicianDistance],
        homes: dict[str, Coordinate | None],
    ) -> dict[str, RoutedDistance]:
        provider = self.provider
        if provider is None:
            return {}

        executor = ThreadPoolExecutor(
            max_workers=len(head), thread_name_prefix="routed-distance"
        )
        futures: dict[Future[RoutedDistance | None], str] = {}
        try:
            for row in head:
                home = homes[row.technician_id]
                if home is None:
                    continue
                future = executor.submit(provider.driving_distance, home, target)
                futures[future] = row.technician_id

            done, not_done = wait(futures, timeout=self.lookup_timeout_seconds)
            for future in not_done:
                future.cancel()
                logger.warning(
                    "Routed distance lookup timed out for technician %s; using straight-line",
                    futures[future],
                )

            results: dict[str, RoutedDistance] = {}
            for future in done:
                technician_id = futures[future]
                error = future.exception()
                if error is not None:
                    logger.warning(
                        "Routed distance lookup failed for technician %s: %s",
                        technician_id,
                        error,
                    )
                    continue
                result = future.result()
                if result is not None:
                    results[technician_id] = result
            return results
        finally:
            # Abandon anything still in flight; no partial state is kept.
            executor.shutdown(wait=False, cancel_futures=True)
