"""Geometric primitives on WGS84 coordinates.

Usage example:
    from dispatch_ranker.domain.geo import distance_miles, point_in_polygon
    from dispatch_ranker.types import Coordinate

    square = (
        Coordinate(0, 0), Coordinate(0, 10), Coordinate(10, 10), Coordinate(10, 0), Coordinate(0, 0)
    )
    assert point_in_polygon(Coordinate(5, 5), square)
    assert distance_miles(Coordinate(0, 0), Coordinate(0, 0)) == 0.0

Polygon maths treats longitude as x and latitude as y. Rings may be given closed
(first == last) or open; both are handled.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from ..exceptions import EmptyRingError
from ..types import Coordinate

EARTH_RADIUS_MILES = 3959.0


def distance_miles(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in miles (haversine)."""
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.latitude))
        * math.cos(math.radians(b.latitude))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_MILES * c


def _open_ring(ring: Sequence[Coordinate]) -> list[Coordinate]:
    points = list(ring)
    if len(points) > 1 and points[0] == points[-1]:
        points.pop()
    return points


def point_in_polygon(point: Coordinate, ring: Sequence[Coordinate]) -> bool:
    """Ray-casting containment test (even-odd rule).

    Points exactly on an edge may report either result.
    """
    points = _open_ring(ring)
    if len(points) < 3:
        return False

    x, y = point.longitude, point.latitude
    inside = False
    j = len(points) - 1
    for i, current in enumerate(points):
        previous = points[j]
        xi, yi = current.longitude, current.latitude
        xj, yj = previous.longitude, previous.latitude
        if (yi > y) != (yj > y):
            crossing_x = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < crossing_x:
                inside = not inside
        j = i
    return inside


def polygon_centroid(ring: Sequence[Coordinate]) -> Coordinate:
    """Signed-area weighted centroid.

    Degenerate rings (zero area: a line, repeated points) fall back to the arithmetic
    mean of the vertices.
    """
    points = _open_ring(ring)
    if not points:
        raise EmptyRingError()

    twice_area = 0.0
    cx = 0.0
    cy = 0.0
    count = len(points)
    for i in range(count):
        x0, y0 = points[i].longitude, points[i].latitude
        x1, y1 = points[(i + 1) % count].longitude, points[(i + 1) % count].latitude
        cross = x0 * y1 - x1 * y0
        twice_area += cross
        cx += (x0 + x1) * cross
        cy += (y0 + y1) * cross

    if twice_area == 0.0:
        return Coordinate(
            latitude=sum(p.latitude for p in points) / count,
            longitude=sum(p.longitude for p in points) / count,
        )

    # 6A == 3 * twice_area
    return Coordinate(latitude=cy / (3 * twice_area), longitude=cx / (3 * twice_area))


def polygon_bounds(ring: Sequence[Coordinate]) -> tuple[Coordinate, Coordinate]:
    """Return (south-west, north-east) corners of the ring's bounding box."""
    points = _open_ring(ring)
    if not points:
        raise EmptyRingError()
    latitudes = [p.latitude for p in points]
    longitudes = [p.longitude for p in points]
    return (
        Coordinate(latitude=min(latitudes), longitude=min(longitudes)),
        Coordinate(latitude=max(latitudes), longitude=max(longitudes)),
    )
