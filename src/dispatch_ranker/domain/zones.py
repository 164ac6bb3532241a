"""Service zone resolution and boundary decoding.

Usage example:
    from dispatch_ranker.domain.zones import match_zone, zone_from_geojson

    zone = zone_from_geojson(
        zone_id="z1",
        name="North",
        color="#0f0",
        geometry={"type": "Polygon", "coordinates": [[[0, 0], [0, 10], [10, 10], [10, 0], [0, 0]]]},
    )
    assert match_zone(Coordinate(5, 5), [zone]) is zone
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from ..types import Coordinate, Ring, ServiceZone
from .geo import point_in_polygon


def match_zone(point: Coordinate, zones: Iterable[ServiceZone]) -> ServiceZone | None:
    """Return the first zone (in the given order) whose first ring contains the point.

    Overlapping zones are not disambiguated: order zones by priority before calling.
    """
    for zone in zones:
        if not zone.boundary:
            continue
        if point_in_polygon(point, zone.boundary[0]):
            return zone
    return None


def close_ring(points: Sequence[Coordinate]) -> Ring:
    """Return the ring with its first point repeated at the end if it is not already."""
    ring = tuple(points)
    if ring and ring[0] != ring[-1]:
        ring = (*ring, ring[0])
    return ring


def is_valid_ring(ring: Sequence[Coordinate]) -> bool:
    """A closed ring needs three distinct points plus the closing point."""
    return len(ring) >= 4 and len(set(ring)) >= 3


def _ring_from_positions(positions: object) -> Ring | None:
    if not isinstance(positions, list | tuple):
        return None
    points: list[Coordinate] = []
    for position in positions:
        if not isinstance(position, list | tuple) or len(position) < 2:
            return None
        lng, lat = position[0], position[1]
        if not isinstance(lng, int | float) or not isinstance(lat, int | float):
            return None
        points.append(Coordinate(latitude=float(lat), longitude=float(lng)))
    ring = close_ring(points)
    return ring if is_valid_ring(ring) else None


def rings_from_geojson(geometry: Mapping[str, object] | None) -> tuple[Ring, ...]:
    """Decode the outer rings of a GeoJSON Polygon or MultiPolygon.

    GeoJSON positions are `[longitude, latitude]`. Holes are ignored; invalid rings are
    skipped. Anything else decodes to no rings.
    """
    if not geometry:
        return ()
    kind = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, list):
        return ()

    polygons: list[object]
    if kind == "Polygon":
        polygons = [coordinates]
    elif kind == "MultiPolygon":
        polygons = list(coordinates)
    else:
        return ()

    rings: list[Ring] = []
    for polygon in polygons:
        if not isinstance(polygon, list) or not polygon:
            continue
        ring = _ring_from_positions(polygon[0])
        if ring is not None:
            rings.append(ring)
    return tuple(rings)


def rings_to_geojson(rings: Sequence[Ring]) -> dict[str, object] | None:
    """Encode rings as a GeoJSON Polygon (one ring) or MultiPolygon (several)."""
    if not rings:
        return None
    encoded = [[[p.longitude, p.latitude] for p in ring] for ring in rings]
    if len(encoded) == 1:
        return {"type": "Polygon", "coordinates": [encoded[0]]}
    return {"type": "MultiPolygon", "coordinates": [[ring] for ring in encoded]}


def zone_from_geojson(
    *,
    zone_id: str,
    name: str,
    color: str | None,
    geometry: Mapping[str, object] | None,
) -> ServiceZone:
    return ServiceZone(
        id=zone_id,
        name=name,
        color=color,
        boundary=rings_from_geojson(geometry),
    )
