"""Tests for geometric primitives."""

import pytest

from dispatch_ranker.domain.geo import (
    distance_miles,
    point_in_polygon,
    polygon_bounds,
    polygon_centroid,
)
from dispatch_ranker.exceptions import EmptyRingError
from dispatch_ranker.types import Coordinate
from tests.support.builders import TARGET, offset_east

SQUARE = (
    Coordinate(0, 0),
    Coordinate(0, 10),
    Coordinate(10, 10),
    Coordinate(10, 0),
    Coordinate(0, 0),
)


class TestDistanceMiles:
    """Tests for haversine distance."""

    def test_same_point_is_zero(self) -> None:
        assert distance_miles(TARGET, TARGET) == 0.0

    def test_symmetric(self) -> None:
        other = Coordinate(40.0, -86.0)
        assert distance_miles(TARGET, other) == pytest.approx(distance_miles(other, TARGET))

    def test_one_degree_latitude_is_about_69_miles(self) -> None:
        distance = distance_miles(Coordinate(0, 0), Coordinate(1, 0))
        assert distance == pytest.approx(69.1, abs=0.2)

    def test_known_city_pair(self) -> None:
        # Indianapolis to Chicago is roughly 165 miles as the crow flies.
        chicago = Coordinate(41.8781, -87.6298)
        assert distance_miles(TARGET, chicago) == pytest.approx(165, abs=5)

    def test_offset_helper_agrees(self) -> None:
        assert distance_miles(TARGET, offset_east(TARGET, 2.0)) == pytest.approx(2.0, rel=0.01)


class TestPointInPolygon:
    """Tests for ray-casting containment."""

    def test_inside(self) -> None:
        assert point_in_polygon(Coordinate(5, 5), SQUARE) is True

    def test_outside(self) -> None:
        assert point_in_polygon(Coordinate(15, 5), SQUARE) is False

    def test_open_ring_is_handled(self) -> None:
        assert point_in_polygon(Coordinate(5, 5), SQUARE[:-1]) is True

    def test_fewer_than_three_points_contains_nothing(self) -> None:
        assert point_in_polygon(Coordinate(0, 0), (Coordinate(0, 0), Coordinate(1, 1))) is False

    def test_concave_notch_is_outside(self) -> None:
        # A "U" shape: the notch between the arms is outside.
        ring = (
            Coordinate(0, 0),
            Coordinate(10, 0),
            Coordinate(10, 3),
            Coordinate(2, 3),
            Coordinate(2, 7),
            Coordinate(10, 7),
            Coordinate(10, 10),
            Coordinate(0, 10),
        )
        assert point_in_polygon(Coordinate(5, 5), ring) is False
        assert point_in_polygon(Coordinate(1, 5), ring) is True


class TestPolygonCentroid:
    """Tests for area-weighted centroids."""

    def test_square_centroid(self) -> None:
        centroid = polygon_centroid(SQUARE)
        assert centroid.latitude == pytest.approx(5.0)
        assert centroid.longitude == pytest.approx(5.0)

    def test_orientation_does_not_matter(self) -> None:
        centroid = polygon_centroid(tuple(reversed(SQUARE)))
        assert centroid.latitude == pytest.approx(5.0)
        assert centroid.longitude == pytest.approx(5.0)

    def test_degenerate_ring_uses_vertex_mean(self) -> None:
        line = (Coordinate(0, 0), Coordinate(2, 2), Coordinate(4, 4))
        assert polygon_centroid(line) == Coordinate(2.0, 2.0)

    def test_empty_ring_raises(self) -> None:
        with pytest.raises(EmptyRingError):
            polygon_centroid(())


class TestPolygonBounds:
    """Tests for bounding boxes."""

    def test_bounds(self) -> None:
        south_west, north_east = polygon_bounds(SQUARE)
        assert south_west == Coordinate(0, 0)
        assert north_east == Coordinate(10, 10)

    def test_empty_ring_raises(self) -> None:
        with pytest.raises(EmptyRingError):
            polygon_bounds(())
