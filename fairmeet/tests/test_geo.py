import pytest

from fairmeet.geo import (DEFAULT_SEARCH_RADIUS_M, MAX_SEARCH_RADIUS_M, MIN_SEARCH_RADIUS_M,
                          calculate_midpoint, calculate_search_radius, distance_m)
from fairmeet.models import Coordinate


def test_midpoint_of_single_coordinate_is_itself():
    c = Coordinate(40.7128, -74.0060)
    assert calculate_midpoint([c]) == c


def test_midpoint_is_planar_mean():
    mid = calculate_midpoint([Coordinate(37.0, -122.0), Coordinate(37.0, -121.0)])
    assert mid.lat == pytest.approx(37.0)
    assert mid.lng == pytest.approx(-121.5)


def test_midpoint_of_three_points():
    mid = calculate_midpoint([Coordinate(0.0, 0.0), Coordinate(3.0, 6.0), Coordinate(6.0, 3.0)])
    assert mid == Coordinate(3.0, 3.0)


def test_midpoint_requires_coordinates():
    with pytest.raises(ValueError):
        calculate_midpoint([])


def test_single_participant_gets_default_radius():
    assert calculate_search_radius([Coordinate(37.0, -122.0)]) == DEFAULT_SEARCH_RADIUS_M == 8000
    assert calculate_search_radius([]) == 8000


def test_wide_spread_is_clamped_to_max():
    # ~10 km apart along a meridian
    a = Coordinate(37.0, -122.0)
    b = Coordinate(37.0 + 10000 / 111195.0, -122.0)
    assert distance_m(a, b) == pytest.approx(10000, rel=0.01)
    assert calculate_search_radius([a, b]) == MAX_SEARCH_RADIUS_M == 12800


def test_tight_spread_is_clamped_to_min():
    a = Coordinate(37.0, -122.0)
    b = Coordinate(37.001, -122.0)
    assert calculate_search_radius([a, b]) == MIN_SEARCH_RADIUS_M == 3200


def test_radius_uses_widest_pair():
    a = Coordinate(37.0, -122.0)
    b = Coordinate(37.0 + 3000 / 111195.0, -122.0)
    c = Coordinate(37.0 + 6000 / 111195.0, -122.0)
    expected = distance_m(a, c) * 1.5
    assert calculate_search_radius([a, b, c]) == pytest.approx(expected)
    assert MIN_SEARCH_RADIUS_M < expected < MAX_SEARCH_RADIUS_M
