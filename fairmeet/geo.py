from itertools import combinations
from typing import Sequence

from geopy.distance import great_circle

from .models import Coordinate


# --- Module-level constants ---
DEFAULT_SEARCH_RADIUS_M = 8000.0   # about 5 miles
MIN_SEARCH_RADIUS_M = 3200.0       # about 2 miles
MAX_SEARCH_RADIUS_M = 12800.0      # about 8 miles
SPREAD_MULTIPLIER = 1.5


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in meters"""
    return great_circle((a.lat, a.lng), (b.lat, b.lng)).meters


def calculate_midpoint(coordinates: Sequence[Coordinate]) -> Coordinate:
    """
    Planar centroid of the given coordinates (mean latitude, mean longitude).
    Good enough at city scale; not meant for points straddling the antimeridian.
    """
    if not coordinates:
        raise ValueError('At least one coordinate is required')
    count = len(coordinates)
    return Coordinate(
        lat=sum(c.lat for c in coordinates) / count,
        lng=sum(c.lng for c in coordinates) / count,
    )


def calculate_search_radius(coordinates: Sequence[Coordinate]) -> float:
    """
    Search radius in meters: 1.5x the widest pairwise spread, clamped to
    [3200, 12800]. A single participant gets the default radius.
    """
    if len(coordinates) < 2:
        return DEFAULT_SEARCH_RADIUS_M

    max_distance = max(distance_m(a, b) for a, b in combinations(coordinates, 2))
    radius = max_distance * SPREAD_MULTIPLIER
    return min(max(radius, MIN_SEARCH_RADIUS_M), MAX_SEARCH_RADIUS_M)
