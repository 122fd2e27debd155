import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from fairmeet.maps_service import select_transit_hubs
from fairmeet.models import Coordinate, Place

P1_START = Coordinate(37.7749, -122.4194)
P2_START = Coordinate(37.8044, -122.2712)


class FakeMaps:
    """In-memory routing, place search and geocoding"""

    def __init__(self, durations: Optional[Dict[Tuple[Coordinate, Coordinate], float]] = None,
                 places: Optional[List[Place]] = None, addresses: Optional[Dict[str, Coordinate]] = None,
                 delay: float = 0.0):
        self.durations = durations or {}
        self.places = places or []
        self.addresses = addresses or {}
        self.delay = delay
        self.route_calls: List[tuple] = []
        self.search_calls: List[dict] = []

    async def route(self, origin, destination, transport_type):
        self.route_calls.append((origin, destination, transport_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.durations.get((origin, destination))

    async def search(self, center, radius, category=None, query=None):
        self.search_calls.append({'center': center, 'radius': radius, 'category': category, 'query': query})
        return list(self.places)

    async def search_transit_hubs(self, center, radius):
        return select_transit_hubs(self.places, center)

    async def geocode(self, address):
        coordinate = self.addresses.get(address)
        if coordinate is None:
            return None
        return {'formatted_address': address, 'lat': coordinate.lat, 'lng': coordinate.lng}

    async def reverse_geocode(self, coordinate):
        for address, known in self.addresses.items():
            if known == coordinate:
                return address
        return None


def make_place(place_id: str, name: str, lat: float, lng: float, address: Optional[str] = None,
               types=()) -> Place:
    return Place(id=place_id, name=name, coordinate=Coordinate(lat, lng), address=address,
                 types=tuple(types), handle=place_id)


@pytest.fixture
def place_a():
    return make_place('a', 'Sushi Ramen Thai House', 37.79, -122.35, '1 Market St')


@pytest.fixture
def place_b():
    return make_place('b', 'Corner Diner', 37.78, -122.33, '2 Mission St')


@pytest.fixture
def fake_maps(place_a, place_b):
    durations = {
        (P1_START, place_a.coordinate): 600.0,
        (P2_START, place_a.coordinate): 1200.0,
        (P1_START, place_b.coordinate): 900.0,
        (P2_START, place_b.coordinate): 900.0,
    }
    return FakeMaps(
        durations=durations,
        places=[place_a, place_b],
        addresses={'Ferry Building, San Francisco': P1_START, 'Lake Merritt, Oakland': P2_START},
    )
