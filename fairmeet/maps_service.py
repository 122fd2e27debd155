import asyncio
import concurrent.futures
import datetime as _dt
import enum
import logging
import uuid
from typing import Dict, Iterable, List, Optional, Protocol

import googlemaps
from googlemaps import exceptions as gm_exceptions

from .geo import distance_m
from .models import Coordinate, Place, PlaceCategory

logger = logging.getLogger(__name__)


# --- Module-level constants ---
MAX_SEARCH_RESULTS = 25
MAX_TRANSIT_HUB_RESULTS = 50
PLACES_MAX_RADIUS_M = 50000   # Places text search rejects larger radii
TRANSIT_HUB_QUERY = 'airport'
TRANSIT_HUB_NAME_KEYWORDS = ('airport', 'international', 'airfield', 'aerodrome')
TRANSIT_HUB_TYPES = ('airport', 'train_station', 'transit_station')

_CLIENT_ERRORS = (gm_exceptions.ApiError, gm_exceptions.TransportError, gm_exceptions.Timeout)


class TransportType(str, enum.Enum):
    """Transport profiles the routing provider understands"""
    AUTOMOBILE = 'automobile'
    WALKING = 'walking'
    TRANSIT = 'transit'


_GOOGLE_MODES = {
    TransportType.AUTOMOBILE: 'driving',
    TransportType.WALKING: 'walking',
    TransportType.TRANSIT: 'transit',
}


# --- Collaborator interfaces ---

class RoutingProvider(Protocol):
    async def route(self, origin: Coordinate, destination: Coordinate,
                    transport_type: TransportType) -> Optional[float]:
        """Duration in seconds of the first route found, or None when there is no route"""


class PlaceSource(Protocol):
    async def search(self, center: Coordinate, radius: float,
                     category: Optional[PlaceCategory] = None,
                     query: Optional[str] = None) -> List[Place]:
        ...

    async def search_transit_hubs(self, center: Coordinate, radius: float) -> List[Place]:
        ...


class Geocoder(Protocol):
    async def geocode(self, address: str) -> Optional[Dict]:
        """{'formatted_address', 'lat', 'lng'} for the best match, or None"""

    async def reverse_geocode(self, coordinate: Coordinate) -> Optional[str]:
        ...


def is_transit_hub(place: Place) -> bool:
    name = place.name.lower()
    if any(keyword in name for keyword in TRANSIT_HUB_NAME_KEYWORDS):
        return True
    return any(t in TRANSIT_HUB_TYPES for t in place.types)


def select_transit_hubs(places: Iterable[Place], center: Coordinate,
                        limit: int = MAX_TRANSIT_HUB_RESULTS) -> List[Place]:
    """Keep the transit hubs, nearest to center first"""
    hubs = [p for p in places if is_transit_hub(p)]
    hubs.sort(key=lambda p: distance_m(p.coordinate, center))
    return hubs[:limit]


def _fmt(point: Coordinate) -> str:
    return f"{point.lat},{point.lng}"


def place_from_result(result: Dict) -> Place:
    """Convert a Places API result into a Place"""
    location = result['geometry']['location']
    place_id = result.get('place_id')
    return Place(
        id=place_id or str(uuid.uuid4()),
        name=result.get('name') or 'Unknown Place',
        coordinate=Coordinate(lat=location['lat'], lng=location['lng']),
        address=result.get('formatted_address') or result.get('vicinity'),
        phone_number=result.get('formatted_phone_number'),
        url=result.get('website'),
        types=tuple(result.get('types', [])),
        handle=place_id,
    )


class GoogleMapsService:
    """Routing, place search and geocoding backed by the Google Maps APIs"""

    def __init__(self, api_key: str, max_workers: int = 10, client: Optional[googlemaps.Client] = None):
        if client is None:
            if not api_key or api_key == "your_api_key_here":
                raise ValueError("Valid Google Maps API key is required")
            client = googlemaps.Client(key=api_key)
        self.client = client
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)

    def cleanup(self):
        """Clean up resources"""
        if hasattr(self, 'executor'):
            self.executor.shutdown(wait=True)

    def geocode_address(self, address: str) -> Optional[Dict]:
        """
        Geocode an address using Google Maps Geocoding API
        Returns formatted address and coordinates
        """
        try:
            result = self.client.geocode(address)
        except _CLIENT_ERRORS as e:
            logger.warning("Geocoding error for %r: %s", address, e)
            return None
        if not result:
            return None
        location = result[0]
        return {
            'formatted_address': location['formatted_address'],
            'lat': location['geometry']['location']['lat'],
            'lng': location['geometry']['location']['lng'],
        }

    def reverse_geocode_coordinate(self, coordinate: Coordinate) -> Optional[str]:
        try:
            result = self.client.reverse_geocode((coordinate.lat, coordinate.lng))
        except _CLIENT_ERRORS as e:
            logger.warning("Reverse geocoding error for %s: %s", _fmt(coordinate), e)
            return None
        if not result:
            return None
        return result[0].get('formatted_address')

    def get_route_duration(self, origin: Coordinate, destination: Coordinate,
                           transport_type: TransportType) -> Optional[float]:
        """
        Travel time in seconds along the first route the Directions API returns.
        Alternates are never requested.
        """
        mode = _GOOGLE_MODES[transport_type]
        departure_time = _dt.datetime.now() if transport_type == TransportType.TRANSIT else None
        try:
            directions_result = self.client.directions(
                origin=_fmt(origin),
                destination=_fmt(destination),
                mode=mode,
                departure_time=departure_time,
                alternatives=False,
            )
        except _CLIENT_ERRORS as e:
            logger.warning("Directions error (%s -> %s, %s): %s",
                           _fmt(origin), _fmt(destination), mode, e)
            return None

        if not directions_result:
            return None

        route = directions_result[0]
        total_duration = 0
        for leg in route.get('legs', []):
            if 'duration' in leg and 'value' in leg['duration']:
                total_duration += leg['duration']['value']
        return float(total_duration) if route.get('legs') else None

    def find_places(self, center: Coordinate, radius: float, query: str,
                    limit: Optional[int] = MAX_SEARCH_RESULTS) -> List[Place]:
        """Text search for places around center, at most limit results (None for all)"""
        try:
            places_result = self.client.places(
                query=query,
                location=(center.lat, center.lng),
                radius=int(min(radius, PLACES_MAX_RADIUS_M)),
            )
        except _CLIENT_ERRORS as e:
            logger.warning("Places search error for %r: %s", query, e)
            return []

        return [place_from_result(r) for r in places_result.get('results', [])[:limit]]

    # Async interface used by the ranking core
    async def geocode(self, address: str) -> Optional[Dict]:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self.executor, self.geocode_address, address)

    async def reverse_geocode(self, coordinate: Coordinate) -> Optional[str]:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self.executor, self.reverse_geocode_coordinate, coordinate)

    async def route(self, origin: Coordinate, destination: Coordinate,
                    transport_type: TransportType) -> Optional[float]:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            self.executor, self.get_route_duration, origin, destination, transport_type
        )

    async def search(self, center: Coordinate, radius: float,
                     category: Optional[PlaceCategory] = None,
                     query: Optional[str] = None) -> List[Place]:
        if not query:
            if category is None:
                raise ValueError('Either a category or a free-text query is required')
            query = category.search_query
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self.executor, self.find_places, center, radius, query)

    async def search_transit_hubs(self, center: Coordinate, radius: float) -> List[Place]:
        loop = asyncio.get_event_loop()
        found = await loop.run_in_executor(
            self.executor, self.find_places, center, radius, TRANSIT_HUB_QUERY, None
        )
        return select_transit_hubs(found, center)
