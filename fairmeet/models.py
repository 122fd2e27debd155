import enum
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import urlencode


class TravelMode(str, enum.Enum):
    DRIVE = 'drive'
    WALK = 'walk'
    BIKE = 'bike'
    BUS = 'bus'
    FLIGHT = 'flight'


class PlaceCategory(str, enum.Enum):
    RESTAURANT = 'restaurant'
    CAFE = 'cafe'
    ACTIVITY = 'activity'
    PARKING = 'parking'

    @property
    def search_query(self) -> str:
        return _SEARCH_QUERIES[self]


_SEARCH_QUERIES = {
    PlaceCategory.RESTAURANT: 'restaurant',
    PlaceCategory.CAFE: 'cafe',
    PlaceCategory.ACTIVITY: 'things to do',
    PlaceCategory.PARKING: 'parking',
}


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    @classmethod
    def from_dict(cls, data: Dict) -> 'Coordinate':
        return cls(lat=float(data['lat']), lng=float(data['lng']))

    def to_dict(self) -> Dict:
        return {'lat': self.lat, 'lng': self.lng}


# --- Start points: one variant per way a participant can say where they are ---

@dataclass(frozen=True)
class CurrentLocation:
    @property
    def display_label(self) -> str:
        return 'Current Location'


@dataclass(frozen=True)
class FixedCoordinate:
    lat: float
    lng: float
    label: Optional[str] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)

    @property
    def display_label(self) -> str:
        return self.label or 'Custom Location'


@dataclass(frozen=True)
class AddressText:
    query: str

    @property
    def display_label(self) -> str:
        return self.query


StartPoint = Union[CurrentLocation, FixedCoordinate, AddressText]


def start_point_from_dict(data: Optional[Dict]) -> StartPoint:
    """Build a start point from its JSON form, e.g. {"type": "address", "query": "..."}"""
    if not data:
        return CurrentLocation()
    kind = data.get('type', 'current')
    if kind == 'current':
        return CurrentLocation()
    if kind == 'coordinate':
        return FixedCoordinate(float(data['lat']), float(data['lng']), data.get('label'))
    if kind == 'address':
        query = (data.get('query') or '').strip()
        if not query:
            raise ValueError('address start point requires a query')
        return AddressText(query)
    raise ValueError(f"Unknown start point type: {kind}")


@dataclass
class Participant:
    name: str
    start: StartPoint = field(default_factory=CurrentLocation)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class Place:
    """A candidate venue as returned by the place source"""
    id: str
    name: str
    coordinate: Coordinate
    address: Optional[str] = None
    phone_number: Optional[str] = None
    url: Optional[str] = None
    types: Tuple[str, ...] = ()
    # Provider reference used for "open in maps" style actions
    handle: Optional[str] = None

    @property
    def maps_url(self) -> str:
        params = {
            'api': 1,
            'destination': f"{self.coordinate.lat},{self.coordinate.lng}",
        }
        if self.handle:
            params['destination_place_id'] = self.handle
        return 'https://www.google.com/maps/dir/?' + urlencode(params)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'lat': self.coordinate.lat,
            'lng': self.coordinate.lng,
            'formatted_address': self.address,
            'phone_number': self.phone_number,
            'url': self.url,
            'types': list(self.types),
            'place_id': self.handle,
            'maps_url': self.maps_url,
        }


@dataclass(frozen=True)
class PlaceScore:
    place: Place
    travel_times: Dict[str, float]  # participant id -> seconds
    fairness: float
    total_travel_time: float
    profile_match: float
    combined_score: float
    # Participants with a resolved start whose route to this place failed
    unreachable: Tuple[str, ...] = ()

    @property
    def max_travel_time(self) -> float:
        return max(self.travel_times.values(), default=0.0)

    @property
    def min_travel_time(self) -> float:
        return min(self.travel_times.values(), default=0.0)

    @property
    def avg_travel_time(self) -> float:
        if not self.travel_times:
            return 0.0
        return sum(self.travel_times.values()) / len(self.travel_times)

    @property
    def is_complete(self) -> bool:
        return not self.unreachable

    def to_dict(self) -> Dict:
        return {
            **self.place.to_dict(),
            'travel_times_seconds': dict(self.travel_times),
            'travel_times_minutes': {pid: round(t / 60, 1) for pid, t in self.travel_times.items()},
            'fairness_seconds': self.fairness,
            'total_travel_time_seconds': self.total_travel_time,
            'total_travel_time_minutes': round(self.total_travel_time / 60, 1),
            'avg_travel_time_minutes': round(self.avg_travel_time / 60, 1),
            'profile_match': self.profile_match,
            'combined_score': self.combined_score,
            'unreachable_participants': list(self.unreachable),
            'complete': self.is_complete,
        }


class BudgetRange(str, enum.Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


@dataclass
class Preferences:
    food_types: List[str] = field(default_factory=list)
    activity_types: List[str] = field(default_factory=list)
    budget: BudgetRange = BudgetRange.MEDIUM
    vibe: List[str] = field(default_factory=list)
    accessibility_needs: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'Preferences':
        data = data or {}
        return cls(
            food_types=list(data.get('food_types', [])),
            activity_types=list(data.get('activity_types', [])),
            budget=BudgetRange(data.get('budget', BudgetRange.MEDIUM.value)),
            vibe=list(data.get('vibe', [])),
            accessibility_needs=list(data.get('accessibility_needs', [])),
        )


@dataclass
class UserProfile:
    display_name: str = 'Me'
    preferences: Preferences = field(default_factory=Preferences)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
