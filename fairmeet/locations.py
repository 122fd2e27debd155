import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from .errors import LocationUnavailable
from .maps_service import Geocoder
from .models import (AddressText, Coordinate, CurrentLocation, FixedCoordinate, Participant,
                     PlaceCategory, StartPoint, TravelMode)

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS = 8

CurrentLocationSource = Callable[[], Awaitable[Optional[Coordinate]]]


class CoordinateResolver:
    """Turns start points into coordinates, one strategy per start point type"""

    def __init__(self, geocoder: Geocoder, current_location: Optional[CurrentLocationSource] = None):
        self.geocoder = geocoder
        self.current_location = current_location
        self._strategies = {
            CurrentLocation: self._resolve_current_location,
            FixedCoordinate: self._resolve_fixed_coordinate,
            AddressText: self._resolve_address,
        }

    async def resolve(self, start: StartPoint) -> Coordinate:
        strategy = self._strategies.get(type(start))
        if strategy is None:
            raise TypeError(f"Unsupported start point: {start!r}")
        return await strategy(start)

    async def reverse_describe(self, coordinate: Coordinate) -> str:
        label = await self.geocoder.reverse_geocode(coordinate)
        return label or f"{coordinate.lat:.5f}, {coordinate.lng:.5f}"

    async def _resolve_current_location(self, start: CurrentLocation) -> Coordinate:
        if self.current_location is None:
            raise LocationUnavailable('Current location is not available')
        coordinate = await self.current_location()
        if coordinate is None:
            raise LocationUnavailable('Current location is not available')
        return coordinate

    async def _resolve_fixed_coordinate(self, start: FixedCoordinate) -> Coordinate:
        return start.coordinate

    async def _resolve_address(self, start: AddressText) -> Coordinate:
        result = await self.geocoder.geocode(start.query)
        if not result:
            raise LocationUnavailable(f"Could not geocode address: {start.query}")
        return Coordinate(lat=result['lat'], lng=result['lng'])


@dataclass
class MeetRequest:
    """A group of participants looking for a place to meet"""
    title: str
    participants: List[Participant] = field(default_factory=list)
    mode: TravelMode = TravelMode.DRIVE
    category: PlaceCategory = PlaceCategory.RESTAURANT
    resolved_coordinates: Dict[str, Coordinate] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def add_participant(self, name: str, start: Optional[StartPoint] = None) -> Participant:
        participant = Participant(name=name, start=start or CurrentLocation())
        self.participants.append(participant)
        return participant

    def remove_participant(self, participant_id: str):
        self.participants = [p for p in self.participants if p.id != participant_id]
        self.resolved_coordinates.pop(participant_id, None)
        self.errors.pop(participant_id, None)

    def set_participant_start(self, participant_id: str, start: StartPoint):
        for participant in self.participants:
            if participant.id == participant_id:
                participant.start = start
                self.resolved_coordinates.pop(participant_id, None)
                self.errors.pop(participant_id, None)
                return
        raise KeyError(participant_id)

    async def resolve_all(self, resolver: CoordinateResolver) -> Dict[str, Coordinate]:
        """
        Resolve every participant that has no coordinate yet. A participant
        whose location cannot be resolved is recorded in errors and skipped.
        """
        for participant in self.participants:
            if participant.id in self.resolved_coordinates:
                continue
            try:
                coordinate = await resolver.resolve(participant.start)
            except LocationUnavailable as e:
                logger.warning("Failed to resolve location for %s: %s", participant.name, e)
                self.errors[participant.id] = str(e)
                continue
            self.resolved_coordinates[participant.id] = coordinate
            self.errors.pop(participant.id, None)
        return dict(self.resolved_coordinates)

    def can_proceed(self) -> bool:
        if not self.title.strip():
            return False
        if not MIN_PARTICIPANTS <= len(self.participants) <= MAX_PARTICIPANTS:
            return False
        return all(p.id in self.resolved_coordinates for p in self.participants)
