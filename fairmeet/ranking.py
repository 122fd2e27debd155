import asyncio
import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .errors import EmptyCandidateSet, LocationUnavailable, NoReachableParticipants
from .geo import calculate_midpoint, calculate_search_radius
from .locations import MeetRequest
from .maps_service import PlaceSource
from .models import (Coordinate, Participant, Place, PlaceCategory, PlaceScore, Preferences,
                     TravelMode, UserProfile)
from .routing import TravelTimeResolver
from .scoring import calculate_profile_match, calculate_score

logger = logging.getLogger(__name__)


DEFAULT_TRANSIT_HUB_RADIUS_M = 500000  # hubs are sparse, search wide
DEFAULT_ACTIVITY_RADIUS_M = 5000


def filter_by_preferences(places: Sequence[Place], category: PlaceCategory,
                          preferences: Preferences) -> List[Place]:
    """
    Keep places whose name or address mentions one of the preferred food
    types (restaurants) or activity types (activities). Other categories, and
    an empty preference list, pass everything through.
    """
    if category == PlaceCategory.RESTAURANT:
        keywords = preferences.food_types
    elif category == PlaceCategory.ACTIVITY:
        keywords = preferences.activity_types
    else:
        keywords = []
    keywords = [k.lower() for k in keywords if k]
    if not keywords:
        return list(places)

    def _matches(place: Place) -> bool:
        text = f"{place.name} {place.address or ''}".lower()
        return any(keyword in text for keyword in keywords)

    return [p for p in places if _matches(p)]


class RankingState(str, enum.Enum):
    IDLE = 'idle'
    COLLECTING_CANDIDATES = 'collecting-candidates'
    SCORING = 'scoring'
    SORTED = 'sorted'


class RankingOrchestrator:
    """Scores every candidate place for a group and orders them best first"""

    def __init__(self, travel_times: TravelTimeResolver):
        self.travel_times = travel_times

    async def score_place(
        self,
        place: Place,
        participants: Sequence[Participant],
        resolved_coordinates: Mapping[str, Coordinate],
        mode: TravelMode,
        category: PlaceCategory,
        profile: UserProfile,
    ) -> Optional[PlaceScore]:
        """
        Score one place, or return None when no participant can reach it.
        Participants without a resolved start are ignored; those whose route
        fails are left out of the durations and listed as unreachable.
        """
        routable = [p for p in participants if p.id in resolved_coordinates]
        durations = await self.travel_times.get_travel_times(
            [resolved_coordinates[p.id] for p in routable], place.coordinate, mode
        )

        travel_times: Dict[str, float] = {}
        unreachable: List[str] = []
        for participant, duration in zip(routable, durations):
            if math.isinf(duration):
                unreachable.append(participant.id)
            else:
                travel_times[participant.id] = duration

        if not travel_times:
            logger.debug("Dropping %s: no participant could reach it", place.name)
            return None

        profile_match = calculate_profile_match(place, category, profile.preferences)
        breakdown = calculate_score(list(travel_times.values()), profile_match)
        return PlaceScore(
            place=place,
            travel_times=travel_times,
            fairness=breakdown.fairness,
            total_travel_time=breakdown.total,
            profile_match=profile_match,
            combined_score=breakdown.combined,
            unreachable=tuple(unreachable),
        )

    async def rank_places(
        self,
        places: Sequence[Place],
        participants: Sequence[Participant],
        resolved_coordinates: Mapping[str, Coordinate],
        mode: TravelMode,
        category: PlaceCategory,
        profile: Optional[UserProfile] = None,
        require_all: bool = False,
    ) -> List[PlaceScore]:
        """
        Rank places ascending by combined score (best first). Ties keep the
        order the place source returned them in. With require_all, places
        some participant cannot reach are dropped instead of kept as partial.
        """
        profile = profile or UserProfile()
        scores: List[PlaceScore] = []
        for place in places:
            score = await self.score_place(place, participants, resolved_coordinates, mode, category, profile)
            if score is None:
                continue
            if require_all and not score.is_complete:
                logger.debug("Dropping %s: unreachable for %d participant(s)", place.name, len(score.unreachable))
                continue
            scores.append(score)

        return sorted(scores, key=lambda s: s.combined_score)


@dataclass
class RankingResult:
    midpoint: Coordinate
    search_radius: float
    candidates_considered: int
    scores: List[PlaceScore] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'midpoint': self.midpoint.to_dict(),
            'search_radius_meters': self.search_radius,
            'candidates_considered': self.candidates_considered,
            'ranked_places': [s.to_dict() for s in self.scores],
        }


class MeetingPlanner:
    """Runs a ranking session: find candidates around the midpoint, then rank them"""

    def __init__(self, place_source: PlaceSource, travel_times: TravelTimeResolver):
        self.place_source = place_source
        self.travel_times = travel_times
        self.orchestrator = RankingOrchestrator(travel_times)
        self.state = RankingState.IDLE

    async def search_and_rank(
        self,
        meet: MeetRequest,
        profile: Optional[UserProfile] = None,
        query: Optional[str] = None,
        require_all: bool = False,
    ) -> RankingResult:
        """
        Search around the group's midpoint and rank what comes back. Every
        call starts from IDLE; on failure, state stays at the stage that raised.
        """
        self.state = RankingState.IDLE
        coordinates = [meet.resolved_coordinates[p.id] for p in meet.participants
                       if p.id in meet.resolved_coordinates]
        if not coordinates:
            raise LocationUnavailable('No valid locations found')

        self.state = RankingState.COLLECTING_CANDIDATES
        midpoint = calculate_midpoint(coordinates)
        radius = calculate_search_radius(coordinates)
        logger.info("Searching %s around %s (radius %.0fm)",
                    query or meet.category.search_query, midpoint, radius)

        places = await self.place_source.search(midpoint, radius, category=meet.category, query=query)
        if not places:
            raise EmptyCandidateSet(f"No places found near {midpoint.lat:.5f},{midpoint.lng:.5f}")

        self.state = RankingState.SCORING
        ranked = await self.orchestrator.rank_places(
            places,
            meet.participants,
            meet.resolved_coordinates,
            meet.mode,
            meet.category,
            profile,
            require_all=require_all,
        )
        self.state = RankingState.SORTED
        logger.info("Ranked %d of %d candidate places", len(ranked), len(places))

        if not ranked:
            raise NoReachableParticipants('None of the candidate places could be reached')
        return RankingResult(midpoint=midpoint, search_radius=radius,
                             candidates_considered=len(places), scores=ranked)

    async def find_transit_hubs(self, coordinates: Sequence[Coordinate],
                                radius: float = DEFAULT_TRANSIT_HUB_RADIUS_M) -> List[Place]:
        """Transit hubs nearest the group's midpoint"""
        midpoint = calculate_midpoint(coordinates)
        return await self.place_source.search_transit_hubs(midpoint, radius)

    async def find_activities(
        self,
        center: Coordinate,
        category: PlaceCategory = PlaceCategory.ACTIVITY,
        query: Optional[str] = None,
        profile: Optional[UserProfile] = None,
        radius: float = DEFAULT_ACTIVITY_RADIUS_M,
    ) -> List[Place]:
        """Places around a single location, narrowed by the profile's preferences"""
        places = await self.place_source.search(center, radius, category=category, query=query)
        profile = profile or UserProfile()
        filtered = filter_by_preferences(places, category, profile.preferences)
        logger.info("Found %d of %d places matching preferences near %s", len(filtered), len(places), center)
        return filtered

    def find_meeting_places(self, meet: MeetRequest, profile: Optional[UserProfile] = None,
                            query: Optional[str] = None, require_all: bool = False) -> RankingResult:
        """Blocking wrapper around search_and_rank"""
        return run_sync(self.search_and_rank(meet, profile, query, require_all))


def run_sync(coro):
    """Run a coroutine to completion on a fresh event loop"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
