import asyncio
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import RouteNotFound
from .maps_service import RoutingProvider, TransportType
from .models import Coordinate, TravelMode

logger = logging.getLogger(__name__)


DEFAULT_LOOKUP_TIMEOUT_S = 10.0

# Fixed mapping onto the provider's profiles. There is no cycling or air
# profile, so bike falls back to walking and flight to automobile.
TRANSPORT_TYPES = {
    TravelMode.DRIVE: TransportType.AUTOMOBILE,
    TravelMode.WALK: TransportType.WALKING,
    TravelMode.BIKE: TransportType.WALKING,
    TravelMode.BUS: TransportType.TRANSIT,
    TravelMode.FLIGHT: TransportType.AUTOMOBILE,
}

CacheKey = Tuple[Coordinate, Coordinate, TravelMode]


class TravelTimeResolver:
    """
    Estimates travel durations between coordinates and remembers them for the
    lifetime of the resolver.

    Entries are keyed by (origin, destination, mode). Concurrent lookups for
    the same key share a single in-flight provider call; failed lookups are
    not cached.
    """

    def __init__(self, provider: RoutingProvider, timeout: Optional[float] = DEFAULT_LOOKUP_TIMEOUT_S):
        self.provider = provider
        self.timeout = timeout
        self._cache: Dict[CacheKey, float] = {}
        self._pending: Dict[CacheKey, asyncio.Future] = {}
        self._hits = 0
        self._misses = 0
        self._provider_calls = 0

    async def get_travel_time(self, origin: Coordinate, destination: Coordinate, mode: TravelMode) -> float:
        """Duration in seconds; raises RouteNotFound when no route is available"""
        key = (origin, destination, TravelMode(mode))
        cached = self._cache.get(key)
        if cached is not None:
            self._hits += 1
            return cached

        pending = self._pending.get(key)
        # In-flight calls are only shared within one event loop
        if pending is None or pending.get_loop() is not asyncio.get_running_loop():
            self._misses += 1
            pending = asyncio.ensure_future(self._fetch(key))
            self._pending[key] = pending
            pending.add_done_callback(lambda fut, key=key: self._release(key, fut))
        # Shielded so one caller timing out or being cancelled leaves the shared call running
        return await asyncio.shield(pending)

    async def get_travel_times(self, origins: Sequence[Coordinate], destination: Coordinate,
                               mode: TravelMode) -> List[float]:
        """
        One duration per origin, looked up concurrently and returned in input
        order. Any failed lookup comes back as math.inf; only cancellation
        propagates.
        """
        results = await asyncio.gather(
            *(self.get_travel_time(origin, destination, mode) for origin in origins),
            return_exceptions=True,
        )
        durations: List[float] = []
        for origin, result in zip(origins, results):
            if isinstance(result, RouteNotFound):
                logger.debug("No route from %s to %s (%s): %s", origin, destination, mode, result)
                durations.append(math.inf)
            elif isinstance(result, Exception):
                logger.warning("Route lookup failed from %s to %s (%s): %r", origin, destination, mode, result)
                durations.append(math.inf)
            elif isinstance(result, BaseException):
                raise result
            else:
                durations.append(result)
        return durations

    def clear_cache(self):
        self._cache.clear()
        self._hits = 0
        self._misses = 0
        self._provider_calls = 0

    def cache_stats(self) -> Dict:
        total = self._hits + self._misses
        return {
            'size': len(self._cache),
            'hits': self._hits,
            'misses': self._misses,
            'in_flight': len(self._pending),
            'provider_calls': self._provider_calls,
            'hit_rate': round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }

    async def _fetch(self, key: CacheKey) -> float:
        origin, destination, mode = key
        transport_type = TRANSPORT_TYPES[mode]
        self._provider_calls += 1
        try:
            duration = await asyncio.wait_for(
                self.provider.route(origin, destination, transport_type), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Route lookup timed out after %ss (%s -> %s, %s)",
                           self.timeout, origin, destination, mode.value)
            raise RouteNotFound(f"Route lookup timed out after {self.timeout}s")

        if duration is None:
            raise RouteNotFound(f"No {transport_type.value} route from {origin} to {destination}")

        duration = float(duration)
        self._cache[key] = duration
        return duration

    def _release(self, key: CacheKey, fut: asyncio.Future):
        if self._pending.get(key) is fut:
            del self._pending[key]
        if not fut.cancelled():
            # Mark the outcome as retrieved even if every waiter went away
            fut.exception()
