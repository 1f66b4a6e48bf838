from __future__ import annotations
import logging
from functools import lru_cache
from typing import Any, Dict, Optional, Sequence, Tuple

import googlemaps

from . import config
from .cache import FileCache
from .errors import DirectionsError
from .maps_client import make_maps_client
from .normalize import format_directions_cache_input, generate_cache_key
from .plan.models import DirectionLeg, Directions
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

Coord = Tuple[float, float]


def directions_from_route(route: Dict[str, Any]) -> Directions:
    """Map one Directions API route to our payload (N stops -> N-1 legs)."""
    legs = [
        DirectionLeg(
            distance=(leg.get("distance") or {}).get("text", ""),
            duration=(leg.get("duration") or {}).get("text", ""),
            start_address=leg.get("start_address", ""),
            end_address=leg.get("end_address", ""),
        )
        for leg in route.get("legs", [])
    ]
    return Directions(
        overview_polyline=(route.get("overview_polyline") or {}).get("points", ""),
        waypoint_order=list(route.get("waypoint_order", [])),
        legs=legs,
    )


class GoogleDirectionsProvider:
    def __init__(self, client: Optional[googlemaps.Client] = None):
        self.client = client or make_maps_client()

    def directions(self, origin: Coord, destination: Coord, waypoints: Sequence[Coord]) -> Directions:
        try:
            routes = self.client.directions(
                origin,
                destination,
                mode="driving",
                waypoints=list(waypoints) or None,
                optimize_waypoints=bool(waypoints),
            )
        except (googlemaps.exceptions.ApiError,
                googlemaps.exceptions.TransportError,
                googlemaps.exceptions.Timeout) as e:
            raise DirectionsError(f"Directions request failed: {e}") from e
        if not routes:
            raise DirectionsError("Directions request returned no routes")
        return directions_from_route(routes[0])


@lru_cache(maxsize=1)
def directions_limiter() -> RateLimiter:
    return RateLimiter(config.directions_delay_seconds(), name="directions-limiter")


class DirectionsService:
    def __init__(self, provider=None, cache: Optional[FileCache] = None, limiter: Optional[RateLimiter] = None):
        self.provider = provider if provider is not None else GoogleDirectionsProvider()
        self.cache = cache if cache is not None else FileCache()
        self.limiter = limiter if limiter is not None else directions_limiter()

    def get_directions(self, origin: Coord, destination: Coord, waypoints: Sequence[Coord] = ()) -> Directions:
        waypoints = [tuple(w) for w in waypoints]
        key = generate_cache_key("directions", format_directions_cache_input(origin, destination, waypoints))
        hit = self.cache.get(key)
        if hit is not None:
            return Directions(**hit)

        result = self.limiter.schedule(lambda: self.provider.directions(origin, destination, waypoints))
        self.cache.set(key, result.model_dump())
        return result
