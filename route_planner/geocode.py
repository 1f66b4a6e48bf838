from __future__ import annotations
import logging
from functools import lru_cache
from typing import List, Optional, Sequence

import googlemaps

from . import config
from .cache import FileCache
from .errors import GeocodingError
from .maps_client import make_maps_client
from .normalize import generate_cache_key, normalize_address
from .plan.models import BatchGeocodeItem, GeocodeResult
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class GoogleGeocodingProvider:
    def __init__(self, client: Optional[googlemaps.Client] = None):
        self.client = client or make_maps_client()

    def geocode(self, address: str) -> GeocodeResult:
        try:
            results = self.client.geocode(address)
        except (googlemaps.exceptions.ApiError,
                googlemaps.exceptions.TransportError,
                googlemaps.exceptions.Timeout) as e:
            raise GeocodingError(f"Geocoding failed for {address!r}: {e}") from e
        if not results:
            raise GeocodingError(f"No results for address: {address}")
        top = results[0]
        loc = top["geometry"]["location"]
        return GeocodeResult(
            lat=float(loc["lat"]),
            lng=float(loc["lng"]),
            formatted_address=top.get("formatted_address", ""),
            place_id=top.get("place_id", ""),
        )


@lru_cache(maxsize=1)
def geocode_limiter() -> RateLimiter:
    """Process-wide limiter; every geocoding call funnels through it."""
    return RateLimiter(config.geocode_delay_seconds(), name="geocode-limiter")


class Geocoder:
    """Cache-first geocoding. Misses go to the provider through the rate limiter."""

    def __init__(self, provider=None, cache: Optional[FileCache] = None, limiter: Optional[RateLimiter] = None):
        self.provider = provider if provider is not None else GoogleGeocodingProvider()
        self.cache = cache if cache is not None else FileCache()
        self.limiter = limiter if limiter is not None else geocode_limiter()

    def geocode(self, address: str) -> GeocodeResult:
        if not (address or "").strip():
            raise GeocodingError("Address is empty")
        key = generate_cache_key("geocode", normalize_address(address))
        hit = self.cache.get(key)
        if hit is not None:
            return GeocodeResult(**hit)

        result = self.limiter.schedule(lambda: self.provider.geocode(address))
        self.cache.set(key, result.model_dump())
        return result

    def batch_geocode(self, addresses: Sequence[str]) -> List[BatchGeocodeItem]:
        out: List[BatchGeocodeItem] = []
        for address in addresses:
            try:
                out.append(BatchGeocodeItem(address=address, result=self.geocode(address)))
            except GeocodingError as e:
                out.append(BatchGeocodeItem(address=address, error=str(e)))
        return out
