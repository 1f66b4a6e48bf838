from __future__ import annotations
import logging
from typing import Optional

import googlemaps

from . import config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def make_maps_client(api_key: Optional[str] = None) -> googlemaps.Client:
    """
    Build the googlemaps client shared by geocoding and directions.

    Pacing is done by our own RateLimiter, so the client's QPS cap is loose and
    over-query-limit responses are surfaced instead of retried.
    """
    key = api_key or config.google_maps_api_key()
    if not key:
        raise ConfigurationError("GOOGLE_MAPS_API_KEY is required for geocoding and directions")
    try:
        return googlemaps.Client(
            key=key,
            queries_per_second=max(1, config._env_int("GOOGLE_MAPS_QPS", 50)),
            timeout=config._env_float("GOOGLE_MAPS_TIMEOUT_SEC", 10.0),
            retry_timeout=config._env_float("GOOGLE_MAPS_RETRY_TIMEOUT_SEC", 1.0),
            retry_over_query_limit=False,
        )
    except ValueError as e:
        # googlemaps rejects malformed keys at construction time
        raise ConfigurationError(f"Failed to initialise Google Maps client: {e}") from e
