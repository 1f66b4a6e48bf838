from __future__ import annotations
import math
import re
from typing import List, Optional

from ..timeparse import try_parse_time
from .models import Trip

_HOURS = re.compile(r"(\d+)\s*(?:hour|hr)")
_MINS = re.compile(r"(\d+)\s*min")


def earliest_time(trip: Trip) -> Optional[str]:
    """Earliest parseable passenger time as written in the manifest."""
    best, best_min = None, math.inf
    for p in trip.passengers:
        m = try_parse_time(p.time)
        if m is not None and m < best_min:
            best, best_min = p.time, m
    return best


def earliest_time_minutes(trip: Trip) -> float:
    t = earliest_time(trip)
    m = try_parse_time(t)
    return m if m is not None else math.inf


def trip_duration_seconds(trip: Trip) -> float:
    """Sum of leg durations parsed from their display text; inf when unknown."""
    if trip.directions is None or not trip.directions.legs:
        return math.inf
    total = 0
    for leg in trip.directions.legs:
        h = _HOURS.search(leg.duration)
        m = _MINS.search(leg.duration)
        if h:
            total += int(h.group(1)) * 3600
        if m:
            total += int(m.group(1)) * 60
    return total or math.inf


def sort_trips(trips: List[Trip], by: str) -> List[Trip]:
    """Stable sort by earliest passenger time or total drive time; unknowns last."""
    key = earliest_time_minutes if by == "time" else trip_duration_seconds
    return sorted(trips, key=key)
