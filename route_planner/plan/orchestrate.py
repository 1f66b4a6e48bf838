from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import DirectionsError, GeocodingError
from .models import Directions, Hub, Passenger, Trip

logger = logging.getLogger(__name__)

Coord = Tuple[float, float]


def geocode_passengers(passengers: Iterable[Passenger], geocoder) -> List[str]:
    """
    Fill lat/lng (origin) and dest_lat/dest_lng in place.
    Each distinct address is geocoded once; returns the addresses that failed.
    """
    passengers = list(passengers)
    addresses: List[str] = []
    seen = set()
    for p in passengers:
        for addr in (p.address, p.dest_address):
            if addr and addr not in seen:
                seen.add(addr)
                addresses.append(addr)

    resolved: Dict[str, Coord] = {}
    failures: List[str] = []
    for addr in addresses:
        try:
            res = geocoder.geocode(addr)
            resolved[addr] = (res.lat, res.lng)
        except GeocodingError as e:
            logger.debug("Geocode failed for %r: %s", addr, e)
            failures.append(addr)

    if failures:
        logger.warning("Route compute: %d/%d addresses failed to geocode", len(failures), len(addresses))

    for p in passengers:
        if p.address in resolved:
            p.lat, p.lng = resolved[p.address]
        if p.dest_address in resolved:
            p.dest_lat, p.dest_lng = resolved[p.dest_address]
    return failures


def _initials(name: str) -> str:
    return "".join(w[0] for w in name.split() if w).upper()


def log_duplicate_coordinates(passengers: Iterable[Passenger]) -> Dict[str, List[str]]:
    """Markers that would stack on the map: origins shared by several passengers."""
    by_coord: Dict[str, List[str]] = {}
    for p in passengers:
        if p.origin is None:
            continue
        key = f"{p.lat:.6f},{p.lng:.6f}"
        by_coord.setdefault(key, []).append(f"{_initials(p.name)} ({p.address})")

    dupes = {k: v for k, v in by_coord.items() if len(v) > 1}
    if dupes:
        logger.warning("Geocode: %d coordinates shared by multiple passengers:", len(dupes))
        for coord, names in dupes.items():
            logger.warning("  %s: %s", coord, " | ".join(names))
    return dupes


def _first_known(coords: Iterable[Optional[Coord]]) -> Optional[Coord]:
    for c in coords:
        if c is not None:
            return c
    return None


def compute_trip_directions(trip: Trip, directions_service, hub: Hub) -> Optional[Directions]:
    """
    Pickups: first stop -> remaining stops as optimizable waypoints -> facility.
    Dropoffs: facility -> all stops but the last -> last stop.
    The facility end is the first known coordinate on that side, else the hub.
    """
    stops = [p for p in trip.passengers if p.home(trip.type) is not None]
    if not stops:
        return None
    coords = [p.home(trip.type) for p in stops]
    hub_coord = (hub.lat, hub.lng)

    try:
        if trip.type == "pickup":
            destination = _first_known(p.destination for p in stops) or hub_coord
            return directions_service.get_directions(coords[0], destination, coords[1:])
        origin = _first_known(p.origin for p in stops) or hub_coord
        return directions_service.get_directions(origin, coords[-1], coords[:-1])
    except DirectionsError as e:
        logger.warning("Directions failed for trip %s: %s", trip.id, e)
        return None


def reorder_passengers_by_driving_order(trip: Trip) -> None:
    """
    Rewrite trip.passengers into driving order using directions.waypoint_order.

    The anchor stays put (first for pickups, last for dropoffs); ungeocoded
    passengers go to the end and the waypoint order becomes the identity.
    """
    if trip.directions is None or not trip.directions.waypoint_order:
        return

    geocoded = [p for p in trip.passengers if p.home(trip.type) is not None]
    missing = [p for p in trip.passengers if p.home(trip.type) is None]
    if len(geocoded) <= 1:
        return

    order = trip.directions.waypoint_order
    if trip.type == "pickup":
        reordered = [geocoded[0]] + [geocoded[1 + i] for i in order if 0 <= 1 + i < len(geocoded)]
    else:
        reordered = [geocoded[i] for i in order if 0 <= i < len(geocoded)] + [geocoded[-1]]

    trip.set_passengers(reordered + missing)
    trip.directions.waypoint_order = list(range(len(reordered)))
