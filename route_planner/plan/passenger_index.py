from __future__ import annotations
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .models import RouteData, Trip


class PassengerTripInfo(BaseModel):
    trip_id: str
    area: str
    color: str
    type: str
    stop_index: int
    co_passengers: List[str] = Field(default_factory=list)


class PassengerInfo(BaseModel):
    name: str
    address: str = ""
    dest_address: str = ""
    time: str = ""
    phone: str = ""
    purpose: str = ""
    notes: str = ""
    assistive_device: str = ""
    pickup_trip: Optional[PassengerTripInfo] = None
    dropoff_trip: Optional[PassengerTripInfo] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    dest_lat: Optional[float] = None
    dest_lng: Optional[float] = None


_FILL_IF_EMPTY = ("time", "phone", "purpose", "notes", "assistive_device")


def _index_trips(trips: List[Trip], index: Dict[str, PassengerInfo]) -> None:
    for trip in trips:
        names = [p.name for p in trip.passengers]
        for stop, p in enumerate(trip.passengers):
            if not p.name:
                continue
            info = PassengerTripInfo(
                trip_id=trip.id,
                area=trip.area,
                color=trip.color,
                type=trip.type,
                stop_index=stop,
                co_passengers=[n for n in names if n != p.name],
            )
            entry = index.get(p.name)
            if entry is None:
                entry = PassengerInfo(**p.model_dump(include=set(PassengerInfo.model_fields)))
                index[p.name] = entry

            if trip.type == "pickup":
                entry.pickup_trip = info
                if p.address:
                    entry.address = p.address
                if p.origin is not None:
                    entry.lat, entry.lng = p.origin
            else:
                entry.dropoff_trip = info
                if p.dest_address:
                    entry.dest_address = p.dest_address
                if p.destination is not None:
                    entry.dest_lat, entry.dest_lng = p.destination

            for field in _FILL_IF_EMPTY:
                value = getattr(p, field)
                if value and not getattr(entry, field):
                    setattr(entry, field, value)


def build_passenger_index(route_data: RouteData) -> List[PassengerInfo]:
    """One entry per passenger name joining their pickup and dropoff trips, sorted by name."""
    index: Dict[str, PassengerInfo] = {}
    _index_trips(route_data.pickup_trips, index)
    _index_trips(route_data.dropoff_trips, index)
    return sorted(index.values(), key=lambda e: e.name.lower())
