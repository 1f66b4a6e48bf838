from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


LEG_TYPES = ("pickup", "dropoff")


# -----------------------------
# Trip / route payloads
# -----------------------------

class Passenger(BaseModel):
    name: str = ""
    address: str = ""
    dest_address: str = ""
    time: str = ""
    purpose: str = ""
    phone: str = ""
    notes: str = ""
    assistive_device: str = ""
    # None until geocoded; a pair is only trusted when both halves are set
    lat: Optional[float] = None
    lng: Optional[float] = None
    dest_lat: Optional[float] = None
    dest_lng: Optional[float] = None

    @property
    def origin(self) -> Optional[Tuple[float, float]]:
        if self.lat is None or self.lng is None:
            return None
        return (self.lat, self.lng)

    @property
    def destination(self) -> Optional[Tuple[float, float]]:
        if self.dest_lat is None or self.dest_lng is None:
            return None
        return (self.dest_lat, self.dest_lng)

    def home(self, leg_type: str) -> Optional[Tuple[float, float]]:
        """Pickups start at home, dropoffs end there."""
        return self.origin if leg_type == "pickup" else self.destination


class DirectionLeg(BaseModel):
    distance: str
    duration: str
    start_address: str = ""
    end_address: str = ""


class Directions(BaseModel):
    overview_polyline: str
    waypoint_order: List[int] = Field(default_factory=list)
    legs: List[DirectionLeg] = Field(default_factory=list)


class Trip(BaseModel):
    id: str
    type: str = Field(..., pattern="^(pickup|dropoff)$")
    area: str
    color: str
    passenger_count: int = 0
    passengers: List[Passenger] = Field(default_factory=list)
    directions: Optional[Directions] = None

    def model_post_init(self, __context: Any) -> None:
        self.passenger_count = len(self.passengers)

    def set_passengers(self, passengers: List[Passenger]) -> None:
        self.passengers = list(passengers)
        self.passenger_count = len(self.passengers)


class Hub(BaseModel):
    name: str
    address: str
    lat: float
    lng: float


class RouteData(BaseModel):
    generated: str
    total_passengers: int
    hub: Hub
    pickup_trips: List[Trip] = Field(default_factory=list)
    dropoff_trips: List[Trip] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "RouteData":
        return cls(generated="", total_passengers=0, hub=Hub(name="", address="", lat=0.0, lng=0.0))


class CacheStatus(BaseModel):
    cached: bool
    cached_at: Optional[str] = None


# -----------------------------
# Fleet + settings
# -----------------------------

class Vehicle(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    capacity: int = Field(..., ge=1)


class VehicleConfig(BaseModel):
    vehicles: List[Vehicle]

    @property
    def total_capacity(self) -> int:
        return sum(v.capacity for v in self.vehicles)


DEFAULT_VEHICLES: List[Dict[str, Any]] = [
    {"id": "van-1", "name": "Van 1", "capacity": 8},
    {"id": "van-2", "name": "Van 2", "capacity": 8},
    {"id": "van-3", "name": "Van 3", "capacity": 6},
]


class AppConfig(BaseModel):
    drive_time_limit_minutes: int = Field(
        45,
        ge=15,
        le=120,
        description="Max minutes any passenger rides in the vehicle",
    )
    time_window_buffer_minutes: int = Field(
        60,
        ge=15,
        le=180,
        description="+/- minutes around the scheduled time used as a solver time window",
    )


class AppConfigUpdate(BaseModel):
    drive_time_limit_minutes: Optional[int] = Field(None, ge=15, le=120)
    time_window_buffer_minutes: Optional[int] = Field(None, ge=15, le=180)


# -----------------------------
# Manifests
# -----------------------------

class ManifestMeta(BaseModel):
    id: str
    file_name: str
    job_date: str = ""
    uploaded_at: str
    size: int = 0
    total_rows: int = 0
    total_passengers: int = 0


class UploadResponse(BaseModel):
    id: str
    file_name: str
    job_date: str
    total_rows: int
    total_passengers: int
    parse_errors: Optional[List[str]] = None


# -----------------------------
# Geocode / directions endpoints
# -----------------------------

class LatLng(BaseModel):
    lat: float
    lng: float


class GeocodeResult(BaseModel):
    lat: float
    lng: float
    formatted_address: str = ""
    place_id: str = ""


class GeocodeRequest(BaseModel):
    address: str = Field(..., min_length=1)


class BatchGeocodeRequest(BaseModel):
    addresses: List[str] = Field(..., min_length=1, max_length=100)


class BatchGeocodeItem(BaseModel):
    address: str
    result: Optional[GeocodeResult] = None
    error: Optional[str] = None


class DirectionsRequest(BaseModel):
    origin: LatLng
    destination: LatLng
    waypoints: List[LatLng] = Field(default_factory=list)


class OptimizeRowsRequest(BaseModel):
    rows: List[Dict[str, Any]]

    @field_validator("rows")
    @classmethod
    def _non_empty(cls, v: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not v:
            raise ValueError("No manifest rows provided")
        return v
