from __future__ import annotations
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import google.auth
import google.auth.exceptions
import requests
from google.auth.transport.requests import AuthorizedSession

from .. import config
from ..errors import ConfigurationError, SolverError
from ..timeparse import try_parse_time
from .clusters import color_for
from .models import DirectionLeg, Directions, Hub, Passenger, Trip, Vehicle

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
STOP_DURATION = "120s"
SKIP_PENALTY = 100000
COST_PER_HOUR = 30
COST_PER_KILOMETER = 1
METERS_PER_MILE = 1609.34
DAY_MINUTES = 24 * 60

_VIRTUAL_SUFFIX = re.compile(r" #\d+$")
_DURATION = re.compile(r"^([\d.]+)s$")


class RouteOptimizationClient:
    """
    Thin transport for the optimizeTours endpoint.

    GOOGLE_CLOUD_PROJECT_ID selects the project. Requests are signed with
    application default credentials (cloud-platform scope, refreshed by the
    session as tokens expire); ROUTE_OPTIMIZATION_ACCESS_TOKEN overrides them
    with a fixed bearer token.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_sec: Optional[float] = None,
    ):
        self.project_id = project_id or config.route_optimization_project_id()
        self.base_url = (base_url or config.route_optimization_url()).rstrip("/")
        self.timeout = float(timeout_sec or config.route_optimization_timeout())
        if not self.project_id:
            raise ConfigurationError("GOOGLE_CLOUD_PROJECT_ID is required for route optimization")
        self.session = self._make_session(access_token or config.route_optimization_token())

    @staticmethod
    def _make_session(access_token: str) -> requests.Session:
        if access_token:
            session = requests.Session()
            session.headers["Authorization"] = f"Bearer {access_token}"
            return session
        try:
            credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        except google.auth.exceptions.DefaultCredentialsError as e:
            raise ConfigurationError(
                "No Google credentials for route optimization: configure application default "
                "credentials or set ROUTE_OPTIMIZATION_ACCESS_TOKEN"
            ) from e
        return AuthorizedSession(credentials)

    @property
    def url(self) -> str:
        return f"{self.base_url}/projects/{self.project_id}:optimizeTours"

    def optimize_tours(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SolverError(f"Route Optimization API unreachable: {e}") from e
        except google.auth.exceptions.GoogleAuthError as e:
            raise SolverError(f"Route Optimization credentials could not be refreshed: {e}") from e
        if not response.ok:
            raise SolverError(
                f"Route Optimization API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise SolverError("Route Optimization API returned a non-JSON body", status_code=response.status_code) from e


# -----------------------------
# Request building
# -----------------------------

def reference_midnight(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def _timestamp(reference_day: datetime, minutes: int) -> str:
    return (reference_day + timedelta(minutes=minutes)).strftime("%Y-%m-%dT%H:%M:%SZ")


def _location(coord: Tuple[float, float]) -> Dict[str, float]:
    return {"latitude": coord[0], "longitude": coord[1]}


def time_window(time_str: str, buffer_minutes: int, reference_day: datetime) -> Optional[Dict[str, str]]:
    """[t - buffer, t + buffer] clamped to the reference day; None when the time is unparseable."""
    t = try_parse_time(time_str)
    if t is None:
        return None
    start = max(0, t - buffer_minutes)
    end = min(DAY_MINUTES, t + buffer_minutes)
    return {"startTime": _timestamp(reference_day, start), "endTime": _timestamp(reference_day, end)}


def build_shipments(
    passengers: Sequence[Passenger],
    direction: str,
    buffer_minutes: int,
    reference_day: datetime,
) -> List[Dict[str, Any]]:
    shipments: List[Dict[str, Any]] = []
    for i, p in enumerate(passengers):
        visit: Dict[str, Any] = {
            "arrivalLocation": _location(p.home(direction)),
            "duration": STOP_DURATION,
        }
        window = time_window(p.time, buffer_minutes, reference_day)
        if window:
            visit["timeWindows"] = [window]
        shipments.append({
            ("pickups" if direction == "pickup" else "deliveries"): [visit],
            "loadDemands": {"seats": {"amount": "1"}},
            "label": p.name or f"passenger-{i}",
            "penaltyCost": SKIP_PENALTY,
        })
    return shipments


def trips_per_vehicle(n_passengers: int, vehicles: Sequence[Vehicle]) -> int:
    total_capacity = sum(v.capacity for v in vehicles)
    return max(2, math.ceil(n_passengers / max(total_capacity, 1)) + 1)


def build_virtual_vehicles(
    vehicles: Sequence[Vehicle],
    n_passengers: int,
    direction: str,
    drive_time_limit_minutes: int,
    hub: Hub,
) -> List[Dict[str, Any]]:
    """
    Each physical vehicle becomes several independent routes "{name} #k".

    Only the passenger-carrying side of the hub is pinned: pickups end at the
    hub, dropoffs start there. The empty leg then stays outside
    routeDurationLimit.
    """
    hub_location = _location((hub.lat, hub.lng))
    pin = "endLocation" if direction == "pickup" else "startLocation"
    copies = trips_per_vehicle(n_passengers, vehicles)
    defs: List[Dict[str, Any]] = []
    for v in vehicles:
        for k in range(1, copies + 1):
            defs.append({
                "displayName": f"{v.name} #{k}",
                pin: hub_location,
                "loadLimits": {"seats": {"maxLoad": str(v.capacity)}},
                "routeDurationLimit": {"maxDuration": f"{drive_time_limit_minutes * 60}s"},
                "costPerHour": COST_PER_HOUR,
                "costPerKilometer": COST_PER_KILOMETER,
            })
    return defs


def build_optimize_tours_request(
    shipments: List[Dict[str, Any]],
    vehicle_defs: List[Dict[str, Any]],
    reference_day: datetime,
) -> Dict[str, Any]:
    return {
        "model": {
            "shipments": shipments,
            "vehicles": vehicle_defs,
            "globalStartTime": _timestamp(reference_day, 0),
            "globalEndTime": _timestamp(reference_day, DAY_MINUTES),
        },
        "populatePolylines": True,
        "populateTransitionPolylines": True,
    }


# -----------------------------
# Response decoding
# -----------------------------

def parse_duration(value: Optional[str]) -> float:
    """'123s' -> 123.0; anything else -> 0."""
    m = _DURATION.match(value or "")
    return float(m.group(1)) if m else 0.0


def format_distance(meters: float) -> str:
    return f"{meters / METERS_PER_MILE:.1f} mi"


def format_duration(seconds: float) -> str:
    mins = int(math.floor(seconds / 60 + 0.5))
    if mins < 60:
        return f"{mins} mins"
    return f"{mins // 60} hr {mins % 60} mins"


def build_directions_from_route(route: Dict[str, Any]) -> Optional[Directions]:
    points = (route.get("routePolyline") or {}).get("points")
    if not points:
        return None
    legs = [
        DirectionLeg(
            distance=format_distance(float(t.get("travelDistanceMeters", 0) or 0)),
            duration=format_duration(parse_duration(t.get("travelDuration"))),
        )
        for t in route.get("transitions") or []
    ]
    return Directions(
        overview_polyline=points,
        waypoint_order=list(range(len(route.get("visits") or []))),
        legs=legs,
    )


def base_vehicle_name(display_name: str) -> str:
    return _VIRTUAL_SUFFIX.sub("", display_name)


def map_response_to_trips(
    response: Dict[str, Any],
    passengers: Sequence[Passenger],
    vehicle_defs: Sequence[Dict[str, Any]],
    direction: str,
) -> List[Trip]:
    active: List[Tuple[Dict[str, Any], str]] = []
    for route in response.get("routes") or []:
        if not route.get("visits"):
            continue
        idx = int(route.get("vehicleIndex", 0) or 0)
        name = vehicle_defs[idx]["displayName"] if idx < len(vehicle_defs) else f"Vehicle {idx + 1}"
        active.append((route, name))

    per_base: Dict[str, int] = {}
    for _, name in active:
        base = base_vehicle_name(name)
        per_base[base] = per_base.get(base, 0) + 1

    seen: Dict[str, int] = {}
    trips: List[Trip] = []
    for route, name in active:
        base = base_vehicle_name(name)
        seen[base] = seen.get(base, 0) + 1
        area = f"{base} (Trip {seen[base]})" if per_base[base] > 1 else base

        riders: List[Passenger] = []
        for visit in route["visits"]:
            idx = int(visit.get("shipmentIndex", 0) or 0)
            if 0 <= idx < len(passengers):
                riders.append(passengers[idx])
        if not riders:
            continue

        trips.append(Trip(
            id=f"{direction}-{len(trips) + 1}",
            type=direction,
            area=area,
            color=color_for(len(trips)),
            passengers=riders,
            directions=build_directions_from_route(route),
        ))
    return trips


def optimize_trips(
    passengers: Sequence[Passenger],
    vehicles: Sequence[Vehicle],
    drive_time_limit_minutes: int,
    time_window_buffer_minutes: int,
    direction: str,
    *,
    client: Optional[RouteOptimizationClient] = None,
    hub: Optional[Hub] = None,
    reference_day: Optional[datetime] = None,
) -> List[Trip]:
    """Assign passengers of one direction to vehicle trips via the external optimizer."""
    client = client or RouteOptimizationClient()
    hub = hub or Hub(**config.hub())
    reference_day = reference_day or reference_midnight()

    geocoded = [p for p in passengers if p.home(direction) is not None]
    if not geocoded:
        return []

    shipments = build_shipments(geocoded, direction, time_window_buffer_minutes, reference_day)
    vehicle_defs = build_virtual_vehicles(vehicles, len(geocoded), direction, drive_time_limit_minutes, hub)
    logger.info(
        "Route optimization (%s): %d passengers, %d vehicles x %d trips = %d virtual vehicles",
        direction, len(geocoded), len(vehicles), trips_per_vehicle(len(geocoded), vehicles), len(vehicle_defs),
    )

    response = client.optimize_tours(build_optimize_tours_request(shipments, vehicle_defs, reference_day))

    skipped = response.get("skippedShipments") or []
    if skipped:
        logger.warning(
            "Route optimization (%s): %d shipments skipped: %s",
            direction, len(skipped), ", ".join(str(s.get("label", s.get("index"))) for s in skipped),
        )

    return map_response_to_trips(response, geocoded, vehicle_defs, direction)
