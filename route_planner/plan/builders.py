from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple

from .. import config
from ..directions import DirectionsService
from ..geocode import Geocoder
from ..manifest import ManifestJobRow, PICKUP, DROPOFF
from .clusters import ClusterTables, DEFAULT_CLUSTER_TABLES
from .models import AppConfig, Hub, Trip, VehicleConfig
from .optimizer_adapter import RouteOptimizationClient, optimize_trips
from .orchestrate import (
    compute_trip_directions,
    geocode_passengers,
    log_duplicate_coordinates,
    reorder_passengers_by_driving_order,
)
from .packing import build_optimized_routes
from .passengers import row_to_passenger, split_by_leg

logger = logging.getLogger(__name__)

TripPair = Tuple[List[Trip], List[Trip]]


def run_both_directions(pickup: Callable[[], List[Trip]], dropoff: Callable[[], List[Trip]]) -> TripPair:
    """Run the pickup and dropoff branches concurrently; either failure propagates."""
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="route-branch") as pool:
        f_pickup = pool.submit(pickup)
        f_dropoff = pool.submit(dropoff)
        return f_pickup.result(), f_dropoff.result()


def default_hub() -> Hub:
    return Hub(**config.hub())


class TripBuilder(ABC):
    """Turns manifest rows into (pickup_trips, dropoff_trips)."""

    @abstractmethod
    def build(self, rows: Sequence[ManifestJobRow], app_config: AppConfig, vehicle_config: VehicleConfig) -> TripPair:
        raise NotImplementedError


class ClusterPackTripBuilder(TripBuilder):
    """
    Zip-cluster packing, then geocoding and one directions call per trip.
    With no geocoder the trips come back as packed (no coordinates, no directions).
    """

    def __init__(
        self,
        geocoder=None,
        directions_service=None,
        hub: Optional[Hub] = None,
        tables: ClusterTables = DEFAULT_CLUSTER_TABLES,
    ):
        self.geocoder = geocoder
        self.directions_service = directions_service
        self.hub = hub or default_hub()
        self.tables = tables

    def _route_trips(self, trips: List[Trip]) -> List[Trip]:
        for trip in trips:
            trip.directions = compute_trip_directions(trip, self.directions_service, self.hub)
            reorder_passengers_by_driving_order(trip)
        return trips

    def build(self, rows, app_config, vehicle_config) -> TripPair:
        pickup_trips, dropoff_trips = build_optimized_routes(rows, self.tables)
        if self.geocoder is None:
            return pickup_trips, dropoff_trips

        passengers = [p for t in pickup_trips + dropoff_trips for p in t.passengers]
        geocode_passengers(passengers, self.geocoder)
        log_duplicate_coordinates(passengers)
        if self.directions_service is None:
            return pickup_trips, dropoff_trips

        return run_both_directions(
            lambda: self._route_trips(pickup_trips),
            lambda: self._route_trips(dropoff_trips),
        )


class RouteOptimizerTripBuilder(TripBuilder):
    """Geocode every passenger, then let the external optimizer assign and sequence them."""

    def __init__(self, geocoder, client: Optional[RouteOptimizationClient] = None, hub: Optional[Hub] = None):
        self.geocoder = geocoder
        self.client = client or RouteOptimizationClient()
        self.hub = hub or default_hub()

    def build(self, rows, app_config, vehicle_config) -> TripPair:
        pickup_rows, dropoff_rows = split_by_leg(rows)
        pickups = [row_to_passenger(r) for r in pickup_rows]
        dropoffs = [row_to_passenger(r) for r in dropoff_rows]

        geocode_passengers(pickups + dropoffs, self.geocoder)
        log_duplicate_coordinates(pickups + dropoffs)

        def branch(passengers, direction):
            return lambda: optimize_trips(
                passengers,
                vehicle_config.vehicles,
                app_config.drive_time_limit_minutes,
                app_config.time_window_buffer_minutes,
                direction,
                client=self.client,
                hub=self.hub,
            )

        return run_both_directions(branch(pickups, PICKUP), branch(dropoffs, DROPOFF))


def select_trip_builder(geocoder=None, directions_service=None, hub: Optional[Hub] = None) -> TripBuilder:
    """Optimizer when GOOGLE_CLOUD_PROJECT_ID is set, cluster packing otherwise."""
    geocoder = geocoder or Geocoder()
    if config.use_route_optimization():
        logger.info("Trip builder: external route optimizer")
        return RouteOptimizerTripBuilder(geocoder, hub=hub)
    logger.info("Trip builder: zip-cluster packing")
    return ClusterPackTripBuilder(geocoder, directions_service or DirectionsService(), hub=hub)
