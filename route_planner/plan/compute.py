from __future__ import annotations
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from .. import config
from ..cache import FileCache
from ..manifest import ManifestJobRow
from ..normalize import generate_cache_key
from ..stores import ConfigStore, ManifestStore
from .builders import TripBuilder, select_trip_builder
from .models import AppConfig, CacheStatus, Hub, RouteData, VehicleConfig

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def compute_config_hash(app_config: AppConfig, vehicle_config: VehicleConfig) -> str:
    """Fingerprint of every setting that can change the computed routes."""
    payload = {
        "config": {
            "drive_time_limit_minutes": app_config.drive_time_limit_minutes,
            "time_window_buffer_minutes": app_config.time_window_buffer_minutes,
        },
        "vehicles": [v.model_dump() for v in vehicle_config.vehicles],
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:12]


def route_cache_key(manifest_id: str, config_hash: str) -> str:
    return f"{generate_cache_key('routes', manifest_id)}:{config_hash}"


def compute_routes(
    rows: Sequence[ManifestJobRow],
    app_config: AppConfig,
    vehicle_config: VehicleConfig,
    builder: Optional[TripBuilder] = None,
    hub: Optional[Hub] = None,
) -> RouteData:
    hub = hub or Hub(**config.hub())
    builder = builder or select_trip_builder(hub=hub)
    pickup_trips, dropoff_trips = builder.build(rows, app_config, vehicle_config)
    logger.info(
        "Computed %d pickup and %d dropoff trips for %d rows",
        len(pickup_trips), len(dropoff_trips), len(rows),
    )
    return RouteData(
        generated=_now_iso(),
        total_passengers=len(rows),
        hub=hub,
        pickup_trips=pickup_trips,
        dropoff_trips=dropoff_trips,
    )


class RouteService:
    """Manifest -> RouteData with a (manifest, config) keyed result cache."""

    def __init__(
        self,
        manifests: Optional[ManifestStore] = None,
        settings: Optional[ConfigStore] = None,
        cache: Optional[FileCache] = None,
        builder_factory=None,
    ):
        self.manifests = manifests or ManifestStore()
        self.settings = settings or ConfigStore()
        self.cache = cache or FileCache()
        self.builder_factory = builder_factory or select_trip_builder

    def get_route_data(self, manifest_id: Optional[str] = None, force: bool = False) -> Tuple[RouteData, CacheStatus]:
        """
        Latest manifest when no id is given; empty RouteData when there is none.
        `force` skips the cache read but still writes the fresh result.
        """
        manifest_id = manifest_id or self.manifests.latest_id()
        if not manifest_id:
            return RouteData.empty(), CacheStatus(cached=False)

        app_config = self.settings.get_config()
        vehicle_config = self.settings.get_vehicles()
        key = route_cache_key(manifest_id, compute_config_hash(app_config, vehicle_config))

        if not force:
            entry = self.cache.get_entry(key)
            if entry is not None:
                logger.info("Routes cache hit for manifest %s", manifest_id)
                return RouteData(**entry["data"]), CacheStatus(cached=True, cached_at=entry.get("stored_at"))

        rows = self.manifests.rows(manifest_id)
        if rows is None:
            return RouteData.empty(), CacheStatus(cached=False)

        data = compute_routes(rows, app_config, vehicle_config, builder=self.builder_factory())
        self.cache.set(key, data.model_dump())
        return data, CacheStatus(cached=False)


def get_route_data(manifest_id: Optional[str] = None, force: bool = False) -> Tuple[RouteData, CacheStatus]:
    return RouteService().get_route_data(manifest_id, force)
