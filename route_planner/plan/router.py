from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from .. import config
from ..errors import DirectionsError, GeocodingError, RoutePlannerError
from ..manifest import ManifestJobRow
from .builders import ClusterPackTripBuilder
from .compute import RouteService, compute_routes
from .models import (
    AppConfig,
    BatchGeocodeRequest,
    DEFAULT_VEHICLES,
    Directions,
    DirectionsRequest,
    GeocodeRequest,
    GeocodeResult,
    Hub,
    OptimizeRowsRequest,
    RouteData,
    VehicleConfig,
)
from .passenger_index import build_passenger_index
from .trip_utils import sort_trips

logger = logging.getLogger(__name__)


def _rows_from_payload(raw_rows: List[Dict[str, Any]]) -> List[ManifestJobRow]:
    rows: List[ManifestJobRow] = []
    for i, raw in enumerate(raw_rows):
        if not str(raw.get("job_id") or "").strip() or not str(raw.get("cust_name") or "").strip():
            raise HTTPException(status_code=400, detail=f"Row {i}: job_id and cust_name are required")
        rows.append(ManifestJobRow.from_dict(raw))
    return rows


def create_router(
    get_route_service: Callable[[], RouteService],
    get_geocoder: Callable[[], Any],
    get_directions_service: Callable[[], Any],
) -> APIRouter:
    """
    Factory for the routing endpoints. Collaborators are fetched through
    callables on every request so env/config changes are picked up.
    """
    router = APIRouter(tags=["Routes"])

    def _route_data(manifest_id: Optional[str], force: bool = False):
        try:
            return get_route_service().get_route_data(manifest_id, force=force)
        except RoutePlannerError as e:
            logger.exception("Route computation failed")
            return JSONResponse(status_code=500, content={"error": f"Route computation failed: {e}"})

    @router.get("/routes")
    def get_routes(
        manifest_id: Optional[str] = Query(None, alias="manifestId"),
        force: bool = Query(False),
        sort: Optional[str] = Query(None, pattern="^(time|duration)$"),
    ):
        result = _route_data(manifest_id, force)
        if isinstance(result, JSONResponse):
            return result
        data, status = result
        if sort:
            data.pickup_trips = sort_trips(data.pickup_trips, sort)
            data.dropoff_trips = sort_trips(data.dropoff_trips, sort)
        # _cache describes this response, it is never part of the cached payload
        return {**data.model_dump(), "_cache": status.model_dump()}

    @router.get("/routes/passengers")
    def get_route_passengers(manifest_id: Optional[str] = Query(None, alias="manifestId")):
        """Per-passenger view: pickup and dropoff trip membership joined by name."""
        result = _route_data(manifest_id)
        if isinstance(result, JSONResponse):
            return result
        data, status = result
        return {
            "passengers": [p.model_dump() for p in build_passenger_index(data)],
            "_cache": status.model_dump(),
        }

    @router.post("/routes/optimize", response_model=RouteData)
    def optimize_rows(req: OptimizeRowsRequest):
        """Fallback packing only: no geocoding, no directions."""
        rows = _rows_from_payload(req.rows)
        hub = Hub(**config.hub())
        return compute_routes(
            rows,
            AppConfig(),
            VehicleConfig(vehicles=DEFAULT_VEHICLES),
            builder=ClusterPackTripBuilder(hub=hub),
            hub=hub,
        )

    @router.post("/geocode", response_model=GeocodeResult)
    def geocode(req: GeocodeRequest):
        try:
            return get_geocoder().geocode(req.address)
        except GeocodingError as e:
            return JSONResponse(status_code=500, content={"error": str(e)})

    @router.post("/geocode/batch")
    def geocode_batch(req: BatchGeocodeRequest):
        items = get_geocoder().batch_geocode(req.addresses)
        return {"results": [i.model_dump() for i in items]}

    @router.post("/directions", response_model=Directions)
    def directions(req: DirectionsRequest):
        try:
            return get_directions_service().get_directions(
                (req.origin.lat, req.origin.lng),
                (req.destination.lat, req.destination.lng),
                [(w.lat, w.lng) for w in req.waypoints],
            )
        except DirectionsError as e:
            return JSONResponse(status_code=500, content={"error": str(e)})

    return router
