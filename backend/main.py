#!/usr/bin/env python3

"""
Backend for the paratransit route planner.

Run locally:
  uvicorn backend.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations
import os
import traceback
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.manifest_routes import router as manifest_router
from backend.settings_routes import router as settings_router
from route_planner import config as rp_config
from route_planner.directions import DirectionsService
from route_planner.geocode import Geocoder
from route_planner.plan.compute import RouteService
from route_planner.plan.router import create_router as create_routes_router
from route_planner.runtime import configure_logging


# --------------------------------------------------------------------------------------------------
# Global Constants & Environment
# --------------------------------------------------------------------------------------------------
DEBUG_API = os.getenv("DEBUG_API", "0") == "1"
CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "*")
ALLOW_ORIGINS = [o.strip() for o in CORS_ALLOW_ORIGINS.split(",") if o.strip()] or ["*"]

logger = configure_logging("backend")


# --------------------------------------------------------------------------------------------------
# Public Endpoints
# --------------------------------------------------------------------------------------------------
def register_routes(app: FastAPI):
    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "private_data_dir": str(rp_config.data_dir()),
            "trip_builder": "route_optimization" if rp_config.use_route_optimization() else "cluster_pack",
            "maps_key_configured": bool(rp_config.google_maps_api_key()),
        }

    @app.get("/config")
    def config():
        return {
            "hub": rp_config.hub(),
            "cors_allow_origins": ALLOW_ORIGINS,
            "private_data_dir": str(rp_config.data_dir()),
            "geocode_delay_sec": rp_config.geocode_delay_seconds(),
            "directions_delay_sec": rp_config.directions_delay_seconds(),
        }

# --------------------------------------------------------------------------------------------------
# FastAPI App (with lifespan)
# --------------------------------------------------------------------------------------------------
def create_app(
    route_service_factory: Optional[Callable[[], RouteService]] = None,
    geocoder_factory: Optional[Callable[[], Geocoder]] = None,
    directions_factory: Optional[Callable[[], DirectionsService]] = None,
) -> FastAPI:
    async def lifespan(app: FastAPI):
        data_dir = rp_config.data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Using PRIVATE_DATA_DIR: %s", data_dir)
        if not rp_config.google_maps_api_key():
            logger.warning("GOOGLE_MAPS_API_KEY not set; geocoding and directions will fail")
        yield

    app = FastAPI(title="Paratransit Route Planner", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        return JSONResponse(status_code=400, content={"error": "Invalid request", "detail": exc.errors()})

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.exception("Unhandled error on %s", request.url.path)
        payload = {"error": str(exc)}
        if DEBUG_API:
            payload["traceback"] = traceback.format_exc()
        return JSONResponse(status_code=500, content=payload)

    app.include_router(settings_router)
    app.include_router(manifest_router)
    app.include_router(create_routes_router(
        route_service_factory or RouteService,
        geocoder_factory or Geocoder,
        directions_factory or DirectionsService,
    ))

    register_routes(app)
    return app

app = create_app()


# --------------------------------------------------------------------------------------------------
# Entrypoint
# --------------------------------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("backend.main:app", host="0.0.0.0", port=port, reload=False)
