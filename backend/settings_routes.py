# backend/settings_routes.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query

from route_planner.cache import FileCache
from route_planner.errors import ConfigValidationError
from route_planner.plan.models import AppConfigUpdate
from route_planner.stores import ConfigStore

router = APIRouter(tags=["settings"])

CLEARABLE_PREFIXES = ("geocode", "directions")

# ---- app settings ------------------------------------------------------------

@router.get("/settings")
def get_settings():
    return ConfigStore().get_config().model_dump()

@router.put("/settings")
def put_settings(payload: AppConfigUpdate):
    # Partial update: omitted fields keep their stored value
    try:
        return ConfigStore().update_config(payload.model_dump(exclude_none=True)).model_dump()
    except ConfigValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

# ---- vehicles ----------------------------------------------------------------

@router.get("/vehicles")
def get_vehicles():
    return ConfigStore().get_vehicles().model_dump()

@router.put("/vehicles")
def put_vehicles(payload: Dict[str, Any]):
    if not isinstance(payload.get("vehicles"), list):
        raise HTTPException(status_code=400, detail="vehicles must be an array")
    try:
        return ConfigStore().save_vehicles(payload).model_dump()
    except ConfigValidationError:
        raise HTTPException(status_code=400, detail="Each vehicle needs id, name, and capacity >= 1")

# ---- provider cache ----------------------------------------------------------

@router.delete("/cache")
def clear_cache(prefix: str = Query(...)):
    if prefix not in CLEARABLE_PREFIXES:
        raise HTTPException(status_code=400, detail="Invalid prefix. Must be 'geocode' or 'directions'.")
    deleted = FileCache().clear_by_prefix(f"{prefix}:")
    return {"deleted": deleted, "prefix": prefix}
