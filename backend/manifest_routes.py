# backend/manifest_routes.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from route_planner.manifest import DROPOFF, PICKUP, parse_manifest_csv
from route_planner.plan.models import UploadResponse
from route_planner.stores import ManifestStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["manifests"])


def _store_or_404(manifest_id: str) -> ManifestStore:
    store = ManifestStore()
    if store.get(manifest_id) is None:
        raise HTTPException(status_code=404, detail="Manifest not found")
    return store


@router.post("/upload", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_manifest(file: UploadFile = File(...)):
    name = file.filename or ""
    if not name.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="File must be a CSV")

    raw = await file.read()
    try:
        csv_text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded")

    rows, errors = parse_manifest_csv(csv_text)
    if not rows:
        raise HTTPException(status_code=400, detail={"error": "No valid rows found in CSV", "parse_errors": errors})

    meta = ManifestStore().save(name, csv_text, rows)
    return UploadResponse(
        id=meta.id,
        file_name=meta.file_name,
        job_date=meta.job_date,
        total_rows=meta.total_rows,
        total_passengers=meta.total_passengers,
        parse_errors=errors or None,
    )


@router.get("/manifests")
def list_manifests():
    return [m.model_dump() for m in ManifestStore().list()]


@router.get("/manifests/{manifest_id}")
def get_manifest(manifest_id: str):
    store = _store_or_404(manifest_id)
    meta = store.get(manifest_id)
    rows = store.rows(manifest_id) or []
    return {**meta.model_dump(), "csv": store.read_csv(manifest_id), "rows": [r.to_dict() for r in rows]}


@router.get("/manifests/{manifest_id}/legs")
def get_manifest_legs(manifest_id: str, type: Optional[str] = Query(None)):
    store = _store_or_404(manifest_id)
    leg_type = type if type in (PICKUP, DROPOFF) else None
    rows = store.rows(manifest_id, leg_type=leg_type) or []
    return {
        "manifest_id": manifest_id,
        "leg_type": leg_type or "all",
        "count": len(rows),
        "rows": [r.to_dict() for r in rows],
    }


@router.delete("/manifests/{manifest_id}")
def delete_manifest(manifest_id: str):
    store = _store_or_404(manifest_id)
    store.delete(manifest_id)
    return {"success": True}
