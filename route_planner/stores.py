# route_planner/stores.py
from __future__ import annotations
import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from . import config
from .errors import ConfigValidationError
from .manifest import ManifestJobRow, unique_passenger_count
from .plan.models import DEFAULT_VEHICLES, AppConfig, ManifestMeta, VehicleConfig

logger = logging.getLogger(__name__)

META_FILE = "_meta.json"
ROWS_FILE = "_rows.json"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _safe_file_name(name: str) -> str:
    base = Path(name or "manifest.csv").name
    return base or "manifest.csv"


class ManifestStore:
    """
    Local-disk manifest storage: one directory per manifest holding the raw CSV,
    the parsed rows and a _meta.json summary.
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else config.data_dir() / "manifests"

    def _dir(self, manifest_id: str) -> Path:
        # ids are uuid hex; anything with a path separator is simply not found
        return self.root / Path(manifest_id).name

    def save(self, file_name: str, csv_text: str, rows: List[ManifestJobRow]) -> ManifestMeta:
        manifest_id = uuid.uuid4().hex
        file_name = _safe_file_name(file_name)
        d = self._dir(manifest_id)
        d.mkdir(parents=True, exist_ok=True)
        (d / file_name).write_text(csv_text, encoding="utf-8")
        config.save_json(d / ROWS_FILE, [r.to_dict() for r in rows])

        meta = ManifestMeta(
            id=manifest_id,
            file_name=file_name,
            job_date=rows[0].job_date if rows else "",
            uploaded_at=_now_iso(),
            size=len(csv_text.encode("utf-8")),
            total_rows=len(rows),
            total_passengers=unique_passenger_count(rows),
        )
        config.save_json(d / META_FILE, meta.model_dump())
        logger.info("Manifest %s stored (%s, %d rows)", manifest_id, file_name, len(rows))
        return meta

    def list(self) -> List[ManifestMeta]:
        if not self.root.exists():
            return []
        metas: List[ManifestMeta] = []
        for d in self.root.iterdir():
            if not d.is_dir():
                continue
            raw = config.load_json(d / META_FILE)
            if raw is None:
                continue
            try:
                metas.append(ManifestMeta(**raw))
            except ValidationError:
                logger.warning("Skipping manifest %s with corrupt metadata", d.name)
        return sorted(metas, key=lambda m: m.uploaded_at, reverse=True)

    def latest_id(self) -> Optional[str]:
        metas = self.list()
        return metas[0].id if metas else None

    def get(self, manifest_id: str) -> Optional[ManifestMeta]:
        raw = config.load_json(self._dir(manifest_id) / META_FILE)
        return ManifestMeta(**raw) if raw else None

    def read_csv(self, manifest_id: str) -> Optional[str]:
        meta = self.get(manifest_id)
        if meta is None:
            return None
        path = self._dir(manifest_id) / meta.file_name
        return path.read_text(encoding="utf-8") if path.exists() else None

    def rows(self, manifest_id: str, leg_type: Optional[str] = None) -> Optional[List[ManifestJobRow]]:
        raw = config.load_json(self._dir(manifest_id) / ROWS_FILE)
        if raw is None:
            return None
        rows = [ManifestJobRow.from_dict(r) for r in raw]
        if leg_type:
            rows = [r for r in rows if r.leg_type == leg_type]
        return rows

    def delete(self, manifest_id: str) -> bool:
        d = self._dir(manifest_id)
        if not (d / META_FILE).exists():
            return False
        shutil.rmtree(d)
        logger.info("Manifest %s deleted", manifest_id)
        return True


def _validation_message(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(x) for x in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


class ConfigStore:
    """settings.json (AppConfig) and vehicles.json (VehicleConfig) under the data dir."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else config.data_dir() / "config"

    @property
    def settings_path(self) -> Path:
        return self.root / "settings.json"

    @property
    def vehicles_path(self) -> Path:
        return self.root / "vehicles.json"

    def get_config(self) -> AppConfig:
        raw = config.load_json(self.settings_path, {}) or {}
        try:
            return AppConfig(**{**AppConfig().model_dump(), **raw})
        except ValidationError:
            logger.warning("settings.json invalid, using defaults")
            return AppConfig()

    def update_config(self, changes: Mapping[str, Any]) -> AppConfig:
        """Merge the provided fields over the stored config; None means unchanged."""
        merged = self.get_config().model_dump()
        merged.update({k: v for k, v in changes.items() if v is not None})
        try:
            updated = AppConfig(**merged)
        except ValidationError as e:
            raise ConfigValidationError(_validation_message(e)) from e
        config.save_json(self.settings_path, updated.model_dump())
        return updated

    def get_vehicles(self) -> VehicleConfig:
        raw = config.load_json(self.vehicles_path)
        if raw:
            try:
                return VehicleConfig(**raw)
            except ValidationError:
                logger.warning("vehicles.json invalid, using default fleet")
        return VehicleConfig(vehicles=DEFAULT_VEHICLES)

    def save_vehicles(self, payload: Mapping[str, Any]) -> VehicleConfig:
        try:
            vc = VehicleConfig(**payload)
        except ValidationError as e:
            raise ConfigValidationError(_validation_message(e)) from e
        config.save_json(self.vehicles_path, vc.model_dump())
        return vc
