from __future__ import annotations
import os, json
from pathlib import Path
from typing import Any, Dict, Optional

def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return float(default)

def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return int(default)

def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()

CACHE_TTL_SECONDS = 30 * 24 * 60 * 60
MAX_STOPS = 10

def data_dir() -> Path:
    return Path(os.getenv("PRIVATE_DATA_DIR", "./data/private")).resolve()

def cache_dir() -> Path:
    return Path(os.getenv("CACHE_DIR", str(data_dir() / "cache"))).resolve()

def hub() -> Dict[str, Any]:
    """Facility that anchors pickup ends and dropoff starts."""
    return {
        "name": _env_str("HUB_NAME", "Seen Health PACE Center"),
        "address": _env_str("HUB_ADDRESS", "1839 W Valley Blvd, Alhambra, CA 91803"),
        "lat": _env_float("HUB_LAT", 34.0823),
        "lng": _env_float("HUB_LNG", -118.1622),
    }

def google_maps_api_key() -> str:
    return _env_str("GOOGLE_MAPS_API_KEY")

def route_optimization_project_id() -> str:
    return _env_str("GOOGLE_CLOUD_PROJECT_ID")

def route_optimization_token() -> str:
    return _env_str("ROUTE_OPTIMIZATION_ACCESS_TOKEN")

def route_optimization_url() -> str:
    return _env_str("ROUTE_OPTIMIZATION_URL", "https://routeoptimization.googleapis.com/v1").rstrip("/")

def route_optimization_timeout() -> float:
    return _env_float("ROUTE_OPTIMIZATION_TIMEOUT_SEC", 120.0)

def use_route_optimization() -> bool:
    # Presence of a project id selects the optimizer strategy.
    return bool(route_optimization_project_id())

def geocode_delay_seconds() -> float:
    return _env_float("GEOCODE_DELAY_SEC", 0.1)

def directions_delay_seconds() -> float:
    return _env_float("DIRECTIONS_DELAY_SEC", 0.2)

def load_json(path: Path, default: Optional[Any] = None) -> Any:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        pass
    return default

def save_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    tmp.replace(path)
