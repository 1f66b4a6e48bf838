# tests/conftest.py
from pathlib import Path
from importlib import reload

import pytest
from fastapi.testclient import TestClient

from route_planner.cache import FileCache
from route_planner.errors import DirectionsError, GeocodingError
from route_planner.manifest import ManifestJobRow
from route_planner.plan.models import DirectionLeg, Directions, GeocodeResult, Hub
from route_planner.rate_limit import RateLimiter

HUB_ADDR = "1839 W Valley Blvd"


@pytest.fixture(autouse=True)
def _env_test_data(monkeypatch, tmp_path: Path):
    """
    Point every store at a temp PRIVATE_DATA_DIR and strip provider
    credentials so nothing reaches a real service.
    """
    data_root = tmp_path / "data"
    data_root.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("PRIVATE_DATA_DIR", str(data_root))
    monkeypatch.delenv("CACHE_DIR", raising=False)
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT_ID", raising=False)
    monkeypatch.delenv("ROUTE_OPTIMIZATION_ACCESS_TOKEN", raising=False)
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "AIzaTestKeyForUnitTestsOnly")
    monkeypatch.setenv("GEOCODE_DELAY_SEC", "0")
    monkeypatch.setenv("DIRECTIONS_DELAY_SEC", "0")
    for k in ("HUB_NAME", "HUB_ADDRESS", "HUB_LAT", "HUB_LNG"):
        monkeypatch.delenv(k, raising=False)

    yield data_root  # tmp_path is auto-cleaned


@pytest.fixture
def hub():
    return Hub(name="Seen Health PACE Center", address="1839 W Valley Blvd, Alhambra, CA 91803",
               lat=34.0823, lng=-118.1622)


@pytest.fixture
def make_row():
    """
    Row factory. `to_hub=True` puts the facility on the far end of the leg
    (dropoff address for pickups, pickup address for dropoffs).
    """
    def _make(job_id, name, zip_code="", time="", to_hub=True, home="100 Main St", id_number=None, **extra):
        dropoff = job_id.upper().endswith("-B")
        far = HUB_ADDR if to_hub else "500 Other Rd"
        fields = dict(
            job_id=job_id,
            cust_name=name,
            id_number=id_number or name,
            pu_addr=far if dropoff else home,
            do_addr=home if dropoff else far,
            pick_zip="91803" if dropoff else zip_code,
            drop_zip=zip_code if dropoff else "91803",
        )
        fields["sch_pu" if dropoff else "apt_time"] = time
        fields.update(extra)
        return ManifestJobRow(**fields)
    return _make


class FakeGeocodingProvider:
    """Address -> (lat, lng); anything unknown fails like a zero-result lookup."""

    def __init__(self, table):
        self.table = dict(table)
        self.calls = []

    def geocode(self, address):
        self.calls.append(address)
        if address not in self.table:
            raise GeocodingError(f"No results for address: {address}")
        lat, lng = self.table[address]
        return GeocodeResult(lat=lat, lng=lng, formatted_address=address, place_id=f"pid-{len(self.calls)}")


class FakeDirectionsProvider:
    """Returns a fixed waypoint order (or identity) with N-1 legs."""

    def __init__(self, waypoint_order=None, fail=False):
        self.waypoint_order = waypoint_order
        self.fail = fail
        self.calls = []

    def directions(self, origin, destination, waypoints):
        self.calls.append((origin, destination, list(waypoints)))
        if self.fail:
            raise DirectionsError("ZERO_RESULTS")
        order = self.waypoint_order if self.waypoint_order is not None else list(range(len(waypoints)))
        return Directions(
            overview_polyline="poly",
            waypoint_order=list(order),
            legs=[DirectionLeg(distance="1.0 mi", duration="3 mins") for _ in range(len(waypoints) + 1)],
        )


@pytest.fixture
def fake_geocoding_provider():
    return FakeGeocodingProvider


@pytest.fixture
def fake_directions_provider():
    return FakeDirectionsProvider


@pytest.fixture
def file_cache(tmp_path):
    return FileCache(root=tmp_path / "cache")


@pytest.fixture
def instant_limiter():
    return RateLimiter(0, name="test-limiter")


@pytest.fixture
def app(_env_test_data):
    # Import AFTER env vars so module-level settings see the temp dir
    import backend.main as bm
    bm = reload(bm)
    return bm


@pytest.fixture
def client(app):
    return TestClient(app.create_app())
