import json
from datetime import datetime, timezone

import google.auth
import google.auth.exceptions
import pytest
import responses
from google.oauth2.credentials import Credentials

from route_planner.errors import ConfigurationError, SolverError
from route_planner.plan.models import Passenger, Vehicle
from route_planner.plan.optimizer_adapter import (
    RouteOptimizationClient,
    build_directions_from_route,
    build_shipments,
    build_virtual_vehicles,
    format_distance,
    format_duration,
    map_response_to_trips,
    optimize_trips,
    parse_duration,
    trips_per_vehicle,
)

BASE = "http://solver.test/v1"
URL = BASE + "/projects/demo-project:optimizeTours"
DAY = datetime(2025, 3, 1, tzinfo=timezone.utc)
VANS = [Vehicle(id="van-1", name="Van 1", capacity=8), Vehicle(id="van-2", name="Van 2", capacity=6)]


def _client():
    return RouteOptimizationClient(project_id="demo-project", access_token="tok-123", base_url=BASE)


def _riders(n, direction="pickup"):
    out = []
    for i in range(n):
        coords = dict(lat=34.0 + i / 100, lng=-118.0) if direction == "pickup" else dict(dest_lat=34.0 + i / 100, dest_lng=-118.0)
        out.append(Passenger(name=f"Rider {i}", time="8:30 AM", **coords))
    return out


def _no_default_credentials(scopes=None, **kwargs):
    raise google.auth.exceptions.DefaultCredentialsError("no ADC")


def test_missing_credentials_are_configuration_errors(monkeypatch):
    with pytest.raises(ConfigurationError):
        RouteOptimizationClient(project_id="", access_token="tok")
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT_ID", "p")
    monkeypatch.setattr(google.auth, "default", _no_default_credentials)
    with pytest.raises(ConfigurationError):
        RouteOptimizationClient()


@responses.activate
def test_default_credentials_sign_requests(monkeypatch):
    seen_scopes = []

    def fake_default(scopes=None, **kwargs):
        seen_scopes.extend(scopes or [])
        return Credentials(token="adc-token"), "demo-project"

    monkeypatch.setattr(google.auth, "default", fake_default)
    responses.add(responses.POST, URL, json={"routes": []})

    client = RouteOptimizationClient(project_id="demo-project", base_url=BASE)
    assert client.optimize_tours({"model": {}}) == {"routes": []}
    assert seen_scopes == ["https://www.googleapis.com/auth/cloud-platform"]
    assert responses.calls[0].request.headers["Authorization"] == "Bearer adc-token"


@responses.activate
def test_explicit_token_overrides_default_credentials(monkeypatch):
    monkeypatch.setattr(google.auth, "default", _no_default_credentials)
    monkeypatch.setenv("ROUTE_OPTIMIZATION_ACCESS_TOKEN", "env-token")
    responses.add(responses.POST, URL, json={})

    RouteOptimizationClient(project_id="demo-project", base_url=BASE).optimize_tours({})
    assert responses.calls[0].request.headers["Authorization"] == "Bearer env-token"


def test_shipments_carry_window_demand_and_penalty():
    riders = _riders(2) + [Passenger(name="", time="", lat=1.0, lng=2.0)]
    shipments = build_shipments(riders, "pickup", 60, DAY)
    first = shipments[0]
    visit = first["pickups"][0]
    assert visit["duration"] == "120s"
    assert visit["timeWindows"] == [{"startTime": "2025-03-01T07:30:00Z", "endTime": "2025-03-01T09:30:00Z"}]
    assert first["loadDemands"] == {"seats": {"amount": "1"}}
    assert first["penaltyCost"] == 100000
    assert first["label"] == "Rider 0"
    # unnamed passenger falls back to its index; no time means no window
    assert shipments[2]["label"] == "passenger-2"
    assert "timeWindows" not in shipments[2]["pickups"][0]


def test_time_window_clamps_to_the_day():
    early = build_shipments([Passenger(name="e", time="12:30 AM", dest_lat=1, dest_lng=1)], "dropoff", 60, DAY)
    window = early[0]["deliveries"][0]["timeWindows"][0]
    assert window["startTime"] == "2025-03-01T00:00:00Z"
    late = build_shipments([Passenger(name="l", time="11:30 PM", lat=1, lng=1)], "pickup", 60, DAY)
    assert late[0]["pickups"][0]["timeWindows"][0]["endTime"] == "2025-03-02T00:00:00Z"


def test_virtual_vehicle_count():
    assert trips_per_vehicle(5, VANS) == 2
    assert trips_per_vehicle(30, VANS) == 4  # ceil(30/14) + 1
    assert trips_per_vehicle(3, []) == 4  # capacity floor of 1


def test_pickup_vehicles_pin_only_the_hub_end(hub):
    defs = build_virtual_vehicles(VANS, 5, "pickup", 45, hub)
    assert [d["displayName"] for d in defs] == ["Van 1 #1", "Van 1 #2", "Van 2 #1", "Van 2 #2"]
    for d in defs:
        assert d["endLocation"] == {"latitude": hub.lat, "longitude": hub.lng}
        assert "startLocation" not in d
        assert d["routeDurationLimit"] == {"maxDuration": "2700s"}
        assert d["costPerHour"] == 30 and d["costPerKilometer"] == 1
    assert defs[0]["loadLimits"] == {"seats": {"maxLoad": "8"}}
    assert defs[2]["loadLimits"] == {"seats": {"maxLoad": "6"}}


def test_dropoff_vehicles_pin_only_the_hub_start(hub):
    defs = build_virtual_vehicles(VANS, 5, "dropoff", 30, hub)
    for d in defs:
        assert "startLocation" in d
        assert "endLocation" not in d
        assert d["routeDurationLimit"] == {"maxDuration": "1800s"}


def test_duration_and_distance_formatting():
    assert parse_duration("754s") == 754
    assert parse_duration("12.5s") == 12.5
    assert parse_duration(None) == 0
    assert parse_duration("3m") == 0
    assert format_duration(754) == "13 mins"
    assert format_duration(3600 + 25 * 60) == "1 hr 25 mins"
    assert format_distance(16093.4) == "10.0 mi"


def test_directions_from_route_one_leg_per_transition():
    route = {
        "visits": [{"shipmentIndex": 0}, {"shipmentIndex": 1}],
        "transitions": [
            {"travelDuration": "600s", "travelDistanceMeters": 3218.68},
            {"travelDuration": "300s", "travelDistanceMeters": 1609.34},
            {"travelDuration": "120s"},
        ],
        "routePolyline": {"points": "abc"},
    }
    d = build_directions_from_route(route)
    assert d.overview_polyline == "abc"
    assert d.waypoint_order == [0, 1]
    assert [(l.distance, l.duration) for l in d.legs] == [("2.0 mi", "10 mins"), ("1.0 mi", "5 mins"), ("0.0 mi", "2 mins")]
    assert all(l.start_address == "" for l in d.legs)
    assert build_directions_from_route({"visits": [{}]}) is None


def test_map_response_labels_and_visit_order():
    riders = _riders(4)
    defs = [{"displayName": n} for n in ("Van 1 #1", "Van 1 #2", "Van 2 #1", "Van 2 #2")]
    response = {
        "routes": [
            {"vehicleIndex": 0, "visits": [{"shipmentIndex": 2}, {"shipmentIndex": 0}], "routePolyline": {"points": "p"}},
            {"vehicleIndex": 1, "visits": [{"shipmentIndex": 1}]},
            {"vehicleIndex": 2, "visits": [{"shipmentIndex": 3}]},
            {"vehicleIndex": 3},
        ]
    }
    trips = map_response_to_trips(response, riders, defs, "pickup")
    assert [t.area for t in trips] == ["Van 1 (Trip 1)", "Van 1 (Trip 2)", "Van 2"]
    assert [t.id for t in trips] == ["pickup-1", "pickup-2", "pickup-3"]
    assert [p.name for p in trips[0].passengers] == ["Rider 2", "Rider 0"]
    assert trips[0].passenger_count == 2
    assert trips[0].directions is not None
    assert trips[1].directions is None


@responses.activate
def test_optimize_trips_request_shape_and_decoding(hub, caplog):
    responses.add(
        responses.POST,
        URL,
        json={
            "routes": [
                {"vehicleIndex": 0, "visits": [{"shipmentIndex": 1}, {"shipmentIndex": 0}],
                 "transitions": [{"travelDuration": "60s"}, {"travelDuration": "60s"}, {"travelDuration": "60s"}],
                 "routePolyline": {"points": "enc"}},
            ],
            "skippedShipments": [{"index": 2, "label": "Rider 2"}],
        },
        status=200,
    )
    riders = _riders(3) + [Passenger(name="No Coords", time="9:00 AM")]
    trips = optimize_trips(riders, VANS, 45, 60, "pickup", client=_client(), hub=hub, reference_day=DAY)

    sent = responses.calls[0].request
    assert sent.headers["Authorization"] == "Bearer tok-123"
    body = json.loads(sent.body)
    # ungeocoded passengers never reach the solver
    assert len(body["model"]["shipments"]) == 3
    assert body["model"]["globalStartTime"] == "2025-03-01T00:00:00Z"
    assert body["model"]["globalEndTime"] == "2025-03-02T00:00:00Z"
    assert body["populatePolylines"] is True and body["populateTransitionPolylines"] is True
    assert all("startLocation" not in v for v in body["model"]["vehicles"])

    assert len(trips) == 1
    assert trips[0].area == "Van 1"
    assert [p.name for p in trips[0].passengers] == ["Rider 1", "Rider 0"]
    assert len(trips[0].directions.legs) == 3
    assert "Rider 2" in caplog.text


@responses.activate
def test_solver_http_error_is_fatal(hub):
    responses.add(responses.POST, URL, body="quota exceeded", status=500)
    with pytest.raises(SolverError) as exc:
        optimize_trips(_riders(2), VANS, 45, 60, "pickup", client=_client(), hub=hub, reference_day=DAY)
    assert exc.value.status_code == 500
    assert "quota exceeded" in str(exc.value)


@responses.activate
def test_solver_non_json_is_fatal(hub):
    responses.add(responses.POST, URL, body="<html>", status=200, content_type="text/html")
    with pytest.raises(SolverError):
        optimize_trips(_riders(1), VANS, 45, 60, "pickup", client=_client(), hub=hub, reference_day=DAY)


def test_no_geocoded_passengers_skips_the_call(hub):
    assert optimize_trips([Passenger(name="x")], VANS, 45, 60, "dropoff", client=_client(), hub=hub) == []
