import logging

from route_planner.directions import DirectionsService
from route_planner.geocode import Geocoder
from route_planner.plan.models import Directions, Passenger, Trip
from route_planner.plan.orchestrate import (
    compute_trip_directions,
    geocode_passengers,
    log_duplicate_coordinates,
    reorder_passengers_by_driving_order,
)


def _p(name, lat=None, lng=None, dest_lat=None, dest_lng=None, **kw):
    return Passenger(name=name, lat=lat, lng=lng, dest_lat=dest_lat, dest_lng=dest_lng, **kw)


def _trip(kind, passengers, order):
    return Trip(
        id=f"{kind}-1", type=kind, area="A", color="#000",
        passengers=passengers,
        directions=Directions(overview_polyline="x", waypoint_order=order, legs=[]),
    )


def test_pickup_reorder_keeps_origin_anchor_first():
    anchor, w0, w1, w2 = (_p(n, 1.0 + i, 2.0) for i, n in enumerate(["anchor", "w0", "w1", "w2"]))
    trip = _trip("pickup", [anchor, w0, w1, w2], [2, 0, 1])
    reorder_passengers_by_driving_order(trip)
    assert [p.name for p in trip.passengers] == ["anchor", "w2", "w0", "w1"]
    assert trip.directions.waypoint_order == [0, 1, 2, 3]
    assert trip.passenger_count == 4


def test_dropoff_reorder_keeps_last_stop_anchor_last():
    w0, w1, w2, last = (_p(n, dest_lat=1.0 + i, dest_lng=2.0) for i, n in enumerate(["w0", "w1", "w2", "last"]))
    trip = _trip("dropoff", [w0, w1, w2, last], [2, 0, 1])
    reorder_passengers_by_driving_order(trip)
    assert [p.name for p in trip.passengers] == ["w2", "w0", "w1", "last"]
    assert trip.directions.waypoint_order == [0, 1, 2, 3]


def test_reorder_appends_ungeocoded_passengers():
    a, b, c = _p("a", 1, 1), _p("b", 2, 2), _p("c", 3, 3)
    lost = _p("lost")
    trip = _trip("pickup", [a, lost, b, c], [1, 0])
    reorder_passengers_by_driving_order(trip)
    assert [p.name for p in trip.passengers] == ["a", "c", "b", "lost"]
    assert trip.passenger_count == 4
    assert trip.directions.waypoint_order == [0, 1, 2]


def test_reorder_noop_without_order_or_with_single_stop():
    single = _trip("pickup", [_p("a", 1, 1), _p("lost")], [0])
    reorder_passengers_by_driving_order(single)
    assert [p.name for p in single.passengers] == ["a", "lost"]

    empty = _trip("pickup", [_p("a", 1, 1), _p("b", 2, 2)], [])
    reorder_passengers_by_driving_order(empty)
    assert [p.name for p in empty.passengers] == ["a", "b"]


def test_pickup_directions_end_at_known_destination(fake_directions_provider, file_cache, instant_limiter, hub):
    provider = fake_directions_provider()
    svc = DirectionsService(provider, file_cache, instant_limiter)
    trip = Trip(id="pickup-1", type="pickup", area="A", color="#000", passengers=[
        _p("a", 1, 1), _p("lost"), _p("b", 2, 2, dest_lat=9, dest_lng=9),
    ])
    directions = compute_trip_directions(trip, svc, hub)
    assert directions is not None
    origin, destination, waypoints = provider.calls[0]
    assert origin == (1, 1)
    assert waypoints == [(2, 2)]
    assert destination == (9, 9)


def test_dropoff_directions_start_at_hub_when_origin_unknown(fake_directions_provider, file_cache, instant_limiter, hub):
    provider = fake_directions_provider()
    svc = DirectionsService(provider, file_cache, instant_limiter)
    trip = Trip(id="dropoff-1", type="dropoff", area="A", color="#000", passengers=[
        _p("a", dest_lat=1, dest_lng=1), _p("b", dest_lat=2, dest_lng=2), _p("c", dest_lat=3, dest_lng=3),
    ])
    compute_trip_directions(trip, svc, hub)
    origin, destination, waypoints = provider.calls[0]
    assert origin == (hub.lat, hub.lng)
    assert waypoints == [(1, 1), (2, 2)]
    assert destination == (3, 3)


def test_directions_failure_degrades_to_none(fake_directions_provider, file_cache, instant_limiter, hub, caplog):
    svc = DirectionsService(fake_directions_provider(fail=True), file_cache, instant_limiter)
    trip = Trip(id="pickup-7", type="pickup", area="A", color="#000", passengers=[_p("a", 1, 1)])
    with caplog.at_level(logging.WARNING):
        assert compute_trip_directions(trip, svc, hub) is None
    assert "pickup-7" in caplog.text


def test_no_geocoded_passengers_means_no_call(fake_directions_provider, file_cache, instant_limiter, hub):
    provider = fake_directions_provider()
    svc = DirectionsService(provider, file_cache, instant_limiter)
    trip = Trip(id="pickup-1", type="pickup", area="A", color="#000", passengers=[_p("lost")])
    assert compute_trip_directions(trip, svc, hub) is None
    assert provider.calls == []


def test_geocode_passengers_dedupes_and_collects_failures(fake_geocoding_provider, file_cache, instant_limiter, caplog):
    provider = fake_geocoding_provider({"1 A St": (1.0, 2.0), "Hub": (9.0, 9.0)})
    geocoder = Geocoder(provider, file_cache, instant_limiter)
    riders = [
        Passenger(name="a", address="1 A St", dest_address="Hub"),
        Passenger(name="b", address="1 A St", dest_address="Hub"),
        Passenger(name="c", address="Nowhere", dest_address="Hub"),
    ]
    with caplog.at_level(logging.WARNING):
        failures = geocode_passengers(riders, geocoder)
    assert failures == ["Nowhere"]
    assert sorted(provider.calls) == ["1 A St", "Hub", "Nowhere"]
    assert riders[0].origin == (1.0, 2.0) and riders[0].destination == (9.0, 9.0)
    assert riders[2].origin is None and riders[2].destination == (9.0, 9.0)
    assert "1/3 addresses failed" in caplog.text


def test_duplicate_coordinates_are_reported():
    riders = [
        Passenger(name="Ana Diaz", address="1 A St", lat=1.0, lng=2.0),
        Passenger(name="Ben Cho", address="1 A St", lat=1.0, lng=2.0),
        Passenger(name="Cy", address="2 B St", lat=3.0, lng=4.0),
        Passenger(name="Lost"),
    ]
    dupes = log_duplicate_coordinates(riders)
    assert dupes == {"1.000000,2.000000": ["AD (1 A St)", "BC (1 A St)"]}
