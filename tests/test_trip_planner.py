"""
Tests for trip-level planning: waypoint legs, range carried between legs and
failure offsets.
"""

import pytest

from src.data_processing.station_catalog import StationCatalog
from src.models.route_optimization.trip_planner import (
    PlannerSettings, PlanningRequest, TripPlanner, Waypoint, plan_trip,
)
from src.utils.errors import (
    Cancelled, InvalidConfiguration, InvalidInput, ProviderError, RouteNotFound, UnreachableGap,
)
from src.utils.geometry import Coordinate

ORIGIN = Coordinate(0.0, 0.0)
HOTEL = Coordinate(10.0, 10.0)  # far from every test station
DESTINATION = Coordinate(1.0, 2.0)


def _request(vehicle, waypoints=(), origin=ORIGIN, destination=DESTINATION):
    return PlanningRequest(origin=origin, destination=destination, vehicle=vehicle, waypoints=tuple(waypoints))


def test_single_leg_trip(route_path, station_at, vehicle, fake_directions):
    directions = fake_directions([route_path(500, duration_minutes=450)])
    planner = TripPlanner(directions, StationCatalog([station_at(260)]))
    plan = planner.plan(_request(vehicle))

    assert plan.ok
    assert [s.miles_from_route_start for s in plan.charge_stops] == [260]
    assert plan.total_distance_miles == 500
    assert plan.driving_minutes == 450
    assert plan.total_minutes == pytest.approx(450 + 32)
    assert directions.calls == [(ORIGIN, DESTINATION, [])]


def test_remaining_range_carries_into_next_leg(route_path, station_at, vehicle, fake_directions):
    """200 mi leg leaves 80 mi; the second leg must stop within its first 80 mi"""
    legs = [route_path(200), route_path(200, lat=1.0)]
    stations = StationCatalog([station_at(60, lat=1.0), station_at(150, lat=1.0)])
    planner = TripPlanner(fake_directions(legs), stations)
    plan = planner.plan(_request(vehicle, [Waypoint(HOTEL, name="Hotel")]))

    assert plan.ok
    assert len(plan.charge_stops) == 1
    stop = plan.charge_stops[0]
    assert stop.miles_from_route_start == pytest.approx(260)
    assert stop.leg_index == 1
    assert plan.total_distance_miles == 400


def test_charging_waypoint_refills(route_path, vehicle, fake_directions):
    legs = [route_path(200), route_path(200, lat=1.0)]
    planner = TripPlanner(fake_directions(legs), StationCatalog())
    plan = planner.plan(_request(vehicle, [Waypoint(HOTEL, name="Hotel", is_charger=True)]))
    assert plan.ok and plan.charge_stops == ()


def test_station_at_waypoint_counts_as_charger(route_path, station_at, vehicle, fake_directions):
    legs = [route_path(200), route_path(200, lat=1.0)]
    hotel_charger = station_at(0, name="Hotel Charger", lat=10.0)
    hotel = Waypoint(hotel_charger.location, name="Hotel")
    planner = TripPlanner(fake_directions(legs), StationCatalog([hotel_charger]))
    plan = planner.plan(_request(vehicle, [hotel]))
    assert plan.ok and plan.charge_stops == ()

    no_detection = TripPlanner(fake_directions(legs), StationCatalog([hotel_charger]),
                               PlannerSettings(waypoint_charger_radius_miles=0))
    assert isinstance(no_detection.plan(_request(vehicle, [hotel])).failure, UnreachableGap)


def test_failure_position_is_measured_from_trip_origin(route_path, vehicle, fake_directions):
    legs = [route_path(200), route_path(200, lat=1.0)]
    planner = TripPlanner(fake_directions(legs), StationCatalog())
    plan = planner.plan(_request(vehicle, [Waypoint(HOTEL)]))

    assert isinstance(plan.failure, UnreachableGap)
    assert plan.failure.at_miles == pytest.approx(200)
    assert plan.charge_stops == ()
    with pytest.raises(UnreachableGap):
        plan.raise_for_failure()


def test_same_origin_and_destination_skips_directions(vehicle, fake_directions):
    directions = fake_directions(error=AssertionError("should not be called"))
    plan = plan_trip(_request(vehicle, destination=ORIGIN), directions, StationCatalog())
    assert plan.ok
    assert plan.total_distance_miles == 0
    assert directions.calls == []


def test_cancel_before_first_leg(route_path, vehicle, fake_directions):
    planner = TripPlanner(fake_directions([route_path(100)]), StationCatalog())
    plan = planner.plan(_request(vehicle), should_cancel=lambda: True)
    assert isinstance(plan.failure, Cancelled)
    assert plan.failure.at_miles == 0


def test_provider_errors_propagate(route_path, vehicle, fake_directions):
    with pytest.raises(RouteNotFound):
        TripPlanner(fake_directions(error=RouteNotFound("ZERO_RESULTS")), StationCatalog()).plan(_request(vehicle))

    wrong_leg_count = TripPlanner(fake_directions([route_path(100)]), StationCatalog())
    with pytest.raises(ProviderError):
        wrong_leg_count.plan(_request(vehicle, [Waypoint(HOTEL)]))


def test_minimum_policy_fills_up_before_a_waypoint(route_path, station_at, vehicle, fake_directions):
    legs = [route_path(400), route_path(50, lat=1.0)]
    settings = PlannerSettings(charge_policy='minimum')
    planner = TripPlanner(fake_directions(legs), StationCatalog([station_at(200)]), settings)
    plan = planner.plan(_request(vehicle, [Waypoint(HOTEL)]))

    assert plan.ok
    # Arrives at mile 200 with 80 mi, tops up to the full 280 for the next leg
    assert plan.charge_stops[0].miles_added == pytest.approx(200)


def test_minimum_policy_skips_top_up_before_a_charging_hotel(route_path, station_at, vehicle, fake_directions):
    legs = [route_path(400), route_path(100, lat=1.0)]
    settings = PlannerSettings(charge_policy='minimum')
    planner = TripPlanner(fake_directions(legs), StationCatalog([station_at(200)]), settings)
    plan = planner.plan(_request(vehicle, [Waypoint(HOTEL, 'Hotel', is_charger=True)]))

    assert plan.ok
    # Arrives at mile 200 with 80 mi and only needs 200 mi to reach the hotel
    (stop,) = plan.charge_stops
    assert stop.miles_added == pytest.approx(120)
    assert stop.leg_index == 0


def test_request_validation(vehicle):
    with pytest.raises(InvalidInput):
        PlanningRequest(origin=(0, 0), destination=DESTINATION, vehicle=vehicle)
    with pytest.raises(InvalidInput):
        PlanningRequest(origin=ORIGIN, destination=DESTINATION, vehicle="tesla")
    with pytest.raises(InvalidInput):
        _request(vehicle, waypoints=["36.6,-121.9"])
    assert _request(vehicle, waypoints=[HOTEL]).waypoints == (Waypoint(HOTEL),)


def test_settings_validation():
    with pytest.raises(InvalidConfiguration):
        PlannerSettings(charge_policy='fastest')
    with pytest.raises(InvalidConfiguration):
        PlannerSettings(safety_margin=1.2)
    with pytest.raises(InvalidConfiguration):
        PlannerSettings(corridor_radius_miles=-1)
    settings = PlannerSettings.from_dict({'charge_policy': 'minimum', 'default_station_power_kw': 22})
    assert settings.charge_policy == 'minimum'
