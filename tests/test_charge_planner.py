"""
Tests for the greedy charge-stop planner.

The default test vehicle has 350 mi rated range, so 280 mi usable at the
default 0.8 safety margin.
"""

import itertools
import random

import pytest

from src.data_processing.station_catalog import ChargingStation, CombinedStationCatalog, StationCatalog
from src.models.energy_model.vehicle_energy import VehicleEnergyModel, VehicleProfile
from src.models.route_optimization.charge_planner import plan_charge_stops
from src.utils.errors import Cancelled, InvalidConfiguration, InvalidInput, UnreachableGap
from src.utils.geometry import Coordinate, RoutePath


def _commit_points(result):
    return [stop.miles_from_route_start for stop in result.stops]


def test_stops_at_farthest_reachable_station(route_path, station_at, vehicle, lookup):
    """500 mi trip, 280 mi usable range: stop once, as late as possible"""
    stations = lookup([station_at(100), station_at(200), station_at(260), station_at(490)])
    result = plan_charge_stops(route_path(500), vehicle, stations)

    assert result.ok
    assert _commit_points(result) == [260]
    assert "Station 490" not in [s.name for s in result.stops]
    stop = result.stops[0]
    assert stop.name == "Station 260"
    assert stop.miles_added == pytest.approx(280)
    # 280 mi / 3.5 mi per kWh = 80 kWh at 150 kW
    assert stop.energy_kwh == pytest.approx(80)
    assert stop.charge_duration_minutes == pytest.approx(32)
    assert result.arrival_range_miles == pytest.approx(40)


def test_trip_within_range_needs_no_stops(route_path, station_at, vehicle, lookup):
    stations = lookup([station_at(50)])
    result = plan_charge_stops(route_path(100), vehicle, stations)

    assert result.ok
    assert result.stops == ()
    assert result.arrival_range_miles == pytest.approx(180)
    assert stations.calls == []


def test_unreachable_gap_reports_last_reachable_mile(route_path, station_at, vehicle, lookup):
    """600 mi with stations only at 50 and 550: nothing reachable after mile 50"""
    stations = lookup([station_at(50), station_at(550)])
    result = plan_charge_stops(route_path(600), vehicle, stations)

    assert not result.ok
    assert isinstance(result.failure, UnreachableGap)
    assert result.failure.at_miles == pytest.approx(50)
    assert result.stops == ()
    with pytest.raises(UnreachableGap):
        result.raise_for_failure()


def test_gap_at_start_when_no_stations(route_path, vehicle, lookup):
    result = plan_charge_stops(route_path(300), vehicle, lookup())
    assert isinstance(result.failure, UnreachableGap)
    assert result.failure.at_miles == 0


def test_tie_goes_to_more_powerful_station(route_path, station_at, vehicle, lookup):
    stations = lookup([
        station_at(200, name="Slow Plaza", power_kw=50),
        station_at(200, name="Fast Plaza", power_kw=150),
    ])
    result = plan_charge_stops(route_path(400), vehicle, stations)
    assert [s.name for s in result.stops] == ["Fast Plaza"]


def test_equal_power_tie_is_broken_by_name(route_path, station_at, vehicle, lookup):
    stations = lookup([station_at(200, name="Beta"), station_at(200, name="Alpha")])
    result = plan_charge_stops(route_path(400), vehicle, stations)
    assert [s.name for s in result.stops] == ["Alpha"]


def test_planning_is_idempotent(route_path, station_at, vehicle):
    catalog = StationCatalog([station_at(m) for m in (90, 180, 270, 360, 450, 540, 630)])
    path = route_path(700)
    first = plan_charge_stops(path, vehicle, catalog)
    second = plan_charge_stops(path, vehicle, catalog)
    assert first == second


def test_more_range_never_makes_a_trip_infeasible(route_path, station_at):
    catalog = StationCatalog([station_at(m) for m in range(100, 600, 100)])
    path = route_path(600)
    outcomes = [
        plan_charge_stops(path, VehicleProfile('ev', 'EV', rated, 150), catalog).ok
        for rated in (100, 130, 200, 350, 500, 800)
    ]
    # Once feasible, stays feasible
    assert outcomes == sorted(outcomes)
    assert outcomes[0] is False and outcomes[-1] is True


def test_every_gap_fits_in_effective_range(route_path, station_at, vehicle):
    miles = [40, 120, 190, 250, 330, 410, 470, 530, 620, 700, 760, 850, 930]
    catalog = StationCatalog([station_at(m) for m in miles])
    result = plan_charge_stops(route_path(1000), vehicle, catalog)

    assert result.ok
    marks = [0.0] + _commit_points(result) + [1000.0]
    assert all(b - a <= result.effective_range_miles + 1e-9 for a, b in zip(marks, marks[1:]))
    assert marks == sorted(marks)


def test_uses_minimum_number_of_stops(route_path, station_at, vehicle):
    """800 mi at 280 mi per charge needs at least 2 stops; greedy finds 2"""
    catalog = StationCatalog([station_at(m) for m in (100, 250, 270, 500, 540, 780)])
    result = plan_charge_stops(route_path(800), vehicle, catalog)
    assert _commit_points(result) == [270, 540]


def _fewest_stops(total, station_miles, tank):
    """Exhaustive search: smallest set of stops leaving no gap longer than `tank`"""
    for count in range(len(station_miles) + 1):
        for chosen in itertools.combinations(sorted(station_miles), count):
            marks = (0,) + chosen + (total,)
            if all(b - a <= tank for a, b in zip(marks, marks[1:])):
                return count
    return None


@pytest.mark.parametrize("seed", range(25))
def test_stop_count_matches_exhaustive_search(route_path, station_at, vehicle, seed):
    rng = random.Random(seed)
    total = rng.choice((400, 600, 800, 900))
    station_miles = rng.sample(range(10, total, 10), rng.randint(0, 7))
    catalog = StationCatalog([station_at(m) for m in station_miles])

    result = plan_charge_stops(route_path(total), vehicle, catalog)
    fewest = _fewest_stops(total, station_miles, result.effective_range_miles)

    if fewest is None:
        assert isinstance(result.failure, UnreachableGap)
    else:
        assert result.ok
        assert len(result.stops) == fewest


def test_duplicate_stations_are_merged(route_path, station_at, vehicle):
    slow_copy = StationCatalog([station_at(260, power_kw=50)])
    fast_copy = StationCatalog([station_at(260, power_kw=150)])
    result = plan_charge_stops(route_path(500), vehicle, CombinedStationCatalog([slow_copy, fast_copy]))
    assert len(result.stops) == 1
    assert result.stops[0].power_kw == 150


def test_full_stations_are_skipped(route_path, station_at, vehicle):
    catalog = StationCatalog([
        station_at(260, available_stalls=0),
        station_at(200, available_stalls=2),
        station_at(450),
    ])
    result = plan_charge_stops(route_path(500), vehicle, catalog)
    assert _commit_points(result) == [200, 450]


def test_cancellation_between_iterations(route_path, station_at, vehicle):
    catalog = StationCatalog([station_at(m) for m in (260, 520)])
    result = plan_charge_stops(route_path(700), vehicle, catalog, should_cancel=lambda: True)
    assert isinstance(result.failure, Cancelled)
    assert result.failure.at_miles == pytest.approx(260)
    assert result.stops == ()


def test_minimum_policy_adds_only_what_is_needed(route_path, station_at, vehicle):
    catalog = StationCatalog([station_at(260)])
    result = plan_charge_stops(route_path(500), vehicle, catalog, charge_policy='minimum')

    stop = result.stops[0]
    # Arrive with 20 mi left, 240 mi to go
    assert stop.miles_added == pytest.approx(220)
    assert stop.charge_duration_minutes == pytest.approx(220 / 3.5 / 150 * 60)
    assert result.arrival_range_miles == pytest.approx(0)


def test_minimum_policy_can_fill_the_last_stop(route_path, station_at, vehicle):
    catalog = StationCatalog([station_at(260)])
    result = plan_charge_stops(route_path(500), vehicle, catalog,
                               charge_policy='minimum', fill_last_stop=True)
    assert result.stops[0].miles_added == pytest.approx(260)
    assert result.arrival_range_miles == pytest.approx(40)


def test_partial_starting_charge(route_path, station_at, vehicle):
    catalog = StationCatalog([station_at(100), station_at(260)])
    result = plan_charge_stops(route_path(500), vehicle, catalog, initial_range_miles=100)
    assert _commit_points(result) == [100, 260]

    capped = plan_charge_stops(route_path(500), vehicle, catalog, initial_range_miles=10_000)
    assert _commit_points(capped) == [260]


def test_zero_length_route(vehicle, lookup):
    stations = lookup()
    path = RoutePath(points=(Coordinate(36.0, -120.0),), total_distance_miles=0.0)
    result = plan_charge_stops(path, vehicle, stations)
    assert result.ok and result.stops == ()
    assert stations.calls == []


def test_custom_energy_model_and_corridor(route_path, vehicle):
    off_route = StationCatalog([
        # ~7 mi north of the mile-260 vertex
        ChargingStation('Detour', Coordinate(0.1, 2.6), power_kw=150),
    ])
    narrow = plan_charge_stops(route_path(500), vehicle, off_route, corridor_radius_miles=5)
    wide = plan_charge_stops(route_path(500), vehicle, off_route, corridor_radius_miles=10)
    assert not narrow.ok and wide.ok

    generous = VehicleEnergyModel(safety_margin=1.0)
    assert plan_charge_stops(route_path(340), vehicle, off_route, energy_model=generous).stops == ()


def test_invalid_settings_are_rejected(route_path, vehicle, lookup):
    with pytest.raises(InvalidConfiguration):
        plan_charge_stops(route_path(500), vehicle, lookup(), charge_policy='fastest')
    with pytest.raises(InvalidConfiguration):
        plan_charge_stops(route_path(500), vehicle, lookup(), corridor_radius_miles=-1)
    with pytest.raises(InvalidInput):
        plan_charge_stops(route_path(500), vehicle, lookup(), initial_range_miles=-5)
