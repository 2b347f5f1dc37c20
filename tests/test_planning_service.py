"""
Tests for the route calculation service: request parsing, response shape and
status codes.
"""

import pytest

from app.services.config_service import merged_runtime_config
from app.services.planning_service import PlanningService
from src.data_processing.station_catalog import StationCatalog
from src.models.route_optimization.trip_planner import TripPlanner
from src.utils.errors import ProviderError, RouteNotFound

BODY = {
    'origin': {'lat': 0.0, 'lng': 0.0},
    'destination': {'lat': 0.0, 'lng': 5.0},
    'waypoints': [],
    'model': 'tesla_model_3',
}


@pytest.fixture
def make_service(tmp_path, fake_directions):
    runtime = merged_runtime_config(tmp_path / 'missing.yaml')

    def _make(legs=(), stations=(), error=None):
        directions = fake_directions(legs, error=error)
        planner = TripPlanner(directions, StationCatalog(stations))
        return PlanningService(planner=planner, runtime=runtime), directions
    return _make


def test_successful_plan(make_service, route_path, station_at):
    """Model 3: 358 mi rated, 286.4 mi usable, one stop on a 500 mi trip"""
    service, _ = make_service([route_path(500, duration_minutes=480)], [station_at(260)])
    status, payload = service.handle(BODY)

    assert status == 200
    assert payload['totalDistance'] == pytest.approx(500)
    assert payload['duration'] == pytest.approx(480)
    assert payload['vehicle']['id'] == 'tesla_model_3'
    assert len(payload['route']) == 51
    (stop,) = payload['chargeStops']
    assert stop['name'] == 'Station 260'
    assert stop['distance'] == pytest.approx(260)
    assert stop['location'] == {'lat': 0.0, 'lng': pytest.approx(2.6)}
    assert stop['duration'] > 0
    assert stop['energyKwh'] == pytest.approx(stop['milesAdded'] / 3.5)
    assert 'error' not in payload


def test_front_end_model_id_and_waypoints(make_service, route_path):
    service, directions = make_service([route_path(100), route_path(100, lat=1.0)])
    body = {**BODY, 'model': 'model3', 'waypoints': [{'lat': 36.6, 'lng': -121.9, 'address': 'Monterey'}]}
    status, payload = service.handle(body)

    assert status == 200
    assert payload['chargeStops'] == []
    assert directions.calls[0][2][0].lat == 36.6


def test_missing_fields_are_reported(make_service):
    service, directions = make_service()
    status, payload = service.handle({'origin': {'lat': 1.0}, 'destination': BODY['destination']})

    assert status == 400
    assert payload['message'] == 'Missing required fields'
    assert payload['details'] == {'origin': 'missing coordinates', 'destination': 'ok', 'model': 'missing'}
    assert directions.calls == []


@pytest.mark.parametrize("body", [
    None,
    {**BODY, 'model': 'delorean'},
    {**BODY, 'model': ['tesla_model_3']},
    {**BODY, 'origin': {'lat': 95.0, 'lng': 0.0}},
    {**BODY, 'waypoints': 'Monterey'},
    {**BODY, 'waypoints': [{'lat': 1.0}]},
])
def test_invalid_requests(make_service, body):
    service, _ = make_service()
    status, payload = service.handle(body)
    assert status == 400
    assert payload['error'] == 'InvalidInput'


def test_unreachable_gap(make_service, route_path):
    service, _ = make_service([route_path(600)])
    status, payload = service.handle(BODY)
    assert status == 422
    assert payload['error'] == 'UnreachableGap'
    assert payload['atMiles'] == 0
    assert payload['chargeStops'] == []


def test_cancelled(make_service, route_path):
    service, _ = make_service([route_path(600)])
    status, payload = service.handle(BODY, should_cancel=lambda: True)
    assert status == 499
    assert payload['error'] == 'Cancelled'


@pytest.mark.parametrize("error, expected", [
    (RouteNotFound("ZERO_RESULTS"), 404),
    (ProviderError("Directions API error 500", status_code=500), 502),
])
def test_provider_failures(make_service, error, expected):
    service, _ = make_service(error=error)
    status, payload = service.handle(BODY)
    assert status == expected
    assert payload['message'] == str(error)


def test_models_for_picker(make_service):
    service, _ = make_service()
    models = {m['id']: m for m in service.models()}
    assert models['tesla_model_3']['range'] == 358
    assert models['tesla_model_3']['chargingSpeed'] == 250


def test_missing_station_file_is_a_configuration_error(tmp_path, monkeypatch):
    monkeypatch.setenv('GOOGLE_MAPS_API_KEY', 'test-key')
    runtime = merged_runtime_config(tmp_path / 'missing.yaml')
    runtime['stations']['stations_csv'] = [str(tmp_path / 'gone.csv')]

    status, payload = PlanningService(runtime=runtime).handle(BODY)

    assert status == 400
    assert payload['error'] == 'InvalidConfiguration'
    assert 'gone.csv' in payload['message']
