"""
Tests for the Google Directions client, using canned HTTP responses.
"""

import pytest
import requests

from src.data_processing import directions_api
from src.data_processing.directions_api import GoogleDirectionsClient, leg_to_route_path
from src.utils.errors import InvalidConfiguration, ProviderError, RouteNotFound
from src.utils.geometry import Coordinate

ORIGIN = Coordinate(37.7749, -122.4194)
DESTINATION = Coordinate(34.0522, -118.2437)


def google_leg(start=(37.7749, -122.4194), ends=((36.6, -121.9), (34.0522, -118.2437)),
               step_meters=(160934, 321868), seconds=7200):
    return {
        'start_location': {'lat': start[0], 'lng': start[1]},
        'end_location': {'lat': ends[-1][0], 'lng': ends[-1][1]},
        'distance': {'value': sum(step_meters)},
        'duration': {'value': seconds},
        'steps': [
            {'end_location': {'lat': lat, 'lng': lng}, 'distance': {'value': meters}}
            for (lat, lng), meters in zip(ends, step_meters)
        ],
    }


def ok_payload(*legs):
    return {'status': 'OK', 'routes': [{'legs': list(legs)}]}


def test_leg_is_converted_to_miles_and_minutes():
    path = leg_to_route_path(google_leg())
    assert len(path.points) == 3
    assert path.points[0] == ORIGIN
    assert path.segment_miles == pytest.approx((100.0, 200.0))
    assert path.distance_miles == pytest.approx(300.0)
    assert path.total_duration_minutes == pytest.approx(120)


def test_malformed_leg_is_a_provider_error():
    leg = google_leg()
    del leg['duration']
    with pytest.raises(ProviderError):
        leg_to_route_path(leg)
    with pytest.raises(ProviderError):
        leg_to_route_path({**google_leg(), 'start_location': {'lat': 'north'}})


def test_get_route_builds_request(fake_session, fake_response):
    waypoint = Coordinate(36.6, -121.9)
    session = fake_session(fake_response(ok_payload(
        google_leg(ends=((36.6, -121.9),), step_meters=(160934,)),
        google_leg(start=(36.6, -121.9), ends=((34.0522, -118.2437),), step_meters=(321868,)),
    )))
    client = GoogleDirectionsClient('test-key', session=session)
    route = client.get_route(ORIGIN, DESTINATION, [waypoint])

    params = session.calls[0]['params']
    assert params['origin'] == '37.7749,-122.4194'
    assert params['destination'] == '34.0522,-118.2437'
    assert params['waypoints'] == '36.6,-121.9'
    assert params['key'] == 'test-key'
    assert len(route.legs) == 2
    assert route.total_distance_miles == pytest.approx(300)
    assert route.total_duration_minutes == pytest.approx(240)
    # Shared leg endpoint appears once in the whole-trip polyline
    assert len(route.points) == 3


@pytest.mark.parametrize("status", ['ZERO_RESULTS', 'NOT_FOUND'])
def test_no_route(fake_session, fake_response, status):
    client = GoogleDirectionsClient('k', session=fake_session(fake_response({'status': status, 'routes': []})))
    with pytest.raises(RouteNotFound):
        client.get_route(ORIGIN, DESTINATION)


@pytest.mark.parametrize("response", [
    {'status_code': 500},
    {'payload': {'status': 'REQUEST_DENIED', 'error_message': 'bad key'}},
    {'invalid_json': True},
])
def test_provider_failures(fake_session, fake_response, response):
    client = GoogleDirectionsClient('k', session=fake_session(fake_response(**response)))
    with pytest.raises(ProviderError):
        client.get_route(ORIGIN, DESTINATION)


def test_network_error_is_wrapped(fake_session):
    client = GoogleDirectionsClient('k', session=fake_session(requests.exceptions.ConnectTimeout("timed out")))
    with pytest.raises(ProviderError, match="timed out"):
        client.get_route(ORIGIN, DESTINATION)


def test_leg_count_must_match_waypoints(fake_session, fake_response):
    client = GoogleDirectionsClient('k', session=fake_session(fake_response(ok_payload(google_leg()))))
    with pytest.raises(ProviderError):
        client.get_route(ORIGIN, DESTINATION, [Coordinate(36.6, -121.9)])


def test_api_key_from_environment(monkeypatch):
    monkeypatch.setenv('GOOGLE_MAPS_API_KEY', 'abc')
    assert directions_api.get_api_key() == 'abc'
    monkeypatch.delenv('GOOGLE_MAPS_API_KEY')
    with pytest.raises(InvalidConfiguration):
        directions_api.get_api_key()
