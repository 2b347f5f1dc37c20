"""
Shared pytest fixtures.

Routes are synthetic straight lines along a parallel with a vertex every
0.1 degrees of longitude. Each segment carries an exact road distance
(10 miles by default), so a station placed on a vertex sits at a known,
round mile marker.
"""

import math

import pytest

from config.logging_config import get_logging_config
from src.data_processing.directions_api import TripRoute
from src.data_processing.station_catalog import ChargingStation, StationCatalog
from src.models.energy_model.vehicle_energy import VehicleProfile
from src.utils.geometry import Coordinate, RoutePath
from src.utils.logger import setup_logger

setup_logger(**get_logging_config('SILENT'))

STEP_MILES = 10.0
STEP_DEGREES = 0.1


def make_path(total_miles, lat=0.0, step_miles=STEP_MILES, duration_minutes=None):
    """Straight route of `total_miles` with a vertex every `step_miles`"""
    steps = max(int(math.ceil(total_miles / step_miles)), 1)
    points = tuple(Coordinate(lat, i * STEP_DEGREES) for i in range(steps + 1))
    segments = [step_miles] * steps
    segments[-1] = total_miles - step_miles * (steps - 1)
    return RoutePath(
        points=points,
        total_distance_miles=total_miles,
        total_duration_minutes=duration_minutes if duration_minutes is not None else total_miles,
        segment_miles=tuple(segments),
    )


def make_station(mile, name=None, power_kw=150.0, lat=0.0, step_miles=STEP_MILES, **kwargs):
    """Station sitting on the route vertex at `mile` (a multiple of the step)"""
    vertex = int(round(mile / step_miles))
    return ChargingStation(
        name=name or f"Station {mile:g}",
        location=Coordinate(lat, vertex * STEP_DEGREES),
        power_kw=power_kw,
        **kwargs,
    )


class RecordingLookup:
    """In-memory catalog that counts how often it is queried"""

    def __init__(self, stations=()):
        self.catalog = StationCatalog(stations)
        self.calls = []

    def stations_near(self, path, corridor_radius_miles):
        self.calls.append((path, corridor_radius_miles))
        return self.catalog.stations_near(path, corridor_radius_miles)


class FakeDirections:
    """Directions provider returning canned legs (or raising a canned error)"""

    def __init__(self, legs=(), error=None):
        self.legs = tuple(legs)
        self.error = error
        self.calls = []

    def get_route(self, origin, destination, waypoints=()):
        self.calls.append((origin, destination, list(waypoints)))
        if self.error is not None:
            raise self.error
        return TripRoute(legs=self.legs)


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text='', invalid_json=False):
        self.payload = payload
        self.status_code = status_code
        self.text = text
        self.invalid_json = invalid_json

    def json(self):
        if self.invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self.payload


class FakeSession:
    """Stands in for requests.Session; replays responses, the last one repeating"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}

    def get(self, url, params=None, timeout=None):
        self.calls.append({'url': url, 'params': dict(params or {}), 'timeout': timeout})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def route_path():
    return make_path


@pytest.fixture
def station_at():
    return make_station


@pytest.fixture
def vehicle():
    """350 mi rated, 280 mi usable at the default 0.8 safety margin"""
    return VehicleProfile(model_id='test_ev', name='Test EV', nominal_range_miles=350, charging_rate_kw=150)


@pytest.fixture
def lookup():
    return RecordingLookup


@pytest.fixture
def fake_directions():
    return FakeDirections


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_response():
    return FakeResponse
