"""
Directions provider

Turns origin, destination and ordered waypoints into one RoutePath per leg.
The Google Directions client below is the production implementation; any
object with a matching `get_route` can stand in for it.
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import requests
from dotenv import load_dotenv

from config.ev_config import DIRECTIONS_CONFIG
from src.utils.errors import InvalidConfiguration, InvalidInput, ProviderError, RouteNotFound
from src.utils.geometry import Coordinate, RoutePath
from src.utils.logger import get_logger

logger = get_logger('directions_api')
load_dotenv()

METERS_PER_MILE = DIRECTIONS_CONFIG['meters_per_mile']

# Google statuses meaning "no such route" rather than "the service failed"
ROUTE_NOT_FOUND_STATUSES = {'ZERO_RESULTS', 'NOT_FOUND'}


@dataclass(frozen=True)
class TripRoute:
    """A route split at its waypoints: one leg per consecutive pair of stops"""
    legs: Tuple[RoutePath, ...]

    @property
    def total_distance_miles(self) -> float:
        return sum(leg.distance_miles for leg in self.legs)

    @property
    def total_duration_minutes(self) -> float:
        return sum(leg.total_duration_minutes or 0.0 for leg in self.legs)

    @property
    def points(self) -> List[Coordinate]:
        """Whole-trip polyline, shared leg endpoints listed once"""
        points: List[Coordinate] = []
        for leg in self.legs:
            leg_points = list(leg.points)
            if points and leg_points and points[-1] == leg_points[0]:
                leg_points = leg_points[1:]
            points.extend(leg_points)
        return points


class DirectionsProvider(Protocol):
    def get_route(self, origin: Coordinate, destination: Coordinate,
                  waypoints: Sequence[Coordinate] = ()) -> TripRoute:
        ...


def _latlng(coordinate: Coordinate) -> str:
    return f"{coordinate.lat},{coordinate.lng}"


def _location(data: Dict) -> Coordinate:
    try:
        return Coordinate(lat=data['lat'], lng=data['lng'])
    except (KeyError, TypeError, InvalidInput) as e:
        raise ProviderError(f"Malformed location in directions response: {data!r}") from e


def leg_to_route_path(leg: Dict) -> RoutePath:
    """
    Convert one Google Directions leg into a RoutePath.

    The polyline is the leg's start location followed by every step's end
    location; each step's road distance becomes the segment distance.
    """
    steps = leg.get('steps') or []
    try:
        points = [_location(leg['start_location'])]
        segments = []
        for step in steps:
            points.append(_location(step['end_location']))
            segments.append(step['distance']['value'] / METERS_PER_MILE)

        if not steps and 'end_location' in leg:
            points.append(_location(leg['end_location']))
            segments.append(leg['distance']['value'] / METERS_PER_MILE)

        return RoutePath(
            points=tuple(points),
            total_distance_miles=leg['distance']['value'] / METERS_PER_MILE,
            total_duration_minutes=leg['duration']['value'] / 60.0,
            segment_miles=tuple(segments),
        )
    except (KeyError, TypeError) as e:
        raise ProviderError(f"Malformed leg in directions response: missing {e}") from e
    except InvalidInput as e:
        raise ProviderError(f"Inconsistent leg in directions response: {e}") from e


class GoogleDirectionsClient:
    """Google Directions API client returning one RoutePath per leg"""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 base_url: str = DIRECTIONS_CONFIG['base_url'],
                 timeout: float = DIRECTIONS_CONFIG['timeout_seconds']):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_route(self, origin: Coordinate, destination: Coordinate,
                  waypoints: Sequence[Coordinate] = ()) -> TripRoute:
        params = {
            'origin': _latlng(origin),
            'destination': _latlng(destination),
            'key': self.api_key,
        }
        if waypoints:
            params['waypoints'] = '|'.join(_latlng(wp) for wp in waypoints)

        logger.info(f"Requesting directions {_latlng(origin)} -> {_latlng(destination)} "
                    f"via {len(waypoints)} waypoint(s)")
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Directions request failed: {e}") from e

        if response.status_code != 200:
            raise ProviderError(f"Directions API error {response.status_code}",
                                status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Directions API returned invalid JSON: {e}") from e

        status = data.get('status')
        if status in ROUTE_NOT_FOUND_STATUSES:
            raise RouteNotFound(f"No route found ({status})")
        if status != 'OK':
            raise ProviderError(f"Directions API status {status}: {data.get('error_message', '')}".strip())

        routes = data.get('routes') or []
        if not routes:
            raise RouteNotFound("Directions API returned no routes")

        legs = tuple(leg_to_route_path(leg) for leg in routes[0].get('legs') or [])
        if len(legs) != len(waypoints) + 1:
            raise ProviderError(
                f"Expected {len(waypoints) + 1} legs for {len(waypoints)} waypoint(s), got {len(legs)}"
            )

        route = TripRoute(legs=legs)
        logger.info(f"Route: {route.total_distance_miles:.1f} mi, "
                    f"{route.total_duration_minutes:.0f} min over {len(legs)} leg(s)")
        return route


def get_api_key() -> str:
    """Get the Google Maps API key from the environment"""
    api_key = os.getenv('GOOGLE_MAPS_API_KEY')
    if not api_key:
        raise InvalidConfiguration(
            "Google Maps API key not found. Please set the GOOGLE_MAPS_API_KEY environment variable."
        )
    return api_key
