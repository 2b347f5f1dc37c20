"""
Planning service for the web front end.

Accepts the JSON body of a route calculation request
({origin, destination, waypoints, model}) and answers with an HTTP-style
status code plus a JSON-friendly payload, so it can sit behind Streamlit or
any small web framework.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from app.services.config_service import merged_runtime_config
from src.models.energy_model.vehicle_energy import available_models, load_vehicle_profile
from src.models.route_optimization.plan_trips import build_trip_planner, trip_plan_to_dict
from src.models.route_optimization.trip_planner import PlanningRequest, TripPlanner, Waypoint
from src.utils.errors import (
    Cancelled, InvalidConfiguration, InvalidInput, ProviderError, RouteNotFound, UnreachableGap,
)
from src.utils.geometry import Coordinate
from src.utils.logger import get_logger

logger = get_logger('planning_service')

Response = Tuple[int, Dict[str, Any]]

STATUS_CODES = {
    InvalidInput: 400,
    InvalidConfiguration: 400,
    RouteNotFound: 404,
    UnreachableGap: 422,
    Cancelled: 499,
    ProviderError: 502,
}


def _status_for(error: Exception) -> int:
    for error_type, status in STATUS_CODES.items():
        if isinstance(error, error_type):
            return status
    return 500


def _error_body(error: Exception) -> Dict[str, Any]:
    return {'error': type(error).__name__, 'message': str(error)}


def _has_coordinates(value: Any) -> bool:
    return isinstance(value, dict) and value.get('lat') is not None and value.get('lng') is not None


class PlanningService:
    """Route calculation endpoint: request body in, (status, payload) out"""

    def __init__(self, planner: Optional[TripPlanner] = None,
                 runtime: Optional[Dict[str, Any]] = None):
        self._runtime = runtime
        self._planner = planner

    @property
    def runtime(self) -> Dict[str, Any]:
        if self._runtime is None:
            self._runtime = merged_runtime_config()
        return self._runtime

    @property
    def planner(self) -> TripPlanner:
        # Built on first use so the UI can render before API keys are checked
        if self._planner is None:
            self._planner = build_trip_planner(self.runtime)
        return self._planner

    def models(self) -> List[Dict[str, Any]]:
        """Vehicle models for the model picker"""
        catalog = self.runtime['vehicle_models']
        return [
            {
                'id': model_id,
                'name': catalog[model_id].get('name', model_id),
                'range': catalog[model_id]['range_miles'],
                'chargingSpeed': catalog[model_id]['max_charging_speed'],
            }
            for model_id in available_models(catalog)
        ]

    def parse_request(self, body: Any) -> PlanningRequest:
        if not isinstance(body, dict):
            raise InvalidInput("Request body must be a JSON object")

        origin, destination, model = body.get('origin'), body.get('destination'), body.get('model')
        if not _has_coordinates(origin) or not _has_coordinates(destination) or not model:
            details = {
                'origin': 'ok' if _has_coordinates(origin) else 'missing coordinates',
                'destination': 'ok' if _has_coordinates(destination) else 'missing coordinates',
                'model': 'ok' if model else 'missing',
            }
            error = InvalidInput("Missing required fields")
            error.details = details
            raise error
        if not isinstance(model, str):
            raise InvalidInput(f"model must be a string, got {model!r}")

        waypoints = body.get('waypoints') or []
        if not isinstance(waypoints, list):
            raise InvalidInput("waypoints must be a list")

        return PlanningRequest(
            origin=Coordinate.from_dict(origin),
            destination=Coordinate.from_dict(destination),
            vehicle=load_vehicle_profile(model, self.runtime['vehicle_models']),
            waypoints=tuple(self._parse_waypoint(wp) for wp in waypoints),
        )

    @staticmethod
    def _parse_waypoint(raw: Any) -> Waypoint:
        if not isinstance(raw, dict):
            raise InvalidInput(f"Invalid waypoint {raw!r}")
        location = raw.get('location') if isinstance(raw.get('location'), dict) else raw
        return Waypoint(
            location=Coordinate.from_dict(location),
            name=str(raw.get('name') or raw.get('address') or ''),
            is_charger=bool(raw.get('isCharger', False)),
        )

    def handle(self, body: Any, should_cancel: Optional[Callable[[], bool]] = None) -> Response:
        try:
            request = self.parse_request(body)
            plan = self.planner.plan(request, should_cancel=should_cancel)
        except (InvalidInput, InvalidConfiguration, RouteNotFound, ProviderError) as e:
            status = _status_for(e)
            logger.warning(f"Route calculation failed ({status}): {e}")
            payload = _error_body(e)
            if getattr(e, 'details', None):
                payload['details'] = e.details
            return status, payload

        payload = trip_plan_to_dict(plan)
        if plan.failure is not None:
            return _status_for(plan.failure), payload
        return 200, payload
