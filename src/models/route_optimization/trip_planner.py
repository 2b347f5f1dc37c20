"""
Trip planner

Request-level orchestration: fetch the route from the directions provider,
split it at the waypoints and run the charge-stop planner once per leg,
carrying the remaining range from one leg into the next.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from config.ev_config import CHARGE_POLICIES, PLANNER_CONFIG
from src.data_processing.directions_api import DirectionsProvider
from src.data_processing.station_catalog import StationLookup
from src.models.energy_model.vehicle_energy import VehicleEnergyModel, VehicleProfile
from src.models.route_optimization.charge_planner import ChargeStop, plan_charge_stops
from src.utils.errors import (
    Cancelled, InvalidConfiguration, InvalidInput, PlanFailure, ProviderError,
)
from src.utils.geometry import Coordinate, RoutePath
from src.utils.logger import get_logger, log_plan_failure

logger = get_logger('trip_planner')


@dataclass(frozen=True)
class Waypoint:
    """A mandatory intermediate stop, e.g. a hotel"""
    location: Coordinate
    name: str = ''
    is_charger: bool = False  # vehicle charges to full while there


@dataclass(frozen=True)
class PlanningRequest:
    origin: Coordinate
    destination: Coordinate
    vehicle: VehicleProfile
    waypoints: Tuple[Waypoint, ...] = ()

    def __post_init__(self):
        for attr in ("origin", "destination"):
            if not isinstance(getattr(self, attr), Coordinate):
                raise InvalidInput(f"{attr} must be a Coordinate")
        if not isinstance(self.vehicle, VehicleProfile):
            raise InvalidInput("vehicle must be a VehicleProfile")

        waypoints = []
        for wp in self.waypoints or ():
            if isinstance(wp, Coordinate):
                wp = Waypoint(location=wp)
            if not isinstance(wp, Waypoint):
                raise InvalidInput(f"Invalid waypoint {wp!r}")
            waypoints.append(wp)
        object.__setattr__(self, "waypoints", tuple(waypoints))


@dataclass(frozen=True)
class PlannerSettings:
    """Planning knobs, defaults from PLANNER_CONFIG"""
    safety_margin: float = PLANNER_CONFIG['safety_margin']
    miles_per_kwh: float = PLANNER_CONFIG['miles_per_kwh']
    min_dwell_minutes: float = PLANNER_CONFIG['min_dwell_minutes']
    corridor_radius_miles: float = PLANNER_CONFIG['corridor_radius_miles']
    charge_policy: str = PLANNER_CONFIG['charge_policy']
    waypoint_charger_radius_miles: float = PLANNER_CONFIG['waypoint_charger_radius_miles']

    def __post_init__(self):
        if self.charge_policy not in CHARGE_POLICIES:
            raise InvalidConfiguration(f"Unknown charge_policy {self.charge_policy!r}")
        for attr in ("corridor_radius_miles", "waypoint_charger_radius_miles"):
            value = getattr(self, attr)
            if value is None or not math.isfinite(value) or value < 0:
                raise InvalidConfiguration(f"{attr} must be >= 0, got {value!r}")
        # Validates margin, efficiency and dwell
        self.energy_model()

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "PlannerSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})

    def energy_model(self) -> VehicleEnergyModel:
        return VehicleEnergyModel(
            safety_margin=self.safety_margin,
            miles_per_kwh=self.miles_per_kwh,
            min_dwell_minutes=self.min_dwell_minutes,
        )


@dataclass(frozen=True)
class TripPlan:
    """Charge stops for a whole trip, distances measured from the trip origin"""
    request: PlanningRequest
    legs: Tuple[RoutePath, ...] = ()
    charge_stops: Tuple[ChargeStop, ...] = ()
    failure: Optional[PlanFailure] = None
    effective_range_miles: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def total_distance_miles(self) -> float:
        return sum(leg.distance_miles for leg in self.legs)

    @property
    def driving_minutes(self) -> float:
        return sum(leg.total_duration_minutes or 0.0 for leg in self.legs)

    @property
    def charging_minutes(self) -> float:
        return sum(stop.charge_duration_minutes for stop in self.charge_stops)

    @property
    def total_minutes(self) -> float:
        return self.driving_minutes + self.charging_minutes

    def raise_for_failure(self) -> "TripPlan":
        if self.failure is not None:
            raise self.failure
        return self


class TripPlanner:
    """
    Plans charge stops for a trip with optional waypoints.

    Waypoints split the route into legs. The first leg starts on a full
    (effective) charge; later legs start with whatever range was left on
    arrival, unless the waypoint is a charger.
    """

    def __init__(self, directions: DirectionsProvider, station_lookup: StationLookup,
                 settings: Optional[PlannerSettings] = None):
        self.directions = directions
        self.station_lookup = station_lookup
        self.settings = settings or PlannerSettings()

    def _charges_at(self, waypoint: Waypoint) -> bool:
        if waypoint.is_charger:
            return True
        radius = self.settings.waypoint_charger_radius_miles
        if radius <= 0:
            return False
        nearby = self.station_lookup.stations_near(RoutePath(points=(waypoint.location,)), radius)
        return any(station.has_available_stall for station in nearby)

    def plan(self, request: PlanningRequest,
             should_cancel: Optional[Callable[[], bool]] = None) -> TripPlan:
        settings = self.settings
        energy_model = settings.energy_model()
        full_range = energy_model.effective_range_miles(request.vehicle)
        plan = TripPlan(request=request, effective_range_miles=full_range)

        logger.info(f"Planning {request.vehicle.name}: ({request.origin.lat:.4f}, {request.origin.lng:.4f}) -> "
                    f"({request.destination.lat:.4f}, {request.destination.lng:.4f}), "
                    f"{len(request.waypoints)} waypoint(s), effective range {full_range:.0f} mi")

        if request.origin == request.destination and not request.waypoints:
            empty_leg = RoutePath(points=(request.origin,), total_distance_miles=0.0,
                                  total_duration_minutes=0.0)
            return replace(plan, legs=(empty_leg,))

        route = self.directions.get_route(
            request.origin, request.destination, [wp.location for wp in request.waypoints]
        )
        legs = tuple(route.legs)
        if len(legs) != len(request.waypoints) + 1:
            raise ProviderError(f"Directions returned {len(legs)} legs for "
                                f"{len(request.waypoints)} waypoint(s)")
        plan = replace(plan, legs=legs)

        stops: List[ChargeStop] = []
        offset = 0.0
        range_left = full_range
        for index, leg in enumerate(legs):
            if should_cancel is not None and should_cancel():
                return self._failed(plan, Cancelled(at_miles=offset))

            is_last_leg = index == len(legs) - 1
            # A charger waypoint refills the car, so the last stop before it need not fill up
            refills_at_waypoint = not is_last_leg and self._charges_at(request.waypoints[index])
            result = plan_charge_stops(
                leg,
                request.vehicle,
                self.station_lookup,
                energy_model=energy_model,
                corridor_radius_miles=settings.corridor_radius_miles,
                initial_range_miles=range_left,
                charge_policy=settings.charge_policy,
                fill_last_stop=not is_last_leg and not refills_at_waypoint,
                should_cancel=should_cancel,
            )
            if not result.ok:
                failure = type(result.failure)(at_miles=offset + result.failure.at_miles)
                return self._failed(plan, failure)

            stops.extend(
                replace(stop, miles_from_route_start=stop.miles_from_route_start + offset, leg_index=index)
                for stop in result.stops
            )
            offset += leg.distance_miles
            range_left = result.arrival_range_miles

            if refills_at_waypoint:
                logger.debug(f"Charging to full at waypoint {index + 1} "
                             f"{request.waypoints[index].name or ''}".rstrip())
                range_left = full_range

        plan = replace(plan, charge_stops=tuple(stops))
        logger.info(f"Trip: {plan.total_distance_miles:.1f} mi, {len(stops)} charge stop(s), "
                    f"{plan.charging_minutes:.0f} min charging")
        return plan

    def _failed(self, plan: TripPlan, failure: PlanFailure) -> TripPlan:
        request = plan.request
        log_plan_failure(request.origin.as_tuple(), request.destination.as_tuple(),
                         request.vehicle.model_id, str(failure), at_miles=failure.at_miles)
        return replace(plan, failure=failure)


def plan_trip(request: PlanningRequest, directions: DirectionsProvider,
              station_lookup: StationLookup, settings: Optional[PlannerSettings] = None,
              should_cancel: Optional[Callable[[], bool]] = None) -> TripPlan:
    """One-shot helper around TripPlanner"""
    return TripPlanner(directions, station_lookup, settings).plan(request, should_cancel)
