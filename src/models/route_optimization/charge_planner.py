"""
Charge-stop planner

Greedy farthest-reachable planning over a single route leg: drive as far as
the current charge allows, stop at the farthest reachable station, refill,
repeat until the destination is within range. With every stop refilling to
the same range this minimises the number of stops (the classic minimum
refuelling stops argument), and it fails only when some stretch of road has
no station within range.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple

from config.ev_config import CHARGE_POLICIES, PLANNER_CONFIG
from src.data_processing.station_catalog import (
    ChargingStation, StationLookup, deduplicate_stations,
)
from src.models.energy_model.vehicle_energy import VehicleEnergyModel, VehicleProfile
from src.utils.errors import (
    Cancelled, InvalidConfiguration, InvalidInput, PlanFailure, UnreachableGap,
)
from src.utils.geometry import DISTANCE_TOLERANCE_MILES, Coordinate, RoutePath, corridor_candidates
from src.utils.logger import get_logger

logger = get_logger('charge_planner')

Candidate = Tuple[ChargingStation, float]  # (station, miles along the path)


@dataclass(frozen=True)
class ChargeStop:
    """A committed charging stop, in the order the driver reaches it"""
    name: str
    location: Coordinate
    miles_from_route_start: float  # along the path, not straight-line
    charge_duration_minutes: float
    power_kw: float
    miles_added: float
    station_id: Optional[str] = None
    leg_index: int = 0
    energy_kwh: float = 0.0


@dataclass(frozen=True)
class PlanResult:
    """Ordered charge stops, or the reason no feasible plan exists"""
    stops: Tuple[ChargeStop, ...] = ()
    failure: Optional[PlanFailure] = None
    total_distance_miles: float = 0.0
    effective_range_miles: float = 0.0
    arrival_range_miles: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def total_charge_minutes(self) -> float:
        return sum(stop.charge_duration_minutes for stop in self.stops)

    def raise_for_failure(self) -> "PlanResult":
        if self.failure is not None:
            raise self.failure
        return self


def _validate_policy(charge_policy: str) -> str:
    if charge_policy not in CHARGE_POLICIES:
        raise InvalidConfiguration(
            f"charge_policy must be one of {', '.join(CHARGE_POLICIES)}, got {charge_policy!r}"
        )
    return charge_policy


def _select_farthest(window: Sequence[Candidate]) -> Candidate:
    """Farthest along the path; ties go to the more powerful station, then by name/location"""
    return min(window, key=lambda c: (-c[1], -c[0].power_kw, c[0].name, c[0].location.as_tuple()))


def plan_charge_stops(
    path: RoutePath,
    vehicle: VehicleProfile,
    station_lookup: StationLookup,
    energy_model: Optional[VehicleEnergyModel] = None,
    corridor_radius_miles: Optional[float] = None,
    initial_range_miles: Optional[float] = None,
    charge_policy: Optional[str] = None,
    fill_last_stop: bool = False,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> PlanResult:
    """
    Plan the charging stops needed to drive `path`.

    Args:
        path: Route leg to cover
        vehicle: Range and charge-rate profile
        station_lookup: Source of stations near the route, queried at most once
        energy_model: Safety margin / efficiency / dwell settings
        corridor_radius_miles: How far off the route a station may be
        initial_range_miles: Range available at the start of the leg
            (defaults to, and is capped at, the full effective range)
        charge_policy: 'full' charges every stop to full effective range;
            'minimum' adds only what is needed to reach the next commit point
        fill_last_stop: Under 'minimum', charge the last stop to full anyway
            (used when another leg follows)
        should_cancel: Checked between iterations; True aborts with Cancelled

    Returns:
        PlanResult with the ordered stops, or an UnreachableGap / Cancelled
        failure (never a partial plan)
    """
    energy_model = energy_model or VehicleEnergyModel()
    if corridor_radius_miles is None:
        corridor_radius_miles = PLANNER_CONFIG['corridor_radius_miles']
    if not math.isfinite(corridor_radius_miles) or corridor_radius_miles < 0:
        raise InvalidConfiguration(f"corridor_radius_miles must be >= 0, got {corridor_radius_miles!r}")
    charge_policy = _validate_policy(charge_policy or PLANNER_CONFIG['charge_policy'])

    full_range = energy_model.effective_range_miles(vehicle)
    if initial_range_miles is None:
        start_range = full_range
    elif not math.isfinite(initial_range_miles) or initial_range_miles < 0:
        raise InvalidInput(f"initial_range_miles must be >= 0, got {initial_range_miles!r}")
    else:
        start_range = min(float(initial_range_miles), full_range)

    total = path.distance_miles
    result = PlanResult(total_distance_miles=total, effective_range_miles=full_range)

    if total <= 0:
        return replace(result, arrival_range_miles=start_range)
    if total <= start_range + DISTANCE_TOLERANCE_MILES:
        logger.debug(f"{total:.1f} mi leg fits in {start_range:.1f} mi of range, no stops")
        return replace(result, arrival_range_miles=max(start_range - total, 0.0))

    stations = station_lookup.stations_near(path, corridor_radius_miles)
    usable = [s for s in deduplicate_stations(stations) if s.has_available_stall]
    candidates = corridor_candidates(path, usable, corridor_radius_miles)
    logger.debug(f"{len(candidates)} candidate stations within {corridor_radius_miles} mi "
                 f"of a {total:.1f} mi leg")

    commits: List[Candidate] = []
    covered = 0.0
    tank = start_range
    while total - covered > tank + DISTANCE_TOLERANCE_MILES:
        reach = covered + tank + DISTANCE_TOLERANCE_MILES
        window = [c for c in candidates if covered < c[1] <= reach]
        if not window:
            logger.info(f"No station reachable between mile {covered:.1f} and {covered + tank:.1f}")
            return replace(result, failure=UnreachableGap(at_miles=covered))

        chosen = _select_farthest(window)
        commits.append(chosen)
        logger.debug(f"Stop {len(commits)}: {chosen[0].name} at mile {chosen[1]:.1f} "
                     f"({chosen[0].power_kw:.0f} kW)")
        covered = chosen[1]
        tank = full_range

        if should_cancel is not None and should_cancel():
            logger.info(f"Planning cancelled at mile {covered:.1f}")
            return replace(result, failure=Cancelled(at_miles=covered))

    stops, arrival_range = _size_charging_sessions(
        commits, total, start_range, full_range, vehicle, energy_model,
        charge_policy, fill_last_stop,
    )
    logger.info(f"Planned {len(stops)} stop(s) over {total:.1f} mi "
                f"({sum(s.charge_duration_minutes for s in stops):.0f} min charging)")
    return replace(result, stops=tuple(stops), arrival_range_miles=arrival_range)


def _size_charging_sessions(
    commits: Sequence[Candidate],
    total: float,
    start_range: float,
    full_range: float,
    vehicle: VehicleProfile,
    energy_model: VehicleEnergyModel,
    charge_policy: str,
    fill_last_stop: bool,
) -> Tuple[List[ChargeStop], float]:
    """Miles added and dwell time for each committed stop, plus range left at the end"""
    stops = []
    previous_miles = 0.0
    range_after = start_range
    for i, (station, miles) in enumerate(commits):
        arrival = max(range_after - (miles - previous_miles), 0.0)
        is_last = i == len(commits) - 1
        if charge_policy == 'full':
            miles_needed = full_range
            range_after = full_range
        elif is_last and fill_last_stop:
            miles_needed = full_range - arrival
            range_after = full_range
        else:
            next_miles = total if is_last else commits[i + 1][1]
            miles_needed = max((next_miles - miles) - arrival, 0.0)
            range_after = arrival + miles_needed

        stops.append(ChargeStop(
            name=station.name,
            location=station.location,
            miles_from_route_start=miles,
            charge_duration_minutes=energy_model.charge_minutes(miles_needed, station.power_kw, vehicle),
            power_kw=station.power_kw,
            miles_added=miles_needed,
            energy_kwh=energy_model.energy_kwh(miles_needed),
            station_id=station.station_id,
        ))
        previous_miles = miles

    arrival_range = max(range_after - (total - previous_miles), 0.0)
    return stops, arrival_range
