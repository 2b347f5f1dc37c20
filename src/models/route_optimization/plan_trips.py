"""
Plan EV road trips from the command line.

Single trip:
    ev-trip-plan --origin 37.7749,-122.4194 --destination 34.0522,-118.2437 \
        --model tesla_model_3 --stations-csv data/processed/stations.csv

Batch (CSV with origin, destination as "lat,lng"; optional trip_id, model and
waypoints as "lat,lng[,name[,charger]]" entries separated by ';'):
    ev-trip-plan --batch data/trips.csv --openchargemap --n-jobs 8
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

# Ensure project root is on sys.path so 'config', 'src' and 'app' are importable
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..', '..'))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from app.services.config_service import build_planner_settings, merged_runtime_config
from config.charging_infrastructure_config import DATA_PATHS
from config.ev_config import BATCH_CONFIG, CHARGE_POLICIES, DEFAULT_MODEL_ID
from config.logging_config import LOGGING_MODES, get_logging_config
from src.data_processing import directions_api, openchargemap_api
from src.data_processing.directions_api import DirectionsProvider, GoogleDirectionsClient, TripRoute
from src.data_processing.openchargemap_api import OpenChargeMapAPI, OpenChargeMapCatalog
from src.data_processing.station_catalog import CombinedStationCatalog, StationCatalog, StationLookup
from src.models.energy_model.vehicle_energy import load_vehicle_profile
from src.models.route_optimization.trip_planner import (
    PlanningRequest, TripPlan, TripPlanner, Waypoint,
)
from src.utils.errors import InvalidInput, TripPlanningError
from src.utils.geometry import Coordinate
from src.utils.logger import get_logger, print_summary, setup_logger

logger = get_logger('plan_trips')

CHARGER_FLAGS = {'charger', 'charge', 'true', 'yes', '1'}


# =============================================================================
# WIRING
# =============================================================================

def _default_catalogs(default_power_kw: float) -> List[StationCatalog]:
    """Local station exports under DATA_PATHS, when present"""
    base_dir = Path(DATA_PATHS['base_dir'])
    catalogs = []
    csv_path = base_dir / DATA_PATHS['stations_csv']
    if csv_path.exists():
        catalogs.append(StationCatalog.from_csv(csv_path, default_power_kw=default_power_kw))
    json_path = base_dir / DATA_PATHS['superchargers_json']
    if json_path.exists():
        catalogs.append(StationCatalog.from_supercharger_json(json_path, default_power_kw=default_power_kw))
    return catalogs


def build_station_lookup(stations_config: Dict[str, Any], default_power_kw: float) -> StationLookup:
    """Station sources named in the runtime config, merged into one lookup"""
    sources: List[StationLookup] = []
    for csv_path in stations_config.get('stations_csv') or []:
        sources.append(StationCatalog.from_csv(csv_path, default_power_kw=default_power_kw))
    if stations_config.get('superchargers_json'):
        sources.append(StationCatalog.from_supercharger_json(
            stations_config['superchargers_json'], default_power_kw=default_power_kw
        ))
    if stations_config.get('use_openchargemap'):
        api = OpenChargeMapAPI(openchargemap_api.get_api_key())
        sources.append(OpenChargeMapCatalog(
            api,
            sample_spacing_miles=stations_config['sample_spacing_miles'],
            query_radius_miles=stations_config['query_radius_miles'],
            max_results=stations_config['max_results_per_request'],
            max_results_ceiling=stations_config['max_results_ceiling'],
            country_code=stations_config.get('country_code'),
            default_power_kw=default_power_kw,
        ))

    if not sources:
        sources.extend(_default_catalogs(default_power_kw))
    if not sources:
        logger.warning("No station sources configured; only trips within range can be planned")
    if len(sources) == 1:
        return sources[0]
    return CombinedStationCatalog(sources)


def build_trip_planner(runtime: Dict[str, Any],
                       directions: Optional[DirectionsProvider] = None,
                       station_lookup: Optional[StationLookup] = None) -> TripPlanner:
    settings = build_planner_settings(runtime)
    if directions is None:
        directions = GoogleDirectionsClient(directions_api.get_api_key())
    if station_lookup is None:
        station_lookup = build_station_lookup(runtime['stations'],
                                              runtime['planner']['default_station_power_kw'])
    return TripPlanner(directions, station_lookup, settings)


# =============================================================================
# PARSING / SERIALISATION
# =============================================================================

def parse_waypoint(text: str) -> Waypoint:
    """Parse 'lat,lng', 'lat,lng,name' or 'lat,lng,name,charger'"""
    parts = [p.strip() for p in str(text).split(',')]
    if len(parts) < 2:
        raise InvalidInput(f"Expected 'lat,lng[,name[,charger]]', got {text!r}")
    location = Coordinate(lat=parts[0], lng=parts[1])
    name = parts[2] if len(parts) > 2 else ''
    is_charger = len(parts) > 3 and parts[3].lower() in CHARGER_FLAGS
    return Waypoint(location=location, name=name, is_charger=is_charger)


def parse_waypoints(text: Any) -> List[Waypoint]:
    if text is None or (isinstance(text, float) and pd.isna(text)):
        return []
    return [parse_waypoint(item) for item in str(text).split(';') if item.strip()]


def _latlng(coordinate: Coordinate) -> Dict[str, float]:
    return {'lat': coordinate.lat, 'lng': coordinate.lng}


def trip_plan_to_dict(plan: TripPlan) -> Dict[str, Any]:
    """JSON-friendly view of a plan (camelCase keys, as the web front end expects)"""
    data = {
        'vehicle': {'id': plan.request.vehicle.model_id, 'name': plan.request.vehicle.name},
        'route': [_latlng(p) for p in TripRoute(legs=plan.legs).points],
        'totalDistance': plan.total_distance_miles,
        'duration': plan.driving_minutes,
        'chargingDuration': plan.charging_minutes,
        'totalDuration': plan.total_minutes,
        'effectiveRange': plan.effective_range_miles,
        'chargeStops': [
            {
                'name': stop.name,
                'location': _latlng(stop.location),
                'duration': stop.charge_duration_minutes,
                'distance': stop.miles_from_route_start,
                'powerKw': stop.power_kw,
                'milesAdded': stop.miles_added,
                'energyKwh': stop.energy_kwh,
                'stationId': stop.station_id,
                'leg': stop.leg_index,
            }
            for stop in plan.charge_stops
        ],
    }
    if plan.failure is not None:
        data['error'] = type(plan.failure).__name__
        data['message'] = str(plan.failure)
        data['atMiles'] = plan.failure.at_miles
    return data


# =============================================================================
# BATCH
# =============================================================================

def load_batch(csv_path) -> pd.DataFrame:
    trips = pd.read_csv(csv_path, dtype=str)
    missing = {'origin', 'destination'} - set(trips.columns)
    if missing:
        raise InvalidInput(f"Batch file is missing columns: {', '.join(sorted(missing))}")
    if 'trip_id' not in trips.columns:
        trips['trip_id'] = [f"trip_{i + 1}" for i in range(len(trips))]
    return trips


def plan_batch_row(planner: TripPlanner, row: Dict[str, Any],
                   default_model: str = DEFAULT_MODEL_ID) -> Dict[str, Any]:
    """Plan one batch row; bad rows and provider failures are reported, not raised"""
    trip_id = row.get('trip_id')
    try:
        model = row.get('model')
        if model is None or (isinstance(model, float) and pd.isna(model)) or not str(model).strip():
            model = default_model
        request = PlanningRequest(
            origin=Coordinate.parse(row['origin']),
            destination=Coordinate.parse(row['destination']),
            vehicle=load_vehicle_profile(str(model).strip()),
            waypoints=tuple(parse_waypoints(row.get('waypoints'))),
        )
        plan = planner.plan(request)
    except TripPlanningError as e:
        logger.warning(f"{trip_id}: {type(e).__name__}: {e}")
        return {'trip_id': trip_id, 'status': 'error', 'error': type(e).__name__, 'message': str(e)}

    return {'trip_id': trip_id, 'status': 'ok' if plan.ok else 'infeasible',
            **trip_plan_to_dict(plan)}


def plan_batch(planner: TripPlanner, trips: pd.DataFrame, n_jobs: int = BATCH_CONFIG['n_jobs'],
               default_model: str = DEFAULT_MODEL_ID) -> List[Dict[str, Any]]:
    """Plan every trip in `trips`; results keep the input order"""
    rows = trips.to_dict(orient='records')
    # Planning is I/O bound (directions / catalog calls), so threads are enough
    return Parallel(n_jobs=n_jobs, prefer='threads')(
        delayed(plan_batch_row)(planner, row, default_model)
        for row in tqdm(rows, total=len(rows), desc="Trips")
    )


def batch_summary_frame(results: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'trip_id': r['trip_id'],
            'status': r['status'],
            'total_distance_miles': r.get('totalDistance'),
            'charge_stops': len(r.get('chargeStops') or []),
            'charging_minutes': r.get('chargingDuration'),
            'total_minutes': r.get('totalDuration'),
            'error': r.get('error'),
        }
        for r in results
    ])


# =============================================================================
# CLI
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Plan charging stops for EV road trips")
    parser.add_argument('--origin', type=str, default=None, help='Trip origin as "lat,lng"')
    parser.add_argument('--destination', type=str, default=None, help='Trip destination as "lat,lng"')
    parser.add_argument('--waypoint', type=str, action='append', default=[],
                        help='Intermediate stop "lat,lng[,name[,charger]]" (repeatable, in order)')
    parser.add_argument('--model', type=str, default=DEFAULT_MODEL_ID, help='Vehicle model id')
    parser.add_argument('--batch', type=str, default=None, help='CSV file of trips to plan')
    parser.add_argument('--stations-csv', type=str, action='append', default=None,
                        help='Station table with latitude/longitude columns (repeatable)')
    parser.add_argument('--superchargers-json', type=str, default=None)
    parser.add_argument('--openchargemap', action='store_true', help='Query OpenChargeMap along the route')
    parser.add_argument('--charge-policy', type=str, choices=list(CHARGE_POLICIES), default=None)
    parser.add_argument('--safety-margin', type=float, default=None)
    parser.add_argument('--corridor-radius', type=float, default=None, help='Miles off-route a station may be')
    parser.add_argument('--config', type=str, default=None, help='YAML overrides file')
    parser.add_argument('--output', type=str, default=None, help='Write the single-trip plan JSON here')
    parser.add_argument('--output-dir', type=str, default=BATCH_CONFIG['output_directory'])
    parser.add_argument('--n-jobs', type=int, default=BATCH_CONFIG['n_jobs'])
    parser.add_argument('--log-mode', type=str, default=None,
                        choices=list(LOGGING_MODES))
    return parser


def _runtime_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    runtime = merged_runtime_config(
        Path(args.config) if args.config else None,
        charge_policy=args.charge_policy,
        safety_margin=args.safety_margin,
        corridor_radius_miles=args.corridor_radius,
    )
    stations = runtime['stations']
    if args.stations_csv:
        stations['stations_csv'] = list(stations.get('stations_csv') or []) + args.stations_csv
    if args.superchargers_json:
        stations['superchargers_json'] = args.superchargers_json
    if args.openchargemap:
        stations['use_openchargemap'] = True
    return runtime


def run_single(args: argparse.Namespace, planner: TripPlanner) -> int:
    request = PlanningRequest(
        origin=Coordinate.parse(args.origin),
        destination=Coordinate.parse(args.destination),
        vehicle=load_vehicle_profile(args.model),
        waypoints=tuple(parse_waypoint(w) for w in args.waypoint),
    )
    plan = planner.plan(request)
    payload = json.dumps(trip_plan_to_dict(plan), indent=2)
    if args.output:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        Path(args.output).write_text(payload, encoding='utf-8')
        logger.info(f"Plan written to {args.output}")
    else:
        print(payload)

    print_summary("TRIP PLAN", {
        'Vehicle': request.vehicle.name,
        'Distance (mi)': plan.total_distance_miles,
        'Charge stops': len(plan.charge_stops),
        'Charging (min)': plan.charging_minutes,
        'Total time (min)': plan.total_minutes,
        'Status': 'ok' if plan.ok else str(plan.failure),
    })
    return 0 if plan.ok else 1


def run_batch(args: argparse.Namespace, planner: TripPlanner) -> int:
    trips = load_batch(args.batch)
    results = plan_batch(planner, trips, n_jobs=args.n_jobs, default_model=args.model)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / 'trip_plans.json').write_text(json.dumps(results, indent=2), encoding='utf-8')
    summary = batch_summary_frame(results)
    summary.to_csv(output_dir / 'trip_plans_summary.csv', index=False)

    print_summary("BATCH TRIP PLANS", {
        'Trips': len(results),
        'Planned': int((summary['status'] == 'ok').sum()) if len(summary) else 0,
        'Infeasible': int((summary['status'] == 'infeasible').sum()) if len(summary) else 0,
        'Errors': int((summary['status'] == 'error').sum()) if len(summary) else 0,
        'Output': str(output_dir),
    })
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_mode:
        status = setup_logger(**get_logging_config(args.log_mode)).get_status()
        if status['log_file']:
            logger.info(f"Logging to {status['log_file']}")
    if not args.batch and not (args.origin and args.destination):
        parser.error("either --batch or both --origin and --destination are required")

    try:
        planner = build_trip_planner(_runtime_from_args(args))
        if args.batch:
            return run_batch(args, planner)
        return run_single(args, planner)
    except TripPlanningError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
