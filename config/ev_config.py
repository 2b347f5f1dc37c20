"""
Main configuration file for the EV trip planner
Combines planning parameters and provides easy access
"""

from .ev_models import EV_MODELS, DEFAULT_MODEL_ID, MODEL_ALIASES

# Charge-stop planning
PLANNER_CONFIG = {
    # Fraction of rated range the planner will use (elevation, weather, driving style)
    'safety_margin': 0.8,
    # Converts miles to replenish into kWh
    'miles_per_kwh': 3.5,
    # Plug-in / unplug overhead per stop, minutes
    'min_dwell_minutes': 5.0,
    # Stations farther than this from the route are ignored
    'corridor_radius_miles': 5.0,
    # Conservative power assumed when a station reports none
    'default_station_power_kw': 22.0,
    # 'full' (charge to full effective range) or 'minimum' (only what the next leg needs)
    'charge_policy': 'full',
    # A waypoint with a station this close counts as a charger
    'waypoint_charger_radius_miles': 0.25,
}

# Directions provider
DIRECTIONS_CONFIG = {
    'provider': 'google',
    'base_url': 'https://maps.googleapis.com/maps/api/directions/json',
    'timeout_seconds': 15,
    'meters_per_mile': 1609.34,
}

# Batch planning
BATCH_CONFIG = {
    'n_jobs': 4,
    'output_directory': 'data/trip_plans',
}

CHARGE_POLICIES = ('full', 'minimum')

# Export all configurations
__all__ = [
    'EV_MODELS',
    'DEFAULT_MODEL_ID',
    'MODEL_ALIASES',
    'PLANNER_CONFIG',
    'DIRECTIONS_CONFIG',
    'BATCH_CONFIG',
    'CHARGE_POLICIES',
]
