"""
Vehicle energy model

Maps a vehicle descriptor to the range the planner may use between charges,
and a station's power rating to the time needed to put miles back into the
battery.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from config.ev_config import EV_MODELS, MODEL_ALIASES, PLANNER_CONFIG
from src.utils.errors import InvalidConfiguration, InvalidInput


@dataclass(frozen=True)
class VehicleProfile:
    """A vehicle model variant, read-only to the planner"""
    model_id: str
    name: str
    nominal_range_miles: float  # rated range on a full charge
    charging_rate_kw: float     # vehicle-side max acceptance rate

    def __post_init__(self):
        for attr in ("nominal_range_miles", "charging_rate_kw"):
            value = getattr(self, attr)
            if not _is_positive(value):
                raise InvalidInput(f"{attr} must be > 0, got {value!r}")
            object.__setattr__(self, attr, float(value))


def _is_positive(value) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0


def available_models(catalog: Optional[Dict[str, Dict]] = None) -> List[str]:
    """Model ids known to the vehicle catalog"""
    return sorted((catalog or EV_MODELS).keys())


def load_vehicle_profile(model_id: str, catalog: Optional[Dict[str, Dict]] = None) -> VehicleProfile:
    """Look up a model in the static vehicle catalog (short front-end ids accepted)"""
    catalog = catalog or EV_MODELS
    if model_id not in catalog:
        model_id = MODEL_ALIASES.get(model_id, model_id)
    specs = catalog.get(model_id)
    if specs is None:
        raise InvalidInput(
            f"Unknown vehicle model {model_id!r}; known models: {', '.join(available_models(catalog))}"
        )
    return VehicleProfile(
        model_id=model_id,
        name=specs.get('name', model_id.replace('_', ' ').title()),
        nominal_range_miles=specs['range_miles'],
        charging_rate_kw=specs['max_charging_speed'],
    )


def validate_safety_margin(safety_margin: float) -> float:
    if isinstance(safety_margin, bool) or not _is_positive(safety_margin) or float(safety_margin) > 1.0:
        raise InvalidConfiguration(f"safety_margin must be in (0, 1], got {safety_margin!r}")
    return float(safety_margin)


def effective_range(profile: VehicleProfile, safety_margin: float) -> float:
    """Usable miles per charge: rated range reduced by the safety margin"""
    return profile.nominal_range_miles * validate_safety_margin(safety_margin)


def charge_duration_minutes(
    miles_needed: float,
    station_power_kw: float,
    vehicle_charging_rate_kw: float,
    miles_per_kwh: float = PLANNER_CONFIG['miles_per_kwh'],
    min_dwell_minutes: float = PLANNER_CONFIG['min_dwell_minutes'],
) -> float:
    """
    Minutes to replenish `miles_needed` at a station.

    Energy is converted from miles with a fixed efficiency and delivered at
    the slower of the station and vehicle rates. The result never drops below
    the minimum dwell time (plug-in/unplug overhead) and has no upper cap.
    """
    if not _is_positive(station_power_kw):
        raise InvalidInput(f"Station power must be > 0 kW, got {station_power_kw!r}")
    if not _is_positive(vehicle_charging_rate_kw):
        raise InvalidInput(f"Vehicle charging rate must be > 0 kW, got {vehicle_charging_rate_kw!r}")
    if not _is_positive(miles_per_kwh):
        raise InvalidConfiguration(f"miles_per_kwh must be > 0, got {miles_per_kwh!r}")
    if min_dwell_minutes is None or min_dwell_minutes < 0:
        raise InvalidConfiguration(f"min_dwell_minutes must be >= 0, got {min_dwell_minutes!r}")
    if miles_needed is None or not math.isfinite(miles_needed) or miles_needed < 0:
        raise InvalidInput(f"Miles to replenish must be >= 0, got {miles_needed!r}")

    energy_kwh = miles_needed / miles_per_kwh
    rate_kw = min(float(station_power_kw), float(vehicle_charging_rate_kw))
    return max(energy_kwh / rate_kw * 60.0, float(min_dwell_minutes))


class VehicleEnergyModel:
    """
    Planning-time energy settings:
    - safety margin applied to rated range
    - miles-per-kWh efficiency used to size charging sessions
    - minimum dwell time per stop
    """

    def __init__(self,
                 safety_margin: float = PLANNER_CONFIG['safety_margin'],
                 miles_per_kwh: float = PLANNER_CONFIG['miles_per_kwh'],
                 min_dwell_minutes: float = PLANNER_CONFIG['min_dwell_minutes']):
        self.safety_margin = validate_safety_margin(safety_margin)
        if not _is_positive(miles_per_kwh):
            raise InvalidConfiguration(f"miles_per_kwh must be > 0, got {miles_per_kwh!r}")
        if min_dwell_minutes is None or min_dwell_minutes < 0:
            raise InvalidConfiguration(f"min_dwell_minutes must be >= 0, got {min_dwell_minutes!r}")
        self.miles_per_kwh = float(miles_per_kwh)
        self.min_dwell_minutes = float(min_dwell_minutes)

    def effective_range_miles(self, profile: VehicleProfile) -> float:
        return effective_range(profile, self.safety_margin)

    def energy_kwh(self, miles: float) -> float:
        return miles / self.miles_per_kwh

    def charge_minutes(self, miles_needed: float, station_power_kw: float,
                       profile: VehicleProfile) -> float:
        return charge_duration_minutes(
            miles_needed,
            station_power_kw,
            profile.charging_rate_kw,
            miles_per_kwh=self.miles_per_kwh,
            min_dwell_minutes=self.min_dwell_minutes,
        )
