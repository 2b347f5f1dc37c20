from __future__ import annotations

from pathlib import Path
from typing import Optional, Dict, Any, List

import yaml
from pydantic import BaseModel, Field, ValidationError, confloat, validator

from src.utils.errors import InvalidConfiguration


PLANNER_OVERRIDES_PATH = Path("config/planner_overrides.yaml")


class PlannerConfigSchema(BaseModel):
    safety_margin: confloat(gt=0, le=1.0) = 0.8
    miles_per_kwh: confloat(gt=0, le=10.0) = 3.5
    min_dwell_minutes: confloat(ge=0, le=120) = 5.0
    corridor_radius_miles: confloat(ge=0, le=50) = 5.0
    default_station_power_kw: confloat(gt=0, le=1000) = 22.0
    charge_policy: str = Field("full")
    waypoint_charger_radius_miles: confloat(ge=0, le=10) = 0.25

    @validator("charge_policy")
    def _known_policy(cls, value):
        from config.ev_config import CHARGE_POLICIES
        if value not in CHARGE_POLICIES:
            raise ValueError(f"must be one of {', '.join(CHARGE_POLICIES)}")
        return value


class StationSourcesSchema(BaseModel):
    # Local exports are read up front; OpenChargeMap is queried per route when enabled
    stations_csv: List[str] = Field(default_factory=list)
    superchargers_json: Optional[str] = None
    use_openchargemap: bool = False
    sample_spacing_miles: confloat(gt=0, le=200) = 25.0
    query_radius_miles: confloat(gt=0, le=100) = 15.0


class VehicleModelSchema(BaseModel):
    name: Optional[str] = None
    range_miles: Optional[confloat(gt=0, le=1500)] = None
    max_charging_speed: Optional[confloat(gt=0, le=1000)] = None
    battery_capacity: Optional[confloat(gt=0, le=500)] = None


class PlannerOverrides(BaseModel):
    planner: PlannerConfigSchema = PlannerConfigSchema()
    stations: StationSourcesSchema = StationSourcesSchema()
    # Optional per-model parameter overrides (and extra models)
    vehicle_models: Optional[Dict[str, VehicleModelSchema]] = None


def _invalid(source: str, error: ValidationError) -> InvalidConfiguration:
    return InvalidConfiguration(f"Invalid planner configuration in {source}: {error}")


def load_overrides(path: Optional[Path] = None) -> PlannerOverrides:
    path = Path(path) if path is not None else PLANNER_OVERRIDES_PATH
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise InvalidConfiguration(f"Could not parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"{path} must contain a mapping")
        try:
            return PlannerOverrides(**data)
        except ValidationError as e:
            raise _invalid(str(path), e) from e
    return PlannerOverrides()


def save_overrides(overrides: PlannerOverrides, path: Optional[Path] = None) -> None:
    path = Path(path) if path is not None else PLANNER_OVERRIDES_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(overrides.dict(exclude_none=True), sort_keys=False), encoding="utf-8")


def merged_runtime_config(path: Optional[Path] = None, **planner_overrides: Any) -> Dict[str, Any]:
    """
    Defaults from config/*.py, then the YAML overrides file, then keyword
    overrides (e.g. CLI flags; None values are ignored).
    """
    # Import python configs lazily to avoid circular imports with Streamlit reloads
    from config.ev_config import PLANNER_CONFIG, EV_MODELS
    from config.charging_infrastructure_config import API_CONFIG

    ui = load_overrides(path)

    planner = {**PLANNER_CONFIG, **ui.planner.dict(exclude_unset=True)}
    planner.update({k: v for k, v in planner_overrides.items() if v is not None})
    try:
        planner = PlannerConfigSchema(**planner).dict()
    except ValidationError as e:
        raise _invalid("runtime overrides", e) from e

    stations = {**API_CONFIG['openchargemap'], **ui.stations.dict()}

    vehicle_models = {model_id: dict(specs) for model_id, specs in EV_MODELS.items()}
    for model_id, params in (ui.vehicle_models or {}).items():
        merged = {**vehicle_models.get(model_id, {}), **params.dict(exclude_none=True)}
        if 'range_miles' not in merged or 'max_charging_speed' not in merged:
            raise InvalidConfiguration(
                f"Vehicle model {model_id!r} needs range_miles and max_charging_speed"
            )
        vehicle_models[model_id] = merged

    return {
        "planner": planner,
        "stations": stations,
        "vehicle_models": vehicle_models,
    }


def build_planner_settings(runtime: Optional[Dict[str, Any]] = None):
    """PlannerSettings from a merged runtime config (defaults + overrides when omitted)"""
    from src.models.route_optimization.trip_planner import PlannerSettings

    runtime = runtime if runtime is not None else merged_runtime_config()
    return PlannerSettings.from_dict(runtime["planner"])
