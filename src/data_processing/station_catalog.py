"""
Station catalog adapter

Normalises heterogeneous charging-network records (OpenChargeMap POIs, Tesla
supercharger listings, tabular exports) into ChargingStation values and
answers the one question the planner asks: which stations lie within a
corridor around a route.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from config.charging_infrastructure_config import STATION_DEFAULTS
from config.ev_config import PLANNER_CONFIG
from src.utils.errors import InvalidConfiguration, InvalidInput
from src.utils.geometry import Coordinate, RoutePath, min_distance_to_path
from src.utils.logger import get_logger

logger = get_logger('station_catalog')

# Rough miles per degree of latitude, used only for bounding-box prefilters
MILES_PER_DEGREE_LAT = 69.0


@dataclass(frozen=True)
class ChargingStation:
    """A candidate charging stop"""
    name: str
    location: Coordinate
    power_kw: float                         # site-side max supply rate
    available_stalls: Optional[int] = None  # None = unknown, assume available
    station_id: Optional[str] = None
    operator: Optional[str] = None
    data_source: Optional[str] = None

    @property
    def has_available_stall(self) -> bool:
        return self.available_stalls is None or self.available_stalls > 0


class StationLookup(Protocol):
    """Anything that can list the stations near a route"""

    def stations_near(self, path: RoutePath, corridor_radius_miles: float) -> Set[ChargingStation]:
        ...


# =============================================================================
# NORMALISERS
# =============================================================================

def _positive_or_none(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def _stall_count(value: Any) -> Optional[int]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return int(number)


def _text(value: Any, default: str = '') -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return default
    return str(value).strip() or default


def _power_from_connections(connections: Sequence[Dict]) -> Optional[float]:
    """Highest PowerKW across an OpenChargeMap connection list"""
    power_ratings = [_positive_or_none(conn.get('PowerKW')) for conn in connections or []]
    power_ratings = [p for p in power_ratings if p is not None]
    return max(power_ratings) if power_ratings else None


def station_from_openchargemap(raw_station: Dict,
                               default_power_kw: float = PLANNER_CONFIG['default_station_power_kw']
                               ) -> Optional[ChargingStation]:
    """
    Normalise an OpenChargeMap POI record.

    Records without coordinates or flagged non-operational are dropped
    (returns None).
    """
    address_info = raw_station.get('AddressInfo') or {}
    operator_info = raw_station.get('OperatorInfo') or {}
    status_type = raw_station.get('StatusType') or {}

    lat = address_info.get('Latitude')
    lon = address_info.get('Longitude')
    if lat is None or lon is None:
        return None
    if status_type.get('IsOperational') is False:
        return None

    try:
        location = Coordinate(lat=lat, lng=lon)
    except InvalidInput as e:
        logger.warning(f"Skipping OpenChargeMap station {raw_station.get('ID')}: {e}")
        return None

    power_kw = _power_from_connections(raw_station.get('Connections'))
    return ChargingStation(
        name=_text(address_info.get('Title'), f"Station {raw_station.get('ID')}"),
        location=location,
        power_kw=power_kw if power_kw is not None else float(default_power_kw),
        # NumberOfPoints is installed capacity, not live availability
        available_stalls=None,
        station_id=f"ocm_{raw_station.get('ID')}" if raw_station.get('ID') is not None else None,
        operator=_text(operator_info.get('Title'), 'Unknown'),
        data_source='OpenChargeMap',
    )


def station_from_supercharger(raw_station: Dict,
                              default_power_kw: float = PLANNER_CONFIG['default_station_power_kw']
                              ) -> Optional[ChargingStation]:
    """Normalise a Tesla supercharger listing ({name, location, available_stalls, charging_rate})"""
    location = raw_station.get('location') or {}
    try:
        coordinate = Coordinate.from_dict(location)
    except InvalidInput as e:
        logger.warning(f"Skipping supercharger {raw_station.get('name')!r}: {e}")
        return None

    power_kw = _positive_or_none(raw_station.get('charging_rate'))
    return ChargingStation(
        name=_text(raw_station.get('name'), 'Supercharger'),
        location=coordinate,
        power_kw=power_kw if power_kw is not None else float(default_power_kw),
        available_stalls=_stall_count(raw_station.get('available_stalls')),
        station_id=_text(raw_station.get('id')) or None,
        operator='Tesla',
        data_source='Tesla Supercharger',
    )


def stations_from_dataframe(df: pd.DataFrame,
                            default_power_kw: float = PLANNER_CONFIG['default_station_power_kw'],
                            data_source: str = 'csv') -> List[ChargingStation]:
    """
    Normalise a tabular station export.

    Expects latitude/longitude columns; name, max_power_kw (or power_kw),
    available_stalls, station_id and operator are optional. Installed capacity
    columns (capacity_ports) say nothing about availability and are ignored.
    """
    if df is None or df.empty:
        return []
    missing = {'latitude', 'longitude'} - set(df.columns)
    if missing:
        raise InvalidInput(f"Station table is missing columns: {', '.join(sorted(missing))}")

    power_col = next((c for c in ('max_power_kw', 'power_kw') if c in df.columns), None)
    stalls_col = 'available_stalls' if 'available_stalls' in df.columns else None

    stations = []
    skipped = 0
    for row in df.to_dict(orient='records'):
        try:
            location = Coordinate(lat=row['latitude'], lng=row['longitude'])
        except InvalidInput:
            skipped += 1
            continue
        power_kw = _positive_or_none(row.get(power_col)) if power_col else None
        station_id = _text(row.get('station_id')) or None
        stations.append(ChargingStation(
            name=_text(row.get('name'), station_id or 'Charging station'),
            location=location,
            power_kw=power_kw if power_kw is not None else float(default_power_kw),
            available_stalls=_stall_count(row.get(stalls_col)) if stalls_col else None,
            station_id=station_id,
            operator=_text(row.get('operator')) or None,
            data_source=data_source,
        ))

    if skipped:
        logger.warning(f"Skipped {skipped} station rows with invalid coordinates")
    return stations


# =============================================================================
# DEDUPLICATION
# =============================================================================

def _station_key(station: ChargingStation, precision: int) -> Tuple[float, float, str]:
    return (round(station.location.lat, precision),
            round(station.location.lng, precision),
            ' '.join(station.name.lower().split()))


def _record_quality(station: ChargingStation) -> Tuple:
    return (station.power_kw,
            station.available_stalls is not None,
            station.available_stalls or 0,
            station.station_id or '',
            station.data_source or '',
            station.operator or '',
            station.location.as_tuple())


def deduplicate_stations(stations: Iterable[ChargingStation],
                         precision: int = STATION_DEFAULTS['coordinate_precision']
                         ) -> List[ChargingStation]:
    """
    One station per physical site (location + name).

    Overlapping catalog sources can list the same site twice; the record
    with the higher power (then a known stall count) wins. Output order is
    deterministic regardless of input order.
    """
    best: Dict[Tuple[float, float, str], ChargingStation] = {}
    for station in stations:
        key = _station_key(station, precision)
        current = best.get(key)
        if current is None or _record_quality(station) > _record_quality(current):
            best[key] = station
    return [best[key] for key in sorted(best)]


# =============================================================================
# CATALOGS
# =============================================================================

class StationCatalog:
    """In-memory station catalog with a vectorised corridor query"""

    def __init__(self, stations: Iterable[ChargingStation] = ()):
        self._stations = tuple(stations)
        self._lats = np.array([s.location.lat for s in self._stations], dtype=float)
        self._lngs = np.array([s.location.lng for s in self._stations], dtype=float)
        logger.debug(f"StationCatalog loaded with {len(self._stations)} stations")

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, **kwargs) -> "StationCatalog":
        return cls(stations_from_dataframe(df, **kwargs))

    @classmethod
    def from_csv(cls, csv_path, **kwargs) -> "StationCatalog":
        try:
            df = pd.read_csv(csv_path)
        except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise InvalidConfiguration(f"Could not read station file {csv_path}: {e}") from e
        logger.info(f"Loaded {len(df)} station rows from {csv_path}")
        try:
            return cls.from_dataframe(df, data_source=Path(csv_path).stem, **kwargs)
        except InvalidInput as e:
            raise InvalidConfiguration(f"Station file {csv_path}: {e}") from e

    @classmethod
    def from_supercharger_json(cls, json_path,
                               default_power_kw: float = PLANNER_CONFIG['default_station_power_kw']
                               ) -> "StationCatalog":
        try:
            with open(json_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidConfiguration(f"Could not read supercharger file {json_path}: {e}") from e
        records = data.get('superchargers', []) if isinstance(data, dict) else data
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise InvalidConfiguration(f"{json_path} must hold a list of supercharger records")
        stations = [station_from_supercharger(r, default_power_kw) for r in records]
        return cls(s for s in stations if s is not None)

    @property
    def stations(self) -> Tuple[ChargingStation, ...]:
        return self._stations

    def __len__(self) -> int:
        return len(self._stations)

    def _bounding_box_mask(self, path: RoutePath, radius_miles: float) -> np.ndarray:
        lats = [p.lat for p in path.points]
        lngs = [p.lng for p in path.points]
        lat_pad = radius_miles / MILES_PER_DEGREE_LAT
        max_abs_lat = min(max(abs(l) for l in lats) + lat_pad, 89.9)
        lng_pad = radius_miles / (MILES_PER_DEGREE_LAT * math.cos(math.radians(max_abs_lat)))

        return ((self._lats >= min(lats) - lat_pad) & (self._lats <= max(lats) + lat_pad) &
                (self._lngs >= min(lngs) - lng_pad) & (self._lngs <= max(lngs) + lng_pad))

    def stations_near(self, path: RoutePath, corridor_radius_miles: float) -> Set[ChargingStation]:
        """All stations within `corridor_radius_miles` of any path vertex"""
        if corridor_radius_miles < 0:
            raise InvalidInput(f"Corridor radius must be >= 0, got {corridor_radius_miles}")
        if not self._stations:
            return set()

        mask = self._bounding_box_mask(path, corridor_radius_miles)
        indices = np.flatnonzero(mask)
        if indices.size == 0:
            return set()

        gaps = min_distance_to_path(path, self._lats[indices], self._lngs[indices])
        nearby = {self._stations[i] for i, gap in zip(indices, gaps) if gap <= corridor_radius_miles}
        logger.debug(f"{len(nearby)} of {len(self._stations)} stations within "
                     f"{corridor_radius_miles} mi of the route")
        return nearby


class CombinedStationCatalog:
    """Union of several station sources (overlaps are removed by the planner)"""

    def __init__(self, sources: Sequence[StationLookup]):
        self.sources = list(sources)

    def stations_near(self, path: RoutePath, corridor_radius_miles: float) -> Set[ChargingStation]:
        stations: Set[ChargingStation] = set()
        for source in self.sources:
            stations |= set(source.stations_near(path, corridor_radius_miles))
        return stations
