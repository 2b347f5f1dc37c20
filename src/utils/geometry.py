"""
Geometry utilities for route planning

Great-circle distances between coordinates, along-path distances over a
route polyline, interpolation along the polyline and the station-to-path
projection used by the charge-stop planner.

All distances are in statute miles.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from geopy import units
from geopy.distance import EARTH_RADIUS, great_circle

from src.utils.errors import InvalidInput, OutOfRangeDistance

if TYPE_CHECKING:
    from src.data_processing.station_catalog import ChargingStation

# Same mean radius geopy's great_circle uses, so scalar and vectorised
# distances agree
EARTH_RADIUS_MILES = units.miles(kilometers=EARTH_RADIUS)

# Float slack when comparing a distance against a path length
DISTANCE_TOLERANCE_MILES = 1e-9


@dataclass(frozen=True)
class Coordinate:
    """A point on Earth in decimal degrees"""
    lat: float  # -90 to 90
    lng: float  # -180 to 180

    def __post_init__(self):
        for name, limit in (("lat", 90.0), ("lng", 180.0)):
            raw = getattr(self, name)
            if isinstance(raw, bool):
                raise InvalidInput(f"{name} must be a number, got {raw!r}")
            try:
                value = float(raw)
            except (TypeError, ValueError):
                raise InvalidInput(f"{name} must be a number, got {raw!r}") from None
            if not math.isfinite(value) or abs(value) > limit:
                raise InvalidInput(f"{name}={raw!r} is outside [-{limit:g}, {limit:g}]")
            object.__setattr__(self, name, value)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lng)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinate":
        """Accepts {lat, lng}, {lat, lon} or {latitude, longitude} mappings"""
        if not isinstance(data, dict):
            raise InvalidInput(f"Expected a coordinate mapping, got {data!r}")
        lat = data.get("lat", data.get("latitude"))
        lng = data.get("lng", data.get("lon", data.get("longitude")))
        if lat is None or lng is None:
            raise InvalidInput(f"Missing coordinates in {data!r}")
        return cls(lat=lat, lng=lng)

    @classmethod
    def parse(cls, text: str) -> "Coordinate":
        """Parse a "lat,lng" string"""
        parts = [p.strip() for p in str(text).split(",")]
        if len(parts) != 2:
            raise InvalidInput(f"Expected 'lat,lng', got {text!r}")
        return cls(lat=parts[0], lng=parts[1])


def distance(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates.

    Used for proximity checks only; distance travelled along the road comes
    from the route path.
    """
    return great_circle(a.as_tuple(), b.as_tuple()).miles


def haversine_miles(lat: float, lng: float, lats: np.ndarray, lngs: np.ndarray) -> np.ndarray:
    """Distance from one point to many, vectorised"""
    lat1 = np.radians(lat)
    lng1 = np.radians(lng)
    lat2 = np.radians(np.asarray(lats, dtype=float))
    lng2 = np.radians(np.asarray(lngs, dtype=float))

    a = (np.sin((lat2 - lat1) / 2) ** 2 +
         np.cos(lat1) * np.cos(lat2) * np.sin((lng2 - lng1) / 2) ** 2)
    return 2 * EARTH_RADIUS_MILES * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


@dataclass(frozen=True)
class RoutePath:
    """
    Road-following polyline from origin to destination.

    `total_distance_miles` and `total_duration_minutes` come from the
    directions provider and are trusted as-is. `segment_miles` optionally
    carries the provider's road distance for each consecutive pair of points;
    without it segments are measured great-circle.
    """
    points: Tuple[Coordinate, ...]
    total_distance_miles: Optional[float] = None
    total_duration_minutes: Optional[float] = None
    segment_miles: Optional[Tuple[float, ...]] = None

    def __post_init__(self):
        points = tuple(self.points)
        if not points:
            raise InvalidInput("A route path needs at least one point")
        if not all(isinstance(p, Coordinate) for p in points):
            raise InvalidInput("Route path points must be Coordinates")
        object.__setattr__(self, "points", points)

        if self.segment_miles is not None:
            segments = tuple(_non_negative(s, "segment distance") for s in self.segment_miles)
            if len(segments) != len(points) - 1:
                raise InvalidInput(
                    f"Expected {len(points) - 1} segment distances, got {len(segments)}"
                )
            object.__setattr__(self, "segment_miles", segments)

        if self.total_distance_miles is not None:
            object.__setattr__(self, "total_distance_miles",
                               _non_negative(self.total_distance_miles, "total distance"))
        if self.total_duration_minutes is not None:
            object.__setattr__(self, "total_duration_minutes",
                               _non_negative(self.total_duration_minutes, "total duration"))

    @classmethod
    def from_coordinates(cls, coordinates: Iterable[Sequence[float]], **kwargs) -> "RoutePath":
        """Build a path from (lat, lng) pairs"""
        return cls(points=tuple(Coordinate(lat, lng) for lat, lng in coordinates), **kwargs)

    @cached_property
    def cumulative_miles(self) -> np.ndarray:
        """Along-path distance of every vertex from the first one"""
        if self.segment_miles is not None:
            segments = np.asarray(self.segment_miles, dtype=float)
        else:
            segments = np.array(
                [distance(a, b) for a, b in zip(self.points, self.points[1:])],
                dtype=float,
            )
        return np.concatenate(([0.0], np.cumsum(segments)))

    @property
    def length_miles(self) -> float:
        return float(self.cumulative_miles[-1])

    @property
    def distance_miles(self) -> float:
        """Provider distance when known, else the measured path length"""
        if self.total_distance_miles is not None:
            return self.total_distance_miles
        return self.length_miles

    @property
    def origin(self) -> Coordinate:
        return self.points[0]

    @property
    def destination(self) -> Coordinate:
        return self.points[-1]


def _non_negative(value: Any, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{label} must be a number, got {value!r}") from None
    if not math.isfinite(number) or number < 0:
        raise InvalidInput(f"{label} must be >= 0, got {value!r}")
    return number


def cumulative_distance(path: RoutePath) -> float:
    """Total along-path distance, summing segment by segment"""
    return path.length_miles


def point_at_distance(path: RoutePath, target_miles: float) -> Coordinate:
    """
    Coordinate `target_miles` along the path.

    Linear interpolation between the two vertices bracketing the target.
    Callers must clamp: negative targets or targets past the end of the path
    raise OutOfRangeDistance.
    """
    cumulative = path.cumulative_miles
    length = float(cumulative[-1])
    if not math.isfinite(target_miles):
        raise InvalidInput(f"Distance must be finite, got {target_miles!r}")
    if target_miles < 0 or target_miles > length + DISTANCE_TOLERANCE_MILES:
        raise OutOfRangeDistance(target_miles, length)

    points = path.points
    if len(points) == 1:
        return points[0]

    target = min(float(target_miles), length)
    idx = int(np.searchsorted(cumulative, target, side="right")) - 1
    idx = min(max(idx, 0), len(points) - 2)

    start_miles = cumulative[idx]
    span = cumulative[idx + 1] - start_miles
    fraction = 0.0 if span <= 0 else (target - start_miles) / span

    a, b = points[idx], points[idx + 1]
    return Coordinate(
        lat=a.lat + (b.lat - a.lat) * fraction,
        lng=a.lng + (b.lng - a.lng) * fraction,
    )


def sample_points(path: RoutePath, spacing_miles: float) -> List[Coordinate]:
    """Coordinates every `spacing_miles` along the path, both ends included"""
    if spacing_miles <= 0:
        raise InvalidInput(f"Sample spacing must be > 0, got {spacing_miles}")
    length = path.length_miles
    marks = list(np.arange(0.0, length, spacing_miles))
    if not marks or marks[-1] < length:
        marks.append(length)
    return [point_at_distance(path, float(m)) for m in marks]


def corridor_candidates(
    path: RoutePath,
    stations: Iterable["ChargingStation"],
    radius_miles: float,
) -> List[Tuple["ChargingStation", float]]:
    """
    Stations within `radius_miles` of the path, with their along-path distance.

    Each station is matched to its nearest path vertex and reported at that
    vertex's along-path distance (nearest vertex, not a perpendicular
    projection onto the segment).
    """
    if radius_miles < 0:
        raise InvalidInput(f"Corridor radius must be >= 0, got {radius_miles}")

    lats = np.array([p.lat for p in path.points])
    lngs = np.array([p.lng for p in path.points])
    cumulative = path.cumulative_miles

    candidates = []
    for station in stations:
        gaps = haversine_miles(station.location.lat, station.location.lng, lats, lngs)
        nearest = int(np.argmin(gaps))
        if gaps[nearest] <= radius_miles:
            candidates.append((station, float(cumulative[nearest])))
    return candidates


def min_distance_to_path(path: RoutePath, lats: np.ndarray, lngs: np.ndarray) -> np.ndarray:
    """Straight-line distance from each (lat, lng) to its nearest path vertex"""
    lats = np.asarray(lats, dtype=float)
    lngs = np.asarray(lngs, dtype=float)
    nearest = np.full(lats.shape, np.inf)
    for point in path.points:
        nearest = np.minimum(nearest, haversine_miles(point.lat, point.lng, lats, lngs))
    return nearest
