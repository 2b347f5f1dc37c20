"""
Typed failures for the EV trip planner.

Input/configuration problems are raised before planning starts, provider
problems propagate unchanged, and planning outcomes (a charging gap, a
cancelled request) are returned inside a plan result.
"""

from typing import Optional


class TripPlanningError(Exception):
    """Base class for every error raised by the trip planner"""


class InvalidInput(TripPlanningError, ValueError):
    """Malformed coordinates, non-positive power/rate values, unknown vehicles"""


class OutOfRangeDistance(TripPlanningError, ValueError):
    """A distance lies outside [0, path length]"""

    def __init__(self, target_miles: float, path_miles: float):
        self.target_miles = target_miles
        self.path_miles = path_miles
        super().__init__(
            f"{target_miles:.2f} mi is outside the path (0 - {path_miles:.2f} mi)"
        )


class InvalidConfiguration(TripPlanningError, ValueError):
    """A configured value is outside its recognised range"""


class RouteNotFound(TripPlanningError):
    """The directions provider has no route between the requested points"""


class ProviderError(TripPlanningError):
    """An external provider (directions, station catalog) failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class PlanFailure(TripPlanningError):
    """A planning outcome that is not a system failure"""

    def __init__(self, message: str, at_miles: float):
        self.at_miles = at_miles
        super().__init__(message)


class UnreachableGap(PlanFailure):
    """No charging station is reachable from `at_miles` on the current charge"""

    def __init__(self, at_miles: float):
        super().__init__(
            f"No reachable charging station after mile {at_miles:.1f}", at_miles
        )


class Cancelled(PlanFailure):
    """The caller asked the planner to stop"""

    def __init__(self, at_miles: float = 0.0):
        super().__init__(f"Planning cancelled at mile {at_miles:.1f}", at_miles)
