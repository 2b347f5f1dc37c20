import os
import threading
import time
from typing import Dict, List, Optional, Set

import requests
from dotenv import load_dotenv

from config.charging_infrastructure_config import API_CONFIG
from config.ev_config import PLANNER_CONFIG
from src.data_processing.station_catalog import (
    ChargingStation, StationCatalog, station_from_openchargemap,
)
from src.utils.errors import InvalidConfiguration, ProviderError
from src.utils.geometry import RoutePath, sample_points
from src.utils.logger import get_logger

logger = get_logger('openchargemap_api')
load_dotenv()

OCM_CONFIG = API_CONFIG['openchargemap']


class OpenChargeMapAPI:
    def __init__(self, api_key: str, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = OCM_CONFIG['base_url']
        self.timeout = OCM_CONFIG['timeout_seconds']
        self.session = session or requests.Session()

        # Rate limiting to be respectful to the API
        self.last_request_time = 0
        self.min_request_interval = OCM_CONFIG['rate_limit_seconds']
        self._rate_lock = threading.Lock()  # batch planning shares one client across threads

        self.session.headers.update({
            'User-Agent': 'EV-Trip-Planner/1.0',
            'Accept': 'application/json'
        })

    def _rate_limit(self):
        """Implement rate limiting"""
        with self._rate_lock:
            current_time = time.time()
            time_since_last = current_time - self.last_request_time
            if time_since_last < self.min_request_interval:
                time.sleep(self.min_request_interval - time_since_last)
            self.last_request_time = time.time()

    def find_nearby_stations(self, latitude: float, longitude: float,
                             distance_miles: float = 15, max_results: int = 100,
                             country_code: str = None) -> List[Dict]:
        """
        Find charging stations near a location

        Args:
            latitude: Latitude coordinate
            longitude: Longitude coordinate
            distance_miles: Search radius in miles
            max_results: Maximum number of results
            country_code: Optional country code filter (e.g., 'US')

        Returns:
            List of raw POI dictionaries

        Raises:
            ProviderError: the request failed or returned something other than a list
        """
        self._rate_limit()

        params = {
            'output': 'json',
            'latitude': latitude,
            'longitude': longitude,
            'distance': distance_miles,
            'distanceunit': 'Miles',
            'maxresults': max_results,
            'compact': 'false',
            'verbose': 'false',
            'key': self.api_key
        }
        if country_code:
            params['countrycode'] = country_code

        url = f"{self.base_url}/poi/"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"OpenChargeMap request failed: {e}") from e

        if response.status_code != 200:
            raise ProviderError(
                f"OpenChargeMap API error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            stations = response.json()
        except ValueError as e:
            raise ProviderError(f"OpenChargeMap returned invalid JSON: {e}") from e
        if not isinstance(stations, list):
            raise ProviderError("OpenChargeMap returned an unexpected payload")

        logger.debug(f"Found {len(stations)} stations near ({latitude:.3f}, {longitude:.3f})")
        return stations


class OpenChargeMapCatalog:
    """
    Station lookup backed by OpenChargeMap.

    The route is sampled at a fixed spacing and each sample is queried with
    a radius wide enough that every point of the corridor is covered by at
    least one query. Results are merged by POI id, normalised, then trimmed
    to the exact corridor.
    """

    def __init__(self, api: OpenChargeMapAPI,
                 sample_spacing_miles: float = OCM_CONFIG['sample_spacing_miles'],
                 query_radius_miles: float = OCM_CONFIG['query_radius_miles'],
                 max_results: int = OCM_CONFIG['max_results_per_request'],
                 max_results_ceiling: int = OCM_CONFIG['max_results_ceiling'],
                 country_code: Optional[str] = OCM_CONFIG['country_code'],
                 default_power_kw: float = PLANNER_CONFIG['default_station_power_kw']):
        self.api = api
        self.sample_spacing_miles = sample_spacing_miles
        self.query_radius_miles = query_radius_miles
        self.max_results = max_results
        self.max_results_ceiling = max(max_results_ceiling, max_results)
        self.country_code = country_code
        self.default_power_kw = default_power_kw

    def _query_complete(self, point, radius: float) -> List[Dict]:
        """
        Every POI within `radius` of `point`. A full page means the answer was
        truncated, so the query is repeated with a larger page until it comes
        back short; hitting the ceiling raises ProviderError rather than
        planning on a partial station set.
        """
        limit = self.max_results
        while True:
            results = self.api.find_nearby_stations(
                point.lat, point.lng,
                distance_miles=radius,
                max_results=limit,
                country_code=self.country_code)
            if len(results) < limit:
                return results
            if limit >= self.max_results_ceiling:
                raise ProviderError(
                    f"OpenChargeMap returned {len(results)} stations (the cap) within {radius:.1f} mi "
                    f"of ({point.lat:.3f}, {point.lng:.3f}); the station list would be incomplete"
                )
            limit = min(limit * 4, self.max_results_ceiling)
            logger.info(f"Result cap reached near ({point.lat:.3f}, {point.lng:.3f}), "
                        f"querying again with maxresults={limit}")

    def stations_near(self, path: RoutePath, corridor_radius_miles: float) -> Set[ChargingStation]:
        # A corridor point is at most half a spacing (along the road, so no
        # more in a straight line) from a sample, plus the corridor radius
        radius = max(self.query_radius_miles,
                     self.sample_spacing_miles / 2 + corridor_radius_miles)
        samples = sample_points(path, self.sample_spacing_miles)
        logger.info(f"Querying OpenChargeMap at {len(samples)} points along "
                    f"{path.length_miles:.1f} mi (radius {radius:.1f} mi)")

        seen_ids = set()
        stations = []
        for point in samples:
            for raw_station in self._query_complete(point, radius):
                station_id = raw_station.get('ID')
                if station_id is not None and station_id in seen_ids:
                    continue
                seen_ids.add(station_id)

                station = station_from_openchargemap(raw_station, self.default_power_kw)
                if station is not None:
                    stations.append(station)

        logger.info(f"Collected {len(stations)} unique operational stations")
        return StationCatalog(stations).stations_near(path, corridor_radius_miles)


def get_api_key() -> str:
    """Get API key from environment variable"""
    api_key = os.getenv('OPENCHARGEMAP_API_KEY')
    if not api_key:
        raise InvalidConfiguration(
            "OpenChargeMap API key not found. Please set the OPENCHARGEMAP_API_KEY environment variable.\n"
            "You can get a free API key from: https://openchargemap.org/site/develop/api"
        )
    return api_key
