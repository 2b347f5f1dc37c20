"""
Charging Infrastructure Configuration
Separate from the planner config to focus on station data sources
"""

# API Configuration
API_CONFIG = {
    'openchargemap': {
        'base_url': 'https://api.openchargemap.io/v3',
        'rate_limit_seconds': 0.5,
        'max_results_per_request': 100,
        # A full page is re-queried with a larger one, up to this many results
        'max_results_ceiling': 2000,
        'timeout_seconds': 15,
        # Route is sampled every N miles and queried with this radius
        'sample_spacing_miles': 25,
        'query_radius_miles': 15,
        'country_code': None,
    }
}

# Station normalisation rules
STATION_DEFAULTS = {
    'coordinate_precision': 5,         # decimals used when matching duplicates (~1 m)
}

# File Paths
DATA_PATHS = {
    'base_dir': 'data/charging_infrastructure',
    'stations_csv': 'stations.csv',
    'superchargers_json': 'superchargers.json',
}
