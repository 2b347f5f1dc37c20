"""
Logging modes for the trip planner.
Pick one with --log-mode on the command line or CURRENT_LOGGING_MODE below.
"""

# level, console/file outputs and formatter style per mode
LOGGING_MODES = {
    # warnings only, e.g. when the planner runs behind the Streamlit app
    'PRODUCTION': {'log_level': 'WARNING', 'enable_console': True, 'enable_file': False, 'log_format': 'minimal'},
    'DEVELOPMENT': {'log_level': 'INFO', 'enable_console': True, 'enable_file': False, 'log_format': 'simple'},
    # every candidate window and station query, also written to LOG_DIR
    'DEBUG': {'log_level': 'DEBUG', 'enable_console': True, 'enable_file': True, 'log_format': 'detailed'},
    'SILENT': {'log_level': 'CRITICAL', 'enable_console': False, 'enable_file': False, 'log_format': 'minimal'},
    # file only, keeps batch runs and test output clean
    'TESTING': {'log_level': 'DEBUG', 'enable_console': False, 'enable_file': True, 'log_format': 'detailed'},
}

CURRENT_LOGGING_MODE = 'DEVELOPMENT'

LOG_DIR = "debug_logs"
PLAN_FAILURE_LOG = "plan_failures.log"

# Per-component switches, keyed by the name passed to get_logger()
MODULE_LOGGING = {
    'charge_planner': True,
    'trip_planner': True,
    'station_catalog': True,
    'openchargemap_api': True,
    'directions_api': True,
    'plan_trips': True,
    'planning_service': True,
}

# HTTP client chatter is capped at this level whatever the mode
THIRD_PARTY_LOG_LEVEL = 'WARNING'
THIRD_PARTY_LOGGERS = ('urllib3', 'requests')


def get_logging_config(mode: str = None) -> dict:
    """Keyword arguments for setup_logger() in the given mode"""
    mode = (mode or CURRENT_LOGGING_MODE).upper()
    config = dict(LOGGING_MODES.get(mode, LOGGING_MODES['DEVELOPMENT']))
    config['log_dir'] = LOG_DIR
    return config


def is_module_logging_enabled(module_name: str) -> bool:
    return MODULE_LOGGING.get(module_name, True)


def set_module_logging(module_name: str, enabled: bool):
    MODULE_LOGGING[module_name] = enabled
