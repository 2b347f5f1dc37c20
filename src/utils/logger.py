"""
Project logging for the trip planner.
All component loggers hang off the 'ev_trip' logger so one call reconfigures them.
"""

import json
import logging
import os
import sys
from datetime import datetime
from typing import Optional, Dict, Any

from config.logging_config import (
    PLAN_FAILURE_LOG,
    THIRD_PARTY_LOG_LEVEL,
    THIRD_PARTY_LOGGERS,
    get_logging_config,
    is_module_logging_enabled,
)

ROOT_LOGGER_NAME = 'ev_trip'

FORMATS = {
    'detailed': '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
    'simple': '%(levelname)s - %(name)s - %(message)s',
    'minimal': '%(message)s',
}


class TripPlannerLogger:
    """
    Owns the handlers of the 'ev_trip' logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        enable_console: log to stdout
        enable_file: log to a timestamped file in log_dir, and record failed plans
        log_dir: directory for log files
        log_format: one of FORMATS
    """

    def __init__(self,
                 log_level: str = "INFO",
                 enable_console: bool = True,
                 enable_file: bool = False,
                 log_dir: str = "debug_logs",
                 log_format: str = "simple"):
        self.log_level = logging.getLevelName(log_level.upper())
        if not isinstance(self.log_level, int):
            raise ValueError(f"Unknown log level: {log_level}")
        self.enable_console = enable_console
        self.enable_file = enable_file
        self.log_dir = log_dir
        self.log_format = log_format if log_format in FORMATS else 'simple'
        self.log_file = None

        if self.enable_file:
            os.makedirs(self.log_dir, exist_ok=True)

        self.logger = logging.getLogger(ROOT_LOGGER_NAME)
        self._configure()

    def _configure(self):
        self.logger.setLevel(self.log_level)
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(FORMATS[self.log_format])
        handlers = []
        if self.enable_console:
            handlers.append(logging.StreamHandler(sys.stdout))
        if self.enable_file:
            self.log_file = os.path.join(self.log_dir, f"ev_trip_{datetime.now():%Y%m%d_%H%M%S}.log")
            handlers.append(logging.FileHandler(self.log_file, encoding='utf-8'))
        if not handlers:
            handlers.append(logging.NullHandler())

        for handler in handlers:
            handler.setLevel(self.log_level)
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

        third_party_level = max(self.log_level, logging.getLevelName(THIRD_PARTY_LOG_LEVEL))
        for name in THIRD_PARTY_LOGGERS:
            logging.getLogger(name).setLevel(third_party_level)

    def get_logger(self, name: str = None) -> logging.Logger:
        """Component logger, silenced when switched off in MODULE_LOGGING"""
        if not name:
            return self.logger
        child = logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')
        child.disabled = not is_module_logging_enabled(name)
        return child

    def print_summary(self, title: str, data: Dict[str, Any]):
        if not self.enable_console:
            return

        width = max([len(title)] + [len(str(k)) + 4 for k in data]) + 20
        print(f"\n{'=' * width}")
        print(title)
        print('-' * width)
        for key, value in data.items():
            if isinstance(value, float):
                value = f"{value:,.1f}"
            print(f"  {key:<20} {value}")
        print('=' * width)

    def log_plan_failure(self, origin, destination, vehicle_id: str, reason: str,
                         at_miles: Optional[float] = None, extra: str = None):
        """
        Warn about a plan that could not be completed. With file logging on, the
        failure is also appended as one JSON object per line to PLAN_FAILURE_LOG
        so batch runs can be triaged afterwards.
        """
        where = f" at mile {at_miles:.1f}" if at_miles is not None else ""
        self.logger.warning(f"Plan failed for {vehicle_id} {origin} -> {destination}{where}: {reason}")
        if not self.enable_file:
            return

        record = {
            'time': datetime.now().isoformat(timespec='seconds'),
            'vehicle': vehicle_id,
            'origin': list(origin) if isinstance(origin, tuple) else origin,
            'destination': list(destination) if isinstance(destination, tuple) else destination,
            'reason': reason,
            'at_miles': at_miles,
        }
        if extra:
            record['extra'] = extra
        with open(os.path.join(self.log_dir, PLAN_FAILURE_LOG), 'a', encoding='utf-8') as f:
            f.write(json.dumps(record) + "\n")

    def get_status(self) -> Dict[str, Any]:
        return {
            'log_level': logging.getLevelName(self.log_level),
            'enable_console': self.enable_console,
            'enable_file': self.enable_file,
            'log_dir': self.log_dir,
            'log_format': self.log_format,
            'log_file': self.log_file,
        }


_global_logger = None


def get_global_logger() -> TripPlannerLogger:
    global _global_logger
    if _global_logger is None:
        _global_logger = TripPlannerLogger(**get_logging_config())
    return _global_logger


def get_logger(name: str = None) -> logging.Logger:
    return get_global_logger().get_logger(name)


def setup_logger(**kwargs) -> TripPlannerLogger:
    """Replace the global logger configuration (see config.logging_config modes)"""
    global _global_logger
    _global_logger = TripPlannerLogger(**kwargs)
    return _global_logger


def print_summary(title: str, data: Dict[str, Any]):
    get_global_logger().print_summary(title, data)


def log_plan_failure(origin, destination, vehicle_id: str, reason: str,
                     at_miles: Optional[float] = None, extra: str = None):
    get_global_logger().log_plan_failure(origin, destination, vehicle_id, reason, at_miles, extra)
