"""
Utility functions for the fleet control console.
"""
from fleetctl.utils.logger import get_logger, setup_logger
from fleetctl.utils.utils import save_json, load_json, utc_now, parse_timestamp, format_timestamp

__all__ = [
    'get_logger',
    'setup_logger',
    'save_json',
    'load_json',
    'utc_now',
    'parse_timestamp',
    'format_timestamp'
]
