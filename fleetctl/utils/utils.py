"""
Utility functions for the fleet control console.
"""
import datetime
import os
import json
from typing import Any, Optional, Union

from fleetctl.utils.logger import get_logger

logger = get_logger(__name__)


def save_json(data: Any, file_path: str) -> bool:
    """
    Save data to a JSON file.

    :param data: Data to save
    :type data: Any
    :param file_path: Path to save the JSON file
    :type file_path: str
    :return: True if save succeeded, False otherwise
    :rtype: bool
    """
    if not file_path:
        logger.error("Cannot save JSON: File path is empty")
        return False

    try:
        directory = os.path.dirname(file_path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        logger.debug(f"Successfully saved JSON data to: {file_path}")
        return True
    except (IOError, OSError, TypeError) as e:
        logger.error(f"Failed to write file {file_path}: {e}")
        return False


def load_json(file_path: str) -> Any:
    """
    Load data from a JSON file.

    :param file_path: Path to the JSON file
    :type file_path: str
    :return: Loaded data or empty dict on error
    :rtype: Any
    """
    if not file_path or not os.path.exists(file_path):
        logger.debug(f"JSON file does not exist: {file_path}")
        return {}

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logger.debug(f"Successfully loaded JSON data from: {file_path}")
        return data
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON from {file_path}: {e}")
        return {}
    except (IOError, OSError) as e:
        logger.error(f"Failed to read file {file_path}: {e}")
        return {}


def utc_now() -> datetime.datetime:
    """Current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(value: Union[str, int, float, datetime.datetime, None]) -> Optional[datetime.datetime]:
    """
    Parses an ISO-8601 string, epoch seconds, or datetime into an aware UTC datetime.

    :param value: Raw timestamp value from a snapshot
    :return: Parsed datetime, or None when value is empty
    :raises ValueError: If the value cannot be interpreted as a timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"Invalid timestamp '{value}': {e}") from e
    else:
        raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def format_timestamp(value: Optional[datetime.datetime]) -> Optional[str]:
    """Formats a datetime as an ISO-8601 string (None passes through)."""
    return value.isoformat() if value is not None else None
