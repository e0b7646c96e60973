"""
Configuration Manager module for the fleet control console.
"""
import copy
import json
import os
import datetime
import shutil
from typing import Any, Optional, Dict
from ..utils import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "console": {
        "config_version": 1
    },
    "control": {
        "stop_convergence_delay_sec": 3.0,
        "uninstall_removal_delay_sec": 1.0
    },
    "bulk": {
        "max_parallel": 1
    },
    "journal": {
        "max_entries": 500
    },
    "registry": {
        "url": None,
        "api_token": None,
        "request_timeout_sec": 15
    },
    "websocket": {
        "reconnect_delay_initial_sec": 5,
        "reconnect_delay_max_sec": 60,
        "reconnect_attempts_max": None
    },
    "logging": {
        "console_level": "INFO",
        "file_level": "DEBUG",
        "file_path": None
    }
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a copy of base with override merged in, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class ConfigManager:
    """
    Loads and manages console configuration from a JSON file layered over
    built-in defaults.
    """
    CURRENT_CONFIG_VERSION = 1

    def __init__(self, config_path: Optional[str] = None):
        """
        Initializes the ConfigManager by loading the configuration file.

        :param config_path: The path to the console configuration JSON file.
                            If None, the built-in defaults are used.
        :type config_path: Optional[str]
        :raises: FileNotFoundError if the configuration file path is provided but does not exist
        :raises: ValueError if the configuration file is invalid JSON or holds invalid values
        """
        self._config_path = config_path
        self._config_data: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        self._migration_performed = False

        if self._config_path is None:
            logger.debug("ConfigManager initialized without a config path (defaults only).")
        else:
            file_data = self._load_config()
            file_data = self._check_and_migrate_config(file_data)
            self._config_data = _deep_merge(DEFAULT_CONFIG, file_data)
            logger.info(f"Configuration loaded successfully from: {self._config_path}")
            if self._migration_performed:
                logger.info("Configuration migration was performed.")

        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Loads the configuration data from the JSON file.

        :raises: FileNotFoundError if the file doesn't exist
        :raises: ValueError if there are JSON parsing errors
        """
        if not os.path.exists(self._config_path):
            logger.critical(f"Configuration file not found: {self._config_path}")
            raise FileNotFoundError(f"Configuration file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.critical(f"Error decoding JSON from config file {self._config_path}: {e}")
            raise ValueError(f"Invalid JSON in configuration file: {e}") from e
        except (IOError, OSError) as e:
            logger.critical(f"Error reading config file {self._config_path}: {e}")
            raise ValueError(f"Could not read configuration file: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("Configuration file content is not a valid JSON object.")
        return data

    def _validate_config(self):
        """
        Validates value types of the settings the control plane depends on.

        :raises: ValueError if a value is missing or invalid
        """
        for key in ('control.stop_convergence_delay_sec', 'control.uninstall_removal_delay_sec'):
            value = self.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                msg = f"Invalid '{key}' configuration: Must be a non-negative number."
                logger.critical(msg)
                raise ValueError(msg)

        for key in ('bulk.max_parallel', 'journal.max_entries'):
            value = self.get(key)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                msg = f"Invalid '{key}' configuration: Must be a positive integer."
                logger.critical(msg)
                raise ValueError(msg)

        registry_url = self.get('registry.url')
        if registry_url is not None and (not isinstance(registry_url, str) or not registry_url):
            msg = "Invalid 'registry.url' configuration: Must be a non-empty string when set."
            logger.critical(msg)
            raise ValueError(msg)

        logger.debug("Configuration validation passed.")

    def _backup_config(self) -> Optional[str]:
        """
        Creates a timestamped backup of the current config file.

        :return: Path to the backup file or None if backup failed
        :rtype: Optional[str]
        """
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = f"{self._config_path}.backup_{timestamp}"

        try:
            shutil.copy2(self._config_path, backup_path)
            logger.info(f"Configuration backed up successfully to: {backup_path}")
            return backup_path
        except OSError as e:
            logger.error(f"Failed to create configuration backup at {backup_path}: {e}", exc_info=True)
            return None

    def _save_config(self, config_data: Dict[str, Any]) -> bool:
        """
        Saves the provided configuration data back to the config file via a temp file.

        :param config_data: Configuration data to save
        :type config_data: Dict[str, Any]
        :return: True if saved successfully, False otherwise
        :rtype: bool
        """
        temp_path = self._config_path + ".tmp"
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=4)
            os.replace(temp_path, self._config_path)
            logger.info(f"Configuration saved successfully to: {self._config_path}")
            return True
        except (IOError, OSError, TypeError) as e:
            logger.error(f"Failed to save configuration to {self._config_path}: {e}", exc_info=True)
            if os.path.exists(temp_path):
                os.remove(temp_path)
            return False

    def _check_and_migrate_config(self, file_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Checks the file's config version and migrates older layouts.

        Version 0 files kept the convergence delay at the top level as
        ``stop_delay_sec``; version 1 moves it under ``control``.

        :raises: ValueError if migration fails
        """
        console_section = file_data.get('console')
        loaded_version = console_section.get('config_version', 0) if isinstance(console_section, dict) else 0

        if not isinstance(loaded_version, int) or loaded_version < 0:
            logger.warning(f"Invalid 'console.config_version' ({loaded_version}) found. Attempting migration from version 0.")
            loaded_version = 0

        if loaded_version > self.CURRENT_CONFIG_VERSION:
            logger.warning(f"Configuration file version (v{loaded_version}) is newer than supported (v{self.CURRENT_CONFIG_VERSION}).")
            return file_data
        if loaded_version == self.CURRENT_CONFIG_VERSION:
            logger.debug(f"Configuration version (v{loaded_version}) is current. No migration needed.")
            return file_data

        logger.info(f"Configuration version mismatch: Found v{loaded_version}, expected v{self.CURRENT_CONFIG_VERSION}. Starting migration...")
        backup_path = self._backup_config()
        if not backup_path:
            raise ValueError("Configuration backup failed. Cannot proceed with migration.")

        migrated = copy.deepcopy(file_data)
        if 'stop_delay_sec' in migrated:
            control = migrated.setdefault('control', {})
            control.setdefault('stop_convergence_delay_sec', migrated.pop('stop_delay_sec'))
        migrated.setdefault('console', {})
        if not isinstance(migrated['console'], dict):
            migrated['console'] = {}
        migrated['console']['config_version'] = self.CURRENT_CONFIG_VERSION

        if not self._save_config(migrated):
            logger.critical(f"Failed to save migrated configuration. Original backed up at: {backup_path}")
            raise ValueError("Failed to save migrated configuration.")

        self._migration_performed = True
        return migrated

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Retrieves a configuration value using a dot-separated key path.

        :param key_path: The dot-separated path to the configuration key
        :type key_path: str
        :param default: The default value to return if the key is not found or is null
        :type default: Any
        :return: The configuration value or the default value
        :rtype: Any
        """
        value: Any = self._config_data
        for key in key_path.split('.'):
            if not isinstance(value, dict) or key not in value:
                logger.debug(f"Configuration key not found: '{key_path}'. Returning default: {default}")
                return default
            value = value[key]
        return default if value is None else value

    @property
    def migration_performed(self) -> bool:
        return self._migration_performed

    @property
    def all_config(self) -> Dict[str, Any]:
        """
        Returns a copy of the entire effective configuration dictionary.

        :return: Copy of configuration dictionary
        :rtype: Dict[str, Any]
        """
        return copy.deepcopy(self._config_data)
