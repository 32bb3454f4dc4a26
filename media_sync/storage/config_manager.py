"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from media_sync.exceptions import ConfigurationError
from media_sync.models.config import SyncConfig, format_offline_users

log = logging.getLogger(__name__)

# Written for keys missing from an existing file; required keys have no default.
DEFAULTS: dict[str, str] = {
    "server_name": "",
    "offline_users": "",
    "download_attempts": "3",
    "request_timeout": "60",
    "json_log": "false",
}


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> SyncConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated SyncConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'media-sync init' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        config_from_file = self.get_config_as_dict()
        if cli_options:
            config_from_file.update(cli_options)

        try:
            return SyncConfig(
                **config_from_file, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        for key in sorted(SyncConfig.get_ini_keys()):
            value = settings.get(key, DEFAULTS.get(key))
            if value is None:
                continue
            if key == "offline_users" and isinstance(value, list):
                config["DEFAULT"][key] = format_offline_users(value)
            elif isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            else:
                config["DEFAULT"][key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        try:
            return {
                "server_url": section.get("server_url", ""),
                "server_id": section.get("server_id", ""),
                "server_name": section.get("server_name", ""),
                "access_token": section.get("access_token", ""),
                "device_id": section.get("device_id", ""),
                "offline_users": section.get("offline_users", ""),
                "data_dir": section.get(
                    "data_dir", str(self.config_file_path.parent / "data")
                ),
                "download_attempts": section.getint("download_attempts", 3),
                "request_timeout": section.getint("request_timeout", 60),
                "json_log": section.getboolean("json_log", False),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        section = self._parser["DEFAULT"]
        needs_saving = False

        for key, default_value in DEFAULTS.items():
            if key not in section:
                section[key] = default_value
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{default_value}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
