"""
Configuration management for the CTF portal.
Supports both JSON file configuration and environment variable overrides.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)


class PortalConfig:
    """Configuration management for the CTF portal."""

    DEFAULT_CONFIG = {
        "ctf_name": "Project Overdrive",
        "teams": {
            "max_members": 4,
        },
        "registration": {
            "email_domain": "espe.edu.ec",
            "student_id_prefix": "L00",
            "min_password_length": 6,
        },
        "challenges": {
            "categories": ["Web", "Crypto", "Forensics", "Reverse", "OSINT", "Pwn", "Misc"],
            "default_points": 100,
        },
        "event": {
            "refresh_interval": 30,  # seconds between settings re-reads
        },
        "ui": {
            "scoreboard_cache_seconds": 60,
            "max_scoreboard_entries": 100,
        },
        "certificates": {
            "base_url": "",  # empty disables certificate links
        },
    }

    def __init__(
        self,
        config_path: str = "portal_config.json",
    ) -> None:
        """Initialize configuration from file, environment variables, or defaults."""
        self.config_path = Path(config_path)
        self.config = self._load_config()
        self._apply_env_overrides()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from JSON file or create default.

        @return: Dictionary containing the loaded configuration
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded_config = json.load(f)

                if not isinstance(loaded_config, dict):
                    logger.warning(
                        "Config %s is not a JSON object, using defaults", self.config_path
                    )
                    return copy.deepcopy(self.DEFAULT_CONFIG)

                # Merge with defaults to ensure all keys exist
                config = copy.deepcopy(self.DEFAULT_CONFIG)
                self._deep_merge(config, loaded_config)
                return config

            except (json.JSONDecodeError, IOError) as e:
                logger.error("Error loading config from %s: %s", self.config_path, e)
                logger.warning("Using default configuration")
                return copy.deepcopy(self.DEFAULT_CONFIG)
        else:
            self._create_default_config()
            return copy.deepcopy(self.DEFAULT_CONFIG)

    def _deep_merge(
        self,
        base_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
    ) -> None:
        """
        Recursively merge dictionaries.

        @param base_dict: Base dictionary to merge into
        @param update_dict: Dictionary with updates to merge
        """
        for key, value in update_dict.items():
            if (
                key in base_dict
                and isinstance(base_dict[key], dict)
                and isinstance(value, dict)
            ):
                self._deep_merge(base_dict[key], value)
            else:
                base_dict[key] = value

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to configuration.

        Environment variables follow the pattern: SECTION_KEY (e.g., CTF_NAME, TEAM_MAX_MEMBERS)
        """
        env_mappings = {
            "CTF_NAME": ("ctf_name",),

            # Teams
            "TEAM_MAX_MEMBERS": ("teams", "max_members"),

            # Registration
            "EMAIL_DOMAIN": ("registration", "email_domain"),
            "STUDENT_ID_PREFIX": ("registration", "student_id_prefix"),
            "MIN_PASSWORD_LENGTH": ("registration", "min_password_length"),

            # Challenges
            "DEFAULT_CHALLENGE_POINTS": ("challenges", "default_points"),

            # Event clock
            "SETTINGS_REFRESH_INTERVAL": ("event", "refresh_interval"),

            # UI
            "SCOREBOARD_CACHE_SECONDS": ("ui", "scoreboard_cache_seconds"),
            "MAX_SCOREBOARD_ENTRIES": ("ui", "max_scoreboard_entries"),

            # Certificates
            "CERTIFICATE_BASE_URL": ("certificates", "base_url"),
        }

        for env_var, config_path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                converted_value = self._convert_env_value(env_value)
                self._set_nested_config(config_path, converted_value)

    def _convert_env_value(self, value: str) -> Any:
        """
        Convert environment variable string to appropriate type.

        @param value: String value from environment variable
        @return: Converted value (bool, int, float, or string)
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _set_nested_config(self, path: tuple, value: Any) -> None:
        """
        Set a nested configuration value using a path tuple.

        @param path: Tuple representing the nested path (e.g., ("teams", "max_members"))
        @param value: Value to set
        """
        current = self.config
        for key in path[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _create_default_config(self) -> None:
        """
        Create a default configuration file.

        Writes the default configuration to the configured file path.
        """
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.DEFAULT_CONFIG, f, indent=2)
            logger.info("Created default configuration file: %s", self.config_path)
        except IOError as e:
            logger.warning("Could not create config file %s: %s", self.config_path, e)

    def _ensure_positive(self, section: str, key: str) -> None:
        value = self.config[section].get(key)
        default = self.DEFAULT_CONFIG[section][key]

        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            logger.warning("Invalid %s.%s, using %s", section, key, default)
            self.config[section][key] = default

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Checks configuration values for validity and sets defaults for invalid values.
        """
        for section, default in self.DEFAULT_CONFIG.items():
            if isinstance(default, dict) and not isinstance(self.config.get(section), dict):
                logger.warning("Invalid section %s, using defaults", section)
                self.config[section] = copy.deepcopy(default)

        self._ensure_positive("teams", "max_members")
        self._ensure_positive("registration", "min_password_length")
        self._ensure_positive("challenges", "default_points")
        self._ensure_positive("event", "refresh_interval")
        self._ensure_positive("ui", "max_scoreboard_entries")

        # Zero disables the scoreboard cache
        cache_seconds = self.config["ui"].get("scoreboard_cache_seconds")
        if (
            isinstance(cache_seconds, bool)
            or not isinstance(cache_seconds, (int, float))
            or cache_seconds < 0
        ):
            logger.warning("Invalid ui.scoreboard_cache_seconds, using 60")
            self.config["ui"]["scoreboard_cache_seconds"] = 60

        domain = self.config["registration"].get("email_domain")
        if not isinstance(domain, str) or not domain.strip():
            logger.warning("Invalid registration.email_domain, using 'espe.edu.ec'")
            self.config["registration"]["email_domain"] = "espe.edu.ec"

        prefix = self.config["registration"].get("student_id_prefix")
        if not isinstance(prefix, str):
            logger.warning("Invalid registration.student_id_prefix, using 'L00'")
            self.config["registration"]["student_id_prefix"] = "L00"

        categories = self.config["challenges"].get("categories")
        if not isinstance(categories, list) or not categories:
            logger.warning("Invalid challenges.categories, using defaults")
            self.config["challenges"]["categories"] = list(
                self.DEFAULT_CONFIG["challenges"]["categories"]
            )

        base_url = self.config["certificates"].get("base_url")
        if not isinstance(base_url, str):
            logger.warning("Invalid certificates.base_url, disabling certificates")
            self.config["certificates"]["base_url"] = ""

    def get(
        self,
        *keys: str,
    ) -> Any:
        """
        Get nested configuration value using dot notation.

        @param keys: Variable arguments representing nested keys to traverse
        @return: Configuration value at the specified path, None if not found
        """
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        @return: True if saved successfully, False on error
        """
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.config, f, indent=2)
            return True
        except IOError as e:
            logger.error("Could not save config file %s: %s", self.config_path, e)
            return False
