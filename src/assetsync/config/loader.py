"""Configuration loader for JSON/YAML files and environment variables."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import ValidationError

from .settings import AppSettings
from ..utils.logging import get_logger


class ConfigurationError(Exception):
    """Raised when configuration loading fails."""
    pass


# Environment variable -> (section, key). Applied on top of file contents.
ENV_OVERRIDES = {
    "ASSETSYNC_LOCAL_ROOT": ("storage", "local_root"),
    "ASSETSYNC_REMOTE_ROOT": ("storage", "remote_root"),
    "ASSETSYNC_SCRATCH_DIR": ("storage", "scratch_dir"),
    "ASSETSYNC_LISTING_TIMEOUT": ("sync", "listing_timeout_seconds"),
    "ASSETSYNC_CONNECTIVITY_GRACE": ("sync", "connectivity_grace_seconds"),
    "ASSETSYNC_DEDUPLICATE_CATALOG": ("sync", "deduplicate_catalog"),
    "ASSETSYNC_PROBE_URL": ("connectivity", "probe_url"),
    "ASSETSYNC_LOG_LEVEL": ("logging", "level"),
    "ASSETSYNC_LOG_FORMAT": ("logging", "format"),
}


class ConfigLoader:
    """Loads and validates configuration from various sources."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load_from_file(self, file_path: Union[str, Path]) -> AppSettings:
        """Load configuration from JSON or YAML file.

        Args:
            file_path: Path to configuration file

        Returns:
            Validated AppSettings object

        Raises:
            ConfigurationError: If file cannot be loaded or validated
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        self.logger.info("Loading configuration from file", file_path=str(file_path))

        suffix = file_path.suffix.lower()
        if suffix not in ('.yaml', '.yml', '.json'):
            raise ConfigurationError(f"Unsupported file format: {file_path.suffix}")

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if suffix == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}") from e

        return self.load_from_dict(data or {})

    def load_from_dict(self, data: Dict[str, Any]) -> AppSettings:
        """Load configuration from dictionary.

        Args:
            data: Configuration data as dictionary

        Returns:
            Validated AppSettings object
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        data = self._apply_env_overrides(data)

        try:
            config = AppSettings(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        self.logger.info(
            "Configuration loaded",
            local_root=str(config.storage.local_root),
            remote_root=str(config.storage.remote_root) if config.storage.remote_root else None,
            environment=config.environment
        )

        return config

    def save_to_file(self, config: AppSettings, file_path: Union[str, Path], format: str = 'yaml'):
        """Save configuration to file.

        Args:
            config: Configuration to save
            file_path: Output file path
            format: Output format ('yaml' or 'json')
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = config.model_dump(mode="json")

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                if format.lower() == 'yaml':
                    yaml.dump(data, f, default_flow_style=False, indent=2, allow_unicode=True)
                elif format.lower() == 'json':
                    json.dump(data, f, indent=2)
                else:
                    raise ConfigurationError(f"Unsupported format: {format}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}") from e

        self.logger.info("Configuration saved successfully", file_path=str(file_path))

    def validate_config(self, config: AppSettings) -> List[str]:
        """Return human readable warnings for a loaded configuration."""
        warnings = []

        storage = config.storage
        if storage.remote_root is None:
            warnings.append("No remote root configured; every save will stay in the local store")
        elif storage.remote_root.resolve() == storage.local_root.resolve():
            warnings.append("Local and remote roots point at the same directory")

        if config.sync.listing_timeout_seconds > 60:
            warnings.append(
                f"Listing timeout of {config.sync.listing_timeout_seconds}s will stall refreshes"
            )

        if config.logging.format not in ("json", "console"):
            warnings.append(f"Unknown log format '{config.logging.format}', console output will be used")

        return warnings

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration data.

        Environment variables use the names listed in ``ENV_OVERRIDES``,
        for example ASSETSYNC_REMOTE_ROOT or ASSETSYNC_LOG_LEVEL.
        """
        merged = {key: (dict(value) if isinstance(value, dict) else value) for key, value in data.items()}

        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is None or value == "":
                continue
            merged.setdefault(section, {})
            if not isinstance(merged[section], dict):
                self.logger.warning("Cannot apply override to non-mapping section", section=section)
                continue
            merged[section][key] = value
            self.logger.debug("Applied environment override", variable=env_name)

        return merged


def load_config_from_env() -> AppSettings:
    """Load configuration from ASSETSYNC_CONFIG_FILE, or environment defaults."""
    loader = ConfigLoader()

    config_file = os.getenv('ASSETSYNC_CONFIG_FILE')
    if config_file:
        return loader.load_from_file(config_file)

    for candidate in ('./config/assetsync.yaml', './config/assetsync.yml', './config/assetsync.json'):
        if Path(candidate).exists():
            return loader.load_from_file(candidate)

    return loader.load_from_dict({})
