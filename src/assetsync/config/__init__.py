"""Configuration package for asset sync."""

from .settings import (
    StorageSettings,
    SyncSettings,
    ConnectivitySettings,
    CodecSettings,
    LoggingSettings,
    AppSettings,
    get_settings,
    set_settings
)

from .loader import (
    ConfigLoader,
    ConfigurationError,
    load_config_from_env
)

__all__ = [
    "StorageSettings",
    "SyncSettings",
    "ConnectivitySettings",
    "CodecSettings",
    "LoggingSettings",
    "AppSettings",
    "get_settings",
    "set_settings",

    "ConfigLoader",
    "ConfigurationError",
    "load_config_from_env"
]
