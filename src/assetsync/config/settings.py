"""Application configuration settings."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Locations of the local-only and replicated stores."""

    local_root: Path = Field(default=Path("./data/local"))
    # None means the replicated container is not configured on this machine
    remote_root: Optional[Path] = Field(default=None)
    scratch_dir: Optional[Path] = Field(default=None)

    model_config = SettingsConfigDict(env_prefix="ASSETSYNC_STORAGE_")

    def resolve_scratch_dir(self) -> Path:
        """Scratch area used to stage remote writes."""
        return self.scratch_dir or self.local_root / ".staging"


class SyncSettings(BaseSettings):
    """Coordinator behaviour."""

    listing_timeout_seconds: float = Field(default=5.0, gt=0)
    connectivity_grace_seconds: float = Field(default=3.0, ge=0)
    deduplicate_catalog: bool = Field(default=False)
    drain_on_reconnect: bool = Field(default=True)

    model_config = SettingsConfigDict(env_prefix="ASSETSYNC_SYNC_")


class ConnectivitySettings(BaseSettings):
    """Reachability probe configuration."""

    probe_url: str = Field(default="https://www.apple.com/library/test/success.html")
    probe_interval_seconds: int = Field(default=15, ge=1)
    probe_timeout_seconds: float = Field(default=3.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="ASSETSYNC_CONNECTIVITY_")


class CodecSettings(BaseSettings):
    """Image codec configuration."""

    jpeg_quality: int = Field(default=100, ge=1, le=100)

    model_config = SettingsConfigDict(env_prefix="ASSETSYNC_CODEC_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(env_prefix="ASSETSYNC_LOG_")


class AppSettings(BaseSettings):
    """Main application settings."""

    name: str = Field(default="Asset Sync")
    version: str = Field(default="1.0.0")
    environment: str = Field(default="development")

    # Sub-settings
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    connectivity: ConnectivitySettings = Field(default_factory=ConnectivitySettings)
    codec: CodecSettings = Field(default_factory=CodecSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="ASSETSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings


def set_settings(new_settings: AppSettings) -> AppSettings:
    """Replace the global settings, e.g. after loading a config file."""
    global settings
    settings = new_settings
    return settings
