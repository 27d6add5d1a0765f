# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class StorageSettings(BaseSettings):
    """Where the analytics stores live.

    The file backend keeps one JSON document per store under `data_dir`,
    which is the client-resident default. The valkey backend keeps the same
    documents as keys on a Valkey/Redis server.
    """

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    backend: Literal["file", "valkey"] = Field(
        default="file", description="Storage backend (file or valkey)"
    )
    data_dir: Path = Field(
        default=Path("~/.wikipulse"), description="Directory for the file backend"
    )

    @property
    def data_dir_path(self) -> Path:
        """Data directory with the user's home expanded."""
        return self.data_dir.expanduser()


class ValkeySettings(BaseSettings):
    """Valkey (Redis-compatible) connection settings for the valkey backend."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Valkey host")
    port: int = Field(default=6379, description="Valkey port")
    password: Optional[str] = Field(default=None, description="Valkey password")
    db: int = Field(default=0, description="Valkey database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")

    @property
    def url(self) -> str:
        """Build Valkey connection URL."""
        # Use rediss:// scheme for SSL connections
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class AnalyticsSettings(BaseSettings):
    """Retention caps, session timeout and aggregation options."""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    key_prefix: str = Field(default="wikipulse:", description="Prefix for every persisted key")
    max_events: int = Field(default=10_000, description="Maximum events retained")
    max_sessions: int = Field(default=1_000, description="Maximum closed sessions retained")
    max_searches: int = Field(default=500, description="Maximum search queries retained")
    session_timeout_minutes: int = Field(
        default=30,
        description="Session age (from start) after which a new session is started",
    )
    trending_threshold: int = Field(
        default=10, description="Views inside the trending window that mark content as trending"
    )
    trending_window_hours: int = Field(default=24, description="Trending window in hours")
    timezone: str = Field(
        default="UTC", description="IANA timezone for calendar aggregations"
    )
    flush_expired_sessions: bool = Field(
        default=True,
        description="Close timed-out sessions into the session log before replacing them",
    )
    emit_session_events: bool = Field(
        default=True, description="Record a session_start event when a session is created"
    )


class DeviceSettings(BaseSettings):
    """Static device context used when no live probe is available (CLI, tests)."""

    model_config = SettingsConfigDict(env_prefix="DEVICE_")

    user_agent: str = Field(default="wikipulse-cli", description="User agent string")
    platform: str = Field(default="", description="Platform name")
    screen_width: Optional[int] = Field(default=None, description="Screen width in pixels")
    screen_height: Optional[int] = Field(default=None, description="Screen height in pixels")
    viewport_width: Optional[int] = Field(default=None, description="Viewport width in pixels")
    viewport_height: Optional[int] = Field(default=None, description="Viewport height in pixels")
    max_touch_points: int = Field(default=0, description="Touch points reported by the device")
    connection_type: str = Field(default="unknown", description="Network connection type")
    effective_connection_type: str = Field(
        default="unknown", description="Effective connection type (4g, 3g, ...)"
    )
    save_data: bool = Field(default=False, description="Data saver enabled")
    url: Optional[str] = Field(default=None, description="Current URL")
    referrer: Optional[str] = Field(default=None, description="Referring URL")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    storage: StorageSettings = Field(default_factory=StorageSettings)
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    device: DeviceSettings = Field(default_factory=DeviceSettings)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="WARNING", description="Logging level")

    @property
    def effective_log_level(self) -> str:
        """Log level to configure, DEBUG whenever debug mode is on."""
        return "DEBUG" if self.debug else self.log_level.upper()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
