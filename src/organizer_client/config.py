"""
============================================================================
Kipi Organizer Client - Configuration
============================================================================
Environment-based configuration using Pydantic Settings
Supports .env files and environment variables
============================================================================
"""

from typing import Literal
from urllib.parse import urlsplit

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendSettings(BaseSettings):
    """Remote row store (PostgREST dialect) connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="BACKEND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the remote store (scheme://host[:port])",
    )

    rest_path: str = Field(
        default="/api/rest/v1",
        description="Path prefix of the REST endpoint, tables are appended to it",
    )

    anon_key: SecretStr = Field(
        default=SecretStr(""),
        description="Public API key sent with every request",
    )

    timeout: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout in seconds for the network layer",
    )

    read_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for idempotent reads on transport errors",
    )

    read_retry_backoff: float = Field(
        default=1.0,
        ge=0,
        description="Exponential backoff multiplier (seconds) between read retries",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate backend URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("rest_path")
    @classmethod
    def validate_rest_path(cls, v: str) -> str:
        """Normalize the REST path to a leading slash and no trailing slash."""
        return "/" + v.strip("/")

    @property
    def rest_url(self) -> str:
        """Full URL of the REST endpoint."""
        return f"{self.url}{self.rest_path}"


class CacheSettings(BaseSettings):
    """Offline cache controller configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    name_prefix: str = Field(
        default="kipi",
        description="Cache name prefix, the version is appended to it",
    )

    version: str = Field(
        default="v1",
        description="Cache version, bump it whenever a manifest asset changes",
    )

    origin: str = Field(
        default="http://localhost:8000",
        description="Application origin; requests to other origins are not intercepted",
    )

    api_segment: str = Field(
        default="/api/",
        description="URL segment identifying API requests (network-first)",
    )

    offline_url: str = Field(
        default="/offline.html",
        description="Offline fallback document served to failed navigations",
    )

    storage_path: str = Field(
        default=":memory:",
        description="SQLite file backing the cache storage (':memory:' for none)",
    )

    navigation_preload: bool = Field(
        default=True,
        description="Enable navigation preload on activation",
    )

    @field_validator("origin")
    @classmethod
    def validate_origin(cls, v: str) -> str:
        """Reduce the configured origin to scheme://host[:port]."""
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("Origin must be an absolute http(s) URL")
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def cache_name(self) -> str:
        """Versioned cache name, e.g. ``kipi-v1``."""
        return f"{self.name_prefix}-{self.version}"


class SessionSettings(BaseSettings):
    """Identity used by the command-line entry point."""

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    user_id: str | None = Field(
        default=None,
        description="Owner id used to scope every remote query",
    )

    email: str | None = Field(
        default=None,
        description="Account email, informational only",
    )

    access_token: SecretStr | None = Field(
        default=None,
        description="Bearer token of the signed-in user",
    )


class ApplicationSettings(BaseSettings):
    """General application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    log_file: str | None = Field(
        default=None,
        description="Optional log file, in addition to stdout",
    )

    enable_metrics: bool = Field(
        default=False,
        description="Expose Prometheus metrics over HTTP",
    )

    metrics_port: int = Field(
        default=9090,
        ge=1,
        le=65535,
        description="Port for the Prometheus metrics endpoint",
    )

    notification_history: int = Field(
        default=50,
        ge=1,
        description="Number of user notifications kept in memory",
    )


class Settings(BaseSettings):
    """Main application settings combining all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Sub-settings
    backend: BackendSettings = Field(default_factory=BackendSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    app: ApplicationSettings = Field(default_factory=ApplicationSettings)

    subjects_table: str = Field(
        default="subjects",
        description="Remote table holding subjects",
    )

    notes_table: str = Field(
        default="notes",
        description="Remote table holding Cornell notes",
    )


# Example .env file content:
"""
# Backend
BACKEND_URL=http://localhost:8000
BACKEND_REST_PATH=/api/rest/v1
BACKEND_ANON_KEY=public-anon-key
BACKEND_TIMEOUT=10

# Offline cache
CACHE_VERSION=v1
CACHE_ORIGIN=http://localhost:8000
CACHE_STORAGE_PATH=~/.kipi/cache.db

# Identity for the CLI
SESSION_USER_ID=00000000-0000-0000-0000-000000000000
SESSION_ACCESS_TOKEN=...

# Application
APP_LOG_LEVEL=INFO
APP_ENABLE_METRICS=false
"""
