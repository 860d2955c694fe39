"""
Configuration management for the ComplyHub API server.

Values are resolved in this order:
1. Environment variables (``COMPLYHUB_<SECTION>__<KEY>``)
2. config.yaml file
3. Default values
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_SEARCH_PATHS = (
    Path("config.yaml"),
    Path("config/config.yaml"),
    Path("/etc/complyhub/config.yaml"),
)


class ServerSettings(BaseSettings):
    """HTTP server options."""

    host: str = "127.0.0.1"
    port: int = 8000
    # Scan runs live in the worker process that started them
    workers: int = 1
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"


class DatabaseSettings(BaseSettings):
    """Database connection pool."""

    url: str = "postgresql+asyncpg://localhost/complyhub"
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle: int = 3600
    pool_pre_ping: bool = True
    # Tables are built from ORM metadata at startup; no migration tool.
    create_tables: bool = True


class LoggingSettings(BaseSettings):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: str | None = None


class CORSSettings(BaseSettings):
    """Cross-origin access for the dashboard front-end."""

    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"]
    )
    allow_credentials: bool = True
    allow_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    )
    allow_headers: list[str] = Field(
        default_factory=lambda: [
            "Accept",
            "Content-Type",
            "Origin",
            "X-Organization-Id",
            "X-User-Id",
            "X-Request-ID",
        ]
    )

    @model_validator(mode="after")
    def validate_cors_security(self) -> "CORSSettings":
        """Reject a wildcard origin when credentials are allowed."""
        if "*" in self.allowed_origins and self.allow_credentials:
            raise ValueError(
                "Cannot use wildcard (*) in allowed_origins with "
                "allow_credentials=True. Specify explicit origins instead."
            )
        return self


class RateLimitSettings(BaseSettings):
    enabled: bool = True
    bulk_upload_limit: str = "10/minute"
    scan_trigger_limit: str = "20/minute"


class SecuritySettings(BaseSettings):
    max_request_size_mb: int = 10
    # Bulk policy uploads and evidence files arrive base64 encoded in JSON
    max_upload_size_mb: int = 200


class StorageSettings(BaseSettings):
    """
    Object storage for policy PDFs, evidence uploads and exports.

    ``backend="none"`` disables every operation that needs storage; those
    endpoints answer 503 "File storage is not configured.".
    """

    backend: Literal["none", "filesystem", "s3"] = "none"
    bucket: str | None = None
    region: str = "us-east-1"
    endpoint_url: str | None = None
    root_path: str = "./data/objects"
    presign_expiry_seconds: int = 3600


class CloudSecuritySettings(BaseSettings):
    """Background scan run limits and client polling cadence."""

    poll_interval_seconds: float = 2.0
    max_poll_attempts: int = 150
    run_timeout_seconds: int = 900


class PolicySettings(BaseSettings):
    max_bulk_files: int = 50


class Settings(BaseSettings):
    """Root settings object combining every section."""

    model_config = SettingsConfigDict(
        env_prefix="COMPLYHUB_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    cloud_security: CloudSecuritySettings = Field(default_factory=CloudSecuritySettings)
    policies: PolicySettings = Field(default_factory=PolicySettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, YamlConfigSource(settings_cls), file_secret_settings


class YamlConfigSource(PydanticBaseSettingsSource):
    """Settings source backed by the first config.yaml on the search path."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None = None):
        super().__init__(settings_cls)
        self._data = load_yaml_config(path)

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {
            name: self._data[name]
            for name in self.settings_cls.model_fields
            if self._data.get(name) is not None
        }


def load_yaml_config(path: Path | None = None) -> dict:
    """Read the first config.yaml found, or an explicit path."""
    if path is None:
        path = next((p for p in CONFIG_SEARCH_PATHS if p.exists()), None)

    if path and path.exists():
        with open(path) as f:
            return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached settings and load them again."""
    get_settings.cache_clear()
    return get_settings()
