"""Settings for the record store, read from CRM_STORE_* environment variables.

Nested fields use a double underscore, e.g. CRM_STORE_STORAGE__DATA_DIR.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseModel):
    """Backing file location and on-disk layout parameters."""

    data_dir: Path = Field(default=Path("/data"), description="Directory holding the backing file")
    data_file: str = Field(default="crm_store.db", description="Backing file name")
    page_size: int = Field(default=4096, ge=4096, le=65536, description="Page size in bytes")
    bucket_size_in_pages: int = Field(
        default=16, ge=1, le=65535, description="Pages handed to a region at a time"
    )
    max_pages: int = Field(
        default=524288, ge=64, description="Backing file size limit in pages (default 2GB)"
    )
    max_record_size: int = Field(
        default=1024, ge=64, le=65536, description="Maximum encoded record size in bytes"
    )
    btree_max_keys: int = Field(default=11, ge=3, le=255, description="Maximum keys per node")

    @property
    def data_path(self) -> Path:
        """Full path of the backing file."""
        return self.data_dir / self.data_file


class ServerConfig(BaseModel):
    """Listen addresses for the REST API and the metrics endpoint."""

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="REST API port")
    metrics_port: int = Field(default=8001, ge=1, le=65535, description="Prometheus metrics port")


class ObservabilityConfig(BaseModel):
    """Logging and tracing settings."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="crm_store", description="Service name for tracing")


class Config(BaseSettings):
    """Main configuration for the record store."""

    model_config = SettingsConfigDict(
        env_prefix="CRM_STORE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def ensure_directories(self) -> None:
        """Ensure the data directory exists."""
        self.storage.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_config() -> Config:
    """Return the process-wide settings, creating the data directory once."""
    config = Config()
    config.ensure_directories()
    return config
