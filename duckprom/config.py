"""Configuration management using pydantic-settings."""

import re
from pathlib import Path
from typing import Any, Literal, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# YAML section -> {yaml key: settings field}
YAML_FIELDS: dict[str, dict[str, str]] = {
    "server": {
        "host": "duckprom_host",
        "port": "duckprom_port",
    },
    "storage": {
        "backend": "storage_backend",
        "database": "storage_database",
        "collection": "storage_collection",
    },
    "duckdb": {
        "memory_limit": "duckdb_memory_limit",
        "threads": "duckdb_threads",
        "pool_size": "duckdb_pool_size",
    },
    "limits": {
        "max_request_size_mb": "max_request_size_mb",
    },
    "metrics": {
        "enabled": "metrics_enabled",
    },
    "logging": {
        "level": "log_level",
        "format": "log_format",
    },
}


def load_yaml_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Priority:
    1. Explicitly provided config_path
    2. ~/.duckprom/config.yaml (default location)
    3. Empty dict if no file exists

    Args:
        config_path: Optional path to config file

    Returns:
        Dictionary of configuration values (flattened from nested YAML)
    """
    if config_path is None:
        config_path = Path.home() / ".duckprom" / "config.yaml"

    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            yaml_data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        import warnings

        warnings.warn(f"Failed to load config from {config_path}: {e}")
        return {}

    flattened = {}
    for section, fields in YAML_FIELDS.items():
        values = yaml_data.get(section) or {}
        for yaml_key, field_name in fields.items():
            if yaml_key in values:
                flattened[field_name] = values[yaml_key]

    return flattened


_config_path: Path | None = None


class YamlSettingsSource(PydanticBaseSettingsSource):
    """
    Custom settings source that loads configuration from YAML file.

    This allows YAML config to be loaded with proper priority in the settings chain.
    """

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        """Not used since we override __call__."""
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        return load_yaml_config(_config_path)


class Settings(BaseSettings):
    """
    duckprom configuration settings.

    Configuration priority (highest to lowest):
    1. Environment variables (e.g., DUCKPROM_PORT=9301)
    2. YAML configuration file (~/.duckprom/config.yaml)
    3. Default values defined in this class
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    duckprom_host: str = Field(default="0.0.0.0", description="Server bind address")
    duckprom_port: int = Field(default=9201, ge=1, le=65535, description="Server port")

    storage_backend: Literal["duckdb", "memory"] = Field(
        default="duckdb",
        description="Storage engine behind the remote storage adapter",
    )
    storage_database: str = Field(
        default="~/.duckprom/samples.duckdb",
        description="DuckDB database file, or :memory:",
    )
    storage_collection: str = Field(
        default="samples",
        description="Table holding the stored samples",
    )

    duckdb_memory_limit: str = Field(default="1GB", description="DuckDB memory limit")
    duckdb_threads: int = Field(default=4, ge=1, description="DuckDB thread count")
    duckdb_pool_size: int = Field(
        default=4, ge=1, description="DuckDB connection pool size"
    )

    max_request_size_mb: int = Field(
        default=32, ge=1, description="Max compressed request body size"
    )

    metrics_enabled: bool = Field(
        default=True, description="Record adapter telemetry and expose /metrics"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json", description="Log format"
    )

    @field_validator("storage_database")
    @classmethod
    def validate_database(cls, v: str) -> str:
        """Expand ~ in DuckDB database paths."""
        if v == ":memory:":
            return v
        return str(Path(v).expanduser())

    @field_validator("storage_collection")
    @classmethod
    def validate_collection(cls, v: str) -> str:
        """Collection names are inlined into SQL, so restrict them to identifiers."""
        if not _IDENTIFIER.match(v):
            raise ValueError(f"Collection name must be a plain identifier, got {v!r}")
        return v

    @property
    def is_in_memory(self) -> bool:
        """Check if the DuckDB database lives only in memory."""
        return self.storage_database == ":memory:"

    @property
    def max_request_size_bytes(self) -> int:
        """Get max request size in bytes."""
        return self.max_request_size_mb * 1024 * 1024

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources priority.

        Priority order (highest to lowest):
        1. Explicit kwargs (init_settings) - for testing and programmatic config
        2. Environment variables
        3. YAML configuration file
        4. .env file
        5. Field defaults
        """
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls),
            dotenv_settings,
        )


_settings: Settings | None = None


def get_settings(config_path: Path | None = None, reload: bool = False) -> Settings:
    """
    Get global settings instance.

    Settings are read once; there is no hot reload outside of tests.

    Args:
        config_path: Optional path to YAML config file (defaults to ~/.duckprom/config.yaml)
        reload: If True, force reload settings (useful for testing)

    Returns:
        Settings instance with merged configuration
    """
    global _settings, _config_path
    if _settings is None or reload:
        _config_path = config_path

        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings, _config_path
    _settings = None
    _config_path = None
