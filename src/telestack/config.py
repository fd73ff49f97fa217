"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation,
with an optional config.yaml supplying defaults.
"""

import json
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config.yaml in common locations
        possible_paths = [
            "config.yaml",  # Current directory
            "../../config.yaml",  # Project root from src/telestack
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class MaskingSettings(BaseSettings):
    """Sensitive data masking configuration."""

    mask_token: str = Field(default="[MASKED]", description="Replacement for fully masked values")
    extra_sensitive_fields: List[str] = Field(
        default_factory=list,
        description="Additional field-name fragments masked on top of the built-in list"
    )

    @field_validator("extra_sensitive_fields", mode="before")
    def parse_fields(cls, v: Any) -> List[str]:
        """Accept a JSON list or a comma separated string."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                return [part.strip() for part in v.split(",") if part.strip()]
            if isinstance(parsed, list):
                return [str(item) for item in parsed]
            return []
        return v

    class Config:
        env_prefix = "TELESTACK_MASKING_"


class MetricsSettings(BaseSettings):
    """Resource snapshot and business metrics configuration."""

    low_stock_threshold: int = Field(default=10, description="Stock strictly below this is low stock")
    high_value_threshold: float = Field(default=1000.0, description="Price strictly above this is high value")
    slow_bulk_read_ms: int = Field(default=100, description="Slow query threshold for collection reads")
    slow_point_read_ms: int = Field(default=50, description="Slow query threshold for single-record operations")
    trace_allocations: bool = Field(default=False, description="Start tracemalloc so snapshots report traced allocations instead of resident memory")
    memory_limit_bytes: int = Field(default=104857600, description="Liveness memory threshold (100MB)")
    task_limit: int = Field(default=1000, description="Liveness live-task threshold")

    @property
    def slow_bulk_read_seconds(self) -> float:
        return self.slow_bulk_read_ms / 1000.0

    @property
    def slow_point_read_seconds(self) -> float:
        return self.slow_point_read_ms / 1000.0

    class Config:
        env_prefix = "TELESTACK_METRICS_"


class Settings(BaseSettings):
    """Main application settings."""

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Deployment environment")
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="console", description="Log renderer: console or json")
    service_name: str = Field(default="product-service", description="Service name reported in metrics")

    # Component settings
    masking: MaskingSettings = Field(default_factory=MaskingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    class Config:
        env_prefix = "TELESTACK_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""

    # Load config file data
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    settings = Settings()
    return settings


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("server", "host"): "TELESTACK_HOST",
        ("server", "port"): "TELESTACK_PORT",
        ("server", "debug"): "TELESTACK_DEBUG",
        ("server", "environment"): "TELESTACK_ENVIRONMENT",
        ("server", "log_level"): "TELESTACK_LOG_LEVEL",
        ("server", "log_format"): "TELESTACK_LOG_FORMAT",
        ("server", "service_name"): "TELESTACK_SERVICE_NAME",
        ("masking", "mask_token"): "TELESTACK_MASKING_MASK_TOKEN",
        ("metrics", "low_stock_threshold"): "TELESTACK_METRICS_LOW_STOCK_THRESHOLD",
        ("metrics", "high_value_threshold"): "TELESTACK_METRICS_HIGH_VALUE_THRESHOLD",
        ("metrics", "slow_bulk_read_ms"): "TELESTACK_METRICS_SLOW_BULK_READ_MS",
        ("metrics", "slow_point_read_ms"): "TELESTACK_METRICS_SLOW_POINT_READ_MS",
        ("metrics", "trace_allocations"): "TELESTACK_METRICS_TRACE_ALLOCATIONS",
        ("metrics", "memory_limit_bytes"): "TELESTACK_METRICS_MEMORY_LIMIT_BYTES",
        ("metrics", "task_limit"): "TELESTACK_METRICS_TASK_LIMIT",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is not None:
                os.environ[env_var] = str(value)

    # Lists travel as JSON strings
    if "TELESTACK_MASKING_EXTRA_SENSITIVE_FIELDS" not in os.environ:
        extra_fields = (config_data.get("masking") or {}).get("extra_sensitive_fields")
        if extra_fields:
            os.environ["TELESTACK_MASKING_EXTRA_SENSITIVE_FIELDS"] = json.dumps(extra_fields)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
