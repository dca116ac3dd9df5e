"""
Shared configuration management for the Trade-In Pricing Layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings.

    Every field is read from a ``PRICING_``-prefixed environment variable
    (``PRICING_LOG_LEVEL``, ``PRICING_POSTGRES_DSN``...) or from ``.env``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PRICING_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Storage
    store_backend: str = Field(default="memory", description="memory | postgres")
    postgres_dsn: str = Field(default="postgres://localhost:5432/pricing")
    postgres_min_pool: int = Field(default=2)
    postgres_max_pool: int = Field(default=10)

    # Active-rule lookup cache
    enable_rule_cache: bool = Field(default=False)
    redis_url: str = Field(default="redis://localhost:6379/0")
    rule_cache_ttl_seconds: int = Field(default=300)

    # Remote registry; empty means rules are read from the local store
    registry_url: Optional[str] = Field(default=None)
    registry_timeout_seconds: float = Field(default=8.0)
    default_rule_kind: str = Field(default="pricing")

    # Observability
    enable_tracing: bool = Field(default=False)
    otel_exporter: str = Field(default="http://localhost:4317")
    enable_console_tracing: bool = Field(default=False)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
