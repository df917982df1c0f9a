"""
Shared configuration management for the Skill Request Verifier.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="VERIFIER_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Request verification
    verification_enabled: bool = Field(default=True)
    timestamp_tolerance_seconds: float = Field(default=150.0, gt=0)

    # Certificate store; 0 entries disables the cache
    cert_cache_max_entries: int = Field(default=0, ge=0)
    cert_cache_max_age_seconds: float = Field(default=60 * 60 * 24, gt=0)
    cert_fetch_timeout_seconds: float = Field(default=10.0, gt=0)


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
