"""
Shared configuration management for the Catalog Gateway.

Configuration is read once at process start. Anything that cannot be parsed
fails fast with a ``ConfigurationError`` before the gateway accepts traffic.
"""

from typing import Dict, List, Optional

import semantic_version
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

from shared.errors import ConfigurationError


LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    package_service_url: str = Field(default="http://localhost:8020")
    image_service_url: str = Field(default="http://localhost:8021")
    machine_service_url: str = Field(default="http://localhost:8022")
    auth_service_url: str = Field(default="http://localhost:8010")
    backend_timeout_seconds: float = Field(default=10.0, gt=0)

    # Package list cache lifetime, in seconds
    max_packages_lifetime: int = Field(default=60, gt=0)

    # API versioning: the version this build serves, plus every track it
    # still answers for.
    api_version: str = Field(default="7.2.0")
    supported_versions: List[str] = Field(default_factory=lambda: ["7.2.0", "7.1.0", "7.0.0", "6.5.0"])

    # Bleeding edge features, e.g. {"img_mgmt": true}
    bleeding_edge_features: Dict[str, bool] = Field(default_factory=dict)
    # Logins allowed to use bleeding edge features; "*" whitelists everyone
    bleeding_edge_login_whitelist: Dict[str, bool] = Field(default_factory=dict)

    read_only: bool = Field(default=False)

    # Observability
    enable_tracing: bool = Field(default=False)
    enable_console_tracing: bool = Field(default=False)
    otel_exporter: Optional[str] = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        if value.lower() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value.lower()

    @field_validator("api_version")
    @classmethod
    def _check_api_version(cls, value: str) -> str:
        semantic_version.Version(value)
        return value

    @field_validator("supported_versions")
    @classmethod
    def _check_supported_versions(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("at least one supported version is required")
        for version in value:
            semantic_version.Version(version)
        return value

    @field_validator("bleeding_edge_login_whitelist")
    @classmethod
    def _check_whitelist(cls, value: Dict[str, bool]) -> Dict[str, bool]:
        for login in value:
            if not login.strip():
                raise ValueError("whitelist logins must be non-empty")
        return value


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)

    @property
    def all_versions(self) -> List[str]:
        """Every version track this process answers for, newest first."""
        versions = {semantic_version.Version(v) for v in self.supported_versions}
        versions.add(semantic_version.Version(self.api_version))
        return [str(v) for v in sorted(versions, reverse=True)]


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get validated configuration for a service.

    Raises ``ConfigurationError`` with the offending fields when the
    environment carries malformed values.
    """
    try:
        return ServiceConfig(service_name=service_name, port=port, **overrides)
    except ValidationError as exc:
        problems = {
            ".".join(str(part) for part in error["loc"]): error["msg"]
            for error in exc.errors()
        }
        raise ConfigurationError(
            f"Invalid configuration for {service_name}",
            details={"errors": problems}
        ) from exc
    except SettingsError as exc:
        raise ConfigurationError(
            f"Unparsable configuration for {service_name}: {exc}"
        ) from exc