"""
Configuration management for RepoPulse.

This module provides centralized configuration with:
- Environment-specific settings
- Type validation and defaults
- GitHub API access and fetch limits
- Optional event bus and logging configuration
"""

from typing import Optional, List, Dict, Any
from functools import lru_cache

from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings
from pydantic_settings import BaseSettings as PydanticBaseSettings


class GitHubSettings(BaseSettings):
    """GitHub REST API configuration settings."""

    api_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    token: Optional[SecretStr] = Field(
        default=None, description="Bearer token for authenticated API calls"
    )
    api_version: str = Field(default="2022-11-28", description="X-GitHub-Api-Version header")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    user_agent: str = Field(default="repopulse", description="User-Agent header")

    model_config = {"env_prefix": "GITHUB_", "extra": "ignore"}

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("GitHub API URL must be HTTP/HTTPS")
        return v.rstrip("/")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.token.get_secret_value())


class FetchSettings(BaseSettings):
    """Commit listing and enrichment limits."""

    page_size: int = Field(default=100, ge=1, le=100, description="Commits per listing page")
    max_pages: int = Field(default=10, ge=1, description="Hard ceiling on listing pages")
    recent_commits_per_repository: int = Field(
        default=5, ge=1, le=100, description="Latest commits fetched per repository"
    )
    recent_commits_limit: int = Field(
        default=25, ge=1, description="Commits kept in the merged recent list"
    )


class RedisSettings(BaseSettings):
    """Redis event bus configuration settings."""

    enabled: bool = Field(default=False, description="Publish run events to Redis")
    url: str = Field(default="redis://localhost:6379", description="Redis connection URL")
    channel: str = Field(default="insight_events", description="Pub/sub channel for run events")
    socket_connect_timeout: int = Field(default=5, description="Socket connect timeout")
    socket_timeout: int = Field(default=5, description="Socket timeout")
    retry_on_timeout: bool = Field(default=True, description="Retry on timeout")

    @field_validator("url")
    @classmethod
    def validate_redis_url(cls, v):
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must use redis://, rediss:// or unix://")
        return v


class MonitoringSettings(BaseSettings):
    """Logging configuration settings."""

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Logging format string",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


class ServiceSettings(BaseSettings):
    """HTTP service configuration settings."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8010, description="Commit insights service port")
    request_timeout: int = Field(default=120, description="Analysis request timeout")
    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")


class Settings(PydanticBaseSettings):
    """
    Main application settings with environment-specific configuration.

    Supports multiple environments:
    - development: Local development settings
    - testing: Test environment settings
    - staging: Staging environment settings
    - production: Production environment settings
    """

    app_name: str = Field(default="RepoPulse", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        valid_environments = ["development", "testing", "staging", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    @field_validator("debug")
    @classmethod
    def validate_debug_mode(cls, v, info):
        if info.data.get("environment") == "production" and v:
            raise ValueError("Debug mode cannot be enabled in production")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration object

    Example:
        >>> settings = get_settings()
        >>> print(settings.github.api_url)
        >>> print(settings.fetch.max_pages)
    """
    return Settings()


# Global settings instance
settings = get_settings()


def is_production() -> bool:
    """Check if running in production environment."""
    return settings.environment == "production"


def is_development() -> bool:
    """Check if running in development environment."""
    return settings.environment == "development"


def is_testing() -> bool:
    """Check if running in testing environment."""
    return settings.environment == "testing"


def validate_configuration(config: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Validate configuration settings and return validation results.

    Returns:
        Dict[str, Any]: Validation results with status, errors and warnings

    Example:
        >>> validation = validate_configuration()
        >>> if not validation['valid']:
        >>>     print("Configuration errors:", validation['errors'])
    """
    config = config or settings
    errors = []
    warnings = []

    if config.environment == "production" and config.debug:
        errors.append("Debug mode cannot be enabled in production")

    if not config.github.is_authenticated:
        warnings.append(
            "No GitHub token configured; requests are unauthenticated and "
            "subject to the lower rate limit"
        )

    if config.fetch.recent_commits_limit < config.fetch.recent_commits_per_repository:
        warnings.append("Recent commits limit is smaller than the per-repository fetch size")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "environment": config.environment,
        "services": {
            "github": "authenticated" if config.github.is_authenticated else "anonymous",
            "redis": "enabled" if config.redis.enabled else "disabled",
        },
    }


def export_config(config: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Export configuration for external tools and monitoring.

    Returns:
        Dict[str, Any]: Configuration export (without sensitive data)
    """
    config = config or settings
    return {
        "app_name": config.app_name,
        "version": config.version,
        "environment": config.environment,
        "debug": config.debug,
        "github": {
            "api_url": config.github.api_url,
            "api_version": config.github.api_version,
            "timeout": config.github.timeout,
            "authenticated": config.github.is_authenticated,
        },
        "fetch": {
            "page_size": config.fetch.page_size,
            "max_pages": config.fetch.max_pages,
            "recent_commits_per_repository": config.fetch.recent_commits_per_repository,
            "recent_commits_limit": config.fetch.recent_commits_limit,
        },
        "redis": {
            "enabled": config.redis.enabled,
            "channel": config.redis.channel,
        },
        "monitoring": {
            "log_level": config.monitoring.log_level,
        },
        "service": {
            "host": config.service.host,
            "port": config.service.port,
        },
    }


if __name__ == "__main__":
    """Configuration validation script."""
    import json

    validation = validate_configuration()
    config_export = export_config()

    print("Configuration Validation:")
    print(json.dumps(validation, indent=2))

    print("\nConfiguration Export:")
    print(json.dumps(config_export, indent=2))

    if not validation["valid"]:
        exit(1)
