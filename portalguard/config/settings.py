"""Configuration management for PortalGuard."""

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portalguard.core.interfaces import ConfigProvider

if TYPE_CHECKING:
    from portalguard.security.rate_limiter import RateLimitConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="PORTALGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Deployment Configuration
    environment: str = Field(
        default="production",
        description="Deployment environment (development, staging or production)",
    )
    verbose_errors: bool = Field(
        default=False,
        description="Show raw error messages to users (non-production only)",
    )

    # Rate Limit Configuration
    login_max_attempts: int = Field(
        default=5, ge=1, description="Login attempts allowed per window"
    )
    login_window_seconds: int = Field(
        default=15 * 60, ge=1, description="Login rate limit window (s)"
    )
    register_max_attempts: int = Field(
        default=10, ge=1, description="Registration attempts allowed per window"
    )
    register_window_seconds: int = Field(
        default=10 * 60, ge=1, description="Registration rate limit window (s)"
    )
    password_reset_max_attempts: int = Field(
        default=5, ge=1, description="Password reset requests allowed per window"
    )
    password_reset_window_seconds: int = Field(
        default=15 * 60, ge=1, description="Password reset rate limit window (s)"
    )
    password_change_max_attempts: int = Field(
        default=5, ge=1, description="Password changes allowed per window"
    )
    password_change_window_seconds: int = Field(
        default=15 * 60, ge=1, description="Password change rate limit window (s)"
    )
    cleanup_max_age_seconds: int = Field(
        default=60 * 60, ge=1, description="Age after which attempts are swept (s)"
    )
    cleanup_interval_seconds: int = Field(
        default=10 * 60, ge=1, description="Interval between cleanup sweeps (s)"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path"
    )

    @field_validator("environment")
    def validate_environment(cls, v: str) -> str:
        """Validate deployment environment."""
        value = v.lower()
        if value not in ["development", "staging", "production"]:
            raise ValueError(f"Invalid environment: {v}")
        return value

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    @model_validator(mode="after")
    def reject_verbose_errors_in_production(self) -> "Settings":
        """Refuse to expose raw error text from a production deployment."""
        if self.verbose_errors and self.environment == "production":
            raise ValueError(
                "verbose_errors cannot be enabled when environment is production"
            )
        return self

    def rate_limit_config(self) -> "RateLimitConfig":
        """Build rate limit policies from the configured values."""
        from portalguard.security.rate_limiter import RateLimitConfig, RateLimitPolicy

        return RateLimitConfig(
            login=RateLimitPolicy(
                max_attempts=self.login_max_attempts,
                window_seconds=self.login_window_seconds,
            ),
            register=RateLimitPolicy(
                max_attempts=self.register_max_attempts,
                window_seconds=self.register_window_seconds,
            ),
            password_reset=RateLimitPolicy(
                max_attempts=self.password_reset_max_attempts,
                window_seconds=self.password_reset_window_seconds,
            ),
            password_change=RateLimitPolicy(
                max_attempts=self.password_change_max_attempts,
                window_seconds=self.password_change_window_seconds,
            ),
            cleanup_max_age_seconds=self.cleanup_max_age_seconds,
            cleanup_interval_seconds=self.cleanup_interval_seconds,
        )


class ConfigManager(ConfigProvider):
    """Configuration manager implementation."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """
        Initialize config manager.

        Args:
            settings: Optional settings instance
        """
        self.settings = settings or get_settings()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        try:
            return getattr(self.settings, key)
        except AttributeError:
            return default

    def get_required(self, key: str) -> Any:
        """Get required configuration value."""
        try:
            return getattr(self.settings, key)
        except AttributeError:
            raise KeyError(f"Required configuration key not found: {key}")

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self.settings.model_dump()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    # Load .env file if it exists
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    return Settings()


def get_config() -> ConfigManager:
    """Get configuration manager instance."""
    return ConfigManager(get_settings())
