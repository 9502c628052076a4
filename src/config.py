"""
Application Configuration Module.

Manages worker settings and environment variables using Pydantic for validation.
Provides centralized configuration management with type safety and validation.

Features:
- Environment variable loading and validation
- Secure credential management
- Polling and connectivity settings
- Path normalization for the data directory
"""

from typing import Optional
import os

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from logger import LogManager


class Settings(BaseSettings):
    """
    Worker configuration settings with validation.

    Attributes:
        app_name (str): Name of the application
        dev (bool): Debug mode flag
        log_dir (str): Directory for log files
        log_level (int): Logging level (default: info)
        data_dir (str): Directory holding the persisted state slots
        github_token (Optional[SecretStr]): Token to sign in with at startup
        refresh_interval_minutes (int): Minutes between periodic refreshes
        refresh_max_attempts (int): Attempts per periodic refresh before giving up
        connectivity_host (str): Host probed to decide whether we are online
        connectivity_port (int): Port probed on the connectivity host
        connectivity_timeout (float): Connectivity probe timeout in seconds
    """

    # Application settings
    app_name: str = Field(default="PRMonitor", description="Application name")
    dev: bool = Field(default=False, description="Debug mode")
    log_dir: str = Field(default="logs", description="Logging directory")
    log_level: int = Field(default=20, description="Logging level, default info")

    data_dir: str = Field(default="data", description="Persisted state directory")

    # GitHub configuration
    github_token: Optional[SecretStr] = Field(
        default=None, description="GitHub token applied at startup"
    )

    # Polling configuration
    refresh_interval_minutes: int = Field(
        default=1, ge=1, description="Minutes between periodic refreshes"
    )
    refresh_max_attempts: int = Field(
        default=3, ge=1, description="Attempts per periodic refresh"
    )

    # Connectivity probe
    connectivity_host: str = Field(default="api.github.com")
    connectivity_port: int = Field(default=443)
    connectivity_timeout: float = Field(default=3.0)

    @field_validator("data_dir")
    def ensure_absolute_path(cls, v: str) -> str:
        """
        Ensure the data directory path is absolute.

        Args:
            v (str): Directory path to validate

        Returns:
            str: Absolute path to the data directory
        """
        if not os.path.isabs(v):
            return os.path.abspath(v)
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Create global settings instance
settings = Settings()

# Initialize logging configuration
logger = LogManager(
    app_name=settings.app_name.lower(),
    log_dir=settings.log_dir,
    development=settings.dev,
    level=settings.log_level,
).logger
