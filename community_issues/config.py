"""
Configuration management for the Community Issue Tracker.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = Field(default="Community Issue Tracker")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)
    api_url: str = Field(
        default="http://127.0.0.1:8000",
        description="Base URL the CLI uses to reach the running API",
    )

    # Database
    database_url: str = Field(default="sqlite:///./community_issues.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="'json' or 'console'")

    # Image storage
    image_store_uri: str = Field(
        default="file://./media",
        description="file:// directory or http(s):// media service endpoint",
    )
    image_public_base_url: Optional[str] = Field(
        default=None,
        description="Public URL prefix for locally stored images. None = file:// URIs.",
    )
    image_service_api_key: Optional[str] = Field(default=None)
    upload_timeout_seconds: float = Field(default=30.0, gt=0)

    # Issues
    max_content_length: int = Field(default=5000, ge=1)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings

