"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database (SQLite fallback when unset)
    DATABASE_URL: Optional[str] = None
    SQLITE_PATH: str = "leasetrack_dev.db"
    SQL_DEBUG: bool = False

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Order keys
    ORDER_KEY_MAX_LENGTH: int = 40

    # Reordering
    REORDER_TIMEOUT_SECONDS: float = 10.0
    REORDER_ERROR_MESSAGE: str = "Error reordering items. Please try again."

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
