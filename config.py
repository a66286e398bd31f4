"""
Configuration settings for the study cycle tracker.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///study_cycle.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/study_cycle.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Study Cycles
    # ========================================
    cycle_name_max_length: int = Field(
        default=50,
        description="Maximum length of a cycle display name",
    )
    target_minutes_max: int = Field(
        default=1440,
        description="Upper bound for a single item's target (24 hours)",
    )
    history_default_limit: int = Field(
        default=20,
        description="Entries returned by history queries when no limit is given",
    )
    history_max_limit: int = Field(
        default=100,
        description="Largest history page the API accepts",
    )

    def get_cycle_config(self) -> dict[str, int]:
        """Get study cycle limits as a dictionary."""
        return {
            "cycle_name_max_length": self.cycle_name_max_length,
            "target_minutes_max": self.target_minutes_max,
            "history_default_limit": self.history_default_limit,
            "history_max_limit": self.history_max_limit,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
