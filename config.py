"""
Configuration settings for the quizflow assessment engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="QUIZFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Progress persistence
    # ========================================
    progress_save_mode: Literal["immediate", "debounced"] = Field(
        default="immediate",
        description="Write every change through, or buffer and flush on a timer",
    )
    progress_flush_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Debounced mode flush interval",
    )
    progress_backend: Literal["json", "sqlite"] = Field(
        default="json",
        description="Storage backend used by the CLI",
    )
    progress_store_dir: Path = Field(
        default=Path.home() / ".quizflow" / "progress",
        description="Directory for the JSON file backend",
    )
    progress_db_path: Path = Field(
        default=Path.home() / ".quizflow" / "progress.db",
        description="Database file for the SQLite backend",
    )
    progress_version_check: bool = Field(
        default=True,
        description="Reject writes based on a stale record version (two tabs, one attempt)",
    )

    # ========================================
    # Scoring & remediation
    # ========================================
    retry_xp_multiplier: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="XP multiplier applied to attempts after the first",
    )
    remediation_max_suggestions: int | None = Field(
        default=None,
        ge=0,
        description="Cap on remediation suggestions per submission (None = unlimited)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(default="INFO", description="loguru level for the CLI sink")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
