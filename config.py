"""
Configuration settings for the lingoloop learning engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOME = Path.home() / ".lingoloop"
BUNDLED_CONTENT_DIR = Path(__file__).resolve().parent / "lingoloop" / "lessons"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_HOME / 'state.db'}",
        description="SQLAlchemy URL for mastery, attempt and onboarding storage",
    )
    content_dir: str = Field(
        default=str(BUNDLED_CONTENT_DIR),
        description="Directory of lesson JSON files (defaults to the bundled lessons)",
    )
    session_dir: str = Field(
        default=str(DEFAULT_HOME / "sessions"),
        description="Directory for saved runner state (resume after crash)",
    )
    session_expiry_hours: int = Field(
        default=24,
        description="Saved sessions older than this are discarded",
    )
    catalog_cache_ttl_seconds: float = Field(
        default=30.0,
        description="How long catalog reads may be served from cache",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Session Runner
    # ========================================
    runner_retry_cap: int = Field(
        default=2,
        ge=1,
        description="Attempts allowed per card before the runner moves on",
    )

    # ========================================
    # Session Planning
    # ========================================
    review_session_limit: int = Field(
        default=20,
        ge=1,
        description="Maximum cards in a review session",
    )
    free_response_min_share: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Free-response share of practice cards at challenge weight 0",
    )
    free_response_max_share: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Free-response share of practice cards at challenge weight 1",
    )
    high_challenge_threshold: float = Field(
        default=0.7,
        description="Challenge weight at which production translation is preferred",
    )
    max_same_kind_in_row: int = Field(
        default=2,
        ge=1,
        description="Maximum consecutive practice cards of one kind",
    )
    time_buffer_ratio: float = Field(
        default=0.2,
        ge=0.0,
        lt=1.0,
        description="Share of the session_minutes budget left unplanned",
    )

    # ========================================
    # Spaced Repetition
    # ========================================
    srs_min_interval_minutes: int = Field(
        default=10,
        ge=1,
        description="Interval after a miss or a first observation",
    )
    srs_growth_factor: float = Field(
        default=3.0,
        gt=1.0,
        description="Interval multiplier per consecutive correct answer",
    )
    srs_max_interval_days: int = Field(
        default=180,
        ge=1,
        description="Upper bound on review interval",
    )
    srs_max_write_retries: int = Field(
        default=5,
        ge=1,
        description="Optimistic write attempts before a conflict is surfaced",
    )

    def get_runner_config(self) -> dict[str, Any]:
        """Get session runner configuration as a dictionary."""
        return {
            "retry_cap": self.runner_retry_cap,
        }

    def get_plan_config(self) -> dict[str, Any]:
        """Get session planning configuration as a dictionary."""
        return {
            "review_session_limit": self.review_session_limit,
            "free_response_min_share": self.free_response_min_share,
            "free_response_max_share": self.free_response_max_share,
            "high_challenge_threshold": self.high_challenge_threshold,
            "max_same_kind_in_row": self.max_same_kind_in_row,
            "time_buffer_ratio": self.time_buffer_ratio,
        }

    def get_srs_config(self) -> dict[str, Any]:
        """Get spaced repetition configuration as a dictionary."""
        return {
            "min_interval_minutes": self.srs_min_interval_minutes,
            "growth_factor": self.srs_growth_factor,
            "max_interval_days": self.srs_max_interval_days,
            "max_write_retries": self.srs_max_write_retries,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
