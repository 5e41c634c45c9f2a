# ABOUTME: Configuration settings for the interactive event engine using Pydantic Settings.
# ABOUTME: Loads environment variables (nested policies via `__`) and provides type-safe configuration access.

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from trpg_events.mechanics.difficulty import DifficultyPolicy
from trpg_events.mechanics.penalties import PenaltyPolicy, RetryPolicy


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    # OpenAI API Configuration
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key for the reasoning service"
    )
    openai_model: str = Field(
        default="gpt-4o",
        description="OpenAI model used for interpretation, evaluation and narration"
    )
    openai_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout for a single reasoning service call"
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for reasoning service calls"
    )

    # Storage Configuration
    session_store: Literal["memory", "redis"] = Field(
        default="memory",
        description="Session store backend"
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL"
    )
    session_ttl_seconds: int | None = Field(
        default=None,
        description="Optional expiry for Redis session keys"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_dir: str = Field(
        default="logs",
        description="Directory for rotating log files"
    )
    log_to_file: bool = Field(
        default=False,
        description="Write logs to rotating files in log_dir"
    )

    # Game Rules
    default_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts allowed per event session"
    )
    difficulty: DifficultyPolicy = Field(default_factory=DifficultyPolicy)
    penalties: PenaltyPolicy = Field(default_factory=PenaltyPolicy)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )


# Singleton settings instance - lazy initialization to allow import without .env
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
