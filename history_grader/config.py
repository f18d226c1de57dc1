"""
Configuration management for the History Grader system.

Uses Pydantic Settings for type-safe configuration loading from environment variables.
All configuration is validated at startup to fail fast on misconfiguration.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are validated at startup. Missing required fields
    will raise clear validation errors.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Grading Service Configuration
    # ==========================================================================
    ai_api_key: str = Field(
        ...,
        description="API key for the grading service (OpenAI-compatible endpoint)",
        min_length=10,
    )

    ai_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai",
        description="Base URL for the grading service API",
    )

    ai_model: str = Field(
        default="gemini-2.5-pro",
        description="Model used for both structural and essay grading",
    )

    llm_temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Temperature for LLM generation (0.0 = deterministic)",
    )

    request_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Timeout for a single grading request",
    )

    feedback_language: str = Field(
        default="Malay",
        min_length=1,
        description="Language the grading service writes its comments in",
    )

    # ==========================================================================
    # Exam Session Configuration
    # ==========================================================================
    section_a_seconds: int = Field(
        default=30 * 60,
        gt=0,
        description="Countdown for the Section A (structural) step",
    )

    essay_seconds: int = Field(
        default=45 * 60,
        gt=0,
        description="Countdown for each Section B (essay) step",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(
        default="INFO",
        description="Root log level used by the command line interface",
    )

    @field_validator("ai_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL doesn't have trailing slash."""
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    """
    return Settings()
