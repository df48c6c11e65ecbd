"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    nexus_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    nexus_debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    nexus_log_dir: str | None = Field(
        default=None,
        description="Directory for rotating log files (no file sink when unset)",
    )

    # Batch planning
    nexus_max_batch_size: int = Field(
        default=7,
        ge=1,
        le=100,
        description="Maximum number of tasks per execution batch",
    )

    # Context allocation
    nexus_min_context_lines: int = Field(
        default=200,
        ge=0,
        description="Smallest context budget handed to a task (lines)",
    )
    nexus_max_context_lines: int = Field(
        default=2000,
        ge=1,
        description="Largest context budget handed to a task (lines)",
    )
    nexus_context_mode: Literal["adaptive", "full", "minimal"] = Field(
        default="adaptive",
        description="Context sizing strategy",
    )

    # Task synthesis
    nexus_default_size_category: Literal["XS", "S", "M", "L"] = Field(
        default="M",
        description="Size category for requirements without an estimate",
    )
    nexus_integration_size_category: Literal["XS", "S", "M", "L"] = Field(
        default="M",
        description="Size category of synthesized integration tasks",
    )
    nexus_doc_size_category: Literal["XS", "S", "M", "L"] = Field(
        default="XS",
        description="Size category of synthesized documentation tasks",
    )

    # Analysis
    nexus_high_confidence_threshold: float = Field(
        default=85.0,
        ge=0,
        le=100,
        description="Confidence at or above which a task is high confidence",
    )
    nexus_low_confidence_threshold: float = Field(
        default=70.0,
        ge=0,
        le=100,
        description="Confidence below which a task is low confidence",
    )

    @model_validator(mode="after")
    def validate_windows(self) -> "Settings":
        """Reject inverted context windows and confidence bands."""
        if self.nexus_min_context_lines > self.nexus_max_context_lines:
            raise ValueError(
                "nexus_min_context_lines must not exceed nexus_max_context_lines"
            )
        if self.nexus_low_confidence_threshold > self.nexus_high_confidence_threshold:
            raise ValueError(
                "nexus_low_confidence_threshold must not exceed "
                "nexus_high_confidence_threshold"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.nexus_max_batch_size
        7
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
