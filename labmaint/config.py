"""Configuration management for the lab maintenance service."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LABMAINT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    storage_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Backend used by the state manager"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    storage_max_retries: int = Field(
        default=3, ge=1, description="Attempts for single-record writes on storage errors"
    )
    storage_retry_delay: float = Field(
        default=0.2, ge=0, description="Initial storage retry delay in seconds"
    )
    lock_timeout: float = Field(
        default=10.0, gt=0, description="Seconds before a held Redis entity lock expires"
    )
    lock_wait_timeout: float = Field(
        default=5.0, gt=0, description="Seconds to wait for a Redis entity lock"
    )

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_workers: int = Field(default=1, description="Number of API workers")

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # Wear Part Thresholds
    warning_threshold_pct: float = Field(
        default=75.0, gt=0, description="Usage percentage that raises a warning"
    )
    critical_threshold_pct: float = Field(
        default=100.0, gt=0, description="Usage percentage that raises a critical alert"
    )

    # Reports
    report_months: int = Field(
        default=6, ge=1, description="Trailing calendar months in monthly reports"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper

    @model_validator(mode="after")
    def validate_thresholds(self) -> "Settings":
        """Warning threshold must sit below the critical threshold."""
        if self.warning_threshold_pct >= self.critical_threshold_pct:
            raise ValueError("warning_threshold_pct must be lower than critical_threshold_pct")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
