"""
Application Settings

Environment-driven configuration for the sqlperf harness and its status API.
Values are read from the process environment and an optional `.env` file.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central settings object (upper-case names match the environment)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # Application
    APP_NAME: str = "sqlperf"
    APP_DEBUG: bool = False
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str | None = None

    # Results sink
    RESULTS_LOCATION: str = "./results/sql/performance"
    RESULTS_TABLE_NAME: str = "sqlPerformance"
    RESULTS_FORMAT: Literal["json", "parquet"] = "json"

    # Experiment defaults
    DEFAULT_ITERATIONS: int = Field(3, ge=1)
    STATUS_TAIL_LINES: int = Field(5, ge=0)
    REGISTRY_MAX_EXPERIMENTS: int = Field(50, ge=1)


settings = Settings()
