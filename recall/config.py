"""
Configuration settings for recall.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

import os
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
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path.home() / ".recall",
        description="Directory holding the schedule database",
    )
    database_path: Path | None = Field(
        default=None,
        description="SQLite file for schedule rows (defaults to <data_dir>/cards.db)",
    )

    # ========================================
    # Scheduling
    # ========================================
    desired_retention: float = Field(
        default=0.9,
        description="Target recall probability used by the forecasting model",
    )
    learn_ahead_minutes: int = Field(
        default=20,
        description="Cards due within this window are pulled into the current session",
    )

    # ========================================
    # Ingestion
    # ========================================
    document_extensions: list[str] = Field(
        default=["md"],
        description="File extensions treated as card documents (case-insensitive)",
    )
    ingest_workers: int | None = Field(
        default=None,
        description="Parser worker threads (defaults to CPU count)",
    )

    # ========================================
    # LLM Helper (card enhancement)
    # ========================================
    openai_api_key: str | None = Field(
        default=None,
        description="API key for the text-rewriting service",
    )
    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API",
    )
    llm_model: str = Field(
        default="gpt-5-nano",
        description="Model used to add cloze deletions and rephrase questions",
    )
    llm_timeout_seconds: float = Field(
        default=60.0,
        description="Per-request timeout for the rewriting service",
    )
    llm_max_output_tokens: int = Field(
        default=5000,
        description="Upper bound on tokens returned per rewrite",
    )
    max_concurrent_llm_requests: int = Field(
        default=4,
        description="In-flight rewrite requests during a drill session",
    )

    # ========================================
    # Drill Session
    # ========================================
    drill_poll_interval_ms: int = Field(
        default=50,
        description="Upper bound on how long the drill loop waits for a key press",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def resolved_database_path(self) -> Path:
        """Return the schedule database path (its directory is created by the store)."""
        return self.database_path or self.data_dir / "cards.db"

    def resolved_ingest_workers(self) -> int:
        """Number of parser threads to run during ingestion."""
        return self.ingest_workers or os.cpu_count() or 1


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
