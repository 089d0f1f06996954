"""
Docspec Configuration

Single source of truth for all configuration.
Uses Pydantic Settings for environment variable parsing.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Docspec configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOCSPEC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", description="Environment: local, staging, production")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # LLM oracle (OpenAI-compatible chat completion endpoint)
    llm_api_url: str = Field(default="https://api.openai.com/v1/chat/completions")
    llm_api_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DOCSPEC_LLM_API_TOKEN", "LLM_API_TOKEN"),
    )
    llm_model: str = Field(default="gpt-4o")
    llm_temperature: float = Field(default=0.0)
    llm_top_p: float = Field(default=1.0)
    llm_max_tokens: int = Field(default=8192)
    llm_timeout_seconds: float = Field(default=120.0)
    llm_max_attempts: int = Field(default=3)
    llm_retry_backoff_seconds: float = Field(
        default=1.0,
        description="Initial backoff between oracle attempts; doubles per attempt",
    )

    # Page fetching
    fetch_timeout_seconds: float = Field(default=30.0)
    fetch_user_agent: str = Field(default="Docspec-Scraper/1.0")
    browser_load_timeout_seconds: float = Field(default=60.0)
    browser_settle_ms: int = Field(default=2000)

    # Pipeline limits
    discovery_max_chars: int = Field(default=10000)
    extraction_max_chars: int = Field(default=8000)
    extraction_fallback_to_basic: bool = Field(
        default=False,
        description="Degrade failed detail extraction to a descriptor-only endpoint",
    )
    judge_enabled: bool = Field(default=True)
    judge_timeout_seconds: float = Field(default=30.0)
    max_auto_retries: int = Field(
        default=0,
        description="Synthesis reruns triggered automatically by a retry verdict",
    )

    # Job orchestration
    job_workers: int = Field(default=5)
    job_retention_seconds: float = Field(default=300.0)
    job_sweep_interval_seconds: float = Field(default=60.0)

    # Metrics Mode: off (no metrics), basic (core only), full (all metrics)
    metrics_mode: str = Field(
        default="full",
        description="Metrics registration mode: off, basic, or full"
    )

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    @model_validator(mode='after')
    def check_workers(self) -> 'Settings':
        if self.job_workers < 1:
            raise ValueError("job_workers must be at least 1")
        if self.env != "local" and not self.llm_api_token:
            logging.getLogger("docspec.config").warning(
                "Running in %s without an LLM API token; jobs will fail unless a token is supplied per job",
                self.env,
            )
        return self

    @property
    def llm_configured(self) -> bool:
        return bool(self.llm_api_token)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
