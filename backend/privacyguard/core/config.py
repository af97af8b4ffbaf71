"""Application settings via pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Load from environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "PrivacyGuard Backend"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Valkey (Redis-compatible) store
    valkey_host: str = "localhost"
    valkey_port: int = 6379
    valkey_password: str | None = None
    valkey_db: int = 0

    # Classification gateway
    llm_provider: Literal["gemini", "openai", "example"] = "gemini"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str | None = None
    llm_temperature: float = 0.2
    llm_max_output_tokens: int = 1500
    llm_timeout_seconds: int = 60
    llm_max_retries: int = 5
    llm_initial_retry_delay_seconds: float = 5.0

    # Direct-vs-chunked thresholds
    classifier_token_threshold: int = 2000
    classifier_char_threshold: int = 7000
    chunk_max_chars: int = 6000
    chunk_delay_seconds: float = 10.0

    # Policy discovery
    fetch_timeout_seconds: float = 15.0
    fetch_max_redirects: int = 5
    fetch_verify_tls: bool = True
    fetch_retries: int = 1
    min_agreement_length: int = 500
    provider_profiles_path: Path | None = None

    # Batch processing
    pending_batch_limit: int = 100
    batch_concurrency: int = 3
    scheduler_enabled: bool = True
    scheduler_interval_minutes: int = 600


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
