"""Process-wide settings for the extraction pipeline and its model backends."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings, validated by pydantic.

    Read from environment variables (case-insensitive) and an optional
    ``.env`` file. :class:`src.pipeline_config.PipelineConfig` is the per-run
    view of the pipeline knobs below.
    """

    # Model backends
    llm_provider: str = ""  # "anthropic" | "openai" | "azure_openai" | "ollama"; empty = auto
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    openai_organization: str = ""
    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    azure_openai_deployment: str = ""
    azure_openai_api_version: str = "2024-02-15-preview"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1"

    # Model call parameters
    llm_model: str = "claude-sonnet-4-20250514"
    openai_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 4096
    llm_timeout_seconds: float = 60.0

    # Retry policy for every model call
    retry_max_attempts: int = 3
    retry_initial_delay_seconds: float = 1.0
    retry_backoff_factor: float = 2.0
    retry_max_delay_seconds: float = 5.0

    # Pipeline
    chunk_size: int = 4000
    chunk_overlap: int = 200
    default_timezone: str = "UTC"
    parse_email_threads: bool = True
    max_email_depth: int = 10
    extraction_workers: int = 1
    extract_meeting_minutes: bool = True

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build the settings once per process.

    An unreadable ``.env`` is skipped so the CLI still starts from plain
    environment variables.
    """
    try:
        return Settings()
    except (OSError, UnicodeDecodeError):
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
