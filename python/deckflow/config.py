"""Application settings loaded from environment variables.

Environment Configuration:
    DECKFLOW_ENV: Deployment environment (local | test | staging | prod)
    LOG_JSON: Emit JSON logs (true) or console-friendly logs (false)

Provider Configuration:
    LLM_BASE_URL: Base URL of the completion proxy
    LLM_APP_TOKEN: Bearer credential sent to the proxy (required in staging/prod)
    ANTHROPIC_MODEL: Model identifier sent in every request
    ANTHROPIC_MESSAGES_PATH: Path appended to LLM_BASE_URL
    ANTHROPIC_MAX_TOKENS_CEILING: Provider ceiling that max_tokens is clamped to
    LLM_TIMEOUT_S: Per-request timeout enforced by the transport

Streaming Configuration:
    STREAM_CHUNK_CHARS: Characters per paced chunk delivered to the consumer
    STREAM_MIN_INTERVAL_MS: Minimum delay between paced chunks

Settings are read-only after construction. Clients receive a ProviderConfig
built from them rather than reading settings at call time.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from deckflow.services.llm.types import ProviderConfig


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - LLM_APP_TOKEN is required in staging and prod only
    - STREAM_CHUNK_CHARS must be at least 1
    - STREAM_MIN_INTERVAL_MS must not be negative
    """

    deckflow_env: Environment = Field(default=Environment.LOCAL, alias="DECKFLOW_ENV")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Completion proxy
    llm_base_url: str = Field(default="http://localhost:8787", alias="LLM_BASE_URL")
    llm_app_token: str | None = Field(default=None, alias="LLM_APP_TOKEN")
    llm_timeout_s: int = Field(default=45, alias="LLM_TIMEOUT_S")

    # Anthropic-shaped messages endpoint
    anthropic_model: str = Field(default="claude-3-5-haiku-20241022", alias="ANTHROPIC_MODEL")
    anthropic_messages_path: str = Field(
        default="/anthropic/v1/messages", alias="ANTHROPIC_MESSAGES_PATH"
    )
    anthropic_max_tokens_ceiling: int = Field(default=8192, alias="ANTHROPIC_MAX_TOKENS_CEILING")
    deck_max_tokens: int = Field(default=6000, alias="DECK_MAX_TOKENS")

    # Delta pacing
    stream_chunk_chars: int = Field(default=80, alias="STREAM_CHUNK_CHARS")
    stream_min_interval_ms: int = Field(default=18, alias="STREAM_MIN_INTERVAL_MS")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure provider credentials exist where they are mandatory."""
        if self.deckflow_env in (Environment.STAGING, Environment.PROD):
            if not self.llm_app_token:
                raise ValueError(
                    f"LLM_APP_TOKEN is required for DECKFLOW_ENV={self.deckflow_env.value}"
                )

        if self.stream_chunk_chars < 1:
            raise ValueError("STREAM_CHUNK_CHARS must be at least 1")

        if self.stream_min_interval_ms < 0:
            raise ValueError("STREAM_MIN_INTERVAL_MS must not be negative")

        if self.anthropic_max_tokens_ceiling < 1:
            raise ValueError("ANTHROPIC_MAX_TOKENS_CEILING must be at least 1")

        return self

    @property
    def stream_min_interval_s(self) -> float:
        """Pacing interval in seconds."""
        return self.stream_min_interval_ms / 1000

    def provider_config(self) -> ProviderConfig:
        """Build the immutable provider configuration handed to clients."""
        return ProviderConfig(
            base_url=self.llm_base_url,
            path=self.anthropic_messages_path,
            api_key=self.llm_app_token or "",
            model=self.anthropic_model,
            max_tokens_ceiling=self.anthropic_max_tokens_ceiling,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
