"""
Settings for the trip conductor, read from the environment and ``.env``.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal

# Default endpoints of the OpenAI-compatible providers
PROVIDER_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "mistral": "https://api.mistral.ai/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "ollama": "http://localhost:11434/v1",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Plan generation and edit proposals
    llm_provider: Literal["openai", "mistral", "openrouter", "ollama", "mock"] = "mock"
    llm_api_key: str = "ollama"  # Ollama ignores the key
    llm_base_url: str = ""
    llm_model: str = "mistral"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 3000
    llm_timeout_seconds: float = 120.0

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True
    log_level: str = "INFO"

    # Entitlements
    free_trip_limit: int = 1
    subscription_status: Literal["free", "active", "trialing", "canceled", "past_due"] = "free"

    # Wizard progress and saved plans
    storage_backend: Literal["memory", "sqlite"] = "memory"
    storage_path: str = "conductor.db"

    # Where user notifications go: UI toasts or the log
    notifier_backend: Literal["toast", "log"] = "toast"
    # How long toasts stay visible
    notification_duration_ms: int = 3000
    error_notification_duration_ms: int = 5000

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {v!r}")
        return level

    @field_validator("free_trip_limit")
    @classmethod
    def validate_free_trip_limit(cls, v: int) -> int:
        if v < 0:
            raise ValueError("free_trip_limit must not be negative")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# Global settings instance
settings = Settings()


def get_llm_config() -> dict:
    """Connection and sampling parameters for the selected provider."""
    return {
        "provider": settings.llm_provider,
        "api_key": settings.llm_api_key,
        "base_url": settings.llm_base_url or PROVIDER_BASE_URLS.get(settings.llm_provider, ""),
        "model": settings.llm_model,
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
        "timeout": settings.llm_timeout_seconds,
    }
