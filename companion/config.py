# companion/config.py
from __future__ import annotations
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llama3:latest"
DEFAULT_GOOGLE_MODEL = "gemini-1.5-flash"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

PROVIDERS = ("openai", "google", "ollama")


class Settings(BaseSettings):
    """Process-wide settings, resolved once at startup and passed to the chat orchestrator.

    Field names match the environment variables (case-insensitive). Values come
    from the process environment first, then a local .env file. Blank values
    fall back to the defaults.
    """

    google_ai_api_key: Optional[str] = None
    google_ai_model: str = DEFAULT_GOOGLE_MODEL
    ollama_base_url: str = DEFAULT_OLLAMA_BASE_URL
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL

    # SQLite file path
    companion_db: str = "companion.db"

    # Seconds
    ai_probe_timeout: float = Field(default=5.0, gt=0)
    ai_request_timeout: float = Field(default=30.0, gt=0)
    ai_turn_timeout: float = Field(default=25.0, gt=0)

    ollama_max_attempts: int = Field(default=2, ge=1)
    chat_history_limit: int = Field(default=10, ge=1)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    @field_validator("google_ai_api_key", "openai_api_key")
    @classmethod
    def _blank_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        return v or None

    @field_validator("ollama_base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.strip().rstrip("/") or DEFAULT_OLLAMA_BASE_URL

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def default_provider(self) -> str:
        return "google" if self.google_ai_api_key else "ollama"


def load_settings() -> Settings:
    return Settings()


settings = load_settings()
