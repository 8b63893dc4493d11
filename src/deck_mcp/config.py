"""Configuration management for Deck MCP."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeckSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    tmux_path: str | None = Field(default=None, validation_alias="TMUX_PATH")
    session_prefix: str = Field(default="deck_", validation_alias="DECK_SESSION_PREFIX")
    gemini_config_dir: Path = Field(
        default=Path("~/.gemini"), validation_alias="DECK_GEMINI_CONFIG_DIR"
    )
    gemini_yolo_default: bool = Field(default=False, validation_alias="DECK_GEMINI_YOLO_MODE")
    google_api_key: str | None = Field(default=None, validation_alias="GOOGLE_API_KEY")
    gemini_models_override: str | None = Field(
        default=None, validation_alias="GEMINI_MODELS_OVERRIDE"
    )
    model_cache_ttl_seconds: int = Field(default=3600, validation_alias="DECK_MODEL_CACHE_TTL")
    log_level: str = Field(default="INFO", validation_alias="DECK_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "DECK_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("session_prefix")
    @classmethod
    def _validate_session_prefix(cls, value: str) -> str:
        if any(char in value for char in ".:"):
            raise ValueError("DECK_SESSION_PREFIX must not contain '.' or ':'")
        return value

    @field_validator("model_cache_ttl_seconds")
    @classmethod
    def _validate_model_cache_ttl(cls, value: int) -> int:
        if value < 1:
            raise ValueError("DECK_MODEL_CACHE_TTL must be >= 1")
        return value


@lru_cache(maxsize=1)
def get_settings() -> DeckSettings:
    """Return cached settings instance."""

    settings = DeckSettings()
    settings.gemini_config_dir = settings.gemini_config_dir.expanduser().resolve()
    return settings


__all__ = ["DeckSettings", "get_settings"]
