"""
VoxChat Configuration Management

Centralized configuration using pydantic-settings with environment variable support.
The transcription backend credential is required; everything else has a default.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when the process cannot start with the current configuration."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ══════════════════════════════════════════════════════════════
    # Application
    # ══════════════════════════════════════════════════════════════
    app_name: str = "VoxChat"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]

    # ══════════════════════════════════════════════════════════════
    # Server
    # ══════════════════════════════════════════════════════════════
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    static_dir: str = "public"

    # ══════════════════════════════════════════════════════════════
    # Deepgram Live Transcription
    # ══════════════════════════════════════════════════════════════
    deepgram_api_key: str = Field(min_length=1)
    deepgram_url: str = "wss://api.deepgram.com/v1/listen"

    transcription_model: str = "nova"
    transcription_language: str | None = None
    transcription_encoding: str = "linear16"
    transcription_sample_rate: int = Field(default=16000, ge=8000, le=48000)
    transcription_channels: int = Field(default=1, ge=1, le=2)
    transcription_keepalive_interval: float = Field(default=10.0, gt=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Raises:
        ConfigurationError: if a required setting (the Deepgram API key) is missing
            or any value fails validation.
    """
    try:
        return Settings()
    except ValidationError as e:
        fields = [
            ".".join(str(part) for part in error["loc"]).upper()
            for error in e.errors()
        ]
        raise ConfigurationError(
            f"Invalid configuration, check: {', '.join(fields)}"
        ) from e
