"""
Application configuration with environment-driven settings.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_QUESTIONS_FILE = Path(__file__).resolve().parent / "data" / "questions.json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "ivr-survey"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    public_base_url: str = Field(
        default="",
        description="Public base URL the telephony platform uses to reach /callStep",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./ivr_survey.db",
        description="SQLAlchemy async connection URL",
    )
    database_auto_create: bool = Field(
        default=True,
        description="Create missing tables at application startup.",
    )

    # Voice API (recording playback)
    voice_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("voice_api_key", "messagebird_api_key"),
        description="Credential for the external voice API",
    )
    voice_api_base_url: str = Field(default="https://voice.messagebird.com")
    voice_api_auth_scheme: str = Field(default="AccessKey")
    voice_api_timeout_seconds: float = Field(default=30.0, gt=0)

    # Survey call flow
    survey_questions_file: Path = Field(default=DEFAULT_QUESTIONS_FILE)
    survey_voice: str = "male"
    survey_language: str = "en-US"
    record_timeout_seconds: int = Field(default=10, ge=1, le=3600)
    record_finish_on_key: str = "any"

    @field_validator("public_base_url", "voice_api_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalise base URLs so paths can be appended directly."""
        return v.strip().rstrip("/")

    @field_validator("log_level", mode="after")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
