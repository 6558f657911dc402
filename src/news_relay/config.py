# ABOUTME: Centralized configuration using Pydantic Settings.
# ABOUTME: Loads bot, Gemini and schedule settings from environment variables and .env file.

import re
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from news_relay.cron import cron_trigger

CHAT_ID_PATTERN = re.compile(r"^-?\d+$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required credentials and destination
    telegram_bot_token: SecretStr
    gemini_api_key: SecretStr
    target_chat_id: int

    # Schedule
    cron_schedule: str = "*/15 * * * *"
    timezone: str = "Europe/Istanbul"
    run_on_start: bool = False

    # AI / Gemini
    gemini_model: str = "gemini-2.5-flash"
    ai_temperature: float = 0.7
    ai_timeout: float = 60.0
    news_count: int = Field(default=5, gt=0)
    news_topic: str = "Türkiye ve dünya gündemi"
    news_language: str = "Turkish"

    # Telegram
    telegram_api_base: str = "https://api.telegram.org"
    telegram_timeout: float = 30.0
    send_interval: float = 1.0
    max_send_attempts: int = Field(default=5, ge=1)
    rate_limit_margin: float = 1.0
    default_retry_after: float = 5.0
    notify_on_failure: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"

    @field_validator("target_chat_id", mode="before")
    @classmethod
    def _check_chat_id(cls, value: object) -> object:
        if isinstance(value, str) and not CHAT_ID_PATTERN.match(value.strip()):
            raise ValueError(f"invalid chat id {value!r}: must be an integer, optionally negative")
        return value

    @field_validator("cron_schedule")
    @classmethod
    def _check_cron_schedule(cls, value: str) -> str:
        try:
            cron_trigger(value)
        except ValueError as e:
            raise ValueError(f"invalid cron expression {value!r}: {e}") from e
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone used for the schedule and log timestamps."""
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables and .env file.
    TELEGRAM_BOT_TOKEN, GEMINI_API_KEY and TARGET_CHAT_ID are required;
    a missing or malformed value raises pydantic's ValidationError.
    """
    return Settings()
