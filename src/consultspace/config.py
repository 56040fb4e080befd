"""Configuration for the Consultant Space booking core."""

from __future__ import annotations

from functools import lru_cache

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


class Settings(BaseSettings):
    """Runtime settings loaded from environment."""

    api_base_url: str = "http://localhost:5000/api"
    api_token: SecretStr = SecretStr("")
    request_timeout_seconds: float = 30.0

    # All session start times are interpreted in this zone.
    timezone: str = "UTC"
    cancellation_cutoff_hours: int = 24

    # Amounts are integer minor units (paise for INR).
    currency: str = "INR"
    platform_fee_percent: int = 10
    max_payment_amount: int = 100_000_000

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="CONSULTSPACE_", env_file=".env")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
