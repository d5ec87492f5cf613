# residency/config.py

"""Runtime settings from environment (RESIDENCY_*) or a local .env file."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RESIDENCY_", env_file=".env", extra="ignore")

    rules_path: Optional[str] = None
    time_zone: str = "UTC"
    log_level: str = "INFO"
    assume_us_mdy: bool = True

    @field_validator("time_zone", "log_level", mode="before")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return (v or "").strip()


@lru_cache
def get_settings() -> Settings:
    return Settings()
