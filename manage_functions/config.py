# /manage_functions/config.py
from __future__ import annotations

import os

from pydantic import BaseModel


class Settings(BaseModel):
    API_KEY: str | None = os.getenv("API_KEY")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Host specifications
    MAX_HOSTS: int = int(os.getenv("MAX_HOSTS", "4095"))  # same as the manager default

    # Schedules
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")
    RECURRENCE_HORIZON_YEARS: int = int(os.getenv("RECURRENCE_HORIZON_YEARS", "100"))
    RECURRENCE_MAX_STEPS: int = int(os.getenv("RECURRENCE_MAX_STEPS", "100000"))

    # Meta store ("settings" or "redis")
    META_BACKEND: str = os.getenv("META_BACKEND", "settings")
    META_KEY: str = os.getenv("META_KEY", "meta")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")


settings = Settings()
