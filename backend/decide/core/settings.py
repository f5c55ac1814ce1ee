from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
]


class Settings(BaseModel):
    database_url: str = Field(default="sqlite:///./decide.db")
    room_retention_hours: float = Field(default=24)
    cleanup_interval_seconds: float = Field(default=60 * 60)
    start_vote_rate_limit: str = Field(default="30/minute")
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    log_file: Optional[str] = Field(default=None)
    log_level: str = Field(default="INFO")


def _load_origins(raw: str) -> List[str]:
    """
    Optionally override via:
      ALLOWED_ORIGINS="https://decide.example.com"
      (comma-separated list if multiple)
    """
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or list(DEFAULT_ALLOWED_ORIGINS)


def _load_settings() -> Settings:
    env = os.getenv
    database_url = env("DATABASE_URL", "") or "sqlite:///./decide.db"
    room_retention_hours = float(env("ROOM_RETENTION_HOURS", "24"))
    cleanup_interval_seconds = float(env("CLEANUP_INTERVAL_SECONDS", "3600"))
    start_vote_rate_limit = env("START_VOTE_RATE_LIMIT", "30/minute") or "30/minute"
    log_file = env("DECIDE_LOG_FILE")
    if log_file == "":
        log_file = None
    return Settings(
        database_url=database_url,
        room_retention_hours=room_retention_hours,
        cleanup_interval_seconds=cleanup_interval_seconds,
        start_vote_rate_limit=start_vote_rate_limit,
        allowed_origins=_load_origins(env("ALLOWED_ORIGINS", "")),
        log_file=log_file,
        log_level=(env("LOG_LEVEL", "INFO") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load_settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
