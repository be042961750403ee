"""
Configuration
-------------
Settings are read from environment variables, after loading a .env file if
one is present.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    duplicate_threshold: int = Field(default=70, ge=0, le=100)
    max_workers: Optional[int] = Field(default=None, ge=1)
    chunk_size: int = Field(default=500, ge=1)
    allow_reevaluation: bool = False
    log_level: str = "INFO"
    port: int = 8000


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """Build Settings from the environment (DEDUP_*, LOG_LEVEL, PORT)."""
    load_dotenv()
    max_workers = os.getenv("DEDUP_MAX_WORKERS")
    return Settings(
        duplicate_threshold=int(os.getenv("DEDUP_THRESHOLD", 70)),
        max_workers=int(max_workers) if max_workers else None,
        chunk_size=int(os.getenv("DEDUP_CHUNK_SIZE", 500)),
        allow_reevaluation=_env_bool("DEDUP_ALLOW_REEVALUATION", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=int(os.getenv("PORT", 8000)),
    )
