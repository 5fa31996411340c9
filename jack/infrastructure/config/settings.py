"""
Configuration for the JACK pipeline.

Values are loaded by pydantic-settings from environment variables prefixed
with ``JACK_`` (e.g. ``JACK_MEMORY_DB_PATH``), then from a ``.env`` file,
then from the defaults below.
"""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings"""

    model_config = SettingsConfigDict(
        env_prefix="JACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Long-term memory database (SQLite file path, or ":memory:")
    memory_db_path: str = "./data/memory.db"

    # Short-term context limits
    max_recent_intents: int = Field(default=3, ge=1)
    intent_expiry_ms: int = Field(default=60_000, gt=0)

    # Memory namespaces merged into the parser context snapshot
    memory_namespaces: List[str] = Field(
        default_factory=lambda: ["user", "preference", "project", "person", "tool"]
    )

    # Alternate plan executor
    plan_max_retries: int = Field(default=2, ge=0)
    plan_step_timeout_seconds: float = Field(default=30.0, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "jack"


@lru_cache
def get_settings() -> Settings:
    return Settings()
