"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Credentials come from the environment or .env, never from code
    - get_settings() is cached (lru_cache) — single instance per process
    - Worker timings are positive and the idle poll never exceeds the backoff cap

Design Decisions:
    - Worker backoff and lease live here, not in the queue: the queue never waits or retries
    - Bad timing values fail at startup (ValidationError), not on the first idle poll
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Foodsharing settings, one env var per field (DATABASE_URL, LOG_LEVEL, ...)."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    database_url: str = (
        "postgresql+asyncpg://foodsharing:foodsharing@db:5432/foodsharing"
    )
    database_pool_size: int = Field(20, ge=1)
    database_max_overflow: int = Field(10, ge=0)

    # A claim older than this is handed back to the queue by the sweep
    upload_lease_seconds: int = Field(900, gt=0)

    worker_poll_interval_ms: int = Field(500, gt=0)
    worker_max_backoff_ms: int = Field(30_000, gt=0)
    worker_reclaim_interval_seconds: int = Field(60, gt=0)

    cors_origins: list[str] = ["http://localhost:5173"]

    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @field_validator("database_url", mode="before")
    @classmethod
    def use_async_driver(cls, v: str) -> str:
        """postgres:// and postgresql:// URLs are rewritten for asyncpg."""
        if isinstance(v, str):
            for prefix in ("postgres://", "postgresql://"):
                if v.startswith(prefix):
                    return "postgresql+asyncpg://" + v[len(prefix):]
        return v

    @model_validator(mode="after")
    def check_backoff_range(self) -> "Settings":
        if self.worker_poll_interval_ms > self.worker_max_backoff_ms:
            raise ValueError(
                "worker_poll_interval_ms must not exceed worker_max_backoff_ms",
            )
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
