# backend/staff_availability/config.py

from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    # Appointments store; when set, the index is hydrated from it on startup
    database_url: Optional[str] = None
    # Required when index_backend == "redis"
    redis_url: Optional[str] = None
    index_backend: Literal["memory", "redis"] = "memory"

    lock_timeout_seconds: float = 5.0
    slot_step_minutes: int = 15
    max_suggestions: int = 20

    # Initial buffer policy
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    buffer_enforced: bool = False

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return upper

    @property
    def resolved_database_url(self) -> Optional[str]:
        url = self.database_url
        if url and url.startswith("sqlite:///./"):
            # Relative sqlite path → absolute, anchored at the repo root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
