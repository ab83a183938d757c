# backend/staff_availability/services/availability/config.py
"""
Engine configuration for availability checks and reservations.
"""

from dataclasses import dataclass
from functools import lru_cache

from ...config import settings

SLOT_STEPS = (5, 10, 15, 30, 60)


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for the availability engine.

    Attributes:
        lock_timeout_seconds: Max wait for a staff lock before failing closed
        slot_step_minutes: Grid step for slot suggestions (5/10/15/30/60)
        max_suggestions: Upper bound on suggested start times per query
    """
    lock_timeout_seconds: float = 5.0
    slot_step_minutes: int = 15
    max_suggestions: int = 20

    def __post_init__(self):
        """Validate configuration."""
        if self.lock_timeout_seconds <= 0:
            raise ValueError(f"lock_timeout_seconds must be positive, got {self.lock_timeout_seconds}")
        if self.slot_step_minutes not in SLOT_STEPS:
            raise ValueError(f"slot_step_minutes must be 5, 10, 15, 30, or 60, got {self.slot_step_minutes}")
        if self.max_suggestions < 1:
            raise ValueError(f"max_suggestions must be at least 1, got {self.max_suggestions}")


@lru_cache
def get_engine_config() -> EngineConfig:
    """Get engine configuration (singleton), built from application settings."""
    return EngineConfig(
        lock_timeout_seconds=settings.lock_timeout_seconds,
        slot_step_minutes=settings.slot_step_minutes,
        max_suggestions=settings.max_suggestions,
    )
