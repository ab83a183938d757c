"""Shared fixtures for availability engine tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from staff_availability.services.availability import (
    AppointmentIndex,
    AppointmentInterval,
    AppointmentStatus,
    AvailabilityService,
    BufferPolicyStore,
    EngineConfig,
    StaffLocks,
)

DAY = datetime(2026, 3, 2)


def at(hour: int, minute: int = 0) -> datetime:
    """Time of day on the shared test date."""
    return DAY.replace(hour=hour, minute=minute)


def make_appointment(
    appointment_id: str,
    start: datetime,
    end: datetime,
    staff_id: str = "S1",
    location_id: str | None = "L1",
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    participant_ids: tuple[str, ...] = ("c1",),
) -> AppointmentInterval:
    return AppointmentInterval(
        id=appointment_id,
        staff_id=staff_id,
        location_id=location_id,
        start=start,
        end=end,
        status=status,
        participant_ids=participant_ids,
    )


@pytest.fixture()
def engine_config() -> EngineConfig:
    return EngineConfig(lock_timeout_seconds=1.0, slot_step_minutes=15, max_suggestions=20)


@pytest.fixture()
def service(engine_config: EngineConfig) -> AvailabilityService:
    return AvailabilityService(
        AppointmentIndex(),
        BufferPolicyStore(),
        StaffLocks(engine_config.lock_timeout_seconds),
        engine_config,
    )
