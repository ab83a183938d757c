# backend/staff_availability/dependencies.py
"""
Construction of the availability service and its FastAPI dependency.

One AvailabilityService per process, built in the app lifespan and kept on
app.state; routers receive it through get_availability_service.
"""

import logging

from fastapi import Request

from .config import Settings
from .services.availability import (
    AppointmentIndex,
    AvailabilityService,
    BufferPolicy,
    BufferPolicyStore,
    EngineConfig,
    RedisAppointmentIndex,
    RedisStaffLocks,
    StaffLocks,
)

logger = logging.getLogger(__name__)


def build_availability_service(settings: Settings, config: EngineConfig, redis=None) -> AvailabilityService:
    """Wire index, buffer policy and staff locks for the configured backend."""
    policies = BufferPolicyStore(BufferPolicy(
        global_before_minutes=settings.buffer_before_minutes,
        global_after_minutes=settings.buffer_after_minutes,
        enforced=settings.buffer_enforced,
    ))

    if settings.index_backend == "redis":
        if redis is None:
            raise RuntimeError("index_backend=redis requires REDIS_URL")
        index = RedisAppointmentIndex(redis)
        locks = RedisStaffLocks(redis, config.lock_timeout_seconds)
    else:
        index = AppointmentIndex()
        locks = StaffLocks(config.lock_timeout_seconds)

    logger.info(
        f"Availability service ready: backend={index.backend_name} "
        f"lock_timeout={config.lock_timeout_seconds}s"
    )
    return AvailabilityService(index, policies, locks, config)


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability
