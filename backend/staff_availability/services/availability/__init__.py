# backend/staff_availability/services/availability/__init__.py
"""
Staff availability and cross-location conflict detection.

Level 1: Interval / AppointmentInterval / BufferPolicy (values)
Level 2: AppointmentIndex, BufferPolicyStore, StaffLocks (owned state)
Level 3: AvailabilityService (check, reserve, reschedule, release)
"""

from .appointment import AppointmentInterval, AppointmentStatus
from .buffer_policy import BufferPolicy, BufferPolicyStore, ResolvedBuffer, TimeBufferRule
from .config import EngineConfig, get_engine_config
from .conflicts import find_conflicts
from .errors import (
    AvailabilityError,
    DuplicateAppointment,
    InvalidBufferPolicy,
    InvalidInterval,
    InvalidQuery,
    StoreUnavailable,
    UnknownAppointment,
)
from .index import AppointmentIndex
from .interval import Interval
from .loader import load_active_appointments
from .locks import RedisStaffLocks, StaffLocks
from .redis_index import RedisAppointmentIndex
from .service import AvailabilityResult, AvailabilityService, ReleaseResult, ReservationResult

__all__ = [
    "AppointmentIndex",
    "AppointmentInterval",
    "AppointmentStatus",
    "AvailabilityError",
    "AvailabilityResult",
    "AvailabilityService",
    "BufferPolicy",
    "BufferPolicyStore",
    "DuplicateAppointment",
    "EngineConfig",
    "InvalidBufferPolicy",
    "InvalidInterval",
    "InvalidQuery",
    "Interval",
    "RedisAppointmentIndex",
    "RedisStaffLocks",
    "ReleaseResult",
    "ReservationResult",
    "ResolvedBuffer",
    "StaffLocks",
    "StoreUnavailable",
    "TimeBufferRule",
    "UnknownAppointment",
    "find_conflicts",
    "get_engine_config",
    "load_active_appointments",
]
