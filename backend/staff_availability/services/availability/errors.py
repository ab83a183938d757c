# backend/staff_availability/services/availability/errors.py
"""
Availability engine errors.

Conflicts are NOT errors: reserve/reschedule return them as result values.
"""


class AvailabilityError(Exception):
    """Base exception for the availability engine."""


class InvalidInterval(AvailabilityError):
    """Interval end is not strictly after its start."""


class InvalidBufferPolicy(AvailabilityError):
    """Buffer minutes must be non-negative integers."""


class UnknownAppointment(AvailabilityError):
    """Operation requires an appointment the index does not hold."""

    def __init__(self, appointment_id: str):
        self.appointment_id = appointment_id
        super().__init__(f"Appointment {appointment_id} is not indexed")


class StoreUnavailable(AvailabilityError):
    """
    Index or staff lock could not be reached in time.

    Callers must treat this as "availability unknown", never as "available".
    """


class DuplicateAppointment(AvailabilityError):
    """Appointment id is already reserved for a different staff member."""


class InvalidQuery(AvailabilityError):
    """Search parameters outside the configured bounds."""
