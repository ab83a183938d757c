# backend/staff_availability/services/availability/appointment.py
"""
Appointment interval record as seen by the availability engine.

location_id is informational only: a staff member is one resource
regardless of which location (salon or home service) the slot belongs to.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from .interval import Interval, to_utc_naive


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def occupies_resource(self) -> bool:
        """Whether an appointment in this status blocks the staff member's time."""
        return _OCCUPANCY[self]


# Every status must be listed; a KeyError here means a new status
# was added without deciding its occupancy.
_OCCUPANCY = {
    AppointmentStatus.PENDING: True,
    AppointmentStatus.CONFIRMED: True,
    AppointmentStatus.CHECKED_IN: True,
    AppointmentStatus.COMPLETED: False,
    AppointmentStatus.CANCELLED: False,
}


@dataclass(frozen=True)
class AppointmentInterval:
    id: str
    staff_id: str
    location_id: str | None
    start: datetime
    end: datetime
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    participant_ids: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "start", to_utc_naive(self.start))
        object.__setattr__(self, "end", to_utc_naive(self.end))
        # Validates start < end
        Interval(self.start, self.end)
        if not isinstance(self.status, AppointmentStatus):
            object.__setattr__(self, "status", AppointmentStatus(self.status))
        object.__setattr__(self, "participant_ids", tuple(self.participant_ids))

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def is_active(self) -> bool:
        return self.status.occupies_resource

    def with_status(self, status: AppointmentStatus) -> "AppointmentInterval":
        return replace(self, status=status)

    def moved_to(
        self,
        start: datetime,
        end: datetime,
        location_id: str | None = None,
    ) -> "AppointmentInterval":
        """Copy with a new time slot; location is kept unless a new one is given."""
        return replace(
            self,
            start=start,
            end=end,
            location_id=location_id if location_id is not None else self.location_id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "location_id": self.location_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "status": self.status.value,
            "participant_ids": list(self.participant_ids),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AppointmentInterval":
        return cls(
            id=data["id"],
            staff_id=data["staff_id"],
            location_id=data.get("location_id"),
            start=datetime.fromisoformat(data["start"]),
            end=datetime.fromisoformat(data["end"]),
            status=AppointmentStatus(data.get("status", AppointmentStatus.CONFIRMED.value)),
            participant_ids=tuple(data.get("participant_ids") or ()),
        )
