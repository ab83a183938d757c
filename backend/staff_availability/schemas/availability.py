# backend/staff_availability/schemas/availability.py
"""
Pydantic schemas for availability API.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..services.availability import AppointmentStatus


class ConflictRead(BaseModel):
    """Existing appointment blocking a candidate slot."""
    id: str
    staff_id: str
    start: datetime
    end: datetime
    location_id: Optional[str] = None

    model_config = {"from_attributes": True}


class AppointmentRead(BaseModel):
    id: str
    staff_id: str
    location_id: Optional[str] = None
    start: datetime
    end: datetime
    status: AppointmentStatus
    participant_ids: list[str]

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    staff_id: str
    start: datetime
    end: datetime
    available: bool
    conflicts: list[ConflictRead]
    # Buffer-only violations when the policy is not strict
    warnings: list[ConflictRead] = []

    model_config = {"from_attributes": True}


class ReservationCreate(BaseModel):
    """Reserve request. Group bookings list several participants."""
    id: str
    staff_id: str
    start: datetime
    end: datetime
    location_id: Optional[str] = None
    participant_ids: list[str] = Field(min_length=1)
    status: Literal["pending", "confirmed"] = "confirmed"


class RescheduleRequest(BaseModel):
    start: datetime
    end: datetime
    location_id: Optional[str] = None


class ReservationResponse(BaseModel):
    ok: bool
    conflict: bool
    appointment: Optional[AppointmentRead] = None
    conflicts: list[ConflictRead] = []
    warnings: list[ConflictRead] = []

    model_config = {"from_attributes": True}


class ReleaseResponse(BaseModel):
    ok: bool = True
    released: bool

    model_config = {"from_attributes": True}


class AppointmentSync(BaseModel):
    """Authoritative appointment record pushed by the appointments store."""
    id: str
    staff_id: str
    start: datetime
    end: datetime
    location_id: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    participant_ids: list[str] = []


class StatusChange(BaseModel):
    status: AppointmentStatus


class SlotSuggestionsResponse(BaseModel):
    staff_id: str
    window_start: datetime
    window_end: datetime
    duration_minutes: int
    step_minutes: int = Field(description="Grid step in minutes")
    start_times: list[datetime]
