# backend/staff_availability/routers/availability.py
"""
Availability API endpoints.

GET  /availability/check        - Is staff free for a slot (advisory)
GET  /availability/suggestions  - Free start times in a window (advisory)
POST /availability/reservations - Atomic check-and-reserve
POST /availability/reservations/{id}/reschedule
DELETE /availability/reservations/{id} - Idempotent release

Appointment feed (from the appointments store):
POST /availability/feed/appointments
POST /availability/feed/appointments/{id}/status
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from ..dependencies import get_availability_service
from ..schemas.availability import (
    AppointmentRead,
    AppointmentSync,
    AvailabilityResponse,
    ConflictRead,
    ReleaseResponse,
    ReservationCreate,
    ReservationResponse,
    RescheduleRequest,
    SlotSuggestionsResponse,
    StatusChange,
)
from ..services.availability import (
    AppointmentInterval,
    AppointmentStatus,
    AvailabilityError,
    AvailabilityService,
    DuplicateAppointment,
    InvalidBufferPolicy,
    InvalidInterval,
    InvalidQuery,
    ReservationResult,
    StoreUnavailable,
    UnknownAppointment,
)

router = APIRouter(prefix="/availability", tags=["availability"])


def to_http_error(e: AvailabilityError) -> HTTPException:
    """Map engine errors onto HTTP status codes."""
    if isinstance(e, (InvalidInterval, InvalidBufferPolicy, InvalidQuery)):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if isinstance(e, UnknownAppointment):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, DuplicateAppointment):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, StoreUnavailable):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Availability could not be confirmed, retry later",
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def _conflicts(appointments) -> list[ConflictRead]:
    return [ConflictRead.model_validate(a) for a in appointments]


def _reservation_response(result: ReservationResult, success_code: int):
    body = ReservationResponse(
        ok=result.ok,
        conflict=result.conflict,
        appointment=AppointmentRead.model_validate(result.appointment) if result.appointment else None,
        conflicts=_conflicts(result.conflicts),
        warnings=_conflicts(result.warnings),
    )
    code = success_code if result.ok else status.HTTP_409_CONFLICT
    return JSONResponse(status_code=code, content=body.model_dump(mode="json"))


# ── Queries ──────────────────────────────────────────────────────────────


@router.get("/check", response_model=AvailabilityResponse)
def check_availability(
    staff_id: str,
    start: datetime,
    end: datetime,
    location_id: Optional[str] = None,
    exclude_appointment_id: Optional[str] = None,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Advisory check; a positive answer is not a reservation."""
    try:
        result = service.check_availability(
            staff_id, start, end,
            location_id=location_id,
            exclude_id=exclude_appointment_id,
        )
    except AvailabilityError as e:
        raise to_http_error(e) from e

    return AvailabilityResponse(
        staff_id=staff_id,
        start=start,
        end=end,
        available=result.available,
        conflicts=_conflicts(result.conflicts),
        warnings=_conflicts(result.warnings),
    )


@router.get("/suggestions", response_model=SlotSuggestionsResponse)
def suggest_slots(
    staff_id: str,
    window_start: datetime,
    window_end: datetime,
    duration_minutes: int = Query(..., gt=0),
    step_minutes: Optional[int] = Query(None, gt=0),
    limit: Optional[int] = Query(None, gt=0),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Free start times for a staff member inside a window."""
    try:
        start_times = service.suggest_slots(
            staff_id, window_start, window_end, duration_minutes,
            step_minutes=step_minutes,
            limit=limit,
        )
    except AvailabilityError as e:
        raise to_http_error(e) from e

    return SlotSuggestionsResponse(
        staff_id=staff_id,
        window_start=window_start,
        window_end=window_end,
        duration_minutes=duration_minutes,
        step_minutes=step_minutes or service.config.slot_step_minutes,
        start_times=start_times,
    )


# ── Reservations ─────────────────────────────────────────────────────────


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ReservationResponse}},
)
def reserve(
    data: ReservationCreate,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        appointment = AppointmentInterval(
            id=data.id,
            staff_id=data.staff_id,
            location_id=data.location_id,
            start=data.start,
            end=data.end,
            status=AppointmentStatus(data.status),
            participant_ids=tuple(data.participant_ids),
        )
        result = service.reserve(appointment)
    except AvailabilityError as e:
        raise to_http_error(e) from e

    return _reservation_response(result, status.HTTP_201_CREATED)


@router.post(
    "/reservations/{appointment_id}/reschedule",
    response_model=ReservationResponse,
    responses={409: {"model": ReservationResponse}},
)
def reschedule(
    appointment_id: str,
    data: RescheduleRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        result = service.reschedule(appointment_id, data.start, data.end, data.location_id)
    except AvailabilityError as e:
        raise to_http_error(e) from e

    return _reservation_response(result, status.HTTP_200_OK)


@router.delete("/reservations/{appointment_id}", response_model=ReleaseResponse)
def release(
    appointment_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Always ok; released=False when there was nothing to release."""
    try:
        result = service.release(appointment_id)
    except AvailabilityError as e:
        raise to_http_error(e) from e
    return ReleaseResponse(ok=result.ok, released=result.released)


# ── Appointment feed ─────────────────────────────────────────────────────


@router.post("/feed/appointments", response_model=AppointmentRead)
def sync_appointment(
    data: AppointmentSync,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Mirror a create/update already committed by the appointments store."""
    try:
        appointment = AppointmentInterval(
            id=data.id,
            staff_id=data.staff_id,
            location_id=data.location_id,
            start=data.start,
            end=data.end,
            status=data.status,
            participant_ids=tuple(data.participant_ids),
        )
        service.sync_appointment(appointment)
    except AvailabilityError as e:
        raise to_http_error(e) from e
    return AppointmentRead.model_validate(appointment)


@router.post("/feed/appointments/{appointment_id}/status", response_model=AppointmentRead)
def apply_status_change(
    appointment_id: str,
    data: StatusChange,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        updated = service.apply_status_change(appointment_id, data.status)
    except AvailabilityError as e:
        raise to_http_error(e) from e
    return AppointmentRead.model_validate(updated)
