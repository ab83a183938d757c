# backend/staff_availability/routers/buffer_policy.py

from fastapi import APIRouter, Depends

from ..dependencies import get_availability_service
from ..schemas.buffer_policy import (
    BufferMinutes,
    BufferPolicyRead,
    BufferPolicyUpdate,
    TimeBufferRuleSchema,
)
from ..services.availability import AvailabilityError, AvailabilityService, TimeBufferRule
from .availability import to_http_error

router = APIRouter(prefix="/buffer-policy", tags=["buffer-policy"])


@router.get("/", response_model=BufferPolicyRead)
def get_buffer_policy(service: AvailabilityService = Depends(get_availability_service)):
    return BufferPolicyRead(**service.policies.snapshot().to_dict())


@router.put("/", response_model=BufferPolicyRead)
def set_buffer_policy(
    data: BufferPolicyUpdate,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        policy = service.set_buffer_policy(
            data.global_before_minutes,
            data.global_after_minutes,
            data.enforced,
            new_bookings_only=data.new_bookings_only,
            strict=data.strict,
            warn_on_violation=data.warn_on_violation,
        )
    except AvailabilityError as e:
        raise to_http_error(e) from e
    return BufferPolicyRead(**policy.to_dict())


@router.post("/reset", response_model=BufferPolicyRead)
def reset_buffer_policy(service: AvailabilityService = Depends(get_availability_service)):
    """Back to the policy the service started with."""
    return BufferPolicyRead(**service.reset_buffer_policy().to_dict())


@router.put("/staff/{staff_id}", response_model=BufferPolicyRead)
def set_staff_buffer_override(
    staff_id: str,
    data: BufferMinutes,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        policy = service.set_staff_buffer_override(staff_id, data.before_minutes, data.after_minutes)
    except AvailabilityError as e:
        raise to_http_error(e) from e
    return BufferPolicyRead(**policy.to_dict())


@router.delete("/staff/{staff_id}", response_model=BufferPolicyRead)
def clear_staff_buffer_override(
    staff_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    """No-op when the staff member has no override."""
    return BufferPolicyRead(**service.clear_staff_buffer_override(staff_id).to_dict())


# ── Time-of-day and weekday rules ────────────────────────────────────────


@router.put("/time-rules", response_model=BufferPolicyRead)
def set_time_rules(
    data: list[TimeBufferRuleSchema],
    service: AvailabilityService = Depends(get_availability_service),
):
    """Replace all time-of-day rules; an empty list removes them."""
    try:
        policy = service.set_time_buffer_rules(
            TimeBufferRule(r.start_time, r.end_time, r.before_minutes, r.after_minutes)
            for r in data
        )
    except AvailabilityError as e:
        raise to_http_error(e) from e
    return BufferPolicyRead(**policy.to_dict())


@router.put("/day-rules/{day}", response_model=BufferPolicyRead)
def set_day_rule(
    day: str,
    data: BufferMinutes,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        policy = service.set_day_buffer_rule(day, data.before_minutes, data.after_minutes)
    except AvailabilityError as e:
        raise to_http_error(e) from e
    return BufferPolicyRead(**policy.to_dict())


@router.delete("/day-rules/{day}", response_model=BufferPolicyRead)
def clear_day_rule(
    day: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        policy = service.clear_day_buffer_rule(day)
    except AvailabilityError as e:
        raise to_http_error(e) from e
    return BufferPolicyRead(**policy.to_dict())
