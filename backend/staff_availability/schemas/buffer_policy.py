# backend/staff_availability/schemas/buffer_policy.py

from datetime import time
from typing import Optional
from pydantic import BaseModel, Field


class BufferMinutes(BaseModel):
    before_minutes: int = Field(ge=0)
    after_minutes: int = Field(ge=0)


class TimeBufferRuleSchema(BaseModel):
    """Extra buffer for appointments starting between start_time and end_time."""
    start_time: time
    end_time: time
    before_minutes: int = Field(ge=0)
    after_minutes: int = Field(ge=0)

    model_config = {"from_attributes": True}


class BufferPolicyUpdate(BaseModel):
    global_before_minutes: int = Field(ge=0)
    global_after_minutes: int = Field(ge=0)
    enforced: bool
    # None → keep current value
    new_bookings_only: Optional[bool] = None
    strict: Optional[bool] = None
    warn_on_violation: Optional[bool] = None


class BufferPolicyRead(BaseModel):
    global_before_minutes: int
    global_after_minutes: int
    per_staff_overrides: dict[str, BufferMinutes]
    time_rules: list[TimeBufferRuleSchema] = []
    day_rules: dict[str, BufferMinutes] = {}
    enforced: bool
    new_bookings_only: bool
    strict: bool
    warn_on_violation: bool = True
