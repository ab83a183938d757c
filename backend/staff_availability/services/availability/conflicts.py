# backend/staff_availability/services/availability/conflicts.py
"""
Conflict calculation (pure, no I/O, no locking).

A candidate conflicts with an existing appointment when the candidate overlaps
the existing interval padded by the required gaps:

    gap after existing  = max(existing.after,  candidate.before)
    gap before existing = max(existing.before, candidate.after)

Each existing appointment's buffer is resolved from its own staff member and
start time, the candidate's from the queried staff member and its own start.
Taking the larger value per boundary respects both cooldowns without counting
either one twice.
"""

from typing import Iterable

from .appointment import AppointmentInterval
from .buffer_policy import BufferPolicy, ResolvedBuffer
from .interval import Interval

NO_BUFFER = ResolvedBuffer(0, 0, enforced=False)


def required_gaps(existing: ResolvedBuffer, candidate: ResolvedBuffer) -> tuple[int, int]:
    """(minutes before existing, minutes after existing) that must stay free."""
    existing_before, existing_after = existing.padding
    candidate_before, candidate_after = candidate.padding
    return max(existing_before, candidate_after), max(existing_after, candidate_before)


def search_window(
    candidate: Interval,
    policy: BufferPolicy,
    staff_id: str,
    apply_buffers: bool = True,
) -> Interval:
    """
    Widest window an existing appointment of staff_id can reach into
    and still conflict with candidate. Used to narrow index range scans.
    """
    if not apply_buffers:
        return candidate
    resolved = policy.widest(staff_id)
    gap_before_existing, gap_after_existing = required_gaps(resolved, resolved)
    return candidate.pad(gap_after_existing, gap_before_existing)


def find_conflicts(
    candidate: Interval,
    existing: Iterable[AppointmentInterval],
    policy: BufferPolicy,
    exclude_id: str | None = None,
    candidate_staff_id: str | None = None,
    apply_buffers: bool = True,
) -> list[AppointmentInterval]:
    """
    Return every existing appointment that blocks candidate, ordered by start.

    Args:
        candidate: Proposed interval
        existing: Occupying appointments (inactive ones are skipped)
        policy: Buffer policy snapshot
        exclude_id: Appointment to ignore (the one being rescheduled)
        candidate_staff_id: Staff member the candidate is for
        apply_buffers: False → raw overlap only
    """
    candidate_buffer = policy.resolve(candidate_staff_id, candidate.start) if apply_buffers else NO_BUFFER

    conflicts = []
    for appointment in existing:
        if exclude_id is not None and appointment.id == exclude_id:
            continue
        if not appointment.is_active:
            continue

        existing_buffer = policy.resolve(appointment.staff_id, appointment.start) if apply_buffers else NO_BUFFER
        gap_before, gap_after = required_gaps(existing_buffer, candidate_buffer)

        if candidate.overlaps(appointment.interval.pad(gap_before, gap_after)):
            conflicts.append(appointment)

    conflicts.sort(key=lambda a: (a.start, a.id))
    return conflicts
