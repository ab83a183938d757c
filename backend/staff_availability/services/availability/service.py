# backend/staff_availability/services/availability/service.py
"""
Availability service: the only entry point collaborators use.

Read path (lock-free, advisory):
✓ check_availability
✓ suggest_slots

Write path (per-staff critical section, authoritative):
✓ reserve / reschedule / release
✓ sync_appointment / apply_status_change (appointment feed)

Inside a critical section the index AND the buffer policy are read again,
so a result computed before the lock was taken is never trusted. Writes to
an existing record hold the lock of the staff member that owns it as seen
under the lock, not as seen before locking.
"""

import logging
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Iterator

from .appointment import AppointmentInterval, AppointmentStatus
from .buffer_policy import BufferPolicy, BufferPolicyStore, TimeBufferRule
from .config import SLOT_STEPS, EngineConfig, get_engine_config
from .conflicts import find_conflicts, search_window
from .errors import (
    DuplicateAppointment,
    InvalidInterval,
    InvalidQuery,
    StoreUnavailable,
    UnknownAppointment,
)
from .interval import Interval

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflicts: list[AppointmentInterval] = field(default_factory=list)
    warnings: list[AppointmentInterval] = field(default_factory=list)


@dataclass(frozen=True)
class ReservationResult:
    """Outcome of reserve/reschedule. A conflict is a value, not an error."""
    ok: bool
    appointment: AppointmentInterval | None = None
    conflicts: list[AppointmentInterval] = field(default_factory=list)
    warnings: list[AppointmentInterval] = field(default_factory=list)

    @property
    def conflict(self) -> bool:
        return not self.ok

    @classmethod
    def reserved(cls, appointment, warnings=None) -> "ReservationResult":
        return cls(ok=True, appointment=appointment, warnings=warnings or [])

    @classmethod
    def rejected(cls, conflicts, warnings=None) -> "ReservationResult":
        return cls(ok=False, conflicts=conflicts, warnings=warnings or [])


@dataclass(frozen=True)
class ReleaseResult:
    ok: bool = True
    released: bool = False


class AvailabilityService:
    """
    Orchestrates index, buffer policy and staff locks.

    Args:
        index: AppointmentIndex or RedisAppointmentIndex
        policies: BufferPolicyStore
        locks: StaffLocks or RedisStaffLocks
        config: EngineConfig (defaults to application settings)
    """

    # Attempts to lock a record whose staff member keeps changing
    OWNER_RETRIES = 3

    def __init__(self, index, policies: BufferPolicyStore, locks, config: EngineConfig | None = None):
        self.index = index
        self.policies = policies
        self.locks = locks
        self.config = config or get_engine_config()

    # ── Read path ────────────────────────────────────────────────────────

    def check_availability(
        self,
        staff_id: str,
        start: datetime,
        end: datetime,
        location_id: str | None = None,
        exclude_id: str | None = None,
    ) -> AvailabilityResult:
        """
        Is staff_id free for [start, end)?

        Advisory only: may be stale by the time the caller acts on it.
        location_id is accepted for logging; it never affects the outcome.
        """
        candidate = Interval(start, end)
        policy = self.policies.snapshot()
        conflicts, warnings = self._evaluate(staff_id, candidate, policy, exclude_id)

        logger.debug(
            f"Availability check: staff={staff_id} location={location_id} "
            f"[{candidate.start.isoformat()}, {candidate.end.isoformat()}) conflicts={len(conflicts)}"
        )
        return AvailabilityResult(available=not conflicts, conflicts=conflicts, warnings=warnings)

    def suggest_slots(
        self,
        staff_id: str,
        window_start: datetime,
        window_end: datetime,
        duration_minutes: int,
        step_minutes: int | None = None,
        limit: int | None = None,
    ) -> list[datetime]:
        """
        Free start times for a duration inside [window_start, window_end).

        Start times lie on a grid of step_minutes from window_start.
        limit is capped at max_suggestions. Advisory, like check_availability.
        """
        window = Interval(window_start, window_end)
        if duration_minutes <= 0:
            raise InvalidInterval(f"duration_minutes must be positive, got {duration_minutes}")

        step_minutes = step_minutes or self.config.slot_step_minutes
        if step_minutes not in SLOT_STEPS:
            raise InvalidQuery(f"step_minutes must be one of {SLOT_STEPS}, got {step_minutes}")
        if limit is not None and limit < 1:
            raise InvalidQuery(f"limit must be at least 1, got {limit}")
        limit = min(limit or self.config.max_suggestions, self.config.max_suggestions)

        step = timedelta(minutes=step_minutes)
        duration = timedelta(minutes=duration_minutes)

        policy = self.policies.snapshot()
        apply_buffers = policy.enforced
        existing = self.index.overlapping(
            staff_id, search_window(window, policy, staff_id, apply_buffers)
        )

        result = []
        t = window.start
        while t + duration <= window.end and len(result) < limit:
            conflicts, _ = self._classify(
                staff_id, Interval(t, t + duration), existing, policy, None, apply_buffers
            )
            if not conflicts:
                result.append(t)
            t += step
        return result

    # ── Write path ───────────────────────────────────────────────────────

    def reserve(self, appointment: AppointmentInterval) -> ReservationResult:
        """Atomically re-check and commit. The only way to claim staff time."""
        if not appointment.is_active:
            raise ValueError(f"Cannot reserve appointment in status {appointment.status.value}")

        candidate = appointment.interval
        with self._hold_record(appointment.id, {appointment.staff_id}) as existing:
            if existing is not None and existing.is_active and existing.staff_id != appointment.staff_id:
                raise DuplicateAppointment(
                    f"Appointment {appointment.id} is already reserved for staff {existing.staff_id}"
                )

            policy = self.policies.snapshot()
            # Excluding its own id makes a retried reserve idempotent
            conflicts, warnings = self._evaluate(
                appointment.staff_id, candidate, policy, exclude_id=appointment.id
            )
            if conflicts:
                logger.warning(
                    f"Reserve rejected: appointment={appointment.id} staff={appointment.staff_id} "
                    f"conflicts={[c.id for c in conflicts]}"
                )
                return ReservationResult.rejected(conflicts, warnings)

            self.index.upsert(appointment)

        logger.info(
            f"Reserved: appointment={appointment.id} staff={appointment.staff_id} "
            f"location={appointment.location_id} "
            f"[{appointment.start.isoformat()}, {appointment.end.isoformat()}) "
            f"participants={len(appointment.participant_ids)}"
        )
        return ReservationResult.reserved(appointment, warnings)

    def reschedule(
        self,
        appointment_id: str,
        start: datetime,
        end: datetime,
        location_id: str | None = None,
    ) -> ReservationResult:
        """
        Move an appointment, ignoring its own current slot.

        The old slot is replaced in a single upsert after the new slot is
        confirmed free, so the staff member never looks free mid-move.
        """
        candidate = Interval(start, end)

        with self._hold_record(appointment_id) as current:
            if current is None or not current.is_active:
                raise UnknownAppointment(appointment_id)

            policy = self.policies.snapshot()
            conflicts, warnings = self._evaluate(
                current.staff_id, candidate, policy, exclude_id=appointment_id, rescheduling=True
            )
            if conflicts:
                logger.warning(
                    f"Reschedule rejected: appointment={appointment_id} staff={current.staff_id} "
                    f"conflicts={[c.id for c in conflicts]}"
                )
                return ReservationResult.rejected(conflicts, warnings)

            moved = current.moved_to(candidate.start, candidate.end, location_id)
            self.index.upsert(moved)

        logger.info(
            f"Rescheduled: appointment={appointment_id} staff={moved.staff_id} "
            f"start={current.start.isoformat()} → {moved.start.isoformat()} location={moved.location_id}"
        )
        return ReservationResult.reserved(moved, warnings)

    def release(self, appointment_id: str) -> ReleaseResult:
        """Free the slot. Idempotent: unknown or already released ids are a no-op."""
        with self._hold_record(appointment_id) as current:
            if current is None or not current.is_active:
                logger.debug(f"Release no-op: appointment={appointment_id}")
                return ReleaseResult(ok=True, released=False)
            self.index.mark_cancelled(appointment_id)

        logger.info(f"Released: appointment={appointment_id} staff={current.staff_id}")
        return ReleaseResult(ok=True, released=True)

    # ── Appointment feed ─────────────────────────────────────────────────

    def sync_appointment(self, appointment: AppointmentInterval) -> None:
        """
        Mirror an appointment already committed by the appointments store.

        No conflict check: the store is authoritative for what exists.
        """
        with self._hold_record(appointment.id, {appointment.staff_id}):
            self.index.upsert(appointment)

        logger.info(
            f"Synced: appointment={appointment.id} staff={appointment.staff_id} "
            f"status={appointment.status.value}"
        )

    def apply_status_change(self, appointment_id: str, status: AppointmentStatus) -> AppointmentInterval:
        """
        Apply a status transition from the appointments store.

        cancelled/completed free the slot immediately; pending → confirmed →
        checked_in keep occupancy unchanged.
        """
        with self._hold_record(appointment_id) as current:
            if current is None or not self.index.set_status(appointment_id, status):
                raise UnknownAppointment(appointment_id)
            updated = self.index.get(appointment_id)

        logger.info(
            f"Status changed: appointment={appointment_id} staff={current.staff_id} "
            f"{current.status.value} → {status.value}"
        )
        return updated

    # ── Buffer policy ────────────────────────────────────────────────────

    def set_buffer_policy(
        self,
        before_minutes: int,
        after_minutes: int,
        enforced: bool,
        new_bookings_only: bool | None = None,
        strict: bool | None = None,
        warn_on_violation: bool | None = None,
    ) -> BufferPolicy:
        return self.policies.update(
            before_minutes,
            after_minutes,
            enforced,
            new_bookings_only=new_bookings_only,
            strict=strict,
            warn_on_violation=warn_on_violation,
        )

    def set_staff_buffer_override(self, staff_id: str, before_minutes: int, after_minutes: int) -> BufferPolicy:
        self.policies.set_override(staff_id, before_minutes, after_minutes)
        return self.policies.snapshot()

    def clear_staff_buffer_override(self, staff_id: str) -> BufferPolicy:
        self.policies.clear_override(staff_id)
        return self.policies.snapshot()

    def set_time_buffer_rules(self, rules: Iterable[TimeBufferRule]) -> BufferPolicy:
        self.policies.set_time_rules(rules)
        return self.policies.snapshot()

    def set_day_buffer_rule(self, day: str, before_minutes: int, after_minutes: int) -> BufferPolicy:
        self.policies.set_day_rule(day, before_minutes, after_minutes)
        return self.policies.snapshot()

    def clear_day_buffer_rule(self, day: str) -> BufferPolicy:
        self.policies.clear_day_rule(day)
        return self.policies.snapshot()

    def reset_buffer_policy(self) -> BufferPolicy:
        self.policies.reset_to_defaults()
        return self.policies.snapshot()

    # ── Helpers ──────────────────────────────────────────────────────────

    def _evaluate(
        self,
        staff_id: str,
        candidate: Interval,
        policy: BufferPolicy,
        exclude_id: str | None = None,
        rescheduling: bool = False,
    ) -> tuple[list[AppointmentInterval], list[AppointmentInterval]]:
        apply_buffers = policy.enforced and not (rescheduling and policy.new_bookings_only)
        existing = self.index.overlapping(
            staff_id, search_window(candidate, policy, staff_id, apply_buffers)
        )
        return self._classify(staff_id, candidate, existing, policy, exclude_id, apply_buffers)

    @staticmethod
    def _classify(
        staff_id: str,
        candidate: Interval,
        existing: list[AppointmentInterval],
        policy: BufferPolicy,
        exclude_id: str | None,
        apply_buffers: bool,
    ) -> tuple[list[AppointmentInterval], list[AppointmentInterval]]:
        """Split into (blocking conflicts, buffer-only warnings)."""
        conflicts = find_conflicts(
            candidate, existing, policy,
            exclude_id=exclude_id, candidate_staff_id=staff_id, apply_buffers=apply_buffers,
        )
        if not conflicts or policy.strict or not apply_buffers:
            return conflicts, []

        # Non-strict: only raw overlaps block, buffer violations become warnings
        hard = find_conflicts(
            candidate, existing, policy,
            exclude_id=exclude_id, candidate_staff_id=staff_id, apply_buffers=False,
        )
        if not policy.warn_on_violation:
            return hard, []
        hard_ids = {a.id for a in hard}
        return hard, [a for a in conflicts if a.id not in hard_ids]

    @contextmanager
    def _hold_record(
        self, appointment_id: str, staff_ids: Iterable[str] = ()
    ) -> Iterator[AppointmentInterval | None]:
        """
        Hold the locks of staff_ids plus the staff member owning appointment_id.

        Yields the record as read under the locks (None if unknown). If the
        record changed owner between the unlocked read and the lock, the locks
        are taken again including the new owner.
        """
        for _ in range(self.OWNER_RETRIES):
            current = self.index.get(appointment_id)
            wanted = set(staff_ids)
            if current is not None:
                wanted.add(current.staff_id)

            with self._hold_all(wanted):
                current = self.index.get(appointment_id)
                if current is None or current.staff_id in wanted:
                    yield current
                    return

            logger.info(
                f"Appointment {appointment_id} moved to staff {current.staff_id} while locking, retrying"
            )

        raise StoreUnavailable(f"Appointment {appointment_id} kept changing staff while locking")

    @contextmanager
    def _hold_all(self, staff_ids: set[str]) -> Iterator[None]:
        # Always acquire in sorted staff_id order
        with ExitStack() as stack:
            for staff_id in sorted(staff_ids):
                stack.enter_context(self.locks.hold(staff_id))
            yield
