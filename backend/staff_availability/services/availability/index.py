# backend/staff_availability/services/availability/index.py
"""
In-memory appointment index.

Per staff member: list of (start, appointment_id) kept sorted with bisect,
holding only appointments whose status occupies the resource.
Location never partitions the index.

Range query cost: O(log n + k). The left edge of the scan is bounded by the
longest appointment ever indexed for that staff member.

The internal mutex only protects the data structures. Check-then-commit
atomicity is the staff lock's job (see locks.py), not this class's.
"""

import threading
from bisect import bisect_left, insort
from datetime import timedelta

from .appointment import AppointmentInterval, AppointmentStatus
from .interval import Interval


class AppointmentIndex:
    """Authoritative in-process collection of appointment intervals."""

    backend_name = "memory"

    def __init__(self):
        self._records: dict[str, AppointmentInterval] = {}
        self._by_staff: dict[str, list[tuple]] = {}
        self._max_duration: dict[str, timedelta] = {}
        self._mutex = threading.RLock()

    # ── Write ────────────────────────────────────────────────────────────

    def upsert(self, appointment: AppointmentInterval) -> None:
        """Insert or replace by id."""
        with self._mutex:
            previous = self._records.get(appointment.id)
            if previous is not None:
                self._unlink(previous)

            self._records[appointment.id] = appointment
            if appointment.is_active:
                self._link(appointment)

    def remove(self, appointment_id: str) -> bool:
        """Drop the record entirely. Returns False if unknown."""
        with self._mutex:
            previous = self._records.pop(appointment_id, None)
            if previous is None:
                return False
            self._unlink(previous)
            return True

    def set_status(self, appointment_id: str, status: AppointmentStatus) -> bool:
        """Update status in place. Returns False if unknown."""
        with self._mutex:
            previous = self._records.get(appointment_id)
            if previous is None:
                return False
            self.upsert(previous.with_status(status))
            return True

    def mark_cancelled(self, appointment_id: str) -> bool:
        return self.set_status(appointment_id, AppointmentStatus.CANCELLED)

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, appointment_id: str) -> AppointmentInterval | None:
        with self._mutex:
            return self._records.get(appointment_id)

    def active_intervals_for(self, staff_id: str) -> list[AppointmentInterval]:
        """All occupying intervals for staff, ordered by start."""
        with self._mutex:
            entries = self._by_staff.get(staff_id, [])
            return [self._records[appointment_id] for _, appointment_id in entries]

    def overlapping(self, staff_id: str, window: Interval) -> list[AppointmentInterval]:
        """Occupying intervals for staff that overlap window, ordered by start."""
        with self._mutex:
            entries = self._by_staff.get(staff_id)
            if not entries:
                return []

            max_duration = self._max_duration[staff_id]
            lo = bisect_left(entries, (window.start - max_duration,))
            hi = bisect_left(entries, (window.end,))

            result = []
            for _, appointment_id in entries[lo:hi]:
                appointment = self._records[appointment_id]
                if appointment.end > window.start:
                    result.append(appointment)
            return result

    def __len__(self) -> int:
        with self._mutex:
            return len(self._records)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _link(self, appointment: AppointmentInterval) -> None:
        entries = self._by_staff.setdefault(appointment.staff_id, [])
        insort(entries, (appointment.start, appointment.id))

        duration = appointment.end - appointment.start
        if duration > self._max_duration.get(appointment.staff_id, timedelta(0)):
            self._max_duration[appointment.staff_id] = duration

    def _unlink(self, appointment: AppointmentInterval) -> None:
        entries = self._by_staff.get(appointment.staff_id)
        if not entries:
            return
        key = (appointment.start, appointment.id)
        pos = bisect_left(entries, key)
        if pos < len(entries) and entries[pos] == key:
            del entries[pos]
        if not entries:
            del self._by_staff[appointment.staff_id]
            self._max_duration.pop(appointment.staff_id, None)
