# backend/staff_availability/services/availability/buffer_policy.py
"""
Buffer (cooldown) policy store.

Holds global before/after minutes, per-staff overrides, time-of-day and
weekday rules, and enforcement flags.

Reads are lock-free: every write builds a new immutable BufferPolicy and
swaps the reference, so a reader always sees one consistent snapshot.
Writes are serialized by a private lock.

Resolution for one appointment:
✓ per-staff override beats global values
✓ unknown staff → global values (not an error)
✓ time-of-day and weekday rules matching the appointment start → max per side
✓ enforced=False → (0, 0) for everyone
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, time
from types import MappingProxyType
from typing import Iterable, Mapping

from .errors import InvalidBufferPolicy

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class ResolvedBuffer:
    """Buffer minutes applicable to one staff member."""
    before_minutes: int
    after_minutes: int
    enforced: bool

    @property
    def padding(self) -> tuple[int, int]:
        """(before, after) to pad with; (0, 0) when not enforced."""
        if not self.enforced:
            return 0, 0
        return self.before_minutes, self.after_minutes


@dataclass(frozen=True)
class TimeBufferRule:
    """Buffer for appointments starting between start_time and end_time (inclusive)."""
    start_time: time
    end_time: time
    before_minutes: int
    after_minutes: int

    def matches(self, moment: datetime) -> bool:
        return self.start_time <= moment.time() <= self.end_time

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time.isoformat(timespec="minutes"),
            "end_time": self.end_time.isoformat(timespec="minutes"),
            "before_minutes": self.before_minutes,
            "after_minutes": self.after_minutes,
        }


@dataclass(frozen=True)
class BufferPolicy:
    """
    Immutable buffer policy snapshot.

    Attributes:
        global_before_minutes: Cooldown before every appointment
        global_after_minutes: Cooldown after every appointment
        per_staff_overrides: staff_id → (before, after)
        time_rules: Extra buffers by start time of day
        day_rules: weekday name ("monday") → (before, after)
        enforced: When False buffers are skipped entirely
        new_bookings_only: Apply buffers to new reservations only, not reschedules
        strict: When False, buffer-only violations are warnings, not conflicts
        warn_on_violation: Report buffer-only violations as warnings (non-strict only)
    """
    global_before_minutes: int = 0
    global_after_minutes: int = 0
    per_staff_overrides: Mapping[str, tuple[int, int]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    time_rules: tuple[TimeBufferRule, ...] = ()
    day_rules: Mapping[str, tuple[int, int]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    enforced: bool = False
    new_bookings_only: bool = False
    strict: bool = True
    warn_on_violation: bool = True

    def resolve(self, staff_id: str | None, at: datetime | None = None) -> ResolvedBuffer:
        """
        Buffer for an appointment of staff_id starting at `at`.

        Without `at` only global and per-staff values apply.
        """
        before, after = self.global_before_minutes, self.global_after_minutes
        if staff_id is not None and staff_id in self.per_staff_overrides:
            before, after = self.per_staff_overrides[staff_id]

        if at is not None:
            for rule in self.time_rules:
                if rule.matches(at):
                    before = max(before, rule.before_minutes)
                    after = max(after, rule.after_minutes)
            day = self.day_rules.get(WEEKDAYS[at.weekday()])
            if day is not None:
                before, after = max(before, day[0]), max(after, day[1])

        return ResolvedBuffer(before, after, self.enforced)

    def widest(self, staff_id: str | None) -> ResolvedBuffer:
        """Largest buffer staff_id can get at any time; bounds index range scans."""
        base = self.resolve(staff_id)
        before, after = base.before_minutes, base.after_minutes
        for rule_before, rule_after in [
            *((r.before_minutes, r.after_minutes) for r in self.time_rules),
            *self.day_rules.values(),
        ]:
            before, after = max(before, rule_before), max(after, rule_after)
        return ResolvedBuffer(before, after, self.enforced)

    def to_dict(self) -> dict:
        return {
            "global_before_minutes": self.global_before_minutes,
            "global_after_minutes": self.global_after_minutes,
            "per_staff_overrides": {
                staff_id: {"before_minutes": before, "after_minutes": after}
                for staff_id, (before, after) in self.per_staff_overrides.items()
            },
            "time_rules": [rule.to_dict() for rule in self.time_rules],
            "day_rules": {
                day: {"before_minutes": before, "after_minutes": after}
                for day, (before, after) in self.day_rules.items()
            },
            "enforced": self.enforced,
            "new_bookings_only": self.new_bookings_only,
            "strict": self.strict,
            "warn_on_violation": self.warn_on_violation,
        }


def _validate_minutes(before: int, after: int) -> None:
    for name, value in (("before_minutes", before), ("after_minutes", after)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidBufferPolicy(f"{name} must be an integer, got {value!r}")
        if value < 0:
            raise InvalidBufferPolicy(f"{name} must be >= 0, got {value}")


def _validate_time_rule(rule: TimeBufferRule) -> None:
    _validate_minutes(rule.before_minutes, rule.after_minutes)
    if rule.end_time < rule.start_time:
        raise InvalidBufferPolicy(
            f"Time rule end {rule.end_time.isoformat()} is before start {rule.start_time.isoformat()}"
        )


def _validate_day(day: str) -> str:
    day = day.lower()
    if day not in WEEKDAYS:
        raise InvalidBufferPolicy(f"Unknown weekday: {day}")
    return day


def _validate_policy(policy: BufferPolicy) -> BufferPolicy:
    _validate_minutes(policy.global_before_minutes, policy.global_after_minutes)
    for before, after in policy.per_staff_overrides.values():
        _validate_minutes(before, after)
    for rule in policy.time_rules:
        _validate_time_rule(rule)
    day_rules = {}
    for day, (before, after) in policy.day_rules.items():
        _validate_minutes(before, after)
        day_rules[_validate_day(day)] = (before, after)
    return replace(
        policy,
        per_staff_overrides=MappingProxyType(dict(policy.per_staff_overrides)),
        time_rules=tuple(policy.time_rules),
        day_rules=MappingProxyType(day_rules),
    )


class BufferPolicyStore:
    """
    Owned, injectable holder of the active buffer policy.

    The policy given at construction is the one reset_to_defaults returns to.
    """

    def __init__(self, policy: BufferPolicy | None = None):
        self._initial = _validate_policy(policy or BufferPolicy())
        self._policy = self._initial
        self._write_lock = threading.Lock()

    # ── Read ─────────────────────────────────────────────────────────────

    def snapshot(self) -> BufferPolicy:
        return self._policy

    def get_policy_for(self, staff_id: str, at: datetime | None = None) -> ResolvedBuffer:
        return self._policy.resolve(staff_id, at)

    # ── Write ────────────────────────────────────────────────────────────

    def update(
        self,
        before_minutes: int,
        after_minutes: int,
        enforced: bool,
        new_bookings_only: bool | None = None,
        strict: bool | None = None,
        warn_on_violation: bool | None = None,
    ) -> BufferPolicy:
        """Replace global minutes and flags in one swap; None keeps a flag unchanged."""
        _validate_minutes(before_minutes, after_minutes)
        changes: dict = {
            "global_before_minutes": before_minutes,
            "global_after_minutes": after_minutes,
            "enforced": enforced,
        }
        for name, value in (
            ("new_bookings_only", new_bookings_only),
            ("strict", strict),
            ("warn_on_violation", warn_on_violation),
        ):
            if value is not None:
                changes[name] = value

        with self._write_lock:
            self._policy = replace(self._policy, **changes)
            policy = self._policy
        logger.info(
            f"Buffer policy updated: before={before_minutes}m after={after_minutes}m "
            f"enforced={policy.enforced} new_bookings_only={policy.new_bookings_only} "
            f"strict={policy.strict}"
        )
        return policy

    def set_global(self, before_minutes: int, after_minutes: int) -> None:
        _validate_minutes(before_minutes, after_minutes)
        with self._write_lock:
            self._policy = replace(
                self._policy,
                global_before_minutes=before_minutes,
                global_after_minutes=after_minutes,
            )
        logger.info(f"Global buffer set: before={before_minutes}m after={after_minutes}m")

    def set_override(self, staff_id: str, before_minutes: int, after_minutes: int) -> None:
        _validate_minutes(before_minutes, after_minutes)
        with self._write_lock:
            overrides = dict(self._policy.per_staff_overrides)
            overrides[staff_id] = (before_minutes, after_minutes)
            self._policy = replace(self._policy, per_staff_overrides=MappingProxyType(overrides))
        logger.info(
            f"Buffer override set: staff={staff_id} before={before_minutes}m after={after_minutes}m"
        )

    def clear_override(self, staff_id: str) -> bool:
        """Remove a staff override. Returns False if there was none."""
        with self._write_lock:
            if staff_id not in self._policy.per_staff_overrides:
                return False
            overrides = dict(self._policy.per_staff_overrides)
            del overrides[staff_id]
            self._policy = replace(self._policy, per_staff_overrides=MappingProxyType(overrides))
        logger.info(f"Buffer override cleared: staff={staff_id}")
        return True

    def set_time_rules(self, rules: Iterable[TimeBufferRule]) -> None:
        """Replace all time-of-day rules."""
        rules = tuple(rules)
        for rule in rules:
            _validate_time_rule(rule)
        with self._write_lock:
            self._policy = replace(self._policy, time_rules=rules)
        logger.info(f"Time buffer rules set: {len(rules)} rules")

    def set_day_rule(self, day: str, before_minutes: int, after_minutes: int) -> None:
        day = _validate_day(day)
        _validate_minutes(before_minutes, after_minutes)
        with self._write_lock:
            day_rules = dict(self._policy.day_rules)
            day_rules[day] = (before_minutes, after_minutes)
            self._policy = replace(self._policy, day_rules=MappingProxyType(day_rules))
        logger.info(f"Day buffer rule set: {day} before={before_minutes}m after={after_minutes}m")

    def clear_day_rule(self, day: str) -> bool:
        day = _validate_day(day)
        with self._write_lock:
            if day not in self._policy.day_rules:
                return False
            day_rules = dict(self._policy.day_rules)
            del day_rules[day]
            self._policy = replace(self._policy, day_rules=MappingProxyType(day_rules))
        logger.info(f"Day buffer rule cleared: {day}")
        return True

    def set_enforcement(
        self,
        enabled: bool,
        new_bookings_only: bool | None = None,
        strict: bool | None = None,
    ) -> None:
        """Toggle enforcement; optional flags are left unchanged when None."""
        with self._write_lock:
            changes: dict = {"enforced": enabled}
            if new_bookings_only is not None:
                changes["new_bookings_only"] = new_bookings_only
            if strict is not None:
                changes["strict"] = strict
            self._policy = replace(self._policy, **changes)
            policy = self._policy
        logger.info(
            f"Buffer enforcement: enabled={policy.enforced} "
            f"new_bookings_only={policy.new_bookings_only} strict={policy.strict}"
        )

    def reset_to_defaults(self) -> None:
        """Return to the policy this store was created with."""
        with self._write_lock:
            self._policy = self._initial
        logger.info("Buffer policy reset to defaults")
