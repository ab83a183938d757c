# backend/staff_availability/services/availability/redis_index.py
"""
Redis-backed appointment index using Sorted Sets.

Key format:
    appointments:staff:{staff_id}  Sorted Set, member = appointment_id,
                                   score = start timestamp (active only)
    appointments:item:{id}         JSON record (any status)
    appointments:maxdur            Sorted Set, member = staff_id,
                                   score = longest indexed duration (s)

Range query: ZRANGEBYSCORE staff_key (window.start − maxdur) (window.end
→ candidates, then exact end check on the decoded records.

Any RedisError is raised as StoreUnavailable.
"""

import json
import logging
from functools import wraps

from redis import Redis
from redis.exceptions import RedisError

from .appointment import AppointmentInterval, AppointmentStatus
from .errors import StoreUnavailable
from .interval import Interval, epoch_seconds

logger = logging.getLogger(__name__)


def _store_call(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except RedisError as e:
            logger.error(f"Appointment index unavailable in {method.__name__}: {e}")
            raise StoreUnavailable(f"Appointment index unreachable: {e}") from e
    return wrapper


def _decode(value) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisAppointmentIndex:
    """Appointment index shared by every worker process."""

    backend_name = "redis"

    STAFF_PREFIX = "appointments:staff"
    ITEM_PREFIX = "appointments:item"
    MAXDUR_PREFIX = "appointments:maxdur"

    def __init__(self, redis: Redis):
        self.redis = redis

    def _staff_key(self, staff_id: str) -> str:
        return f"{self.STAFF_PREFIX}:{staff_id}"

    def _item_key(self, appointment_id: str) -> str:
        return f"{self.ITEM_PREFIX}:{appointment_id}"

    # ── Write ────────────────────────────────────────────────────────────

    @_store_call
    def upsert(self, appointment: AppointmentInterval) -> None:
        """Insert or replace by id."""
        previous = self._load(appointment.id)

        pipe = self.redis.pipeline()
        if previous is not None and previous.staff_id != appointment.staff_id:
            pipe.zrem(self._staff_key(previous.staff_id), appointment.id)

        pipe.set(self._item_key(appointment.id), json.dumps(appointment.to_dict()))

        staff_key = self._staff_key(appointment.staff_id)
        if appointment.is_active:
            pipe.zadd(staff_key, {appointment.id: epoch_seconds(appointment.start)})
            duration = (appointment.end - appointment.start).total_seconds()
            # GT: only ever grows
            pipe.zadd(self.MAXDUR_PREFIX, {appointment.staff_id: duration}, gt=True)
        else:
            pipe.zrem(staff_key, appointment.id)

        pipe.execute()

    @_store_call
    def remove(self, appointment_id: str) -> bool:
        """Drop the record entirely. Returns False if unknown."""
        previous = self._load(appointment_id)
        if previous is None:
            return False

        pipe = self.redis.pipeline()
        pipe.zrem(self._staff_key(previous.staff_id), appointment_id)
        pipe.delete(self._item_key(appointment_id))
        pipe.execute()
        return True

    def set_status(self, appointment_id: str, status: AppointmentStatus) -> bool:
        """Update status in place. Returns False if unknown."""
        previous = self.get(appointment_id)
        if previous is None:
            return False
        self.upsert(previous.with_status(status))
        return True

    def mark_cancelled(self, appointment_id: str) -> bool:
        return self.set_status(appointment_id, AppointmentStatus.CANCELLED)

    # ── Read ─────────────────────────────────────────────────────────────

    @_store_call
    def get(self, appointment_id: str) -> AppointmentInterval | None:
        return self._load(appointment_id)

    @_store_call
    def active_intervals_for(self, staff_id: str) -> list[AppointmentInterval]:
        """All occupying intervals for staff, ordered by start."""
        ids = [_decode(m) for m in self.redis.zrange(self._staff_key(staff_id), 0, -1)]
        return self._load_many(ids)

    @_store_call
    def overlapping(self, staff_id: str, window: Interval) -> list[AppointmentInterval]:
        """Occupying intervals for staff that overlap window, ordered by start."""
        max_duration = self.redis.zscore(self.MAXDUR_PREFIX, staff_id)
        if max_duration is None:
            return []

        low = epoch_seconds(window.start) - float(max_duration)
        high = epoch_seconds(window.end)
        # "(" makes the upper bound exclusive: start < window.end
        members = self.redis.zrangebyscore(self._staff_key(staff_id), low, f"({high}")
        candidates = self._load_many([_decode(m) for m in members])
        return [a for a in candidates if a.end > window.start]

    # ── Helpers ──────────────────────────────────────────────────────────

    def _load(self, appointment_id: str) -> AppointmentInterval | None:
        raw = self.redis.get(self._item_key(appointment_id))
        if raw is None:
            return None
        return AppointmentInterval.from_dict(json.loads(_decode(raw)))

    def _load_many(self, ids: list[str]) -> list[AppointmentInterval]:
        if not ids:
            return []
        raws = self.redis.mget([self._item_key(i) for i in ids])
        result = []
        for appointment_id, raw in zip(ids, raws):
            if raw is None:
                logger.warning(f"Index entry without record: appointment={appointment_id}")
                continue
            appointment = AppointmentInterval.from_dict(json.loads(_decode(raw)))
            if appointment.is_active:
                result.append(appointment)
        result.sort(key=lambda a: (a.start, a.id))
        return result
