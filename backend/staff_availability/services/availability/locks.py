# backend/staff_availability/services/availability/locks.py
"""
Per-staff mutual exclusion for check-then-commit.

One lock per staff member, created lazily and kept for the process lifetime.
Different staff members never contend with each other.

Acquisition is bounded: a timeout raises StoreUnavailable so the caller
fails closed instead of reporting the slot as free.

Two implementations with the same contract:
- StaffLocks: threading.Lock per staff (single process)
- RedisStaffLocks: redis-py Lock per staff (several worker processes)
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from redis import Redis
from redis.exceptions import LockError, RedisError

from .errors import StoreUnavailable

logger = logging.getLogger(__name__)


class StaffLocks:
    """In-process lock registry keyed by staff_id."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, staff_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(staff_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[staff_id] = lock
            return lock

    @contextmanager
    def hold(self, staff_id: str) -> Iterator[None]:
        lock = self._lock_for(staff_id)
        if not lock.acquire(timeout=self.timeout_seconds):
            logger.warning(f"Staff lock timeout: staff={staff_id} after {self.timeout_seconds}s")
            raise StoreUnavailable(
                f"Could not lock calendar of staff {staff_id} within {self.timeout_seconds}s"
            )
        try:
            yield
        finally:
            lock.release()


class RedisStaffLocks:
    """
    Distributed lock registry.

    Key format: locks:staff:{staff_id}
    The lock auto-expires after lease_seconds so a crashed worker
    cannot block a staff member's calendar forever.
    """

    KEY_PREFIX = "locks:staff"

    def __init__(self, redis: Redis, timeout_seconds: float, lease_seconds: float | None = None):
        self.redis = redis
        self.timeout_seconds = timeout_seconds
        self.lease_seconds = lease_seconds or timeout_seconds * 2

    def _key(self, staff_id: str) -> str:
        return f"{self.KEY_PREFIX}:{staff_id}"

    @contextmanager
    def hold(self, staff_id: str) -> Iterator[None]:
        lock = self.redis.lock(
            self._key(staff_id),
            timeout=self.lease_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        try:
            acquired = lock.acquire()
        except RedisError as e:
            logger.error(f"Staff lock unavailable: staff={staff_id}: {e}")
            raise StoreUnavailable(f"Lock store unreachable: {e}") from e

        if not acquired:
            logger.warning(f"Staff lock timeout: staff={staff_id} after {self.timeout_seconds}s")
            raise StoreUnavailable(
                f"Could not lock calendar of staff {staff_id} within {self.timeout_seconds}s"
            )

        try:
            yield
        finally:
            try:
                lock.release()
            except (LockError, RedisError) as e:
                # Lease expired mid-operation; another worker may now hold it
                logger.error(f"Staff lock release failed: staff={staff_id}: {e}")
