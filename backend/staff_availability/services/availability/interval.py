# backend/staff_availability/services/availability/interval.py
"""
Half-open time interval [start, end).

Touching intervals ([10:00, 11:00) and [11:00, 12:00)) do not overlap.

All datetimes are held as naive UTC: aware values are converted on the way in,
naive values are taken to be UTC already.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .errors import InvalidInterval


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def epoch_seconds(value: datetime) -> float:
    """POSIX timestamp of a naive UTC datetime."""
    return to_utc_naive(value).replace(tzinfo=timezone.utc).timestamp()


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", to_utc_naive(self.start))
        object.__setattr__(self, "end", to_utc_naive(self.end))
        if self.end <= self.start:
            raise InvalidInterval(
                f"Interval end must be after start, got [{self.start.isoformat()}, {self.end.isoformat()})"
            )

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def pad(self, before_minutes: int, after_minutes: int) -> "Interval":
        """Return a new interval widened by the given minutes on each side."""
        if before_minutes < 0 or after_minutes < 0:
            raise ValueError("Padding minutes must be non-negative")
        return Interval(
            self.start - timedelta(minutes=before_minutes),
            self.end + timedelta(minutes=after_minutes),
        )
