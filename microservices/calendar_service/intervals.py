"""
Interval primitives

Half-open time intervals [start, end) over UTC instants.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from .protocols import InvalidDateRangeError


def ensure_utc(value: datetime) -> datetime:
    """Normalize an instant to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Interval:
    """Half-open interval [start, end)"""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end < self.start:
            raise InvalidDateRangeError(
                f"Interval end {self.end.isoformat()} precedes start {self.start.isoformat()}"
            )

    @classmethod
    def window(cls, start: datetime, end: datetime) -> "Interval":
        """Build a query window; the window must be non-empty."""
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            raise InvalidDateRangeError(
                f"Window end {end.isoformat()} must be after start {start.isoformat()}"
            )
        return cls(start, end)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end


__all__ = ["Interval", "ensure_utc", "utc_now"]
