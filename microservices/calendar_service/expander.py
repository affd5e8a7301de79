"""
Occurrence Expander

Turns an event and its optional recurrence rule into the concrete
occurrences that start inside a query window.

Rules shared by every pattern:
- occurrences take the time of day of event.start_time and keep the
  event's duration
- an occurrence is kept only if its start is >= window start, >= the
  event's own start, < window end, and <= recurrence.end_at when set
- WEEKLY stops after max_weekly_steps weeks and MONTHLY after
  max_monthly_steps months, truncating without error
"""

from datetime import datetime
from typing import List, Optional

from .intervals import Interval
from .models import CalendarEvent, Occurrence, Recurrence
from .protocols import InvalidDateRangeError
from .recurrence import (
    MAX_MONTHLY_STEPS,
    MAX_WEEKLY_STEPS,
    at_anchor_time,
    candidate_days,
)


class OccurrenceExpander:
    """Pure occurrence generator; holds only its iteration caps"""

    def __init__(
        self,
        max_weekly_steps: int = MAX_WEEKLY_STEPS,
        max_monthly_steps: int = MAX_MONTHLY_STEPS,
    ):
        self.max_weekly_steps = max_weekly_steps
        self.max_monthly_steps = max_monthly_steps

    def expand(
        self, event: CalendarEvent, window_start: datetime, window_end: datetime
    ) -> List[Occurrence]:
        """
        Occurrences of `event` in [window_start, window_end), ascending by start.

        A non-recurring event is returned as its single occurrence when its
        interval intersects the window.

        Raises:
            InvalidDateRangeError: empty window, or event end not after its start
        """
        window = Interval.window(window_start, window_end)
        if event.end_time <= event.start_time:
            raise InvalidDateRangeError(f"Event {event.event_id} ends before it starts")

        if event.recurrence is None:
            if Interval(event.start_time, event.end_time).overlaps(window):
                return [self.project(event, event.start_time)]
            return []

        recurrence = event.recurrence
        first = max(event.start_time, window.start)
        days = candidate_days(
            recurrence, first.date(), self.max_weekly_steps, self.max_monthly_steps
        )

        occurrences = []
        for day in days:
            start = at_anchor_time(day.date(), event.start_time)
            if _past_bound(start, window, recurrence):
                break
            if _accepts(start, event, window):
                occurrences.append(self.project(event, start))
        occurrences.sort(key=lambda occurrence: occurrence.start_time)
        return occurrences

    def project(self, event: CalendarEvent, start: datetime) -> Occurrence:
        """Event-shaped occurrence starting at `start`; the event is not modified"""
        return Occurrence(
            event_id=event.event_id,
            user_id=event.user_id,
            title=event.title,
            description=event.description,
            color=event.color,
            start_time=start,
            end_time=start + (event.end_time - event.start_time),
            is_recurring=event.is_recurring,
        )


def _past_bound(start: datetime, window: Interval, recurrence: Optional[Recurrence]) -> bool:
    if start >= window.end:
        return True
    return recurrence is not None and recurrence.end_at is not None and start > recurrence.end_at


def _accepts(start: datetime, event: CalendarEvent, window: Interval) -> bool:
    return start >= window.start and start >= event.start_time


_default_expander = OccurrenceExpander()


def expand(event: CalendarEvent, window_start: datetime, window_end: datetime) -> List[Occurrence]:
    """Expand with the default iteration caps"""
    return _default_expander.expand(event, window_start, window_end)


__all__ = ["OccurrenceExpander", "expand"]
