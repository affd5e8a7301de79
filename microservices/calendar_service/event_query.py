"""
Event Query Service

Builds a user's time-ordered occurrence list for a window from the events
they own and the events they accepted invites to.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from .expander import OccurrenceExpander
from .intervals import Interval, ensure_utc, utc_now
from .models import CalendarEvent, Occurrence
from .protocols import CalendarEventRepositoryProtocol

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_WINDOW_DAYS = 730


class EventQueryService:
    """
    Occurrence queries over the repository.

    Args:
        repository: Event store
        expander: Occurrence expander (caps come from it)
        clock: Source of "now" for default windows
        default_window_days: Length of the window used when the caller gives no end
    """

    def __init__(
        self,
        repository: CalendarEventRepositoryProtocol,
        expander: Optional[OccurrenceExpander] = None,
        clock: Clock = utc_now,
        default_window_days: int = DEFAULT_WINDOW_DAYS,
    ):
        self.repo = repository
        self.expander = expander or OccurrenceExpander()
        self.clock = clock
        self.default_window = timedelta(days=default_window_days)

    def resolve_window(
        self, window_start: Optional[datetime] = None, window_end: Optional[datetime] = None
    ) -> Tuple[Interval, bool]:
        """
        Effective window and whether the caller supplied one.

        Missing start means now; missing end means start + default window.
        """
        explicit = window_start is not None or window_end is not None
        start = ensure_utc(window_start) if window_start is not None else ensure_utc(self.clock())
        end = ensure_utc(window_end) if window_end is not None else start + self.default_window
        return Interval.window(start, end), explicit

    async def events_for_user(
        self,
        user_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[Occurrence]:
        """
        Occurrences of the user's owned and accepted-invite events.

        Non-recurring events are kept when their start lies in the window, or
        when no window was given, when they start at or after now. Recurring
        events are expanded over the effective window whatever their anchor.

        Store failures propagate; no partial result is returned.
        """
        window, explicit = self.resolve_window(window_start, window_end)
        return await self.events_in_window(user_id, window, explicit)

    async def events_in_window(
        self, user_id: str, window: Interval, explicit: bool
    ) -> List[Occurrence]:
        """Owned and accepted-invite occurrences for an already resolved window"""
        owned = await self.repo.find_base_events_owned_by(user_id)
        invited = await self.repo.find_accepted_invite_events_for(user_id)

        owned_ids = {event.event_id for event in owned}
        duplicates = [event.event_id for event in invited if event.event_id in owned_ids]
        if duplicates:
            logger.warning(f"User {user_id} holds accepted invites to own events {duplicates}; using owned copies")

        occurrences = self._expand_all(owned, window, explicit)
        occurrences.extend(
            occurrence.model_copy(update={"is_invited": True})
            for occurrence in self._expand_all(
                [event for event in invited if event.event_id not in owned_ids], window, explicit
            )
        )
        occurrences.sort(key=lambda occurrence: occurrence.start_time)
        return occurrences

    async def events_for_users(
        self, user_ids: List[str], window_start: datetime, window_end: datetime
    ) -> List[Occurrence]:
        """Occurrences of events owned by any of the users in an explicit window"""
        window = Interval.window(window_start, window_end)
        events = await self.repo.find_events_for_users_in_range(user_ids, window.start, window.end)
        occurrences = self._expand_all(events, window, explicit=True)
        occurrences.sort(key=lambda occurrence: occurrence.start_time)
        return occurrences

    def _expand_all(
        self, events: List[CalendarEvent], window: Interval, explicit: bool
    ) -> List[Occurrence]:
        occurrences: List[Occurrence] = []
        for event in events:
            if event.is_deleted:
                continue
            if event.is_recurring:
                occurrences.extend(self.expander.expand(event, window.start, window.end))
                continue
            # an implicit window starts at now
            in_range = window.contains(event.start_time) if explicit else event.start_time >= window.start
            if in_range:
                occurrences.append(self.expander.project(event, event.start_time))
        return occurrences


__all__ = ["EventQueryService", "Clock", "DEFAULT_WINDOW_DAYS"]
