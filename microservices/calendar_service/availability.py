"""
Availability Aggregator

Free/busy computation across users.
"""

import logging
from datetime import datetime
from typing import List, Sequence

from .event_query import EventQueryService
from .intervals import Interval
from .models import AvailabilityResponse, BusyInterval, FreeInterval

logger = logging.getLogger(__name__)


def compute_free_intervals(
    busy: Sequence[BusyInterval], window_start: datetime, window_end: datetime
) -> List[FreeInterval]:
    """
    Gaps of [window_start, window_end) not covered by any busy interval.

    `busy` must be sorted by start. Overlapping entries collapse through the
    cursor advance; the busy list itself is left untouched.
    """
    free: List[FreeInterval] = []
    cursor = window_start
    for interval in busy:
        if cursor < interval.start:
            free.append(FreeInterval(start=cursor, end=interval.start))
        cursor = max(cursor, interval.end)
    if cursor < window_end:
        free.append(FreeInterval(start=cursor, end=window_end))
    return free


class AvailabilityAggregator:
    """Gathers busy intervals through the query service and inverts them"""

    def __init__(self, query_service: EventQueryService):
        self.query_service = query_service

    async def availability(
        self, user_ids: Sequence[str], window_start: datetime, window_end: datetime
    ) -> AvailabilityResponse:
        """
        Busy entries (one per occurrence, unmerged) and free gaps for the users.

        Raises:
            InvalidDateRangeError: window_end is not after window_start
            ValueError: no user IDs given
        """
        window = Interval.window(window_start, window_end)
        users = list(dict.fromkeys(user_ids))
        if not users:
            raise ValueError("At least one user ID is required")

        busy: List[BusyInterval] = []
        for user_id in users:
            occurrences = await self.query_service.events_for_user(user_id, window.start, window.end)
            busy.extend(
                BusyInterval(
                    start=occurrence.start_time,
                    end=occurrence.end_time,
                    user_id=user_id,
                    event_id=occurrence.event_id,
                    title=occurrence.title,
                )
                for occurrence in occurrences
            )

        busy.sort(key=lambda interval: interval.start)
        free = compute_free_intervals(busy, window.start, window.end)

        logger.debug(f"Availability for {len(users)} users: {len(busy)} busy, {len(free)} free")
        return AvailabilityResponse(
            busy=busy, free=free, window_start=window.start, window_end=window.end
        )


__all__ = ["AvailabilityAggregator", "compute_free_intervals"]
