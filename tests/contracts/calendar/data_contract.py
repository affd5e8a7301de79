"""
Calendar Service - Data Contract

Test data factory and request builders.
Zero hardcoded data - all test data generated through factory methods.

Usage:
    from tests.contracts.calendar.data_contract import (
        CalendarTestDataFactory,
        EventCreateRequestBuilder,
    )
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone, timedelta
import secrets
import uuid

from microservices.calendar_service.models import (
    CalendarEvent,
    EventCreateRequest,
    EventInvite,
    InviteStatus,
    Recurrence,
    RecurrencePattern,
    Weekday,
)


# ============================================================================
# Test Data Factory
# ============================================================================

class CalendarTestDataFactory:
    """Test data factory for calendar_service"""

    # ------------------------------------------------------------------
    # IDs
    # ------------------------------------------------------------------

    @staticmethod
    def make_event_id() -> str:
        """evt_<uuid16>"""
        return f"evt_{uuid.uuid4().hex[:16]}"

    @staticmethod
    def make_invite_id() -> str:
        """inv_<uuid16>"""
        return f"inv_{uuid.uuid4().hex[:16]}"

    @staticmethod
    def make_user_id() -> str:
        """usr_<uuid12>"""
        return f"usr_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def make_title() -> str:
        return f"Event {secrets.token_hex(4)}"

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    @staticmethod
    def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
        return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)

    # ------------------------------------------------------------------
    # Domain objects
    # ------------------------------------------------------------------

    @staticmethod
    def make_recurrence(
        pattern: RecurrencePattern = RecurrencePattern.DAILY,
        end_at: Optional[datetime] = None,
        weekdays: Optional[List[Weekday]] = None,
        month_days: Optional[List[int]] = None,
    ) -> Recurrence:
        return Recurrence(
            pattern=pattern,
            end_at=end_at,
            weekdays=weekdays or [],
            month_days=month_days or [],
        )

    @classmethod
    def make_event(
        cls,
        start_time: Optional[datetime] = None,
        duration: timedelta = timedelta(hours=1),
        recurrence: Optional[Recurrence] = None,
        **overrides: Any,
    ) -> CalendarEvent:
        """A stored event; pass user_id, title, deleted_at... as overrides"""
        start = start_time or cls.utc(2025, 1, 6, 9, 0)
        data: Dict[str, Any] = {
            "event_id": cls.make_event_id(),
            "user_id": cls.make_user_id(),
            "title": cls.make_title(),
            "start_time": start,
            "end_time": start + duration,
            "recurrence": recurrence,
        }
        data.update(overrides)
        return CalendarEvent(**data)

    @classmethod
    def make_invite(
        cls,
        event_id: str,
        invited_by: str,
        invited_user_id: Optional[str] = None,
        status: InviteStatus = InviteStatus.PENDING,
    ) -> EventInvite:
        return EventInvite(
            invite_id=cls.make_invite_id(),
            event_id=event_id,
            invited_by=invited_by,
            invited_user_id=invited_user_id or cls.make_user_id(),
            status=status,
            sent_at=datetime.now(timezone.utc),
        )


# ============================================================================
# Request Builders
# ============================================================================

class EventCreateRequestBuilder:
    """Fluent builder for EventCreateRequest"""

    def __init__(self):
        self._data: Dict[str, Any] = {
            "user_id": CalendarTestDataFactory.make_user_id(),
            "title": CalendarTestDataFactory.make_title(),
            "start_time": datetime.now(timezone.utc) + timedelta(days=1),
        }

    def with_user_id(self, user_id: str) -> "EventCreateRequestBuilder":
        self._data["user_id"] = user_id
        return self

    def with_title(self, title: str) -> "EventCreateRequestBuilder":
        self._data["title"] = title
        return self

    def with_times(
        self, start_time: datetime, end_time: Optional[datetime] = None
    ) -> "EventCreateRequestBuilder":
        self._data["start_time"] = start_time
        if end_time is not None:
            self._data["end_time"] = end_time
        return self

    def with_color(self, color: str) -> "EventCreateRequestBuilder":
        self._data["color"] = color
        return self

    def with_recurrence(self, recurrence: Recurrence) -> "EventCreateRequestBuilder":
        self._data["recurrence"] = recurrence
        return self

    def build(self) -> EventCreateRequest:
        return EventCreateRequest(**self._data)

    def build_dict(self) -> Dict[str, Any]:
        """JSON body for HTTP tests"""
        return self.build().model_dump(mode="json", exclude_none=True)


__all__ = ["CalendarTestDataFactory", "EventCreateRequestBuilder"]
