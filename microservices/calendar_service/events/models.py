"""
Calendar Service Event Models

Event data models for calendar event and invite lifecycle events.
Published event types live in core.nats_client.EventType.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CalendarSubscribedEventType(str, Enum):
    """Events that calendar_service subscribes to from other services."""
    USER_DELETED = "user.deleted"


# ============================================================================
# Calendar Event Models
# ============================================================================


class CalendarEventChangedEventData(BaseModel):
    """
    Event: calendar.event.created / updated / deleted / restored / purged
    Triggered on every change to a stored event
    """

    event_id: str = Field(..., description="Calendar event ID")
    user_id: str = Field(..., description="Owner user ID")
    title: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_recurring: bool = False
    updated_fields: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utc_now)


class CalendarInviteEventData(BaseModel):
    """
    Event: calendar.invite.sent / accepted / declined / cancelled
    Triggered when an invite is created or changes status
    """

    invite_id: str
    event_id: str
    invited_by: str
    invited_user_id: str
    status: str
    timestamp: datetime = Field(default_factory=_utc_now)


class UserDeletedEventData(BaseModel):
    """Event: user.deleted (published by account_service)"""

    user_id: str
    timestamp: Optional[datetime] = None


__all__ = [
    "CalendarSubscribedEventType",
    "CalendarEventChangedEventData",
    "CalendarInviteEventData",
    "UserDeletedEventData",
]
