"""
Calendar Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, runtime_checkable
from datetime import datetime

if TYPE_CHECKING:
    from .models import CalendarEvent, EventInvite, InviteStatus, Recurrence


# Custom exceptions - defined here to avoid importing repository
class CalendarEventNotFoundError(Exception):
    """Calendar event not found"""
    pass


class EventPermissionError(Exception):
    """Caller is not allowed to act on the event or invite"""
    pass


class InvalidDateRangeError(ValueError):
    """Window or recurrence end precedes its start"""
    pass


class InvalidRecurrenceRuleError(ValueError):
    """Pattern-specific recurrence field missing, empty or out of range"""
    pass


class EventStateError(ValueError):
    """Operation not allowed in the event's current deletion state"""
    pass


class InviteNotFoundError(Exception):
    """Event invite not found"""
    pass


class DuplicateInviteError(Exception):
    """An invite already exists for this event and user"""
    pass


class InvalidInviteTransitionError(ValueError):
    """Invite status change not allowed from its current status"""
    pass


class UpstreamStoreError(Exception):
    """The persistence layer failed"""
    pass


@runtime_checkable
class CalendarEventRepositoryProtocol(Protocol):
    """
    Interface for Calendar Event Repository.

    Implementations must provide these methods.
    Used for dependency injection to enable testing.
    Failures surface as UpstreamStoreError.
    """

    async def find_base_events_owned_by(self, user_id: str) -> List["CalendarEvent"]:
        """Non-deleted events owned by the user, with their recurrence"""
        ...

    async def find_accepted_invite_events_for(self, user_id: str) -> List["CalendarEvent"]:
        """Non-deleted events the user holds an ACCEPTED invite for"""
        ...

    async def find_events_for_users_in_range(
        self, user_ids: List[str], start: datetime, end: datetime
    ) -> List["CalendarEvent"]:
        """Non-deleted owned events of the users: recurring ones, plus those starting in [start, end)"""
        ...

    async def create_event(
        self, event_data: Dict[str, Any], recurrence: Optional["Recurrence"] = None
    ) -> "CalendarEvent":
        """Create a new calendar event with optional recurrence"""
        ...

    async def get_event_by_id(
        self, event_id: str, include_deleted: bool = False
    ) -> Optional["CalendarEvent"]:
        """Get event by ID"""
        ...

    async def update_event(
        self,
        event_id: str,
        updates: Dict[str, Any],
        recurrence: Optional["Recurrence"] = None,
        replace_recurrence: bool = False,
    ) -> Optional["CalendarEvent"]:
        """Update event fields; when replace_recurrence is set, delete and recreate its recurrence"""
        ...

    async def soft_delete_event(self, event_id: str, deleted_at: datetime) -> bool:
        """Mark an event deleted"""
        ...

    async def restore_event(self, event_id: str) -> Optional["CalendarEvent"]:
        """Clear an event's deletion mark"""
        ...

    async def hard_delete_event(self, event_id: str) -> bool:
        """Remove an event, its recurrence and its invites"""
        ...

    async def find_deleted_events(self, user_id: str) -> List["CalendarEvent"]:
        """Soft-deleted events owned by the user"""
        ...

    async def create_invite(
        self, event_id: str, invited_by: str, invited_user_id: str, sent_at: datetime
    ) -> Optional["EventInvite"]:
        """Create a PENDING invite; None when one already exists for the pair"""
        ...

    async def get_invite_by_id(self, invite_id: str) -> Optional["EventInvite"]:
        """Get invite by ID"""
        ...

    async def get_invite_for_user(
        self, event_id: str, user_id: str
    ) -> Optional["EventInvite"]:
        """Get the invite a user holds for an event"""
        ...

    async def get_event_invites(self, event_id: str) -> List["EventInvite"]:
        """All invites for an event"""
        ...

    async def get_invites_for_user(
        self, user_id: str, status: Optional["InviteStatus"] = None
    ) -> List["EventInvite"]:
        """Invites received by a user"""
        ...

    async def update_invite_status(
        self, invite_id: str, status: "InviteStatus", responded_at: datetime
    ) -> Optional["EventInvite"]:
        """Set an invite's status"""
        ...

    async def delete_user_data(self, user_id: str) -> int:
        """Delete all user calendar data (GDPR)"""
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Any) -> None:
        """Publish an event"""
        ...

    async def subscribe_to_events(self, pattern: str, handler: Any) -> None:
        """Subscribe to events matching pattern"""
        ...

    async def close(self) -> None:
        """Close the event bus connection"""
        ...
