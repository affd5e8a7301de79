"""
Calendar Service Event Publishers

Publish events for calendar event and invite lifecycle.
Publishing never raises: a failed publish is logged and the calling
operation still succeeds.
"""

import logging
from typing import List, Optional

from core.nats_client import Event, EventType, ServiceSource

from ..models import CalendarEvent, EventInvite, InviteStatus
from .models import CalendarEventChangedEventData, CalendarInviteEventData

logger = logging.getLogger(__name__)


# Invite status → event type published when an invite reaches it
_INVITE_EVENT_TYPES = {
    InviteStatus.PENDING: EventType.CALENDAR_INVITE_SENT,
    InviteStatus.ACCEPTED: EventType.CALENDAR_INVITE_ACCEPTED,
    InviteStatus.DECLINED: EventType.CALENDAR_INVITE_DECLINED,
    InviteStatus.CANCELLED: EventType.CALENDAR_INVITE_CANCELLED,
}


class CalendarEventPublisher:
    """Publishes calendar.* events on the injected bus (no-op without one)"""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus

    async def publish_event_changed(
        self,
        event_type: EventType,
        event: CalendarEvent,
        updated_fields: Optional[List[str]] = None,
    ) -> bool:
        """
        Publish calendar.event.* for a stored event

        Args:
            event_type: One of the CALENDAR_EVENT_* types
            event: Event after the change
            updated_fields: Fields changed by an update
        """
        event_data = CalendarEventChangedEventData(
            event_id=event.event_id,
            user_id=event.user_id,
            title=event.title,
            start_time=event.start_time,
            end_time=event.end_time,
            is_recurring=event.is_recurring,
            updated_fields=updated_fields or [],
        )
        return await self._publish(event_type, event_data.model_dump(mode="json"), event.event_id)

    async def publish_invite(self, invite: EventInvite) -> bool:
        """Publish calendar.invite.* matching the invite's current status"""
        event_data = CalendarInviteEventData(
            invite_id=invite.invite_id,
            event_id=invite.event_id,
            invited_by=invite.invited_by,
            invited_user_id=invite.invited_user_id,
            status=invite.status.value,
        )
        return await self._publish(
            _INVITE_EVENT_TYPES[invite.status], event_data.model_dump(mode="json"), invite.invite_id
        )

    async def _publish(self, event_type: EventType, data: dict, subject_id: str) -> bool:
        if not self.event_bus:
            return False
        try:
            event = Event(
                event_type=event_type,
                source=ServiceSource.CALENDAR_SERVICE,
                data=data,
            )
            published = await self.event_bus.publish_event(event)
            if published is False:
                logger.warning(f"Event bus did not publish {event_type.value} for {subject_id}")
                return False
            logger.info(f"Published {event_type.value} for {subject_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to publish {event_type.value} for {subject_id}: {e}")
            return False


__all__ = ["CalendarEventPublisher"]
