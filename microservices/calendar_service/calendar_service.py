"""
Calendar Service - Business Logic

日历事件管理业务逻辑层

Uses dependency injection for testability.
- Repository is injected, not created at import time
- Occurrence expansion and availability are delegated to pure components
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from core.nats_client import EventType

from .availability import AvailabilityAggregator
from .event_query import DEFAULT_WINDOW_DAYS, Clock, EventQueryService
from .events.publishers import CalendarEventPublisher
from .expander import OccurrenceExpander
from .intervals import Interval, ensure_utc, utc_now
from .models import (
    DEFAULT_EVENT_COLOR,
    INVITE_TRANSITIONS,
    AvailabilityResponse,
    CalendarEvent,
    DeletedEventResponse,
    EventCreateRequest,
    EventInvite,
    EventListResponse,
    EventUpdateRequest,
    InviteCreateResponse,
    InviteStatus,
    MyInviteResponse,
    Occurrence,
)
from .protocols import (
    CalendarEventNotFoundError,
    CalendarEventRepositoryProtocol,
    DuplicateInviteError,
    EventPermissionError,
    EventStateError,
    InvalidDateRangeError,
    InvalidInviteTransitionError,
    InviteNotFoundError,
)
from .recurrence import validate_recurrence

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION = timedelta(hours=1)
DELETED_RETENTION_DAYS = 30


class CalendarServiceError(Exception):
    """Base exception for service errors"""
    pass


class CalendarServiceValidationError(CalendarServiceError, ValueError):
    """Validation error"""
    pass


class CalendarService:
    """
    Calendar service business logic

    Handles all business operations while delegating
    data access to the repository layer.
    """

    def __init__(
        self,
        repository: CalendarEventRepositoryProtocol,
        event_bus=None,
        clock: Clock = utc_now,
        expander: Optional[OccurrenceExpander] = None,
        default_window_days: int = DEFAULT_WINDOW_DAYS,
        retention_days: int = DELETED_RETENTION_DAYS,
    ):
        """
        Initialize service with injected dependencies.

        Args:
            repository: Repository (inject mock for testing)
            event_bus: Event bus for publishing events
            clock: Source of "now"
            expander: Occurrence expander carrying the iteration caps
            default_window_days: Window length when a query gives no end
            retention_days: Days a deleted event stays restorable
        """
        self.repo = repository
        self.event_bus = event_bus
        self.clock = clock
        self.retention_days = retention_days
        self.expander = expander or OccurrenceExpander()
        self.query = EventQueryService(
            repository, expander=self.expander, clock=clock, default_window_days=default_window_days
        )
        self.aggregator = AvailabilityAggregator(self.query)
        self.publisher = CalendarEventPublisher(event_bus)

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    # ====================
    # 事件 CRUD
    # ====================

    async def create_event(self, request: EventCreateRequest) -> CalendarEvent:
        """创建日历事件"""
        start = ensure_utc(request.start_time)
        end = ensure_utc(request.end_time) if request.end_time else start + DEFAULT_EVENT_DURATION
        if end <= start:
            raise InvalidDateRangeError("End time must be after start time")
        if request.recurrence is not None:
            validate_recurrence(request.recurrence, start)

        event_data = {
            "user_id": request.user_id,
            "title": request.title,
            "description": request.description,
            "color": request.color or DEFAULT_EVENT_COLOR,
            "start_time": start,
            "end_time": end,
        }
        event = await self.repo.create_event(event_data, request.recurrence)
        logger.info(f"Created event {event.event_id} for user {request.user_id}")

        await self.publisher.publish_event_changed(EventType.CALENDAR_EVENT_CREATED, event)
        return event

    async def get_event(self, event_id: str, user_id: str) -> CalendarEvent:
        """获取事件详情 (owner or accepted invitee)"""
        event = await self.repo.get_event_by_id(event_id)
        if event is None:
            raise CalendarEventNotFoundError(f"Event {event_id} not found")
        if event.user_id != user_id and not await self._has_accepted_invite(event_id, user_id):
            raise EventPermissionError(f"User {user_id} cannot view event {event_id}")
        return event

    async def update_event(
        self, event_id: str, request: EventUpdateRequest, user_id: str
    ) -> CalendarEvent:
        """
        更新事件

        Only fields present in the request are changed. A recurrence present in
        the request replaces the stored rule; an explicit null removes it.
        """
        existing = await self._require_owned(event_id, user_id)

        sent = request.model_fields_set
        updates = {
            field: getattr(request, field)
            for field in ("title", "description", "color", "start_time", "end_time")
            if field in sent and (field == "description" or getattr(request, field) is not None)
        }

        start = ensure_utc(updates.get("start_time", existing.start_time))
        end = ensure_utc(updates.get("end_time", existing.end_time))
        if end <= start:
            raise InvalidDateRangeError("End time must be after start time")
        for field, value in (("start_time", start), ("end_time", end)):
            if field in updates:
                updates[field] = value

        replace_recurrence = "recurrence" in sent
        recurrence = request.recurrence if replace_recurrence else existing.recurrence
        if recurrence is not None:
            validate_recurrence(recurrence, start)

        updated = await self.repo.update_event(
            event_id,
            updates,
            recurrence=request.recurrence if replace_recurrence else None,
            replace_recurrence=replace_recurrence,
        )
        if updated is None:
            raise CalendarEventNotFoundError(f"Event {event_id} not found")

        changed = sorted(updates) + (["recurrence"] if replace_recurrence else [])
        logger.info(f"Updated event {event_id}: {changed}")
        await self.publisher.publish_event_changed(
            EventType.CALENDAR_EVENT_UPDATED, updated, updated_fields=changed
        )
        return updated

    # ====================
    # 回收站
    # ====================

    async def delete_event(self, event_id: str, user_id: str) -> bool:
        """删除事件 (moves it to the trash)"""
        event = await self._require_owned(event_id, user_id, include_deleted=True)
        if event.is_deleted:
            raise EventStateError(f"Event {event_id} is already deleted")

        deleted = await self.repo.soft_delete_event(event_id, self._now())
        if deleted:
            logger.info(f"Deleted event {event_id}")
            await self.publisher.publish_event_changed(EventType.CALENDAR_EVENT_DELETED, event)
        return deleted

    async def restore_event(self, event_id: str, user_id: str) -> CalendarEvent:
        """恢复事件 within the retention period"""
        event = await self._require_owned(event_id, user_id, include_deleted=True)
        if not event.is_deleted:
            raise EventStateError(f"Event {event_id} is not deleted")
        if self._days_since_deletion(event) >= self.retention_days:
            raise EventStateError(
                f"Event {event_id} was deleted more than {self.retention_days} days ago"
            )

        restored = await self.repo.restore_event(event_id)
        if restored is None:
            raise CalendarEventNotFoundError(f"Event {event_id} not found")
        logger.info(f"Restored event {event_id}")
        await self.publisher.publish_event_changed(EventType.CALENDAR_EVENT_RESTORED, restored)
        return restored

    async def permanently_delete_event(self, event_id: str, user_id: str) -> bool:
        """永久删除 an event whose retention period has passed"""
        event = await self._require_owned(event_id, user_id, include_deleted=True)
        if not event.is_deleted:
            raise EventStateError(f"Event {event_id} must be deleted before it can be purged")
        if self._days_since_deletion(event) < self.retention_days:
            raise EventStateError(
                f"Event {event_id} can be purged {self.retention_days} days after deletion"
            )

        removed = await self.repo.hard_delete_event(event_id)
        if removed:
            logger.info(f"Permanently deleted event {event_id}")
            await self.publisher.publish_event_changed(EventType.CALENDAR_EVENT_PURGED, event)
        return removed

    async def list_deleted_events(self, user_id: str) -> List[DeletedEventResponse]:
        """回收站列表"""
        events = await self.repo.find_deleted_events(user_id)
        result = []
        for event in events:
            days = self._days_since_deletion(event)
            result.append(
                DeletedEventResponse(
                    **event.model_dump(),
                    days_since_deletion=days,
                    is_restorable=days < self.retention_days,
                )
            )
        return result

    def _days_since_deletion(self, event: CalendarEvent) -> int:
        return (self._now() - event.deleted_at).days

    # ====================
    # 事件查询
    # ====================

    async def list_events(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> EventListResponse:
        """查询事件列表 (owned and accepted-invite occurrences)"""
        window, explicit = self.query.resolve_window(start, end)
        occurrences = await self.query.events_in_window(user_id, window, explicit)
        return self._list_response(occurrences, window)

    async def get_today_events(self, user_id: str) -> EventListResponse:
        """获取今天的事件 (current UTC day)"""
        day_start = self._now().replace(hour=0, minute=0, second=0, microsecond=0)
        return await self.list_events(user_id, day_start, day_start + timedelta(days=1))

    async def get_upcoming_events(self, user_id: str, days: int = 7) -> EventListResponse:
        """获取即将到来的事件"""
        if days < 1:
            raise CalendarServiceValidationError("days must be at least 1")
        now = self._now()
        return await self.list_events(user_id, now, now + timedelta(days=days))

    async def get_past_events(self, user_id: str, days: int = 30) -> EventListResponse:
        """获取过去的事件"""
        if days < 1:
            raise CalendarServiceValidationError("days must be at least 1")
        now = self._now()
        return await self.list_events(user_id, now - timedelta(days=days), now)

    async def expand_event(
        self,
        event_id: str,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> EventListResponse:
        """Occurrences of one event in a window"""
        event = await self.get_event(event_id, user_id)
        window, _ = self.query.resolve_window(start, end)
        occurrences = self.expander.expand(event, window.start, window.end)
        if event.user_id != user_id:
            occurrences = [o.model_copy(update={"is_invited": True}) for o in occurrences]
        return self._list_response(occurrences, window)

    async def friend_events(
        self,
        friend_ids: Sequence[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> EventListResponse:
        """Read-only occurrences of other users' own events"""
        users = list(dict.fromkeys(friend_ids))
        if not users:
            raise CalendarServiceValidationError("At least one user ID is required")
        window, _ = self.query.resolve_window(start, end)
        occurrences = await self.query.events_for_users(users, window.start, window.end)
        return self._list_response(occurrences, window)

    async def availability(
        self, user_ids: Sequence[str], start: datetime, end: datetime
    ) -> AvailabilityResponse:
        """Free/busy across users"""
        return await self.aggregator.availability(user_ids, start, end)

    @staticmethod
    def _list_response(occurrences: List[Occurrence], window: Interval) -> EventListResponse:
        return EventListResponse(
            events=occurrences,
            total=len(occurrences),
            window_start=window.start,
            window_end=window.end,
        )

    # ====================
    # 邀请
    # ====================

    async def invite_users(
        self, event_id: str, owner_id: str, user_ids: Sequence[str]
    ) -> InviteCreateResponse:
        """
        Invite users to an owned event.

        Users already invited are reported in `skipped`; when every user is
        already invited, DuplicateInviteError is raised.
        """
        await self._require_owned(event_id, owner_id)

        invitees = list(dict.fromkeys(user_ids))
        if owner_id in invitees:
            raise CalendarServiceValidationError("Cannot invite yourself to your own event")

        invites: List[EventInvite] = []
        skipped: List[str] = []
        sent_at = self._now()
        for invitee in invitees:
            invite = await self.repo.create_invite(event_id, owner_id, invitee, sent_at)
            if invite is None:
                skipped.append(invitee)
                continue
            invites.append(invite)
            await self.publisher.publish_invite(invite)

        if skipped and not invites:
            raise DuplicateInviteError(f"All users are already invited to event {event_id}")

        logger.info(f"Invited {len(invites)} users to {event_id}, skipped {skipped}")
        return InviteCreateResponse(invites=invites, skipped=skipped)

    async def list_event_invites(self, event_id: str, owner_id: str) -> List[EventInvite]:
        """All invites for an owned event"""
        await self._require_owned(event_id, owner_id)
        return await self.repo.get_event_invites(event_id)

    async def get_my_invite(self, event_id: str, user_id: str) -> MyInviteResponse:
        """The caller's invite for an event, if any"""
        invite = await self.repo.get_invite_for_user(event_id, user_id)
        return MyInviteResponse(has_invite=invite is not None, invite=invite)

    async def list_user_invites(
        self, user_id: str, status: Optional[InviteStatus] = None
    ) -> List[EventInvite]:
        """Invites received by a user"""
        return await self.repo.get_invites_for_user(user_id, status)

    async def accept_invite(self, invite_id: str, user_id: str) -> EventInvite:
        invite = await self._require_invitee(invite_id, user_id)
        if await self.repo.get_event_by_id(invite.event_id) is None:
            raise CalendarEventNotFoundError(f"Event {invite.event_id} not found")
        return await self._transition(invite, InviteStatus.ACCEPTED)

    async def decline_invite(self, invite_id: str, user_id: str) -> EventInvite:
        invite = await self._require_invitee(invite_id, user_id)
        return await self._transition(invite, InviteStatus.DECLINED)

    async def cancel_invite(self, invite_id: str, user_id: str) -> EventInvite:
        """Withdraw an invite (inviter only)"""
        invite = await self._get_invite(invite_id)
        if invite.invited_by != user_id:
            raise EventPermissionError(f"Only the inviter can cancel invite {invite_id}")
        return await self._transition(invite, InviteStatus.CANCELLED)

    async def _transition(self, invite: EventInvite, target: InviteStatus) -> EventInvite:
        if target not in INVITE_TRANSITIONS[invite.status]:
            raise InvalidInviteTransitionError(
                f"Invite {invite.invite_id} cannot move from {invite.status.value} to {target.value}"
            )
        updated = await self.repo.update_invite_status(invite.invite_id, target, self._now())
        if updated is None:
            raise InviteNotFoundError(f"Invite {invite.invite_id} not found")
        logger.info(f"Invite {invite.invite_id}: {invite.status.value} -> {target.value}")
        await self.publisher.publish_invite(updated)
        return updated

    async def _get_invite(self, invite_id: str) -> EventInvite:
        invite = await self.repo.get_invite_by_id(invite_id)
        if invite is None:
            raise InviteNotFoundError(f"Invite {invite_id} not found")
        return invite

    async def _require_invitee(self, invite_id: str, user_id: str) -> EventInvite:
        invite = await self._get_invite(invite_id)
        if invite.invited_user_id != user_id:
            raise EventPermissionError(f"Invite {invite_id} belongs to another user")
        return invite

    async def _has_accepted_invite(self, event_id: str, user_id: str) -> bool:
        invite = await self.repo.get_invite_for_user(event_id, user_id)
        return invite is not None and invite.status == InviteStatus.ACCEPTED

    async def _require_owned(
        self, event_id: str, user_id: str, include_deleted: bool = False
    ) -> CalendarEvent:
        event = await self.repo.get_event_by_id(event_id, include_deleted=include_deleted)
        if event is None:
            raise CalendarEventNotFoundError(f"Event {event_id} not found")
        if event.user_id != user_id:
            raise EventPermissionError(f"User {user_id} does not own event {event_id}")
        return event

    # ====================
    # GDPR 数据管理
    # ====================

    async def delete_user_data(self, user_id: str) -> int:
        """删除用户所有日历数据"""
        count = await self.repo.delete_user_data(user_id)
        logger.info(f"Deleted {count} calendar records for user {user_id}")
        return count


__all__ = ["CalendarService", "CalendarServiceError", "CalendarServiceValidationError"]
