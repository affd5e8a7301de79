"""
Calendar Service Microservice

日历事件管理微服务 - 重复事件展开、空闲时间查询、事件邀请
"""

from .client import CalendarServiceClient
from .calendar_service import CalendarService
from .expander import OccurrenceExpander
from .models import (
    CalendarEvent,
    EventCreateRequest,
    EventUpdateRequest,
    EventInvite,
    InviteStatus,
    Occurrence,
    Recurrence,
    RecurrencePattern,
    Weekday,
)

__version__ = "1.0.0"
__all__ = [
    "CalendarServiceClient",
    "CalendarService",
    "OccurrenceExpander",
    "CalendarEvent",
    "EventCreateRequest",
    "EventUpdateRequest",
    "EventInvite",
    "InviteStatus",
    "Occurrence",
    "Recurrence",
    "RecurrencePattern",
    "Weekday",
]
