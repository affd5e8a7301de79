"""
Calendar Service Models

日历事件管理数据模型 - events, recurrence rules, occurrences, invites, availability
"""

from typing import Optional, Dict, List, Set
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from enum import Enum

from .intervals import ensure_utc


DEFAULT_EVENT_COLOR = "#0000af"


class RecurrencePattern(str, Enum):
    """事件重复类型"""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class Weekday(str, Enum):
    """Weekday tags; offsets count from Sunday"""
    SUNDAY = "SUNDAY"
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"

    @property
    def offset(self) -> int:
        return list(Weekday).index(self)


class InviteStatus(str, Enum):
    """邀请状态"""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


# Allowed status changes. Who may perform each one is checked by the service.
INVITE_TRANSITIONS: Dict[InviteStatus, Set[InviteStatus]] = {
    InviteStatus.PENDING: {InviteStatus.ACCEPTED, InviteStatus.DECLINED, InviteStatus.CANCELLED},
    InviteStatus.ACCEPTED: {InviteStatus.DECLINED, InviteStatus.CANCELLED},
    InviteStatus.DECLINED: set(),
    InviteStatus.CANCELLED: set(),
}


class Recurrence(BaseModel):
    """
    Recurrence rule attached to one event.

    The anchor (time of day and phase) is the owning event's start_time.
    weekdays is used only by WEEKLY, month_days only by MONTHLY.
    """
    pattern: RecurrencePattern
    end_at: Optional[datetime] = Field(None, description="No occurrences start after this instant")
    weekdays: List[Weekday] = Field(default_factory=list)
    month_days: List[int] = Field(default_factory=list, description="Days of month (1-31)")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("end_at")
    @classmethod
    def normalize_end_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("weekdays")
    @classmethod
    def normalize_weekdays(cls, v: List[Weekday]) -> List[Weekday]:
        return sorted(set(v), key=lambda day: day.offset)

    @field_validator("month_days")
    @classmethod
    def normalize_month_days(cls, v: List[int]) -> List[int]:
        return sorted(set(v))


class CalendarEvent(BaseModel):
    """日历事件模型"""
    event_id: str = Field(..., description="事件唯一标识")
    user_id: str = Field(..., description="Owner user ID")

    title: str = Field(..., description="事件标题")
    description: Optional[str] = None
    color: str = Field(DEFAULT_EVENT_COLOR, description="事件颜色 (#RRGGBB)")

    start_time: datetime = Field(..., description="开始时间")
    end_time: datetime = Field(..., description="结束时间")

    deleted_at: Optional[datetime] = None
    recurrence: Optional[Recurrence] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("start_time", "end_time", "deleted_at", "created_at", "updated_at")
    @classmethod
    def normalize_instants(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Occurrence(BaseModel):
    """One concrete instance of an event in a query window (never persisted)"""
    event_id: str
    user_id: str
    title: str
    description: Optional[str] = None
    color: str = DEFAULT_EVENT_COLOR
    start_time: datetime
    end_time: datetime
    is_recurring: bool = False
    is_invited: bool = Field(False, description="Reached through an accepted invite")


class EventInvite(BaseModel):
    """Invite to another user's event"""
    invite_id: str
    event_id: str
    invited_by: str
    invited_user_id: str
    status: InviteStatus = InviteStatus.PENDING
    sent_at: datetime
    responded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("sent_at", "responded_at")
    @classmethod
    def normalize_instants(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None


class BusyInterval(BaseModel):
    """A window during which a user is committed to an event"""
    start: datetime
    end: datetime
    user_id: str
    event_id: str
    title: str


class FreeInterval(BaseModel):
    """A maximal gap in the merged busy timeline"""
    start: datetime
    end: datetime


# Request Models

class EventCreateRequest(BaseModel):
    """创建事件请求"""
    user_id: str
    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    start_time: datetime
    end_time: Optional[datetime] = Field(None, description="Defaults to one hour after start")
    recurrence: Optional[Recurrence] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_instants(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Event title is required")
        return v


class EventUpdateRequest(BaseModel):
    """
    更新事件请求

    Only fields that are sent are applied. Sending "recurrence": null removes
    the recurrence; sending a rule replaces the existing one.
    """
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    recurrence: Optional[Recurrence] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_instants(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Event title cannot be empty")
        return v


class InviteCreateRequest(BaseModel):
    """Invite users to an event"""
    user_ids: List[str] = Field(..., min_length=1)


class AvailabilityRequest(BaseModel):
    """Free/busy query across users"""
    user_ids: List[str] = Field(..., min_length=1)
    start: datetime
    end: datetime


# Response Models

class EventListResponse(BaseModel):
    """事件列表响应"""
    events: List[Occurrence]
    total: int
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None


class DeletedEventResponse(CalendarEvent):
    """Soft-deleted event with its retention status"""
    days_since_deletion: int
    is_restorable: bool


class InviteCreateResponse(BaseModel):
    """Result of inviting users"""
    invites: List[EventInvite]
    skipped: List[str] = Field(default_factory=list, description="User IDs already invited")


class MyInviteResponse(BaseModel):
    """The caller's own invite for an event"""
    has_invite: bool
    invite: Optional[EventInvite] = None


class AvailabilityResponse(BaseModel):
    """Unmerged busy entries plus the free gaps between them"""
    busy: List[BusyInterval]
    free: List[FreeInterval]
    window_start: datetime
    window_end: datetime


__all__ = [
    "DEFAULT_EVENT_COLOR",
    "RecurrencePattern",
    "Weekday",
    "InviteStatus",
    "INVITE_TRANSITIONS",
    "Recurrence",
    "CalendarEvent",
    "Occurrence",
    "EventInvite",
    "BusyInterval",
    "FreeInterval",
    "EventCreateRequest",
    "EventUpdateRequest",
    "InviteCreateRequest",
    "AvailabilityRequest",
    "EventListResponse",
    "DeletedEventResponse",
    "InviteCreateResponse",
    "MyInviteResponse",
    "AvailabilityResponse",
]
