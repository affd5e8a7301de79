"""
Calendar Service - Main Application

日历事件管理微服务主应用
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Body, FastAPI, HTTPException, Path, Query

from core.config_manager import ConfigManager
from core.logger import setup_service_logger
from core.nats_client import get_event_bus

from .calendar_service import CalendarService
from .factory import create_calendar_service
from .models import (
    AvailabilityRequest,
    AvailabilityResponse,
    CalendarEvent,
    DeletedEventResponse,
    EventCreateRequest,
    EventInvite,
    EventListResponse,
    EventUpdateRequest,
    InviteCreateRequest,
    InviteCreateResponse,
    InviteStatus,
    MyInviteResponse,
)
from .protocols import (
    CalendarEventNotFoundError,
    DuplicateInviteError,
    EventPermissionError,
    InviteNotFoundError,
    UpstreamStoreError,
)

# Initialize config
config_manager = ConfigManager("calendar_service")
config = config_manager.get_service_config()

# Setup logger
app_logger = setup_service_logger("calendar_service", config.logging)
logger = app_logger


# Service instance
class CalendarMicroservice:
    def __init__(self):
        self.service: Optional[CalendarService] = None
        self.event_bus = None

    async def initialize(self):
        # Initialize event bus
        if config.nats_enabled:
            try:
                self.event_bus = await get_event_bus("calendar_service", config_manager)
                logger.info("Event bus initialized successfully")
            except Exception as e:
                logger.warning(
                    f"Failed to initialize event bus: {e}. Continuing without event publishing."
                )
                self.event_bus = None

        # Create service with real dependencies using factory
        self.service = create_calendar_service(
            config=config_manager,
            event_bus=self.event_bus
        )
        logger.info("Calendar service initialized")

        # Subscribe to events
        if self.event_bus and self.service:
            try:
                from .events import CalendarEventHandlers

                event_handlers = CalendarEventHandlers(self.service)
                handler_map = event_handlers.get_event_handler_map()

                for event_type, handler_func in handler_map.items():
                    await self.event_bus.subscribe_to_events(
                        pattern=event_type, handler=handler_func
                    )
                    logger.info(f"Subscribed to {event_type} events")

                logger.info(f"Subscribed to {len(handler_map)} event types")
            except Exception as e:
                logger.error(f"Failed to subscribe to events: {e}", exc_info=True)

    async def shutdown(self):
        if self.event_bus:
            try:
                await self.event_bus.close()
                logger.info("Calendar event bus closed")
            except Exception as e:
                logger.error(f"Error closing event bus: {e}")
        if self.service:
            db = getattr(self.service.repo, "db", None)
            if db is not None:
                await db.close()
        logger.info("Calendar service shutting down")


# Global instance
microservice = CalendarMicroservice()


# Lifespan management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    await microservice.initialize()
    yield
    await microservice.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Calendar Service",
    description="日历事件管理微服务 - Recurring events, availability and invites",
    version="1.0.0",
    lifespan=lifespan,
)


def _http_error(e: Exception, action: str) -> HTTPException:
    """Map a service exception to its HTTP status"""
    if isinstance(e, (CalendarEventNotFoundError, InviteNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, EventPermissionError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, DuplicateInviteError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, UpstreamStoreError):
        logger.error(f"Store failure while {action}: {e}")
        return HTTPException(status_code=503, detail="Calendar store unavailable")
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Internal server error")


# =============================================================================
# Health Check
# =============================================================================


@app.get("/api/v1/calendar/health")
@app.get("/health")
async def health_check():
    """健康检查"""
    return {"status": "healthy", "service": "calendar_service", "version": "1.0.0"}


# =============================================================================
# Calendar Event Endpoints
# =============================================================================


@app.post("/api/v1/calendar/events", response_model=CalendarEvent, status_code=201)
async def create_event(request: EventCreateRequest = Body(...)):
    """
    创建日历事件

    Create a new calendar event, optionally recurring
    """
    try:
        return await microservice.service.create_event(request)
    except Exception as e:
        raise _http_error(e, "creating event")


@app.get("/api/v1/calendar/events", response_model=EventListResponse)
async def list_events(
    user_id: str = Query(..., description="User ID"),
    start: Optional[datetime] = Query(None, description="Window start (ISO format), defaults to now"),
    end: Optional[datetime] = Query(None, description="Window end (ISO format, exclusive)"),
):
    """
    查询事件列表

    Occurrences of owned and accepted-invite events in a window
    """
    try:
        return await microservice.service.list_events(user_id, start, end)
    except Exception as e:
        raise _http_error(e, "listing events")


@app.get("/api/v1/calendar/events/{event_id}", response_model=CalendarEvent)
async def get_event(
    event_id: str = Path(..., description="Event ID"),
    user_id: str = Query(..., description="User ID for authorization"),
):
    """
    获取事件详情

    Get event details by ID
    """
    try:
        return await microservice.service.get_event(event_id, user_id)
    except Exception as e:
        raise _http_error(e, "getting event")


@app.put("/api/v1/calendar/events/{event_id}", response_model=CalendarEvent)
async def update_event(
    event_id: str = Path(..., description="Event ID"),
    request: EventUpdateRequest = Body(...),
    user_id: str = Query(..., description="User ID for authorization"),
):
    """
    更新事件

    Update an existing event
    """
    try:
        return await microservice.service.update_event(event_id, request, user_id)
    except Exception as e:
        raise _http_error(e, "updating event")


@app.delete("/api/v1/calendar/events/{event_id}", status_code=204)
async def delete_event(
    event_id: str = Path(..., description="Event ID"),
    user_id: str = Query(..., description="User ID for authorization"),
):
    """
    删除事件

    Move an event to the trash
    """
    try:
        success = await microservice.service.delete_event(event_id, user_id)
    except Exception as e:
        raise _http_error(e, "deleting event")
    if not success:
        raise HTTPException(status_code=404, detail="Event not found")
    return None


@app.get("/api/v1/calendar/events/{event_id}/occurrences", response_model=EventListResponse)
async def get_event_occurrences(
    event_id: str = Path(..., description="Event ID"),
    user_id: str = Query(..., description="User ID for authorization"),
    start: Optional[datetime] = Query(None, description="Window start"),
    end: Optional[datetime] = Query(None, description="Window end (exclusive)"),
):
    """Occurrences of one event in a window"""
    try:
        return await microservice.service.expand_event(event_id, user_id, start, end)
    except Exception as e:
        raise _http_error(e, "expanding event")


# =============================================================================
# Trash Endpoints
# =============================================================================


@app.get("/api/v1/calendar/deleted", response_model=List[DeletedEventResponse])
async def list_deleted_events(user_id: str = Query(..., description="User ID")):
    """
    回收站

    Deleted events with their retention status
    """
    try:
        return await microservice.service.list_deleted_events(user_id)
    except Exception as e:
        raise _http_error(e, "listing deleted events")


@app.post("/api/v1/calendar/events/{event_id}/restore", response_model=CalendarEvent)
async def restore_event(
    event_id: str = Path(..., description="Event ID"),
    user_id: str = Query(..., description="User ID for authorization"),
):
    """恢复事件"""
    try:
        return await microservice.service.restore_event(event_id, user_id)
    except Exception as e:
        raise _http_error(e, "restoring event")


@app.delete("/api/v1/calendar/events/{event_id}/permanent", status_code=204)
async def permanently_delete_event(
    event_id: str = Path(..., description="Event ID"),
    user_id: str = Query(..., description="User ID for authorization"),
):
    """永久删除事件"""
    try:
        success = await microservice.service.permanently_delete_event(event_id, user_id)
    except Exception as e:
        raise _http_error(e, "purging event")
    if not success:
        raise HTTPException(status_code=404, detail="Event not found")
    return None


# =============================================================================
# Query Endpoints
# =============================================================================


@app.get("/api/v1/calendar/today", response_model=EventListResponse)
async def get_today_events(user_id: str = Query(..., description="User ID")):
    """
    获取今天的事件

    Get today's events (UTC day)
    """
    try:
        return await microservice.service.get_today_events(user_id)
    except Exception as e:
        raise _http_error(e, "getting today's events")


@app.get("/api/v1/calendar/upcoming", response_model=EventListResponse)
async def get_upcoming_events(
    user_id: str = Query(..., description="User ID"),
    days: int = Query(7, ge=1, le=365, description="Number of days to look ahead"),
):
    """
    获取即将到来的事件

    Get upcoming events for the next N days
    """
    try:
        return await microservice.service.get_upcoming_events(user_id, days)
    except Exception as e:
        raise _http_error(e, "getting upcoming events")


@app.get("/api/v1/calendar/past", response_model=EventListResponse)
async def get_past_events(
    user_id: str = Query(..., description="User ID"),
    days: int = Query(30, ge=1, le=365, description="Number of days to look back"),
):
    """获取过去的事件"""
    try:
        return await microservice.service.get_past_events(user_id, days)
    except Exception as e:
        raise _http_error(e, "getting past events")


@app.get("/api/v1/calendar/friends/events", response_model=EventListResponse)
async def get_friend_events(
    friend_ids: List[str] = Query(..., description="Friend user IDs"),
    start: Optional[datetime] = Query(None, description="Window start"),
    end: Optional[datetime] = Query(None, description="Window end (exclusive)"),
):
    """
    好友日历

    Read-only occurrences of other users' own events
    """
    try:
        return await microservice.service.friend_events(friend_ids, start, end)
    except Exception as e:
        raise _http_error(e, "getting friend events")


@app.post("/api/v1/calendar/availability", response_model=AvailabilityResponse)
async def get_availability(request: AvailabilityRequest = Body(...)):
    """
    空闲时间查询

    Busy intervals and free gaps across users
    """
    try:
        return await microservice.service.availability(request.user_ids, request.start, request.end)
    except Exception as e:
        raise _http_error(e, "computing availability")


# =============================================================================
# Invite Endpoints
# =============================================================================


@app.post(
    "/api/v1/calendar/events/{event_id}/invites",
    response_model=InviteCreateResponse,
    status_code=201,
)
async def invite_users(
    event_id: str = Path(..., description="Event ID"),
    request: InviteCreateRequest = Body(...),
    user_id: str = Query(..., description="Owner user ID"),
):
    """邀请用户参加事件"""
    try:
        return await microservice.service.invite_users(event_id, user_id, request.user_ids)
    except Exception as e:
        raise _http_error(e, "inviting users")


@app.get("/api/v1/calendar/events/{event_id}/invites", response_model=List[EventInvite])
async def list_event_invites(
    event_id: str = Path(..., description="Event ID"),
    user_id: str = Query(..., description="Owner user ID"),
):
    """事件的邀请列表"""
    try:
        return await microservice.service.list_event_invites(event_id, user_id)
    except Exception as e:
        raise _http_error(e, "listing event invites")


@app.get("/api/v1/calendar/events/{event_id}/my-invite", response_model=MyInviteResponse)
async def get_my_invite(
    event_id: str = Path(..., description="Event ID"),
    user_id: str = Query(..., description="User ID"),
):
    """The caller's invite for an event"""
    try:
        return await microservice.service.get_my_invite(event_id, user_id)
    except Exception as e:
        raise _http_error(e, "getting invite")


@app.get("/api/v1/calendar/invites", response_model=List[EventInvite])
async def list_user_invites(
    user_id: str = Query(..., description="User ID"),
    status: Optional[InviteStatus] = Query(None, description="Filter by status"),
):
    """收到的邀请"""
    try:
        return await microservice.service.list_user_invites(user_id, status)
    except Exception as e:
        raise _http_error(e, "listing invites")


@app.post("/api/v1/calendar/invites/{invite_id}/accept", response_model=EventInvite)
async def accept_invite(
    invite_id: str = Path(..., description="Invite ID"),
    user_id: str = Query(..., description="Invitee user ID"),
):
    """接受邀请"""
    try:
        return await microservice.service.accept_invite(invite_id, user_id)
    except Exception as e:
        raise _http_error(e, "accepting invite")


@app.post("/api/v1/calendar/invites/{invite_id}/decline", response_model=EventInvite)
async def decline_invite(
    invite_id: str = Path(..., description="Invite ID"),
    user_id: str = Query(..., description="Invitee user ID"),
):
    """拒绝邀请"""
    try:
        return await microservice.service.decline_invite(invite_id, user_id)
    except Exception as e:
        raise _http_error(e, "declining invite")


@app.post("/api/v1/calendar/invites/{invite_id}/cancel", response_model=EventInvite)
async def cancel_invite(
    invite_id: str = Path(..., description="Invite ID"),
    user_id: str = Query(..., description="Inviter user ID"),
):
    """取消邀请"""
    try:
        return await microservice.service.cancel_invite(invite_id, user_id)
    except Exception as e:
        raise _http_error(e, "cancelling invite")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "microservices.calendar_service.main:app",
        host=config.service_host,
        port=config.service_port,
        reload=config.debug,
    )
