"""
NATS JetStream Client for Python Microservices

Provides event-driven communication between calendar platform services
over nats-py (JetStream for persistence and at-least-once delivery).
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

import nats
from nats.errors import Error as NATSError
from nats.js.errors import BadRequestError

if TYPE_CHECKING:
    from core.config_manager import ConfigManager


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and datetime values"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types exchanged on the bus"""

    # User Events
    USER_DELETED = "user.deleted"

    # Calendar Events
    CALENDAR_EVENT_CREATED = "calendar.event.created"
    CALENDAR_EVENT_UPDATED = "calendar.event.updated"
    CALENDAR_EVENT_DELETED = "calendar.event.deleted"
    CALENDAR_EVENT_RESTORED = "calendar.event.restored"
    CALENDAR_EVENT_PURGED = "calendar.event.purged"
    CALENDAR_INVITE_SENT = "calendar.invite.sent"
    CALENDAR_INVITE_ACCEPTED = "calendar.invite.accepted"
    CALENDAR_INVITE_DECLINED = "calendar.invite.declined"
    CALENDAR_INVITE_CANCELLED = "calendar.invite.cancelled"


class ServiceSource(Enum):
    """Service sources"""

    CALENDAR_SERVICE = "calendar_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event = cls.__new__(cls)
        event.id = data.get("id")
        event.type = data.get("type")
        event.source = data.get("source")
        event.subject = data.get("subject")
        event.timestamp = data.get("timestamp")
        event.data = data.get("data", {})
        event.metadata = data.get("metadata", {})
        event.version = data.get("version", "1.0.0")
        return event


EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class NATSEventBus:
    """
    NATS JetStream event bus.

    Streams are named after the first subject token: calendar.* events go to
    calendar-stream, user.* events to user-stream.
    """

    def __init__(
        self,
        service_name: str,
        config: Optional["ConfigManager"] = None,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as client name and consumer prefix)
            config: Optional ConfigManager instance for service discovery
        """
        from core.config_manager import ConfigManager

        self.service_name = service_name

        # Priority: environment variables → default fallback
        if config is None:
            config = ConfigManager(service_name)

        self.url = config.get_service_config().infra.resolved_nats_url

        self._nc = None
        self._js = None
        self._streams: Dict[str, bool] = {}
        self._subscriptions: List[Any] = []

        logger.info(f"NATS EventBus initialized: {self.url}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(servers=[self.url], name=self.service_name)
            self._js = self._nc.jetstream()
            logger.info(f"Connected to NATS as {self.service_name}")
        except (NATSError, OSError) as e:
            logger.error(f"Failed to connect to NATS at {self.url}: {e}")
            raise

    async def _ensure_stream(self, prefix: str) -> str:
        stream_name = f"{prefix}-stream"
        if stream_name not in self._streams:
            try:
                await self._js.add_stream(name=stream_name, subjects=[f"{prefix}.>"])
            except BadRequestError as e:
                # Stream already exists with a compatible config
                logger.debug(f"Stream creation note: {e}")
            self._streams[stream_name] = True
        return stream_name

    async def publish_event(self, event: Event) -> bool:
        """Publish an event to its JetStream stream"""
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return False

        try:
            stream_name = await self._ensure_stream(event.type.split('.')[0])
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            ack = await self._js.publish(event.type, data, stream=stream_name)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True
        except NATSError as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def subscribe_to_events(
        self, pattern: str, handler: EventHandler, durable: Optional[str] = None
    ) -> Optional[str]:
        """
        Subscribe to events with a pattern using a durable JetStream consumer.

        The handler receives the event's data payload. Messages are acked after
        the handler returns, nak'ed when it raises and terminated when the body
        cannot be decoded.
        """
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return None

        prefix = pattern.split('.')[0]
        stream_name = await self._ensure_stream(prefix)
        consumer_name = durable or f"{self.service_name}-{pattern.replace('.', '-').replace('*', 'all').replace('>', 'all')}"

        async def _on_message(msg):
            await self._dispatch(msg, handler, pattern)

        subscription = await self._js.subscribe(
            pattern, durable=consumer_name, stream=stream_name, cb=_on_message
        )
        self._subscriptions.append(subscription)
        logger.info(f"Subscribed to {pattern} (consumer {consumer_name})")
        return consumer_name

    async def _dispatch(self, msg, handler: EventHandler, pattern: str) -> None:
        """
        Deliver one JetStream message to a handler.

        A body that is not a JSON event object is terminated so it is not
        redelivered. A handler failure naks the message for redelivery.
        """
        try:
            event = Event.from_dict(json.loads(msg.data.decode()))
        except (ValueError, AttributeError) as e:
            logger.error(f"Dropping undecodable message on {pattern}: {e}")
            await msg.term()
            return

        try:
            await handler(event.data)
        except Exception as e:
            logger.error(f"Handler for {pattern} failed: {e}", exc_info=True)
            await msg.nak()
            return
        await msg.ack()

    async def close(self):
        """Drain subscriptions and close the connection"""
        if self._nc is not None:
            await self._nc.drain()
            self._nc = None
            self._js = None
        self._subscriptions.clear()
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._nc is not None and self._nc.is_connected


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(
    service_name: str,
    config: Optional["ConfigManager"] = None,
) -> NATSEventBus:
    """
    Get or create event bus instance.

    Args:
        service_name: Name of the service using the event bus
        config: Optional ConfigManager instance for service discovery

    Returns:
        NATSEventBus instance
    """
    global _event_bus

    if _event_bus is None:
        event_bus = NATSEventBus(service_name=service_name, config=config)
        await event_bus.connect()
        _event_bus = event_bus

    return _event_bus
