"""
Component Golden Tests: Calendar Event Publisher

Publish results are reported as booleans and never raised.
"""
import pytest

from core.nats_client import EventType
from microservices.calendar_service.events.publishers import CalendarEventPublisher
from tests.contracts.calendar import CalendarTestDataFactory as F

pytestmark = [pytest.mark.component, pytest.mark.golden]


class TestCalendarEventPublisher:

    @pytest.mark.asyncio
    async def test_publish_returns_true(self, mock_event_bus):
        publisher = CalendarEventPublisher(mock_event_bus)

        assert await publisher.publish_event_changed(EventType.CALENDAR_EVENT_CREATED, F.make_event())
        assert len(mock_event_bus.get_published("calendar.event.created")) == 1

    @pytest.mark.asyncio
    async def test_no_bus_is_noop(self):
        publisher = CalendarEventPublisher()

        assert await publisher.publish_event_changed(EventType.CALENDAR_EVENT_CREATED, F.make_event()) is False

    @pytest.mark.asyncio
    async def test_bus_returning_false_reported(self, mock_event_bus):
        mock_event_bus.set_disconnected()
        publisher = CalendarEventPublisher(mock_event_bus)

        published = await publisher.publish_event_changed(EventType.CALENDAR_EVENT_CREATED, F.make_event())

        assert published is False
        assert mock_event_bus.get_published() == []

    @pytest.mark.asyncio
    async def test_bus_error_reported(self, mock_event_bus):
        mock_event_bus.set_failure(RuntimeError("bus down"))
        publisher = CalendarEventPublisher(mock_event_bus)

        assert await publisher.publish_invite(F.make_invite(F.make_event_id(), F.make_user_id())) is False
