"""
Unit Golden Tests: NATS Event Bus

Endpoint resolution and per-message ack/nak/term decisions, with no broker.
"""
import json
from unittest.mock import AsyncMock

import pytest

from core.config.infra_config import InfraConfig
from core.config_manager import ConfigManager
from core.nats_client import Event, EventType, NATSEventBus, ServiceSource

pytestmark = [pytest.mark.unit, pytest.mark.golden]


class FakeMsg:
    """JetStream message stand-in recording how it was settled"""

    def __init__(self, data: bytes):
        self.data = data
        self.ack = AsyncMock()
        self.nak = AsyncMock()
        self.term = AsyncMock()


def user_deleted_body(user_id="usr_1"):
    event = Event(
        event_type=EventType.USER_DELETED,
        source=ServiceSource.CALENDAR_SERVICE,
        data={"user_id": user_id},
    )
    return json.dumps(event.to_dict()).encode()


@pytest.fixture
def bus(monkeypatch):
    monkeypatch.delenv("NATS_URL", raising=False)
    return NATSEventBus("calendar_service", config=ConfigManager("calendar_service"))


class TestNatsUrl:

    def test_url_from_host_and_port(self, monkeypatch):
        monkeypatch.delenv("NATS_URL", raising=False)
        monkeypatch.setenv("NATS_HOST", "nats.internal")
        monkeypatch.setenv("NATS_PORT", "4333")

        assert InfraConfig.from_env().resolved_nats_url == "nats://nats.internal:4333"
        bus = NATSEventBus("calendar_service", config=ConfigManager("calendar_service"))
        assert bus.url == "nats://nats.internal:4333"

    def test_explicit_url_wins(self, monkeypatch):
        monkeypatch.setenv("NATS_URL", "nats://cluster:4222")
        monkeypatch.setenv("NATS_HOST", "ignored")

        bus = NATSEventBus("calendar_service", config=ConfigManager("calendar_service"))

        assert bus.url == "nats://cluster:4222"


class TestDispatch:

    @pytest.mark.asyncio
    async def test_handled_message_acked(self, bus):
        handler = AsyncMock()
        msg = FakeMsg(user_deleted_body("usr_42"))

        await bus._dispatch(msg, handler, "user.deleted")

        handler.assert_awaited_once_with({"user_id": "usr_42"})
        msg.ack.assert_awaited_once()
        msg.nak.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_json_terminated_not_redelivered(self, bus):
        handler = AsyncMock()
        msg = FakeMsg(b"{not json")

        await bus._dispatch(msg, handler, "user.deleted")

        handler.assert_not_awaited()
        msg.term.assert_awaited_once()
        msg.nak.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_object_body_terminated(self, bus):
        msg = FakeMsg(b"[1, 2]")

        await bus._dispatch(msg, AsyncMock(), "user.deleted")

        msg.term.assert_awaited_once()
        msg.nak.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handler_failure_nakked(self, bus):
        handler = AsyncMock(side_effect=RuntimeError("store down"))
        msg = FakeMsg(user_deleted_body())

        await bus._dispatch(msg, handler, "user.deleted")

        msg.nak.assert_awaited_once()
        msg.ack.assert_not_awaited()
        msg.term.assert_not_awaited()
