"""
Component Golden Tests: Calendar Invites

Invite lifecycle: PENDING → ACCEPTED / DECLINED / CANCELLED.
"""
import pytest
import pytest_asyncio

from microservices.calendar_service.calendar_service import (
    CalendarService,
    CalendarServiceValidationError,
)
from microservices.calendar_service.models import InviteStatus
from microservices.calendar_service.protocols import (
    CalendarEventNotFoundError,
    DuplicateInviteError,
    EventPermissionError,
    InvalidInviteTransitionError,
    InviteNotFoundError,
)
from tests.contracts.calendar import CalendarTestDataFactory as F

pytestmark = [pytest.mark.component, pytest.mark.golden]

NOW = F.utc(2025, 1, 6, 8)


@pytest.fixture
def service(mock_calendar_repository, mock_event_bus):
    return CalendarService(
        repository=mock_calendar_repository, event_bus=mock_event_bus, clock=lambda: NOW
    )


@pytest.fixture
def owner():
    return F.make_user_id()


@pytest.fixture
def event(mock_calendar_repository, owner):
    return mock_calendar_repository.set_event(
        F.make_event(user_id=owner, start_time=F.utc(2025, 1, 8, 15))
    )


class TestInviteUsers:

    @pytest.mark.asyncio
    async def test_invite_creates_pending_invites(self, service, event, owner, mock_event_bus):
        guests = [F.make_user_id(), F.make_user_id()]

        result = await service.invite_users(event.event_id, owner, guests)

        assert [i.invited_user_id for i in result.invites] == guests
        assert all(i.status == InviteStatus.PENDING for i in result.invites)
        assert all(i.sent_at == NOW for i in result.invites)
        assert result.skipped == []
        assert len(mock_event_bus.get_published("calendar.invite.sent")) == 2

    @pytest.mark.asyncio
    async def test_existing_invitees_skipped(self, service, event, owner):
        first, second = F.make_user_id(), F.make_user_id()
        await service.invite_users(event.event_id, owner, [first])

        result = await service.invite_users(event.event_id, owner, [first, second])

        assert [i.invited_user_id for i in result.invites] == [second]
        assert result.skipped == [first]

    @pytest.mark.asyncio
    async def test_all_duplicates_conflict(self, service, event, owner):
        guest = F.make_user_id()
        await service.invite_users(event.event_id, owner, [guest])

        with pytest.raises(DuplicateInviteError):
            await service.invite_users(event.event_id, owner, [guest, guest])

    @pytest.mark.asyncio
    async def test_owner_cannot_invite_self(self, service, event, owner):
        with pytest.raises(CalendarServiceValidationError):
            await service.invite_users(event.event_id, owner, [owner])

    @pytest.mark.asyncio
    async def test_only_owner_invites(self, service, event):
        with pytest.raises(EventPermissionError):
            await service.invite_users(event.event_id, F.make_user_id(), [F.make_user_id()])

    @pytest.mark.asyncio
    async def test_list_event_invites_owner_only(self, service, event, owner):
        await service.invite_users(event.event_id, owner, [F.make_user_id()])

        assert len(await service.list_event_invites(event.event_id, owner)) == 1
        with pytest.raises(EventPermissionError):
            await service.list_event_invites(event.event_id, F.make_user_id())


class TestInviteResponses:

    @pytest_asyncio.fixture
    async def invite(self, service, event, owner):
        result = await service.invite_users(event.event_id, owner, [F.make_user_id()])
        return result.invites[0]

    @pytest.mark.asyncio
    async def test_accept_adds_event_to_guest_calendar(self, service, invite, event):
        accepted = await service.accept_invite(invite.invite_id, invite.invited_user_id)

        assert accepted.status == InviteStatus.ACCEPTED
        assert accepted.responded_at == NOW
        listed = await service.list_events(
            invite.invited_user_id, F.utc(2025, 1, 6), F.utc(2025, 1, 13)
        )
        assert [o.event_id for o in listed.events] == [event.event_id]
        assert listed.events[0].is_invited is True

    @pytest.mark.asyncio
    async def test_decline_after_accept(self, service, invite):
        await service.accept_invite(invite.invite_id, invite.invited_user_id)

        declined = await service.decline_invite(invite.invite_id, invite.invited_user_id)

        assert declined.status == InviteStatus.DECLINED

    @pytest.mark.asyncio
    async def test_declined_is_terminal(self, service, invite):
        await service.decline_invite(invite.invite_id, invite.invited_user_id)

        with pytest.raises(InvalidInviteTransitionError):
            await service.accept_invite(invite.invite_id, invite.invited_user_id)

    @pytest.mark.asyncio
    async def test_only_invitee_accepts(self, service, invite, owner):
        with pytest.raises(EventPermissionError):
            await service.accept_invite(invite.invite_id, owner)

    @pytest.mark.asyncio
    async def test_inviter_cancels(self, service, invite, owner, mock_event_bus):
        cancelled = await service.cancel_invite(invite.invite_id, owner)

        assert cancelled.status == InviteStatus.CANCELLED
        assert len(mock_event_bus.get_published("calendar.invite.cancelled")) == 1
        with pytest.raises(InvalidInviteTransitionError):
            await service.cancel_invite(invite.invite_id, owner)

    @pytest.mark.asyncio
    async def test_invitee_cannot_cancel(self, service, invite):
        with pytest.raises(EventPermissionError):
            await service.cancel_invite(invite.invite_id, invite.invited_user_id)

    @pytest.mark.asyncio
    async def test_accept_for_deleted_event(self, service, invite, event, owner):
        await service.delete_event(event.event_id, owner)

        with pytest.raises(CalendarEventNotFoundError):
            await service.accept_invite(invite.invite_id, invite.invited_user_id)

    @pytest.mark.asyncio
    async def test_unknown_invite(self, service):
        with pytest.raises(InviteNotFoundError):
            await service.accept_invite(F.make_invite_id(), F.make_user_id())

    @pytest.mark.asyncio
    async def test_my_invite(self, service, invite, event):
        mine = await service.get_my_invite(event.event_id, invite.invited_user_id)
        none = await service.get_my_invite(event.event_id, F.make_user_id())

        assert mine.has_invite is True
        assert mine.invite.invite_id == invite.invite_id
        assert none.has_invite is False
        assert none.invite is None

    @pytest.mark.asyncio
    async def test_list_user_invites_by_status(self, service, invite):
        guest = invite.invited_user_id
        await service.accept_invite(invite.invite_id, guest)

        assert len(await service.list_user_invites(guest)) == 1
        assert len(await service.list_user_invites(guest, InviteStatus.ACCEPTED)) == 1
        assert await service.list_user_invites(guest, InviteStatus.PENDING) == []
