"""Tests for greeting decisions, debouncing and sending."""

import asyncio
from unittest.mock import AsyncMock, call, patch

import pytest

from conftest import CONTACT_JID, CONTACT_NUMBER, LINE_ID, TENANT_ID, inbound_event, seed_line, seed_ticket
from ticketflow.infra.database import get_db_session
from ticketflow.models.event import InboundEvent
from ticketflow.models.message import CanonicalMessage
from ticketflow.models.tenant import LineContext
from ticketflow.services import event_pipeline, greeting_service, message_store
from ticketflow.services.greeting_service import GreetingController, GreetingRequest, RecencyMap, render_greeting
from ticketflow.services.line_context_service import load_line_context


def _line(**overrides):
    values = {"tenant_id": TENANT_ID, "line_id": LINE_ID, "greeting_message": "Hello {{name}}!"}
    values.update(overrides)
    return LineContext(**values)


def _request(line=None, ticket_id=1, number=CONTACT_NUMBER):
    return GreetingRequest(
        line=line or _line(),
        ticket_id=ticket_id,
        remote_jid=f"{number}@s.whatsapp.net",
        contact_name="Maria",
        contact_number=number,
    )


@pytest.fixture
def controller():
    return GreetingController(debounce_seconds=0.05, suppression_seconds=300, capacity=100)


class TestRecencyMap:
    """Test TTL expiry and LRU eviction."""

    def test_entries_expire(self):
        now = [0.0]
        recent = RecencyMap(ttl_seconds=10, capacity=10, clock=lambda: now[0])
        recent.mark("a")

        assert recent.seen("a") is True
        now[0] = 10.5
        assert recent.seen("a") is False
        assert len(recent) == 0

    def test_capacity_evicts_oldest(self):
        recent = RecencyMap(ttl_seconds=100, capacity=2)
        recent.mark("a")
        recent.mark("b")
        recent.mark("c")

        assert recent.seen("a") is False
        assert recent.seen("b") is True
        assert recent.seen("c") is True
        assert len(recent) == 2


class TestGreetingGates:
    """Test static rejection rules."""

    def test_render(self):
        assert render_greeting("Hi {{name}}, welcome", "Ana") == "Hi Ana, welcome"
        assert render_greeting("Hi {{name}}", None) == "Hi "

    @pytest.mark.parametrize("line,user_id,from_me,is_group,expected", [
        (_line(), None, True, False, "outbound"),
        (_line(queue_count=2), None, False, False, "line_has_queues"),
        (_line(), 7, False, False, "ticket_assigned"),
        (_line(greeting_message=None), None, False, False, "no_greeting"),
        (_line(), None, False, True, "group"),
        (_line(), None, False, False, None),
    ])
    def test_rejection_reason(self, controller, line, user_id, from_me, is_group, expected):
        remote_jid = "120363000000@g.us" if is_group else CONTACT_JID
        assert controller.rejection_reason(line, user_id, from_me, is_group, remote_jid) == expected

    def test_allow_listed_group(self, controller):
        line = _line(greeting_allow_list=frozenset({"120363000000"}))
        assert controller.rejection_reason(line, None, False, True, "120363000000@g.us") is None


class TestDebounce:
    """Test that bursts coalesce into one send."""

    @pytest.mark.asyncio
    async def test_burst_sends_once(self, db_engine, controller):
        send_text = AsyncMock(return_value={})
        with patch.object(greeting_service.gateway_client, "send_text", new=send_text):
            for _ in range(5):
                assert controller.trigger(_request(), ticket_user_id=None, from_me=False, is_group=False) is True
            assert controller.pending(1) is True
            await asyncio.sleep(0.2)

        assert send_text.await_count == 1
        assert send_text.await_args == call(LINE_ID, CONTACT_JID, "Hello Maria!")
        assert controller.pending(1) is False

    @pytest.mark.asyncio
    async def test_new_message_restarts_the_timer(self, db_engine):
        controller = GreetingController(debounce_seconds=0.2, suppression_seconds=300, capacity=100)
        send_text = AsyncMock(return_value={})
        with patch.object(greeting_service.gateway_client, "send_text", new=send_text):
            controller.trigger(_request(), ticket_user_id=None, from_me=False, is_group=False)
            await asyncio.sleep(0.12)
            controller.trigger(_request(), ticket_user_id=None, from_me=False, is_group=False)

            # Past the first trigger's deadline, before the second one's
            await asyncio.sleep(0.12)
            assert send_text.await_count == 0
            assert controller.pending(1) is True

            await asyncio.sleep(0.25)

        assert send_text.await_count == 1
        assert controller.pending(1) is False

    @pytest.mark.asyncio
    async def test_recently_greeted_ticket_is_suppressed(self, db_engine, controller):
        send_text = AsyncMock(return_value={})
        with patch.object(greeting_service.gateway_client, "send_text", new=send_text):
            controller.trigger(_request(), ticket_user_id=None, from_me=False, is_group=False)
            await asyncio.sleep(0.2)
            again = controller.trigger(_request(), ticket_user_id=None, from_me=False, is_group=False)
            other_ticket = controller.trigger(_request(ticket_id=2), ticket_user_id=None, from_me=False, is_group=False)
            await asyncio.sleep(0.2)

        assert again is False
        # Same contact on another ticket is suppressed as well
        assert other_ticket is False
        assert send_text.await_count == 1

    @pytest.mark.asyncio
    async def test_recent_outbound_message_suppresses(self, db_engine, controller):
        seed_line(db_engine)
        ids = seed_ticket(db_engine)
        with get_db_session(TENANT_ID) as session:
            message_store.save_message(session, CanonicalMessage(
                id="OUT1", tenant_id=TENANT_ID, ticket_id=ids["ticket_id"], body="hi", from_me=True, ack=1,
            ))

        request = _request(ticket_id=ids["ticket_id"])
        assert controller.trigger(request, ticket_user_id=None, from_me=False, is_group=False) is False

    @pytest.mark.asyncio
    async def test_cancel_all_drops_pending_timers(self, db_engine, controller):
        send_text = AsyncMock(return_value={})
        with patch.object(greeting_service.gateway_client, "send_text", new=send_text):
            controller.trigger(_request(), ticket_user_id=None, from_me=False, is_group=False)
            controller.cancel_all()
            await asyncio.sleep(0.2)

        send_text.assert_not_awaited()


class TestSend:
    """Test the send step."""

    @pytest.mark.asyncio
    async def test_send_failure_is_swallowed(self, controller):
        send_text = AsyncMock(side_effect=RuntimeError("gateway down"))
        with patch.object(greeting_service.gateway_client, "send_text", new=send_text):
            assert await controller.send(_request()) is False

    @pytest.mark.asyncio
    async def test_media_greeting(self, controller, public_root):
        send_media = AsyncMock(return_value={})
        line = _line(greeting_media_path="welcome.png")
        with patch.object(greeting_service.gateway_client, "send_media", new=send_media):
            assert await controller.send(_request(line=line)) is True

        send_media.assert_awaited_once_with(
            LINE_ID, CONTACT_JID, str(public_root / "company1" / "welcome.png"), caption="Hello Maria!",
        )


class TestPipelineGreeting:
    """Test the greeting hook of the inbound pipeline."""

    @pytest.mark.asyncio
    async def test_first_inbound_message_triggers_greeting(self, db_engine, fake_redis, monkeypatch, controller):
        seed_line(db_engine, greeting_message="Hi {{name}}, how can we help?")
        monkeypatch.setattr(event_pipeline, "greeting_controller", controller)
        line = load_line_context(TENANT_ID, LINE_ID)

        send_text = AsyncMock(return_value={})
        with patch.object(greeting_service.gateway_client, "send_text", new=send_text):
            await event_pipeline.handle_inbound_event(InboundEvent.model_validate(inbound_event("M1")), line)
            await event_pipeline.handle_inbound_event(InboundEvent.model_validate(inbound_event("M2")), line)
            await asyncio.sleep(0.2)

        send_text.assert_awaited_once_with(LINE_ID, CONTACT_JID, "Hi Maria, how can we help?")

    @pytest.mark.asyncio
    async def test_line_with_queues_never_greets(self, db_engine, fake_redis, monkeypatch, controller):
        seed_line(db_engine, greeting_message="Hi", queue_count=1)
        monkeypatch.setattr(event_pipeline, "greeting_controller", controller)
        line = load_line_context(TENANT_ID, LINE_ID)

        send_text = AsyncMock(return_value={})
        with patch.object(greeting_service.gateway_client, "send_text", new=send_text):
            await event_pipeline.handle_inbound_event(InboundEvent.model_validate(inbound_event("M1")), line)
            await asyncio.sleep(0.2)

        send_text.assert_not_awaited()
