from __future__ import annotations

import asyncio

import pytest

from chat_relay.domain.value_objects.enums import ConnectionStatus
from tests.conftest import make_conversation, message_payload


@pytest.mark.asyncio
async def test_context_manager_connects_loads_and_closes(session, channel, api):
    api.conversations = [make_conversation(1)]

    async with session:
        assert session.is_connected
        assert [c.id for c in session.conversations] == [1]
        assert api.calls[0] == ("list_conversations", "token-abc")

    assert not session.is_connected
    assert session.connection.status == ConnectionStatus.DISCONNECTED
    assert api.closed


@pytest.mark.asyncio
async def test_closed_session_ignores_late_pushes(session, channel, notifier):
    await session.start()
    await session.set_active_conversation(make_conversation(1))
    await session.close()

    await channel.push("new_message", message_payload(5))

    assert session.messages == []
    assert notifier.shown == []


@pytest.mark.asyncio
async def test_debouncer_sends_single_start_and_auto_stops(session, channel):
    await session.start()
    debouncer = session.typing_debouncer(3)

    await debouncer.keystroke("h")
    await debouncer.keystroke("hi")
    await asyncio.sleep(0.08)

    assert len(channel.sent("typing_start")) == 1
    assert channel.sent("typing_stop") == [{"conversationId": 3, "userId": 42}]
    assert not debouncer.active
    await session.close()


@pytest.mark.asyncio
async def test_close_stops_pending_debouncers(session, channel, caplog):
    await session.start()
    debouncer = session.typing_debouncer(3)
    await debouncer.keystroke("hello")

    await session.close()
    await asyncio.sleep(0.08)

    assert not debouncer.active
    assert channel.sent("typing_stop") == [{"conversationId": 3, "userId": 42}]
    assert not any("Dropping typing_stop" in r.getMessage() for r in caplog.records)
