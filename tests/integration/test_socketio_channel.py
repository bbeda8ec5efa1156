from __future__ import annotations

from typing import Any

import pytest
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from chat_relay.application.exceptions import ChannelError
from chat_relay.infrastructure.realtime.socketio_channel import SocketIOChannel


class StubClient:
    """Stands in for ``socketio.AsyncClient`` with the attributes the channel reads."""

    def __init__(self, *, refuse: bool = False) -> None:
        self.connected = False
        self.namespaces: dict[str, Any] = {}
        self.handlers: dict[str, Any] = {}
        self.connect_kwargs: dict[str, Any] = {}
        self.emitted: list[tuple[str, Any]] = []
        self.current_transport: str | None = None
        self._refuse = refuse

    def on(self, event: str, handler: Any = None) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connect_kwargs = {"url": url, **kwargs}
        self.current_transport = kwargs["transports"][-1] if self._refuse else kwargs["transports"][0]
        if self._refuse:
            raise SocketIOConnectionError("Connection refused by the server")
        self.namespaces["/"] = "sid-1"
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False
        self.namespaces.clear()

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))

    def transport(self) -> str | None:
        return self.current_transport

    def get_sid(self, namespace: str | None = None) -> str | None:
        return self.namespaces.get("/")


@pytest.mark.asyncio
async def test_connect_sends_bearer_credentials():
    client = StubClient()
    channel = SocketIOChannel(transports=["websocket"], wait_timeout=5, client=client)

    await channel.connect("http://chat.test", token="token-abc")

    assert channel.connected
    assert channel.transport == "websocket"
    assert channel.sid == "sid-1"
    assert client.connect_kwargs == {
        "url": "http://chat.test",
        "headers": {"Authorization": "Bearer token-abc"},
        "auth": {"token": "token-abc"},
        "transports": ["websocket"],
        "wait_timeout": 5,
    }


@pytest.mark.asyncio
async def test_refused_connect_raises_channel_error():
    channel = SocketIOChannel(client=StubClient(refuse=True))

    with pytest.raises(ChannelError, match="Connection refused by the server"):
        await channel.connect("http://chat.test")

    assert not channel.connected
    assert channel.transport == "polling"


def test_connected_during_connect_handler():
    client = StubClient()
    channel = SocketIOChannel(client=client)

    client.namespaces["/"] = "sid-1"

    assert not client.connected
    assert channel.connected


@pytest.mark.asyncio
async def test_handlers_and_emit_are_forwarded():
    client = StubClient()
    channel = SocketIOChannel(client=client)

    async def _handler(*args: Any) -> None:
        return None

    channel.on("new_message", _handler)
    await channel.emit("join_user", 42)
    await channel.disconnect()

    assert client.handlers["new_message"] is _handler
    assert "*" in client.handlers
    assert client.emitted == [("join_user", 42)]
    assert not channel.connected


def test_transport_before_any_attempt_is_the_preferred_one():
    channel = SocketIOChannel(transports=["polling", "websocket"], client=StubClient())

    assert channel.transport == "polling"
