"""Socket.IO implementation of the real-time channel port."""
from __future__ import annotations

import logging
from typing import Any

import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from chat_relay.application.exceptions import ChannelError
from chat_relay.application.ports.channel import RawHandler

logger = logging.getLogger(__name__)


class SocketIOChannel:
    """Wraps one ``socketio.AsyncClient``.

    Automatic reconnection after an unexpected drop is left to the client;
    a failed first connect raises ChannelError and is not retried here.
    """

    def __init__(
        self,
        *,
        transports: list[str] | None = None,
        wait_timeout: float = 20.0,
        client: socketio.AsyncClient | None = None,
    ) -> None:
        self._transports = transports or ["websocket", "polling"]
        self._wait_timeout = wait_timeout
        self._sio = client or socketio.AsyncClient(
            reconnection=True,
            logger=False,
            engineio_logger=False,
        )
        self._sio.on("*", handler=self._on_any)

    @property
    def connected(self) -> bool:
        # The connect handler runs before AsyncClient sets ``connected``.
        return self._sio.connected or "/" in self._sio.namespaces

    @property
    def transport(self) -> str | None:
        # engine.io keeps the attempted transport after a failed connect.
        return self._sio.transport() or self._transports[0]

    @property
    def sid(self) -> str | None:
        return self._sio.get_sid()

    def on(self, event: str, handler: RawHandler) -> None:
        self._sio.on(event, handler=handler)

    async def connect(self, url: str, *, token: str | None = None) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            await self._sio.connect(
                url,
                headers=headers,
                auth={"token": token} if token else None,
                transports=self._transports,
                wait_timeout=self._wait_timeout,
            )
        except SocketIOConnectionError as exc:
            raise ChannelError(str(exc) or "Connection refused") from exc

    async def disconnect(self) -> None:
        await self._sio.disconnect()

    async def emit(self, event: str, data: Any = None) -> None:
        await self._sio.emit(event, data)

    async def _on_any(self, event: str, *args: Any) -> None:
        logger.debug("Unhandled channel event %s: %r", event, args)
