from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

RawHandler = Callable[..., Awaitable[None]]


class RealtimeChannel(Protocol):
    """Bidirectional event channel to the messaging server.

    Transport-level events (``connect``, ``disconnect``, ``connect_error``)
    are delivered through ``on`` like any server push.
    """

    @property
    def connected(self) -> bool: ...

    @property
    def transport(self) -> str | None: ...

    @property
    def sid(self) -> str | None: ...

    def on(self, event: str, handler: RawHandler) -> None: ...

    async def connect(self, url: str, *, token: str | None = None) -> None: ...

    async def disconnect(self) -> None: ...

    async def emit(self, event: str, data: Any = None) -> None: ...
