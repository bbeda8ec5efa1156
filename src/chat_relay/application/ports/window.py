from __future__ import annotations

from typing import Callable, Protocol

from chat_relay.domain.value_objects.enums import NotificationPermission


class Window(Protocol):
    """Host application window the session runs in."""

    def has_focus(self) -> bool: ...
    def focus(self) -> None: ...
    def redirect(self, path: str) -> None: ...


class NotificationHandle(Protocol):
    def close(self) -> None: ...


class Notifier(Protocol):
    """OS-level notification surface."""

    @property
    def supported(self) -> bool: ...

    @property
    def permission(self) -> NotificationPermission: ...

    async def request_permission(self) -> NotificationPermission: ...

    def show(
        self,
        title: str,
        *,
        body: str,
        tag: str,
        on_click: Callable[[], None] | None = None,
    ) -> NotificationHandle: ...
