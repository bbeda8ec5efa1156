"""Window and notifier for hosts without a desktop (CLI, bots, servers)."""
from __future__ import annotations

import logging
from typing import Callable

from chat_relay.domain.value_objects.enums import NotificationPermission

logger = logging.getLogger(__name__)


class HeadlessWindow:
    def __init__(self, *, focused: bool = False) -> None:
        self.focused = focused
        self.location: str | None = None

    def has_focus(self) -> bool:
        return self.focused

    def focus(self) -> None:
        self.focused = True

    def redirect(self, path: str) -> None:
        logger.warning("Redirect requested: %s", path)
        self.location = path


class LoggedNotification:
    def __init__(self, tag: str, on_click: Callable[[], None] | None) -> None:
        self.tag = tag
        self.closed = False
        self._on_click = on_click

    def click(self) -> None:
        if self._on_click is not None and not self.closed:
            self._on_click()

    def close(self) -> None:
        self.closed = True


class LoggingNotifier:
    """Writes notifications to the log instead of the OS tray."""

    supported = True

    def __init__(self, permission: NotificationPermission = NotificationPermission.GRANTED) -> None:
        self._permission = permission

    @property
    def permission(self) -> NotificationPermission:
        return self._permission

    async def request_permission(self) -> NotificationPermission:
        if self._permission == NotificationPermission.DEFAULT:
            self._permission = NotificationPermission.GRANTED
        return self._permission

    def show(
        self,
        title: str,
        *,
        body: str,
        tag: str,
        on_click: Callable[[], None] | None = None,
    ) -> LoggedNotification:
        logger.info("%s: %s", title, body)
        return LoggedNotification(tag, on_click)
