from __future__ import annotations

import asyncio
import logging
from typing import Callable

from chat_relay.application.ports.window import NotificationHandle, Notifier, Window
from chat_relay.domain.value_objects.enums import NotificationPermission
from chat_relay.infrastructure.http.mappers import message_to_entity
from chat_relay.infrastructure.realtime.protocol import NewMessage
from chat_relay.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class NotificationBridge:
    """Surfaces incoming messages as OS notifications.

    Skips the user's own messages and messages for the conversation the
    focused window is showing. Notifications close themselves after ``ttl``.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        notifier: Notifier,
        window: Window,
        *,
        user_id: int,
        active_conversation_id: Callable[[], int | None],
        ttl: float = 5.0,
    ) -> None:
        self._notifier = notifier
        self._window = window
        self._user_id = user_id
        self._active_conversation_id = active_conversation_id
        self._ttl = ttl
        self._timers: set[asyncio.TimerHandle] = set()
        self._subscription = connection.subscribe(NewMessage, self._on_new_message)

    async def request_permission(self) -> NotificationPermission:
        if not self._notifier.supported:
            return NotificationPermission.DENIED
        if self._notifier.permission == NotificationPermission.DEFAULT:
            return await self._notifier.request_permission()
        return self._notifier.permission

    def close(self) -> None:
        self._subscription.unsubscribe()
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    async def _on_new_message(self, event: NewMessage) -> None:
        message = message_to_entity(event.message)
        if message.sender_id == self._user_id:
            return
        if self._window.has_focus() and self._active_conversation_id() == message.conversation_id:
            return
        if await self.request_permission() != NotificationPermission.GRANTED:
            return

        handle: NotificationHandle | None = None

        def _on_click() -> None:
            self._window.focus()
            if handle is not None:
                handle.close()

        handle = self._notifier.show(
            f"New message from {message.sender_name}",
            body=message.content,
            tag=f"message-{message.id}",
            on_click=_on_click,
        )
        self._schedule_close(handle)

    def _schedule_close(self, handle: NotificationHandle) -> None:
        loop = asyncio.get_running_loop()

        def _close() -> None:
            self._timers.discard(timer)
            handle.close()

        timer = loop.call_later(self._ttl, _close)
        self._timers.add(timer)
