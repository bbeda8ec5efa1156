from __future__ import annotations

import asyncio
import logging

from chat_relay.infrastructure.realtime.protocol import TypingStart, TypingStop, UserTyping
from chat_relay.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class TypingIndicatorManager:
    """Who is typing in the active conversation.

    Outbound ``start_typing``/``stop_typing`` are sent as-is; debouncing
    keystrokes is the caller's job (see TypingDebouncer). Remote entries are
    dropped on a stop event or after ``timeout`` seconds without a refresh.
    """

    def __init__(self, connection: ConnectionManager, *, timeout: float = 2.0) -> None:
        self._connection = connection
        self._timeout = timeout
        self._conversation_id: int | None = None
        self._typing: dict[int, str] = {}
        self._expiry: dict[int, asyncio.TimerHandle] = {}
        self._subscription = connection.subscribe(UserTyping, self._on_user_typing)

    @property
    def typing_users(self) -> dict[int, str]:
        return dict(self._typing)

    def set_active_conversation(self, conversation_id: int | None) -> None:
        if conversation_id == self._conversation_id:
            return
        self._conversation_id = conversation_id
        self._clear()

    async def start_typing(self, conversation_id: int) -> None:
        user = self._connection.user
        if user is None:
            return
        await self._connection.send(
            TypingStart(conversation_id=conversation_id, user_id=user.id, user_name=user.display_name)
        )

    async def stop_typing(self, conversation_id: int) -> None:
        user = self._connection.user
        if user is None:
            return
        await self._connection.send(TypingStop(conversation_id=conversation_id, user_id=user.id))

    def close(self) -> None:
        self._subscription.unsubscribe()
        self._clear()

    async def _on_user_typing(self, event: UserTyping) -> None:
        if event.conversation_id != self._conversation_id:
            return
        if event.is_typing:
            self._typing[event.user_id] = event.user_name or "Someone"
            self._arm_expiry(event.user_id)
        else:
            self._remove(event.user_id)

    def _arm_expiry(self, user_id: int) -> None:
        handle = self._expiry.pop(user_id, None)
        if handle is not None:
            handle.cancel()
        loop = asyncio.get_running_loop()
        self._expiry[user_id] = loop.call_later(self._timeout, self._remove, user_id)

    def _remove(self, user_id: int) -> None:
        self._typing.pop(user_id, None)
        handle = self._expiry.pop(user_id, None)
        if handle is not None:
            handle.cancel()

    def _clear(self) -> None:
        for handle in self._expiry.values():
            handle.cancel()
        self._expiry.clear()
        self._typing.clear()


class TypingDebouncer:
    """Keystroke-driven typing announcements for one conversation.

    Typing starts on the first non-empty keystroke and stops after
    ``timeout`` seconds of inactivity, on an empty input or when the message
    is sent. Each start is matched by exactly one stop.
    """

    def __init__(
        self,
        typing: TypingIndicatorManager,
        conversation_id: int,
        *,
        timeout: float = 2.0,
    ) -> None:
        self._typing = typing
        self._conversation_id = conversation_id
        self._timeout = timeout
        self._active = False
        self._timer: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._active

    async def keystroke(self, text: str) -> None:
        if not text.strip():
            await self.stop()
            return
        if not self._active:
            self._active = True
            await self._typing.start_typing(self._conversation_id)
        self._rearm()

    async def sent(self) -> None:
        await self.stop()

    async def stop(self) -> None:
        self._cancel_timer()
        if not self._active:
            return
        self._active = False
        await self._typing.stop_typing(self._conversation_id)

    def _rearm(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._auto_stop(), name="typing-auto-stop")

    async def _auto_stop(self) -> None:
        await asyncio.sleep(self._timeout)
        self._timer = None
        logger.debug("Typing idle in conversation %d", self._conversation_id)
        await self.stop()

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
