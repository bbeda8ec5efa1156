"""Composition root: one MessagingSession per authenticated user session."""
from __future__ import annotations

import logging
from typing import Any

from chat_relay.application.exceptions import AuthenticationError
from chat_relay.application.ports.api import MessagingApi
from chat_relay.application.ports.auth import TokenStore
from chat_relay.application.ports.channel import RealtimeChannel
from chat_relay.application.ports.clock import Clock
from chat_relay.application.ports.window import Notifier, Window
from chat_relay.config import Settings, settings as default_settings
from chat_relay.domain.entities.conversation import Conversation
from chat_relay.domain.entities.message import Message
from chat_relay.domain.entities.user import AuthenticatedUser
from chat_relay.infrastructure.auth.file_token_store import FileTokenStore
from chat_relay.infrastructure.auth.jwt_claims import user_from_token
from chat_relay.infrastructure.headless import HeadlessWindow, LoggingNotifier
from chat_relay.infrastructure.http.messaging_api import HttpMessagingApi
from chat_relay.infrastructure.realtime.protocol import MessageErrorEvent
from chat_relay.infrastructure.realtime.socketio_channel import SocketIOChannel
from chat_relay.services.connection_manager import ConnectionManager
from chat_relay.services.conversation_cache import ConversationCache
from chat_relay.services.dispatcher import MessageDispatcher
from chat_relay.services.notifications import NotificationBridge
from chat_relay.services.presence import PresenceTracker
from chat_relay.services.typing import TypingDebouncer, TypingIndicatorManager

logger = logging.getLogger(__name__)


class MessagingSession:
    """Messaging state and operations for one logged-in user.

    Build it when the session starts and ``close`` it on logout or token
    change; nothing here outlives the session.
    """

    def __init__(
        self,
        user: AuthenticatedUser,
        *,
        channel: RealtimeChannel,
        api: MessagingApi,
        token_store: TokenStore,
        window: Window,
        notifier: Notifier,
        settings: Settings = default_settings,
        clock: Clock | None = None,
    ) -> None:
        self.user = user
        self._api = api
        self._token_store = token_store
        self._settings = settings
        self._debouncers: set[TypingDebouncer] = set()

        self.connection = ConnectionManager(channel, settings, clock=clock)
        self.presence = PresenceTracker(self.connection)
        self.typing = TypingIndicatorManager(
            self.connection, timeout=settings.TYPING_TIMEOUT_SECONDS,
        )
        self.notifications = NotificationBridge(
            self.connection,
            notifier,
            window,
            user_id=user.id,
            active_conversation_id=lambda: self.cache.active_conversation_id,
            ttl=settings.NOTIFICATION_TTL_SECONDS,
        )
        self.cache = ConversationCache(
            self.connection,
            api,
            token_store,
            window,
            settings,
            user=user,
            on_active_change=self.typing.set_active_conversation,
        )
        self.dispatcher = MessageDispatcher(self.connection)

    async def __aenter__(self) -> MessagingSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def start(self) -> None:
        await self.notifications.request_permission()
        await self.connection.connect(self.user, self._token_store.get())
        await self.cache.refresh_conversations()

    async def close(self) -> None:
        # Pending typing announcements are closed out while the channel is still up.
        for debouncer in list(self._debouncers):
            await debouncer.stop()
        self._debouncers.clear()
        self.notifications.close()
        self.dispatcher.close()
        self.typing.close()
        self.presence.close()
        self.cache.close()
        await self.connection.disconnect()
        await self._api.aclose()
        logger.info("Messaging session closed for user %d", self.user.id)

    # -- read surface --------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    @property
    def conversations(self) -> list[Conversation]:
        return self.cache.conversations

    @property
    def active_conversation(self) -> Conversation | None:
        return self.cache.active_conversation

    @property
    def messages(self) -> list[Message]:
        return self.cache.messages

    @property
    def typing_users(self) -> dict[int, str]:
        return self.typing.typing_users

    @property
    def online_users(self) -> frozenset[int]:
        return self.presence.online_users

    @property
    def last_send_error(self) -> MessageErrorEvent | None:
        return self.dispatcher.last_send_error

    # -- operations ----------------------------------------------------------

    def is_user_online(self, user_id: int) -> bool:
        return self.presence.is_user_online(user_id)

    async def send_message(self, conversation_id: int, content: str) -> bool:
        return await self.dispatcher.send_message(conversation_id, content)

    async def start_typing(self, conversation_id: int) -> None:
        await self.typing.start_typing(conversation_id)

    async def stop_typing(self, conversation_id: int) -> None:
        await self.typing.stop_typing(conversation_id)

    def typing_debouncer(self, conversation_id: int) -> TypingDebouncer:
        debouncer = TypingDebouncer(
            self.typing, conversation_id, timeout=self._settings.TYPING_TIMEOUT_SECONDS,
        )
        self._debouncers.add(debouncer)
        return debouncer

    async def refresh_conversations(self) -> None:
        await self.cache.refresh_conversations()

    async def set_active_conversation(self, conversation: Conversation | None) -> None:
        await self.cache.set_active_conversation(conversation)

    async def create_conversation(
        self,
        other_user_id: int,
        *,
        service_request_id: int | None = None,
        consultation_id: int | None = None,
    ) -> Conversation:
        return await self.cache.create_conversation(
            other_user_id,
            service_request_id=service_request_id,
            consultation_id=consultation_id,
        )

    async def mark_as_read(self, conversation_id: int) -> None:
        await self.cache.mark_as_read(conversation_id)


def create_session(
    settings: Settings = default_settings,
    *,
    token_store: TokenStore | None = None,
    window: Window | None = None,
    notifier: Notifier | None = None,
) -> MessagingSession:
    """Build a session wired to the real Socket.IO channel and HTTP API."""
    token_store = token_store or FileTokenStore(settings.TOKEN_FILE)
    token = token_store.get()
    if not token:
        raise AuthenticationError("No authentication token found. Please log in.")

    return MessagingSession(
        user_from_token(token),
        channel=SocketIOChannel(
            transports=settings.SOCKET_TRANSPORTS,
            wait_timeout=settings.SOCKET_CONNECT_TIMEOUT_SECONDS,
        ),
        api=HttpMessagingApi(settings.messaging_url, timeout=settings.HTTP_TIMEOUT_SECONDS),
        token_store=token_store,
        window=window or HeadlessWindow(),
        notifier=notifier or LoggingNotifier(),
        settings=settings,
    )
