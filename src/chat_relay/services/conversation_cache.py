"""Conversation list and active-conversation message history.

State is fed from two directions: HTTP pulls (conversation list, message
history) and channel pushes (``new_message``, ``messages_read``). Pulls
replace state wholesale; pushes append idempotently by message id.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Callable

from chat_relay.application.exceptions import AuthenticationError, SessionExpiredError
from chat_relay.application.ports.api import MessagingApi
from chat_relay.application.ports.auth import TokenStore
from chat_relay.application.ports.window import Window
from chat_relay.config import Settings
from chat_relay.domain.entities.conversation import Conversation
from chat_relay.domain.entities.message import Message
from chat_relay.domain.entities.user import AuthenticatedUser
from chat_relay.domain.value_objects.enums import ConnectionStatus
from chat_relay.infrastructure.http.mappers import message_to_entity
from chat_relay.infrastructure.realtime.protocol import (
    JOIN_CONVERSATION,
    MarkRead,
    MessagesRead,
    NewMessage,
)
from chat_relay.services.connection_manager import ConnectionManager, Subscription

logger = logging.getLogger(__name__)

ActiveChangeListener = Callable[[int | None], None]


class ConversationCache:
    def __init__(
        self,
        connection: ConnectionManager,
        api: MessagingApi,
        token_store: TokenStore,
        window: Window,
        settings: Settings,
        *,
        user: AuthenticatedUser,
        on_active_change: ActiveChangeListener | None = None,
    ) -> None:
        self._connection = connection
        self._api = api
        self._token_store = token_store
        self._window = window
        self._settings = settings
        self._user = user
        self._on_active_change = on_active_change

        self._conversations: list[Conversation] = []
        self._active: Conversation | None = None
        self._messages: list[Message] = []
        self._message_ids: set[int] = set()

        self._joined_conversation_id: int | None = None
        self._pending_join: Subscription | None = None
        self._subscriptions = [
            connection.subscribe(NewMessage, self._on_new_message),
            connection.subscribe(MessagesRead, self._on_messages_read),
            connection.on_status(self._on_connection_status),
        ]

    @property
    def conversations(self) -> list[Conversation]:
        return list(self._conversations)

    @property
    def active_conversation(self) -> Conversation | None:
        return self._active

    @property
    def active_conversation_id(self) -> int | None:
        return self._active.id if self._active else None

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def close(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._cancel_pending_join()

    # -- pulls -------------------------------------------------------------

    async def refresh_conversations(self) -> None:
        """Replace the conversation list with the server's. Never raises."""
        token = self._token_store.get()
        if not token:
            logger.info("No token found, skipping conversation load")
            return
        try:
            conversations = await self._api.list_conversations(token)
        except Exception:
            logger.exception("Error loading conversations")
            return
        self._conversations = conversations

    async def set_active_conversation(self, conversation: Conversation | None) -> None:
        self._active = conversation
        self._messages = []
        self._message_ids = set()
        self._cancel_pending_join()
        if self._on_active_change is not None:
            self._on_active_change(conversation.id if conversation else None)
        if conversation is None:
            return

        if self._connection.is_connected:
            await self._join(conversation.id)
        else:
            logger.info("Waiting for connection before joining conversation %d", conversation.id)
            self._defer_join(conversation.id)

        await self._load_history(conversation.id)

    async def create_conversation(
        self,
        other_user_id: int,
        *,
        service_request_id: int | None = None,
        consultation_id: int | None = None,
    ) -> Conversation:
        """Create (or fetch) the conversation with another user and activate it.

        Raises AuthenticationError without a stored token and
        SessionExpiredError (after clearing the token and redirecting to the
        login route) when the server rejects it. API failures propagate.
        """
        token = self._token_store.get()
        if not token:
            raise AuthenticationError("No authentication token found. Please log in.")

        logger.info("Creating conversation between users %d and %d", self._user.id, other_user_id)
        try:
            conversation = await self._api.create_conversation(
                token,
                [other_user_id],
                service_request_id=service_request_id,
                consultation_id=consultation_id,
            )
        except SessionExpiredError:
            logger.warning("Token expired, redirecting to login")
            self._token_store.clear()
            self._window.redirect(self._settings.LOGIN_PATH)
            raise

        if not any(c.id == conversation.id for c in self._conversations):
            self._conversations = [conversation, *self._conversations]
        await self.set_active_conversation(conversation)
        await self.refresh_conversations()
        return conversation

    async def mark_as_read(self, conversation_id: int) -> None:
        """Tell the server the conversation was read. Local flags are left to the next pull."""
        if self._connection.is_connected:
            await self._connection.send(MarkRead(conversation_id=conversation_id, user_id=self._user.id))
            return
        token = self._token_store.get()
        if not token:
            logger.info("No token found, skipping mark-as-read for conversation %d", conversation_id)
            return
        try:
            await self._api.mark_read(token, conversation_id, self._user.id)
        except Exception:
            logger.exception("Error marking conversation %d as read", conversation_id)

    async def _load_history(self, conversation_id: int) -> None:
        try:
            history = await self._api.list_messages(
                self._token_store.get(),
                conversation_id,
                limit=self._settings.MESSAGE_HISTORY_LIMIT,
            )
        except Exception:
            logger.exception("Error loading messages for conversation %d", conversation_id)
            return

        if self.active_conversation_id != conversation_id:
            logger.debug("Discarding history of conversation %d: no longer active", conversation_id)
            return

        # Server order is newest first. Pushes that landed meanwhile go last.
        merged: list[Message] = []
        seen: set[int] = set()
        for message in [*reversed(history), *self._messages]:
            if message.id not in seen:
                seen.add(message.id)
                merged.append(message)
        self._messages = merged
        self._message_ids = seen

    async def _join(self, conversation_id: int) -> None:
        if self._joined_conversation_id == conversation_id:
            return
        logger.info("Joining conversation %d", conversation_id)
        if await self._connection.emit(JOIN_CONVERSATION, conversation_id):
            self._joined_conversation_id = conversation_id

    def _defer_join(self, conversation_id: int) -> None:
        async def _join_when_connected() -> None:
            self._pending_join = None
            if self.active_conversation_id == conversation_id:
                await self._join(conversation_id)

        self._pending_join = self._connection.once_connected(_join_when_connected)

    def _cancel_pending_join(self) -> None:
        if self._pending_join is not None:
            self._pending_join.unsubscribe()
            self._pending_join = None

    # -- pushes ------------------------------------------------------------

    async def _on_new_message(self, event: NewMessage) -> None:
        message = message_to_entity(event.message)
        if self.active_conversation_id == message.conversation_id:
            if message.id in self._message_ids:
                logger.debug("Message %d already cached, skipping duplicate", message.id)
            else:
                self._messages.append(message)
                self._message_ids.add(message.id)
        await self.refresh_conversations()

    async def _on_messages_read(self, event: MessagesRead) -> None:
        if self.active_conversation_id != event.conversation_id:
            return
        self._messages = [
            dataclasses.replace(m, is_read=True) if m.sender_id != event.user_id else m
            for m in self._messages
        ]

    def _on_connection_status(self, status: ConnectionStatus) -> None:
        if status == ConnectionStatus.CONNECTED:
            return
        # Server-side rooms do not survive the connection; rejoin on the next one.
        self._joined_conversation_id = None
        if self._active is not None:
            self._cancel_pending_join()
            self._defer_join(self._active.id)
