from __future__ import annotations

import logging

from chat_relay.infrastructure.realtime.protocol import (
    MessageErrorEvent,
    MessageSent,
    SendMessageCommand,
)
from chat_relay.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class MessageDispatcher:
    """Sends messages over the channel.

    Nothing is echoed locally: the sent message shows up when the server
    pushes it back as ``new_message``, the same way it reaches everyone else.
    Failures reported through ``message_error`` are logged and kept in
    ``last_send_error``; they are not retried.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection
        self.last_send_error: MessageErrorEvent | None = None
        self._subscriptions = [
            connection.subscribe(MessageErrorEvent, self._on_message_error),
            connection.subscribe(MessageSent, self._on_message_sent),
        ]

    async def send_message(self, conversation_id: int, content: str) -> bool:
        user = self._connection.user
        if user is None or not self._connection.is_connected:
            logger.error(
                "Cannot send message to conversation %s: connected=%s user=%s",
                conversation_id, self._connection.is_connected, user is not None,
            )
            return False

        logger.info("Sending message to conversation %d as user %d", conversation_id, user.id)
        return await self._connection.send(
            SendMessageCommand(conversation_id=conversation_id, sender_id=user.id, content=content)
        )

    def close(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()

    async def _on_message_error(self, event: MessageErrorEvent) -> None:
        self.last_send_error = event
        logger.error(
            "Message sending failed: error=%s details=%s conversation=%s type=%s timestamp=%s",
            event.error, event.details, event.conversation_id, event.error_type, event.timestamp,
        )

    async def _on_message_sent(self, event: MessageSent) -> None:
        logger.debug("Message %d accepted in conversation %d", event.message_id, event.conversation_id)
