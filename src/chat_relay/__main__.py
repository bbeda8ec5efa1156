"""Entrypoint: python -m chat_relay

Opens a messaging session with the stored token and logs what arrives.
"""
from __future__ import annotations

import asyncio
import logging

from chat_relay.config import settings
from chat_relay.infrastructure.http.mappers import message_to_entity
from chat_relay.infrastructure.realtime.protocol import NewMessage
from chat_relay.session import MessagingSession, create_session

logger = logging.getLogger(__name__)


async def _log_message(event: NewMessage) -> None:
    message = message_to_entity(event.message)
    logger.info(
        "[conversation %d] %s: %s",
        message.conversation_id, message.sender_name, message.content,
    )


async def _open_conversation(session: MessagingSession, conversation_id: int) -> None:
    for conversation in session.conversations:
        if conversation.id == conversation_id:
            await session.set_active_conversation(conversation)
            logger.info(
                "Watching conversation %d (%d messages loaded)",
                conversation_id, len(session.messages),
            )
            return
    logger.warning("Conversation %d not found among %d conversations", conversation_id, len(session.conversations))


async def run() -> None:
    session = create_session(settings)
    session.connection.subscribe(NewMessage, _log_message)
    async with session:
        if settings.CONVERSATION_ID is not None:
            await _open_conversation(session, settings.CONVERSATION_ID)
        await asyncio.Event().wait()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
