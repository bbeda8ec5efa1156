from __future__ import annotations

from typing import Protocol

from chat_relay.domain.entities.conversation import Conversation
from chat_relay.domain.entities.message import Message


class MessagingApi(Protocol):
    async def list_conversations(self, token: str) -> list[Conversation]: ...

    async def list_messages(
        self,
        token: str | None,
        conversation_id: int,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]:
        """Return messages newest-first, as the server sends them."""
        ...

    async def create_conversation(
        self,
        token: str,
        participant_ids: list[int],
        *,
        service_request_id: int | None = None,
        consultation_id: int | None = None,
    ) -> Conversation: ...

    async def mark_read(self, token: str, conversation_id: int, user_id: int) -> None: ...

    async def aclose(self) -> None: ...
