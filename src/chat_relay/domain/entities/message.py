from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from chat_relay.domain.entities.user import UserSummary
from chat_relay.domain.value_objects.enums import MessageType


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    conversation_id: int
    sender_id: int
    content: str
    type: MessageType
    is_read: bool
    created_at: datetime
    sender: UserSummary | None = None
    file_url: str | None = None
    file_name: str | None = None

    @property
    def sender_name(self) -> str:
        return self.sender.display_name if self.sender else "Someone"
