from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from chat_relay.domain.entities.message import Message
from chat_relay.domain.entities.user import UserSummary


@dataclass(frozen=True, slots=True)
class Conversation:
    id: int
    participants: tuple[UserSummary, ...]
    updated_at: datetime
    message_count: int = 0
    last_message: Message | None = None
    service_request_id: int | None = None
    consultation_id: int | None = None

    def other_participants(self, user_id: int) -> tuple[UserSummary, ...]:
        return tuple(p for p in self.participants if p.id != user_id)
