from __future__ import annotations

from chat_relay.domain.entities.conversation import Conversation
from chat_relay.domain.entities.message import Message
from chat_relay.domain.entities.user import UserSummary
from chat_relay.infrastructure.http.schemas import (
    ConversationSchema,
    MessageSchema,
    UserSchema,
)


def user_to_entity(schema: UserSchema) -> UserSummary:
    return UserSummary(
        id=schema.id,
        first_name=schema.first_name,
        name=schema.name or _full_name(schema),
        email=schema.email,
        avatar=schema.avatar,
    )


def message_to_entity(schema: MessageSchema) -> Message:
    return Message(
        id=schema.id,
        conversation_id=schema.conversation_id,
        sender_id=schema.sender_id,
        content=schema.content,
        type=schema.message_type,
        is_read=schema.is_read,
        created_at=schema.created_at,
        sender=user_to_entity(schema.sender) if schema.sender else None,
        file_url=schema.file_url,
        file_name=schema.file_name,
    )


def conversation_to_entity(schema: ConversationSchema) -> Conversation:
    last = schema.last_message or (schema.messages[0] if schema.messages else None)
    return Conversation(
        id=schema.id,
        participants=tuple(user_to_entity(p) for p in schema.participants),
        updated_at=schema.updated_at,
        message_count=schema.count.messages,
        last_message=message_to_entity(last) if last else None,
        service_request_id=schema.service_request_id,
        consultation_id=schema.consultation_id,
    )


def _full_name(schema: UserSchema) -> str | None:
    parts = [p for p in (schema.first_name, schema.last_name) if p]
    return " ".join(parts) or None
