"""Channel event models.

Inbound pushes are decoded into these models at the channel boundary; a
payload that does not fit its model never reaches a handler.
"""
from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from chat_relay.application.exceptions import MalformedEventError
from chat_relay.infrastructure.http.schemas import MessageSchema

_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class InboundEvent(BaseModel):
    """Server → Client."""

    event: ClassVar[str]

    model_config = _WIRE

    @classmethod
    def from_payload(cls, payload: Any) -> InboundEvent:
        return cls.model_validate(payload)


class OnlineUsers(InboundEvent):
    event: ClassVar[str] = "online_users"

    user_ids: list[int]

    @classmethod
    def from_payload(cls, payload: Any) -> InboundEvent:
        return cls.model_validate({"user_ids": payload})


class UserStatusChange(InboundEvent):
    event: ClassVar[str] = "user_status_change"

    user_id: int
    is_online: bool


class NewMessage(InboundEvent):
    event: ClassVar[str] = "new_message"

    message: MessageSchema

    @classmethod
    def from_payload(cls, payload: Any) -> InboundEvent:
        return cls.model_validate({"message": payload})


class MessageSent(InboundEvent):
    event: ClassVar[str] = "message_sent"

    message_id: int
    conversation_id: int


class MessageErrorEvent(InboundEvent):
    event: ClassVar[str] = "message_error"

    error: str = "Unknown message error"
    details: str = "No details"
    conversation_id: int | str | None = None
    error_type: str | None = None
    timestamp: str | None = None


class UserTyping(InboundEvent):
    event: ClassVar[str] = "user_typing"

    conversation_id: int
    user_id: int
    user_name: str | None = None
    is_typing: bool


class MessagesRead(InboundEvent):
    event: ClassVar[str] = "messages_read"

    conversation_id: int
    user_id: int


INBOUND_EVENTS: dict[str, type[InboundEvent]] = {
    cls.event: cls
    for cls in (
        OnlineUsers,
        UserStatusChange,
        NewMessage,
        MessageSent,
        MessageErrorEvent,
        UserTyping,
        MessagesRead,
    )
}


def decode_event(name: str, payload: Any) -> InboundEvent:
    """Decode a raw push into its event model or raise MalformedEventError."""
    model = INBOUND_EVENTS.get(name)
    if model is None:
        raise MalformedEventError(name, f"Unknown event {name!r}")
    try:
        return model.from_payload(payload)
    except PydanticValidationError as exc:
        raise MalformedEventError(name, str(exc)) from exc


class OutboundCommand(BaseModel):
    """Client → Server."""

    event: ClassVar[str]

    model_config = _WIRE

    def payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SendMessageCommand(OutboundCommand):
    event: ClassVar[str] = "send_message"

    conversation_id: int
    sender_id: int
    content: str


class TypingStart(OutboundCommand):
    event: ClassVar[str] = "typing_start"

    conversation_id: int
    user_id: int
    user_name: str


class TypingStop(OutboundCommand):
    event: ClassVar[str] = "typing_stop"

    conversation_id: int
    user_id: int


class MarkRead(OutboundCommand):
    event: ClassVar[str] = "mark_read"

    conversation_id: int
    user_id: int


# Scalar commands carry a bare id as payload.
JOIN_USER = "join_user"
JOIN_CONVERSATION = "join_conversation"
GET_ONLINE_USERS = "get_online_users"
USER_ONLINE = "user_online"
