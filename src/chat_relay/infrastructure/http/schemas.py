"""Wire models for conversations and messages (camelCase JSON)."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chat_relay.domain.value_objects.enums import MessageType

_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class UserSchema(BaseModel):
    id: int
    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    email: str | None = None
    avatar: str | None = None

    model_config = _WIRE


class MessageSchema(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str = ""
    message_type: MessageType = MessageType.TEXT
    file_url: str | None = None
    file_name: str | None = None
    is_read: bool = False
    created_at: datetime
    sender: UserSchema | None = None

    model_config = _WIRE

    @field_validator("content", mode="before")
    @classmethod
    def _null_content(cls, value: object) -> object:
        return "" if value is None else value


class CountSchema(BaseModel):
    messages: int = 0


class ConversationSchema(BaseModel):
    id: int
    participants: list[UserSchema] = Field(min_length=1)
    last_message: MessageSchema | None = None
    # The list endpoint embeds the latest message as a one-item ``messages`` array.
    messages: list[MessageSchema] = []
    count: CountSchema = Field(default_factory=CountSchema, alias="_count")
    updated_at: datetime
    service_request_id: int | None = None
    consultation_id: int | None = None

    model_config = _WIRE


class ConversationListEnvelope(BaseModel):
    success: bool = True
    data: list[ConversationSchema] = []


class CreateConversationRequest(BaseModel):
    participant_ids: list[int]
    is_group: bool = False
    service_request_id: int | None = None
    consultation_id: int | None = None

    model_config = _WIRE


class CreateConversationResponse(BaseModel):
    success: bool = False
    conversation: ConversationSchema | None = None
