"""Shared test fixtures."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from chat_relay.application.exceptions import ChannelError
from chat_relay.application.ports.channel import RawHandler
from chat_relay.config import Settings
from chat_relay.domain.entities.conversation import Conversation
from chat_relay.domain.entities.message import Message
from chat_relay.domain.entities.user import AuthenticatedUser, UserSummary
from chat_relay.domain.value_objects.enums import MessageType, NotificationPermission
from chat_relay.infrastructure.headless import HeadlessWindow, LoggedNotification
from chat_relay.session import MessagingSession

_BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        API_URL="http://chat.test",
        PRESENCE_SETTLE_SECONDS=0.01,
        PRESENCE_REFRESH_SECONDS=0.05,
        RECONNECT_DELAY_SECONDS=0.01,
        TYPING_TIMEOUT_SECONDS=0.05,
        NOTIFICATION_TTL_SECONDS=0.05,
        MESSAGE_HISTORY_LIMIT=50,
    )


@pytest.fixture
def user() -> AuthenticatedUser:
    return AuthenticatedUser(id=42, email="ada@example.com", first_name="Ada", user_type="buyer")


def make_user_summary(user_id: int, first_name: str | None = None) -> UserSummary:
    return UserSummary(id=user_id, first_name=first_name or f"User{user_id}")


def make_message(
    message_id: int,
    *,
    conversation_id: int = 1,
    sender_id: int = 7,
    content: str | None = None,
) -> Message:
    return Message(
        id=message_id,
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content or f"message {message_id}",
        type=MessageType.TEXT,
        is_read=False,
        created_at=_BASE_TIME + timedelta(minutes=message_id),
        sender=make_user_summary(sender_id),
    )


def make_conversation(conversation_id: int = 1, *, participant_ids: tuple[int, ...] = (42, 7)) -> Conversation:
    return Conversation(
        id=conversation_id,
        participants=tuple(make_user_summary(uid) for uid in participant_ids),
        updated_at=_BASE_TIME,
    )


def message_payload(
    message_id: int,
    *,
    conversation_id: int = 1,
    sender_id: int = 7,
    content: str | None = None,
    first_name: str | None = "Grace",
) -> dict[str, Any]:
    """A ``new_message`` push as the server sends it."""
    return {
        "id": message_id,
        "conversationId": conversation_id,
        "senderId": sender_id,
        "content": content or f"message {message_id}",
        "messageType": "TEXT",
        "isRead": False,
        "createdAt": (_BASE_TIME + timedelta(minutes=message_id)).isoformat(),
        "sender": {"id": sender_id, "firstName": first_name, "lastName": "Hopper"},
    }


@dataclass
class FakeChannel:
    """In-memory channel; ``push`` plays a server event into the handlers."""

    connected: bool = False
    transport: str | None = None
    sid: str | None = None
    fail_connects: int = 0
    # Seconds a successful connect takes before the server answers.
    connect_delay: float = 0.0
    connect_calls: int = 0
    emitted: list[tuple[str, Any]] = field(default_factory=list)
    handlers: dict[str, RawHandler] = field(default_factory=dict)

    def on(self, event: str, handler: RawHandler) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str, *, token: str | None = None) -> None:
        self.connect_calls += 1
        if self.fail_connects:
            self.fail_connects -= 1
            raise ChannelError("Connection refused")
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        self.connected = True
        self.transport = "websocket"
        self.sid = f"sid-{self.connect_calls}"
        await self.handlers["connect"]()

    async def disconnect(self) -> None:
        if not self.connected:
            return
        self.connected = False
        await self.handlers["disconnect"]("client disconnect")

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))

    async def push(self, event: str, *args: Any) -> None:
        await self.handlers[event](*args)

    async def drop(self) -> None:
        self.connected = False
        await self.handlers["disconnect"]("transport error")

    async def reconnect(self) -> None:
        self.connected = True
        await self.handlers["connect"]()

    def sent(self, event: str) -> list[Any]:
        return [data for name, data in self.emitted if name == event]


@dataclass
class FakeMessagingApi:
    conversations: list[Conversation] = field(default_factory=list)
    # Newest first, like the server.
    history: dict[int, list[Message]] = field(default_factory=dict)
    created: Conversation | None = None
    create_error: Exception | None = None
    list_error: Exception | None = None
    gates: dict[int, asyncio.Event] = field(default_factory=dict)
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    closed: bool = False

    async def list_conversations(self, token: str) -> list[Conversation]:
        self.calls.append(("list_conversations", token))
        if self.list_error is not None:
            raise self.list_error
        return list(self.conversations)

    async def list_messages(
        self,
        token: str | None,
        conversation_id: int,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]:
        self.calls.append(("list_messages", conversation_id, limit))
        gate = self.gates.get(conversation_id)
        if gate is not None:
            await gate.wait()
        return list(self.history.get(conversation_id, []))

    async def create_conversation(
        self,
        token: str,
        participant_ids: list[int],
        *,
        service_request_id: int | None = None,
        consultation_id: int | None = None,
    ) -> Conversation:
        self.calls.append(("create_conversation", tuple(participant_ids), service_request_id, consultation_id))
        if self.create_error is not None:
            raise self.create_error
        assert self.created is not None
        return self.created

    async def mark_read(self, token: str, conversation_id: int, user_id: int) -> None:
        self.calls.append(("mark_read", conversation_id, user_id))

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class FakeTokenStore:
    token: str | None = "token-abc"

    def get(self) -> str | None:
        return self.token

    def set(self, token: str) -> None:
        self.token = token

    def clear(self) -> None:
        self.token = None


@dataclass
class FakeNotifier:
    supported: bool = True
    permission: NotificationPermission = NotificationPermission.GRANTED
    grant_on_request: bool = True
    requests: int = 0
    shown: list[tuple[str, str, LoggedNotification]] = field(default_factory=list)

    async def request_permission(self) -> NotificationPermission:
        self.requests += 1
        if self.permission == NotificationPermission.DEFAULT:
            self.permission = (
                NotificationPermission.GRANTED if self.grant_on_request else NotificationPermission.DENIED
            )
        return self.permission

    def show(
        self,
        title: str,
        *,
        body: str,
        tag: str,
        on_click: Callable[[], None] | None = None,
    ) -> LoggedNotification:
        handle = LoggedNotification(tag, on_click)
        self.shown.append((title, body, handle))
        return handle


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def api() -> FakeMessagingApi:
    return FakeMessagingApi()


@pytest.fixture
def token_store() -> FakeTokenStore:
    return FakeTokenStore()


@pytest.fixture
def window() -> HeadlessWindow:
    return HeadlessWindow()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def session(user, channel, api, token_store, window, notifier, test_settings) -> MessagingSession:
    return MessagingSession(
        user,
        channel=channel,
        api=api,
        token_store=token_store,
        window=window,
        notifier=notifier,
        settings=test_settings,
    )
