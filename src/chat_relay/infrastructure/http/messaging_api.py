"""HTTP implementation of the messaging API port.

Thin wrapper around httpx. Every call is bearer-authenticated; non-2xx
responses raise ApiError (SessionExpiredError for 401) with the most useful
human-readable message the body offers.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter

from chat_relay.application.exceptions import (
    ApiError,
    NotFoundError,
    SessionExpiredError,
    ValidationError,
)
from chat_relay.domain.entities.conversation import Conversation
from chat_relay.domain.entities.message import Message
from chat_relay.infrastructure.http.mappers import (
    conversation_to_entity,
    message_to_entity,
)
from chat_relay.infrastructure.http.schemas import (
    ConversationListEnvelope,
    ConversationSchema,
    CreateConversationRequest,
    CreateConversationResponse,
    MessageSchema,
)

logger = logging.getLogger(__name__)

_conversation_list = TypeAdapter(list[ConversationSchema])
_message_list = TypeAdapter(list[MessageSchema])


class HttpMessagingApi:
    """MessagingApi backed by the marketplace REST endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> HttpMessagingApi:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_conversations(self, token: str) -> list[Conversation]:
        resp = await self._client.get("/conversations", headers=_auth(token))
        _raise_for_status(resp)
        body = resp.json()
        # The server wraps the list in {success, data}; older builds return it bare.
        if isinstance(body, list):
            schemas = _conversation_list.validate_python(body)
        else:
            schemas = ConversationListEnvelope.model_validate(body).data
        return [conversation_to_entity(s) for s in schemas]

    async def list_messages(
        self,
        token: str | None,
        conversation_id: int,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]:
        resp = await self._client.get(
            f"/conversations/{conversation_id}/messages",
            params={"limit": limit, "offset": offset},
            headers=_auth(token),
        )
        _raise_for_status(resp)
        body = resp.json()
        if not isinstance(body, list):
            raise ValidationError(f"Expected a message list, got {type(body).__name__}")
        return [message_to_entity(s) for s in _message_list.validate_python(body)]

    async def create_conversation(
        self,
        token: str,
        participant_ids: list[int],
        *,
        service_request_id: int | None = None,
        consultation_id: int | None = None,
    ) -> Conversation:
        payload = CreateConversationRequest(
            participant_ids=participant_ids,
            service_request_id=service_request_id,
            consultation_id=consultation_id,
        )
        resp = await self._client.post(
            "/conversations",
            content=payload.model_dump_json(by_alias=True, exclude_none=True),
            headers=_auth(token),
        )
        _raise_for_status(resp)
        try:
            data = CreateConversationResponse.model_validate(resp.json())
        except ValueError as exc:
            raise ValidationError("Invalid response format from conversation creation") from exc
        if not data.success or data.conversation is None:
            raise ValidationError("Invalid response format from conversation creation")
        return conversation_to_entity(data.conversation)

    async def mark_read(self, token: str, conversation_id: int, user_id: int) -> None:
        resp = await self._client.put(
            f"/conversations/{conversation_id}/read",
            json={"userId": user_id},
            headers=_auth(token),
        )
        _raise_for_status(resp)


def _auth(token: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    detail = _error_detail(resp)
    logger.error(
        "Messaging API %s %s failed: status=%d detail=%s",
        resp.request.method, resp.request.url, resp.status_code, detail,
    )
    if resp.status_code == 401:
        raise SessionExpiredError("Session expired. Please log in again.")
    if resp.status_code == 404:
        raise NotFoundError(resp.status_code, detail)
    raise ApiError(resp.status_code, detail)


def _error_detail(resp: httpx.Response) -> str:
    fallback = f"HTTP {resp.status_code}: {resp.reason_phrase}"
    try:
        body: Any = resp.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        for key in ("message", "msg", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback
