"""Connection lifecycle for the single real-time channel of a session."""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Coroutine, TypeVar

from chat_relay.application.exceptions import ChannelError, MalformedEventError
from chat_relay.application.ports.channel import RealtimeChannel
from chat_relay.application.ports.clock import Clock, UtcClock
from chat_relay.config import Settings
from chat_relay.domain.entities.user import AuthenticatedUser
from chat_relay.domain.value_objects.enums import ConnectionStatus
from chat_relay.infrastructure.realtime.protocol import (
    GET_ONLINE_USERS,
    INBOUND_EVENTS,
    JOIN_USER,
    USER_ONLINE,
    InboundEvent,
    OutboundCommand,
    decode_event,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=InboundEvent)

EventHandler = Callable[[E], Awaitable[None]]
StatusHandler = Callable[[ConnectionStatus], None]
ConnectedCallback = Callable[[], Awaitable[None]]


class Subscription:
    """Handle returned by every registration; ``unsubscribe`` is idempotent."""

    def __init__(self, registry: list[Any], handler: Any) -> None:
        self._registry = registry
        self._handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            self._registry.remove(self._handler)
        except ValueError:
            pass


class ConnectionManager:
    """Owns the channel and exposes typed subscriptions over it.

    States: idle -> connecting -> connected -> (reconnecting | disconnected).
    """

    def __init__(
        self,
        channel: RealtimeChannel,
        settings: Settings,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._channel = channel
        self._settings = settings
        self._clock = clock or UtcClock()

        self._user: AuthenticatedUser | None = None
        self._token: str | None = None
        self._status = ConnectionStatus.IDLE
        self._last_error: str | None = None
        self._closing = False

        self._handlers: dict[type[InboundEvent], list[EventHandler[Any]]] = defaultdict(list)
        self._status_handlers: list[StatusHandler] = []
        self._connected_callbacks: list[ConnectedCallback] = []

        self._settle_task: asyncio.Task[None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._retry_task: asyncio.Task[None] | None = None

        channel.on("connect", self._on_connect)
        channel.on("disconnect", self._on_disconnect)
        channel.on("connect_error", self._on_connect_error)
        for name in INBOUND_EVENTS:
            channel.on(name, self._dispatcher(name))

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def user(self) -> AuthenticatedUser | None:
        return self._user

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED and self._channel.connected

    @property
    def url(self) -> str:
        return self._settings.API_URL

    # -- lifecycle ---------------------------------------------------------

    async def connect(self, user: AuthenticatedUser, token: str | None = None) -> None:
        """Open the channel for ``user``; an open channel is replaced."""
        if self._status in (
            ConnectionStatus.CONNECTING,
            ConnectionStatus.CONNECTED,
            ConnectionStatus.RECONNECTING,
        ):
            if self._user == user and token == self._token and self.is_connected:
                logger.debug("Channel already open for user %d", user.id)
                return
            await self.disconnect()

        self._cancel(self._retry_task)
        self._retry_task = None
        self._user = user
        self._token = token
        await self._open()

    async def disconnect(self) -> None:
        """Tear the channel down. Safe to call when already disconnected."""
        self._cancel_timers()
        self._connected_callbacks.clear()
        was_open = self._channel.connected or self._status in (
            ConnectionStatus.CONNECTING,
            ConnectionStatus.RECONNECTING,
        )
        self._closing = True
        try:
            if was_open:
                await self._channel.disconnect()
        finally:
            self._closing = False
        self._user = None
        self._token = None
        if self._status != ConnectionStatus.IDLE:
            self._set_status(ConnectionStatus.DISCONNECTED)

    async def _open(self) -> None:
        self._set_status(ConnectionStatus.CONNECTING)
        logger.info("Connecting to %s", self.url)
        try:
            await self._channel.connect(self.url, token=self._token)
        except ChannelError as exc:
            # connect_error may already have been delivered for this attempt.
            if self._status == ConnectionStatus.CONNECTING:
                await self._on_connect_error({"message": exc.detail})
            return
        if self._user is None and self._channel.connected:
            await self._close_stale_channel()

    # -- outbound ----------------------------------------------------------

    async def emit(self, event: str, data: Any = None) -> bool:
        if not self.is_connected:
            logger.warning("Dropping %s: channel not connected", event)
            return False
        try:
            await self._channel.emit(event, data)
        except Exception:
            logger.exception("Failed to emit %s", event)
            return False
        return True

    async def send(self, command: OutboundCommand) -> bool:
        return await self.emit(command.event, command.payload())

    # -- subscriptions -----------------------------------------------------

    def subscribe(self, event_type: type[E], handler: EventHandler[E]) -> Subscription:
        registry = self._handlers[event_type]
        registry.append(handler)
        return Subscription(registry, handler)

    def on_status(self, handler: StatusHandler) -> Subscription:
        self._status_handlers.append(handler)
        return Subscription(self._status_handlers, handler)

    def once_connected(self, callback: ConnectedCallback) -> Subscription:
        """Run ``callback`` on the next ``connected`` transition only."""
        self._connected_callbacks.append(callback)
        return Subscription(self._connected_callbacks, callback)

    # -- channel events ----------------------------------------------------

    async def _on_connect(self) -> None:
        user = self._user
        if user is None:
            # disconnect() ran while this connect was in flight.
            await self._close_stale_channel()
            return
        self._status = ConnectionStatus.CONNECTED
        self._last_error = None
        logger.info("Connected to %s (sid=%s)", self.url, self._channel.sid)

        logger.info("Joining as user %d", user.id)
        await self.emit(JOIN_USER, user.id)

        self._notify_status(ConnectionStatus.CONNECTED)

        callbacks, self._connected_callbacks = self._connected_callbacks, []
        for callback in callbacks:
            try:
                await callback()
            except Exception:
                logger.exception("Error in connected callback")

        self._cancel(self._settle_task)
        self._settle_task = self._spawn(self._settle_presence(), "presence-settle")
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = self._spawn(self._presence_loop(), "presence-refresh")

    async def _close_stale_channel(self) -> None:
        logger.info("Closing channel opened after disconnect")
        self._closing = True
        try:
            await self._channel.disconnect()
        finally:
            self._closing = False

    async def _on_disconnect(self, reason: Any = None) -> None:
        self._cancel(self._settle_task)
        self._cancel(self._refresh_task)
        self._settle_task = self._refresh_task = None
        logger.info("Disconnected: %s", reason or "unknown reason")
        if self._closing or self._user is None:
            self._set_status(ConnectionStatus.DISCONNECTED)
        else:
            # The transport retries on its own after an unexpected drop.
            self._set_status(ConnectionStatus.RECONNECTING)

    async def _on_connect_error(self, data: Any = None) -> None:
        reason = _error_reason(data)
        self._last_error = reason
        logger.error(
            "Connection error: reason=%s transport=%s url=%s timestamp=%s detail=%r",
            reason,
            self._channel.transport or "unknown",
            self.url,
            self._clock.now().isoformat(),
            data,
        )
        if self._status == ConnectionStatus.CONNECTING:
            self._set_status(ConnectionStatus.DISCONNECTED)
        self._schedule_retry()

    def _dispatcher(self, name: str) -> Callable[..., Coroutine[Any, Any, None]]:
        async def _dispatch(*args: Any) -> None:
            payload = args[0] if args else None
            try:
                event = decode_event(name, payload)
            except MalformedEventError as exc:
                logger.warning("Dropping malformed %s payload %r: %s", name, payload, exc.detail)
                return
            for handler in list(self._handlers.get(type(event), ())):
                try:
                    await handler(event)
                except Exception:
                    logger.exception("Error in %s handler", name)

        return _dispatch

    # -- timers ------------------------------------------------------------

    async def _settle_presence(self) -> None:
        # Give server-side room joins a moment before asking for presence.
        await asyncio.sleep(self._settings.PRESENCE_SETTLE_SECONDS)
        await self._announce_presence()

    async def _presence_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.PRESENCE_REFRESH_SECONDS)
            if self.is_connected and self._user is not None:
                logger.debug("Periodic online users refresh")
                await self._announce_presence()

    async def _announce_presence(self) -> None:
        if self._user is None:
            return
        await self.emit(GET_ONLINE_USERS)
        await self.emit(USER_ONLINE, self._user.id)

    def _schedule_retry(self) -> None:
        if self._user is None or self._closing:
            return
        retry = self._retry_task
        if retry is not None and not retry.done() and retry is not asyncio.current_task():
            return
        if self._channel.connected or self._status == ConnectionStatus.RECONNECTING:
            return
        self._retry_task = self._spawn(self._retry_after_delay(), "connect-retry")

    async def _retry_after_delay(self) -> None:
        # Stays registered while connecting so disconnect() can cancel it.
        try:
            await asyncio.sleep(self._settings.RECONNECT_DELAY_SECONDS)
            if self._user is None or self._channel.connected:
                return
            logger.info("Attempting to reconnect to %s", self.url)
            await self._open()
        finally:
            if self._retry_task is asyncio.current_task():
                self._retry_task = None

    def _cancel_timers(self) -> None:
        for task in (self._settle_task, self._refresh_task, self._retry_task):
            self._cancel(task)
        self._settle_task = self._refresh_task = self._retry_task = None

    @staticmethod
    def _cancel(task: asyncio.Task[None] | None) -> None:
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    @staticmethod
    def _spawn(coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        return asyncio.create_task(coro, name=name)

    # -- status ------------------------------------------------------------

    def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        self._status = status
        self._notify_status(status)

    def _notify_status(self, status: ConnectionStatus) -> None:
        for handler in list(self._status_handlers):
            try:
                handler(status)
            except Exception:
                logger.exception("Error in status handler")


def _error_reason(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("message") or data.get("description") or "Unknown connection error")
    if data:
        return str(data)
    return "Unknown connection error"
