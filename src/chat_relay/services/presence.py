from __future__ import annotations

import logging

from chat_relay.domain.value_objects.enums import ConnectionStatus
from chat_relay.infrastructure.realtime.protocol import OnlineUsers, UserStatusChange
from chat_relay.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Set of online user ids as last reported by the server.

    ``online_users`` snapshots replace the set wholesale. The session's own
    user is always part of it while the channel is connected.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection
        self._online: set[int] = set()
        self._subscriptions = [
            connection.subscribe(OnlineUsers, self._on_online_users),
            connection.subscribe(UserStatusChange, self._on_status_change),
            connection.on_status(self._on_connection_status),
        ]

    @property
    def online_users(self) -> frozenset[int]:
        return frozenset(self._online)

    def is_user_online(self, user_id: int) -> bool:
        user_id = int(user_id)
        if self._is_self(user_id) and self._connection.is_connected:
            return True
        return user_id in self._online

    def close(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()

    async def _on_online_users(self, event: OnlineUsers) -> None:
        online = set(event.user_ids)
        user = self._connection.user
        if user is not None and self._connection.is_connected:
            online.add(user.id)
        self._online = online
        logger.debug("Online users: %s", sorted(online))

    async def _on_status_change(self, event: UserStatusChange) -> None:
        if event.is_online:
            self._online.add(event.user_id)
        elif not (self._is_self(event.user_id) and self._connection.is_connected):
            self._online.discard(event.user_id)

    def _on_connection_status(self, status: ConnectionStatus) -> None:
        user = self._connection.user
        if user is None:
            return
        if status == ConnectionStatus.CONNECTED:
            # Avoid showing ourselves offline until the first snapshot arrives.
            self._online.add(user.id)
        else:
            self._online.discard(user.id)

    def _is_self(self, user_id: int) -> bool:
        user = self._connection.user
        return user is not None and user.id == user_id
