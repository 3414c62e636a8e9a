from __future__ import annotations

import logging
from typing import Any, Callable

from .models import Player, Room
from .store import ConnectionRegistry


logger = logging.getLogger(__name__)


class Broadcaster:
    """Delivers messages to the live connections of a room's players.

    Delivery is fire-and-forget: a closed or failing connection is skipped
    and the remaining recipients still get the message.
    """

    def __init__(self, connections: ConnectionRegistry) -> None:
        self._connections = connections

    def send(self, connection_id: str | None, message: dict) -> bool:
        if not connection_id:
            return False
        handle = self._connections.get(connection_id)
        if handle is None or not getattr(handle, "is_open", True):
            return False
        try:
            handle.send(message)
        except Exception:
            logger.warning("send failed connection=%s type=%s", connection_id, message.get("type"), exc_info=True)
            return False
        return True

    def send_to_player(self, player: Player | None, message: dict) -> bool:
        if player is None or not player.connected:
            return False
        return self.send(player.connection_id, message)

    def broadcast(self, room: Room | None, message: dict, exclude_connection_id: str | None = None) -> int:
        if room is None:
            return 0
        delivered = 0
        for player in list(room.players):
            if not player.connection_id or player.connection_id == exclude_connection_id:
                continue
            if self.send_to_player(player, message):
                delivered += 1
        return delivered

    def broadcast_each(self, room: Room | None, build: Callable[[Player], dict | None]) -> int:
        """Broadcast a per-recipient message; `build` may return None to skip."""
        if room is None:
            return 0
        delivered = 0
        for player in list(room.players):
            if not player.connected or not player.connection_id:
                continue
            message = build(player)
            if message is None:
                continue
            if self.send_to_player(player, message):
                delivered += 1
        return delivered


def message(type_: str, **fields: Any) -> dict:
    payload = {"type": type_}
    payload.update(fields)
    return payload
