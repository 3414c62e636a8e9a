"""In-memory indices: rooms, sessions and live connections.

None of these expire; everything lives for the lifetime of the process.
"""
from __future__ import annotations

import random
import string
from typing import Any, Iterable

from .models import Room, Session


DISPLAY_CODE_LENGTH = 4


class RoomStore:
    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def set(self, room_id: str, room: Room) -> None:
        self._rooms[room_id] = room

    def delete(self, room_id: str) -> bool:
        return self._rooms.pop(room_id, None) is not None

    def list_all(self) -> list[Room]:
        return list(self._rooms.values())

    def display_codes(self) -> set[str]:
        return {r.display_code for r in self._rooms.values()}

    def clear(self) -> None:
        self._rooms.clear()

    def __len__(self) -> int:
        return len(self._rooms)


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def get(self, token: str) -> Session | None:
        return self._sessions.get(token)

    def set(self, token: str, session: Session) -> None:
        self._sessions[token] = session

    def items(self) -> list[tuple[str, Session]]:
        return list(self._sessions.items())

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


class ConnectionRegistry:
    """Connection id -> transport handle. Only used for delivery."""

    def __init__(self) -> None:
        self._handles: dict[str, Any] = {}

    def get(self, connection_id: str) -> Any | None:
        return self._handles.get(connection_id)

    def set(self, connection_id: str, handle: Any) -> None:
        self._handles[connection_id] = handle

    def delete(self, connection_id: str) -> None:
        self._handles.pop(connection_id, None)

    def ids(self) -> list[str]:
        return list(self._handles.keys())

    def clear(self) -> None:
        self._handles.clear()

    def __len__(self) -> int:
        return len(self._handles)


def random_display_code(rng: random.Random | None = None) -> str:
    r = rng or random
    return "".join(r.choice(string.ascii_uppercase) for _ in range(DISPLAY_CODE_LENGTH))


def generate_display_code(
    existing: Iterable[str],
    attempts: int = 20,
    rng: random.Random | None = None,
) -> str:
    """Draw a 4-letter code, retrying on collision up to `attempts` times.

    After the retries run out the last draw is returned even if it collides.
    """
    taken = set(existing)
    code = random_display_code(rng)
    tries = 0
    while code in taken and tries < attempts:
        code = random_display_code(rng)
        tries += 1
    return code
