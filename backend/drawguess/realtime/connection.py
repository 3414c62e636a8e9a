from __future__ import annotations

from flask_socketio import SocketIO


class SocketIOConnection:
    """Transport handle for one Socket.IO client.

    Each message is emitted under its own `type` as the event name.
    """

    def __init__(self, socketio: SocketIO, sid: str) -> None:
        self._socketio = socketio
        self.sid = sid
        self.is_open = True

    def send(self, message: dict) -> None:
        self._socketio.emit(message["type"], message, to=self.sid)

    def close(self) -> None:
        self.is_open = False
