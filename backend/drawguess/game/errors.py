from __future__ import annotations


class GameError(Exception):
    """An error scoped to one request or one connection."""

    code = "game_error"
    status = 400

    def __init__(self, message: str, code: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class InvalidPayload(GameError):
    code = "invalid_payload"
    status = 400


class RoomNotFound(GameError):
    code = "room_not_found"
    status = 404

    def __init__(self, message: str = "Room not found") -> None:
        super().__init__(message)


class RoomFull(GameError):
    code = "room_full"
    status = 400

    def __init__(self, message: str = "Room is full") -> None:
        super().__init__(message)


class InvalidSession(GameError):
    code = "invalid_session"
    status = 401

    def __init__(self, message: str = "Invalid session") -> None:
        super().__init__(message)


class NotAllowed(GameError):
    code = "not_allowed"
    status = 403


class NotAllReady(GameError):
    code = "not_all_ready"
    status = 409

    def __init__(self, message: str = "Not all players are ready") -> None:
        super().__init__(message)


class InvalidWord(GameError):
    code = "invalid_word"
    status = 400

    def __init__(self, message: str = "Invalid word choice") -> None:
        super().__init__(message)


class InvalidState(GameError):
    code = "invalid_state"
    status = 409
