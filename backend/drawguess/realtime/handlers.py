from __future__ import annotations

import json
import logging
from typing import Any, Callable

from flask import request
from flask_socketio import SocketIO, emit

from ..game.broadcast import message
from ..game.errors import GameError, InvalidPayload, InvalidSession
from ..game.models import Session
from ..game.service import GameService
from .connection import SocketIOConnection
from .events import ClientEvent, ServerEvent


logger = logging.getLogger(__name__)


def _emit_error(error: str, code: str | None = None) -> None:
    emit(ServerEvent.ERROR, message(ServerEvent.ERROR, message=error, code=code), to=request.sid)


def register_socketio_handlers(socketio: SocketIO, service: GameService) -> None:
    sessions_by_sid: dict[str, Session] = {}
    connections_by_sid: dict[str, SocketIOConnection] = {}

    def _session() -> Session:
        session = sessions_by_sid.get(request.sid)
        if session is None:
            raise InvalidSession("Join a room first")
        return session

    def join(payload: dict) -> None:
        sid = request.sid
        previous = sessions_by_sid.get(sid)
        if previous is not None and previous.token != payload.get("sessionToken"):
            sessions_by_sid.pop(sid, None)
            service.handle_disconnect(previous, sid)

        connection = connections_by_sid.get(sid) or SocketIOConnection(socketio, sid)
        session = service.attach_connection(payload.get("roomId"), payload.get("sessionToken"), sid, connection)
        connections_by_sid[sid] = connection
        sessions_by_sid[sid] = session

        # The newest socket owns the player; older sockets lose their binding.
        for other_sid, other in list(sessions_by_sid.items()):
            if other_sid != sid and other.room_id == session.room_id and other.user_id == session.user_id:
                sessions_by_sid.pop(other_sid, None)
                connections_by_sid.pop(other_sid, None)
                logger.debug("socket superseded sid=%s by=%s", other_sid, sid)

    def ready(payload: dict) -> None:
        service.set_ready(_session(), payload.get("ready"))

    def start(payload: dict) -> None:
        service.start_game(_session(), bool(payload.get("forceStart")))

    def select_word(payload: dict) -> None:
        service.select_word(_session(), payload.get("word"))

    def drawing(payload: dict) -> None:
        service.relay_drawing(_session(), payload.get("event"))

    def guess(payload: dict) -> None:
        service.submit_guess(_session(), payload.get("text"))

    def chat(payload: dict) -> None:
        service.chat(_session(), payload.get("text"))

    def leave(payload: dict) -> None:
        session = sessions_by_sid.pop(request.sid, None)
        if session is not None:
            service.leave_room(session)

    def settings(payload: dict) -> None:
        service.update_settings(_session(), payload.get("roundTimeSeconds"))

    handlers: dict[str, Callable[[dict], None]] = {
        ClientEvent.JOIN_ROOM: join,
        ClientEvent.PLAYER_READY: ready,
        ClientEvent.START_GAME: start,
        ClientEvent.SELECT_WORD: select_word,
        ClientEvent.DRAWING_EVENT: drawing,
        ClientEvent.GUESS: guess,
        ClientEvent.CHAT_MESSAGE: chat,
        ClientEvent.LEAVE_ROOM: leave,
        ClientEvent.UPDATE_SETTINGS: settings,
    }

    def dispatch(event_type: Any, payload: Any) -> dict:
        handler = handlers.get(event_type) if isinstance(event_type, str) else None
        try:
            if handler is None:
                raise InvalidPayload("Unknown message type")
            if payload is None:
                payload = {}
            if not isinstance(payload, dict):
                raise InvalidPayload("Invalid payload")
            handler(payload)
        except GameError as exc:
            logger.debug("rejected %s from %s: %s", event_type, request.sid, exc.message)
            _emit_error(exc.message, exc.code)
            return {"ok": False, "error": exc.code}
        except Exception:
            logger.exception("socket handler failed type=%s sid=%s", event_type, request.sid)
            _emit_error("Internal server error", "internal_error")
            return {"ok": False, "error": "internal_error"}
        return {"ok": True}

    def _bind(event_type: str) -> None:
        def _handler(data=None):
            return dispatch(event_type, data)

        _handler.__name__ = f"on_{event_type}"
        socketio.on_event(event_type, _handler)

    for event_type in handlers:
        _bind(event_type)

    @socketio.on("message")
    def on_message(data=None):
        # Raw frames carry the type inside a JSON object.
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError:
                _emit_error("Invalid JSON", "invalid_payload")
                return {"ok": False, "error": "invalid_payload"}
        if not isinstance(data, dict):
            _emit_error("Invalid payload", "invalid_payload")
            return {"ok": False, "error": "invalid_payload"}
        payload = dict(data)
        return dispatch(payload.pop("type", None), payload)

    @socketio.on("json")
    def on_json(data=None):
        return on_message(data)

    @socketio.on("connect")
    def on_connect(auth=None):
        logger.debug("socket connected sid=%s", request.sid)

    @socketio.on("disconnect")
    def on_disconnect(*args):
        sid = request.sid
        connection = connections_by_sid.pop(sid, None)
        if connection is not None:
            connection.close()
        session = sessions_by_sid.pop(sid, None)
        if session is not None:
            service.handle_disconnect(session, sid)
        logger.debug("socket disconnected sid=%s", sid)
