from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..game.errors import InvalidPayload
from ..game.service import GameService
from ..game.snapshots import room_public_state

bp = Blueprint("rooms", __name__)


def _service() -> GameService:
    return current_app.extensions["drawguess"]


def _float_arg(name: str) -> float | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise InvalidPayload(f"Invalid {name}") from None


def _joined_payload(room, session) -> dict:
    return {
        "roomId": room.room_id,
        "sessionToken": session.token,
        "userId": session.user_id,
        "room": room_public_state(room, session.user_id),
    }


@bp.post("/create-room")
def create_room():
    data = request.get_json(silent=True) or {}
    room, session = _service().create_room(
        data.get("username"),
        data.get("category"),
        lat=data.get("lat"),
        lon=data.get("lon"),
        client_user_id=data.get("clientUserId"),
        round_time_seconds=data.get("roundTimeSeconds"),
    )
    return jsonify(_joined_payload(room, session))


@bp.post("/join-room")
def join_room():
    data = request.get_json(silent=True) or {}
    room, session = _service().join_room(
        data.get("username"),
        data.get("roomId"),
        client_user_id=data.get("clientUserId"),
    )
    return jsonify(_joined_payload(room, session))


@bp.get("/room")
def get_room():
    room_id = request.args.get("roomId", "").strip()
    if not room_id:
        return jsonify({"error": "roomId is required", "code": "invalid_payload"}), 400
    return jsonify(_service().room_state(room_id))


@bp.get("/rooms")
def list_rooms():
    rooms = _service().list_rooms(
        lat=_float_arg("lat"),
        lon=_float_arg("lon"),
        radius_km=_float_arg("radius"),
    )
    return jsonify(rooms)


@bp.post("/clear-rooms")
def clear_rooms():
    _service().clear()
    return jsonify({"ok": True})
