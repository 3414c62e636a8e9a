from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("debug", __name__)


def _enabled() -> bool:
    return bool(current_app.config.get("ENABLE_DEBUG_ROUTES", False))


@bp.get("/debug/rooms")
def debug_rooms():
    if not _enabled():
        return jsonify({"error": "Not found", "code": "not_found"}), 404
    return jsonify(current_app.extensions["drawguess"].debug_state())
