from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    stats = current_app.extensions["drawguess"].stats()
    return jsonify(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "rooms": stats["rooms"],
            "players": stats["players"],
            "uptime": stats["uptime"],
        }
    )
