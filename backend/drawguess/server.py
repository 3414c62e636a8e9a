from __future__ import annotations

import logging
import sys
from typing import Any

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config, GameSettings
from .game.errors import GameError
from .game.service import GameService
from .game.timers import BackgroundScheduler
from .realtime.handlers import register_socketio_handlers
from .routes.debug import bp as debug_bp
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp
from .routes.words import bp as words_bp


logger = logging.getLogger(__name__)


def _pick_async_mode(configured: str) -> str:
    if configured:
        return configured
    # Windows and Python >= 3.13: threading (eventlet compatibility issues).
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def create_app(config_class: type = Config, scheduler: Any = None) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/*": {"origins": cors_origins}})

    async_mode = _pick_async_mode(app.config.get("SOCKETIO_ASYNC_MODE", ""))
    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=async_mode,
    )

    service = GameService(
        scheduler or BackgroundScheduler(socketio),
        settings=GameSettings.from_config(app.config),
    )
    app.extensions["drawguess"] = service

    prefix = app.config.get("API_PREFIX", "") or None
    app.register_blueprint(health_bp, url_prefix=prefix)
    app.register_blueprint(rooms_bp, url_prefix=prefix)
    app.register_blueprint(words_bp, url_prefix=prefix)
    app.register_blueprint(debug_bp, url_prefix=prefix)

    @app.errorhandler(GameError)
    def handle_game_error(exc: GameError):
        return jsonify(exc.to_dict()), exc.status

    @app.before_request
    def log_request():
        logger.debug("%s %s", request.method, request.path)

    register_socketio_handlers(socketio, service)

    logger.info("app created async_mode=%s", async_mode)
    return app, socketio
