from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Socket.IO async mode ("" picks eventlet or threading, see server.py)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    # HTTP
    API_PREFIX = os.environ.get("API_PREFIX", "")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    ENABLE_DEBUG_ROUTES = os.environ.get("ENABLE_DEBUG_ROUTES", "0") == "1"

    # Rooms
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "10"))
    DISPLAY_CODE_ATTEMPTS = int(os.environ.get("DISPLAY_CODE_ATTEMPTS", "20"))
    DEFAULT_LAT = float(os.environ.get("DEFAULT_LAT", "11.2488"))
    DEFAULT_LON = float(os.environ.get("DEFAULT_LON", "75.7839"))
    DEFAULT_SEARCH_RADIUS_KM = float(os.environ.get("DEFAULT_SEARCH_RADIUS_KM", "100"))

    # Game
    ROUND_TIME_SEC = int(os.environ.get("ROUND_TIME_SEC", "80"))
    WORD_CHOICES_COUNT = int(os.environ.get("WORD_CHOICES_COUNT", "2"))
    CHOOSE_DURATION_SEC = int(os.environ.get("CHOOSE_DURATION_SEC", "20"))
    ROUND_END_DELAY_SEC = int(os.environ.get("ROUND_END_DELAY_SEC", "5"))
    TURNS_PER_PLAYER = int(os.environ.get("TURNS_PER_PLAYER", "3"))
    DRAWER_RECONNECT_GRACE_SEC = int(os.environ.get("DRAWER_RECONNECT_GRACE_SEC", "15"))


@dataclass(frozen=True)
class GameSettings:
    """Game tunables handed to the turn engine."""

    max_players: int = 10
    round_time_sec: int = 80
    word_choices_count: int = 2
    choose_duration_sec: int = 20
    round_end_delay_sec: int = 5
    turns_per_player: int = 3
    drawer_reconnect_grace_sec: int = 15
    display_code_attempts: int = 20
    default_lat: float = 11.2488
    default_lon: float = 75.7839
    default_search_radius_km: float = 100.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "GameSettings":
        defaults = cls()
        return cls(
            max_players=int(config.get("MAX_PLAYERS", defaults.max_players)),
            round_time_sec=int(config.get("ROUND_TIME_SEC", defaults.round_time_sec)),
            word_choices_count=int(config.get("WORD_CHOICES_COUNT", defaults.word_choices_count)),
            choose_duration_sec=int(config.get("CHOOSE_DURATION_SEC", defaults.choose_duration_sec)),
            round_end_delay_sec=int(config.get("ROUND_END_DELAY_SEC", defaults.round_end_delay_sec)),
            turns_per_player=int(config.get("TURNS_PER_PLAYER", defaults.turns_per_player)),
            drawer_reconnect_grace_sec=int(
                config.get("DRAWER_RECONNECT_GRACE_SEC", defaults.drawer_reconnect_grace_sec)
            ),
            display_code_attempts=int(config.get("DISPLAY_CODE_ATTEMPTS", defaults.display_code_attempts)),
            default_lat=float(config.get("DEFAULT_LAT", defaults.default_lat)),
            default_lon=float(config.get("DEFAULT_LON", defaults.default_lon)),
            default_search_radius_km=float(
                config.get("DEFAULT_SEARCH_RADIUS_KM", defaults.default_search_radius_km)
            ),
        )
