from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


RoomPhase = Literal["waiting", "word_selection", "drawing", "round_end", "game_end"]

# Phases during which a drawer holds the turn.
TURN_PHASES: tuple[RoomPhase, ...] = ("word_selection", "drawing")


@dataclass
class Player:
    user_id: str
    username: str
    is_admin: bool = False
    ready: bool = False
    score: int = 0
    connected: bool = False
    connection_id: str | None = None
    has_guessed: bool = False
    guess_timestamp_ms: int | None = None


@dataclass
class Location:
    lat: float
    lon: float


@dataclass
class RoomSettings:
    round_time_seconds: int = 80


@dataclass
class Round:
    turn_id: str
    round_number: int
    total_rounds: int
    drawer_user_id: str
    player_round: int = 1
    word_choices: list[str] = field(default_factory=list)
    word: str | None = None
    timer_ends_at_ms: int | None = None
    drawing_start_ms: int | None = None


@dataclass
class DrawerPause:
    phase: RoomPhase
    remaining_ms: int
    grace_ends_at_ms: int


@dataclass
class Room:
    room_id: str
    display_code: str
    category: str
    creator_user_id: str
    location: Location
    created_at_ms: int
    max_players: int = 10
    active: bool = True
    phase: RoomPhase = "waiting"
    players: list[Player] = field(default_factory=list)
    current_round: Round | None = None
    turn_order: list[str] = field(default_factory=list)
    settings: RoomSettings = field(default_factory=RoomSettings)
    drawer_pause: DrawerPause | None = None

    def find_player(self, user_id: str) -> Player | None:
        for p in self.players:
            if p.user_id == user_id:
                return p
        return None

    def connected_players(self) -> list[Player]:
        return [p for p in self.players if p.connected]

    @property
    def drawer(self) -> Player | None:
        if self.current_round is None:
            return None
        return self.find_player(self.current_round.drawer_user_id)

    def eligible_guessers(self) -> list[Player]:
        """Connected players other than the current drawer."""
        drawer_id = self.current_round.drawer_user_id if self.current_round else None
        return [p for p in self.players if p.connected and p.user_id != drawer_id]


@dataclass
class Session:
    token: str
    user_id: str
    username: str
    room_id: str
    connection_id: str | None = None
