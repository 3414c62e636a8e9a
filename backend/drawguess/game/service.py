from __future__ import annotations

import logging
import math
import random
import time
import uuid
from threading import RLock
from typing import Any, Callable

from ..config import GameSettings
from ..realtime.events import ServerEvent
from ..utils.geo import haversine_km
from . import timers as slots
from .broadcast import Broadcaster, message
from .errors import (
    InvalidPayload,
    InvalidSession,
    InvalidState,
    InvalidWord,
    NotAllowed,
    NotAllReady,
    RoomFull,
    RoomNotFound,
)
from .models import TURN_PHASES, DrawerPause, Location, Player, Room, RoomSettings, Round, Session
from .scoring import artist_score, guesser_score
from .snapshots import final_standings, iso_from_ms, mask_word, player_public_state, room_public_state, score_lines
from .store import ConnectionRegistry, RoomStore, SessionRegistry, generate_display_code
from .timers import RoomTimers
from .words import has_category, pick_word, words_for_category


logger = logging.getLogger(__name__)

MIN_ROUND_TIME_SEC = 10
MAX_ROUND_TIME_SEC = 300
MAX_USERNAME_LENGTH = 24


def now_ms() -> int:
    return int(time.time() * 1000)


def drawer_index(round_number: int, turns_per_player: int, player_count: int) -> int:
    """Index into the turn order of the drawer for a 1-indexed round."""
    return ((round_number - 1) // turns_per_player) % player_count


def total_rounds(player_count: int, turns_per_player: int) -> int:
    return player_count * turns_per_player


def normalize_username(raw: Any) -> str:
    name = str(raw or "").strip()
    if not name or len(name) > MAX_USERNAME_LENGTH:
        raise InvalidPayload("Invalid username")
    if "<" in name or ">" in name:
        raise InvalidPayload("Invalid username")
    for ch in name:
        if ord(ch) < 32:
            raise InvalidPayload("Invalid username")
    return name


def _normalize_guess(text: str) -> str:
    return text.strip().lower()


def _coerce_coordinate(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return float(value)


def _is_drawing_event(event: Any) -> bool:
    return isinstance(event, dict) and event.get("type") in ("stroke", "clear")


class GameService:
    """Rooms, sessions and the turn engine.

    Every public method and every timer callback runs under one lock, so
    each room sees its transitions in a single total order.
    """

    def __init__(
        self,
        scheduler: Any,
        settings: GameSettings | None = None,
        clock: Callable[[], int] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or GameSettings()
        self.rooms = RoomStore()
        self.sessions = SessionRegistry()
        self.connections = ConnectionRegistry()
        self.broadcaster = Broadcaster(self.connections)
        self._scheduler = scheduler
        self._clock = clock or now_ms
        self._rng = rng or random.Random()
        self._lock = RLock()
        self._timers: dict[str, RoomTimers] = {}
        self._started_at = time.time()

    # ------------------------------------------------------------------
    # Room management (REST)
    # ------------------------------------------------------------------

    def create_room(
        self,
        username: Any,
        category: Any,
        lat: Any = None,
        lon: Any = None,
        client_user_id: Any = None,
        round_time_seconds: Any = None,
    ) -> tuple[Room, Session]:
        name = normalize_username(username)
        category_name = str(category or "").strip()
        if not has_category(category_name):
            raise InvalidPayload("Unknown category")

        round_time = self.settings.round_time_sec
        if round_time_seconds is not None:
            round_time = self._validate_round_time(round_time_seconds)

        location = Location(
            lat=_coerce_coordinate(lat, self.settings.default_lat),
            lon=_coerce_coordinate(lon, self.settings.default_lon),
        )

        with self._lock:
            room_id = uuid.uuid4().hex
            while self.rooms.get(room_id) is not None:
                room_id = uuid.uuid4().hex

            display_code = generate_display_code(
                self.rooms.display_codes(),
                attempts=self.settings.display_code_attempts,
                rng=self._rng,
            )
            user_id = self._resolve_user_id(client_user_id)
            admin = Player(user_id=user_id, username=name, is_admin=True, ready=False, connected=True)

            room = Room(
                room_id=room_id,
                display_code=display_code,
                category=category_name,
                creator_user_id=user_id,
                location=location,
                created_at_ms=self._clock(),
                max_players=self.settings.max_players,
                players=[admin],
                settings=RoomSettings(round_time_seconds=round_time),
            )
            self.rooms.set(room_id, room)
            session = self._mint_session(user_id, name, room_id)

            logger.info("room created room=%s code=%s category=%s by=%s", room_id, display_code, category_name, name)
            return room, session

    def join_room(self, username: Any, room_id: Any, client_user_id: Any = None) -> tuple[Room, Session]:
        name = normalize_username(username)

        with self._lock:
            room = self.rooms.get(str(room_id or ""))
            if room is None:
                raise RoomNotFound()

            user_id = self._resolve_user_id(client_user_id)
            existing = room.find_player(user_id)
            if existing is not None:
                existing.username = name
                logger.info("player rejoined room=%s user=%s", room.room_id, user_id)
            else:
                if len(room.players) >= room.max_players:
                    raise RoomFull()
                room.players.append(Player(user_id=user_id, username=name, ready=True, connected=False))
                logger.info("player joined room=%s user=%s name=%s", room.room_id, user_id, name)

            session = self._mint_session(user_id, name, room.room_id)
            self._broadcast_room_update(room)
            return room, session

    def get_room(self, room_id: str) -> Room | None:
        with self._lock:
            return self.rooms.get(room_id)

    def room_state(self, room_id: str, viewer_user_id: str | None = None) -> dict:
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                raise RoomNotFound()
            return room_public_state(room, viewer_user_id)

    def list_rooms(self, lat: Any = None, lon: Any = None, radius_km: Any = None) -> list[dict]:
        origin_lat = _coerce_coordinate(lat, self.settings.default_lat)
        origin_lon = _coerce_coordinate(lon, self.settings.default_lon)
        radius = _coerce_coordinate(radius_km, self.settings.default_search_radius_km)

        with self._lock:
            listing = []
            for room in self.rooms.list_all():
                if not room.active:
                    continue
                host = room.find_player(room.creator_user_id)
                if host is None or not host.connected:
                    continue
                distance = haversine_km(origin_lat, origin_lon, room.location.lat, room.location.lon)
                if distance > radius:
                    continue
                listing.append(
                    {
                        "roomId": room.room_id,
                        "displayCode": room.display_code,
                        "category": room.category,
                        "distanceKm": distance,
                        "playerCount": len(room.players),
                    }
                )

        listing.sort(key=lambda item: item["distanceKm"])
        return listing

    def clear(self) -> None:
        with self._lock:
            for room_timers in self._timers.values():
                room_timers.cancel_all()
            self._timers.clear()
            self.rooms.clear()
            self.sessions.clear()
            self.connections.clear()
        logger.info("all rooms cleared")

    def stats(self) -> dict:
        with self._lock:
            rooms = self.rooms.list_all()
            return {
                "rooms": len(rooms),
                "players": sum(len(r.players) for r in rooms),
                "connections": len(self.connections),
                "uptime": round(time.time() - self._started_at, 3),
            }

    def debug_state(self) -> dict:
        with self._lock:
            rooms = []
            for room in self.rooms.list_all():
                state = room_public_state(room)
                for entry, player in zip(state["players"], room.players):
                    entry["connectionId"] = player.connection_id
                state["pendingTimers"] = self._timers_for(room.room_id).pending()
                rooms.append(state)
            sessions = [
                {
                    "token": token,
                    "userId": s.user_id,
                    "username": s.username,
                    "roomId": s.room_id,
                    "connectionId": s.connection_id,
                }
                for token, s in self.sessions.items()
            ]
            return {"rooms": rooms, "sessions": sessions, "connections": self.connections.ids()}

    # ------------------------------------------------------------------
    # Live connections
    # ------------------------------------------------------------------

    def attach_connection(self, room_id: Any, token: Any, connection_id: str, handle: Any) -> Session:
        with self._lock:
            session = self.sessions.get(str(token or ""))
            if session is None or session.room_id != room_id:
                raise InvalidSession()

            room = self.rooms.get(session.room_id)
            if room is None:
                raise RoomNotFound()
            player = room.find_player(session.user_id)
            if player is None:
                raise NotAllowed("You are no longer in this room")

            if player.connection_id and player.connection_id != connection_id:
                self.connections.delete(player.connection_id)

            self.connections.set(connection_id, handle)
            session.connection_id = connection_id
            player.connection_id = connection_id
            player.connected = True
            logger.info("connection attached room=%s user=%s connection=%s", room.room_id, player.user_id, connection_id)

            self.broadcaster.send(connection_id, message(ServerEvent.ROOM_UPDATE, room=room_public_state(room, player.user_id)))
            self.broadcaster.broadcast(
                room,
                message(ServerEvent.PLAYER_JOINED, player=player_public_state(player)),
                exclude_connection_id=connection_id,
            )

            rnd = room.current_round
            if room.drawer_pause is not None and rnd is not None and rnd.drawer_user_id == player.user_id:
                self._resume_turn(room)
            else:
                self._send_phase_state(room, player)
            return session

    def handle_disconnect(self, session: Session, connection_id: str) -> None:
        with self._lock:
            self.connections.delete(connection_id)
            if session.connection_id == connection_id:
                session.connection_id = None

            room = self.rooms.get(session.room_id)
            if room is None:
                return
            player = room.find_player(session.user_id)
            if player is None or player.connection_id != connection_id:
                # A newer connection already replaced this one.
                return

            player.connected = False
            player.connection_id = None
            logger.info("player disconnected room=%s user=%s", room.room_id, player.user_id)

            rnd = room.current_round
            if room.phase in TURN_PHASES and rnd is not None and rnd.drawer_user_id == player.user_id:
                self._pause_turn(room)
            elif room.phase == "drawing" and self._everyone_guessed(room):
                self._finish_round(room, "all_guessed")

            self._broadcast_room_update(room)

    # ------------------------------------------------------------------
    # Waiting room
    # ------------------------------------------------------------------

    def set_ready(self, session: Session, ready: Any) -> bool:
        with self._lock:
            room, player = self._context(session)
            if player.is_admin or room.phase != "waiting":
                logger.debug("ready toggle ignored room=%s user=%s", room.room_id, player.user_id)
                return False
            player.ready = bool(ready)
            self._broadcast_room_update(room)
            return True

    def update_settings(self, session: Session, round_time_seconds: Any) -> None:
        with self._lock:
            room, player = self._context(session)
            if not player.is_admin:
                raise NotAllowed("Only the room admin can change settings")
            if room.phase != "waiting":
                raise InvalidState("Settings can only change between games")
            room.settings.round_time_seconds = self._validate_round_time(round_time_seconds)
            self._broadcast_room_update(room)

    def chat(self, session: Session, text: Any) -> bool:
        body = str(text or "")
        if not body.strip():
            return False
        with self._lock:
            room, player = self._context(session)
            if not room.active or room.phase != "waiting":
                return False
            self._broadcast_chat(room, player, body)
            return True

    def start_game(self, session: Session, force_start: Any = False) -> None:
        with self._lock:
            room, player = self._context(session)
            if not player.is_admin:
                raise NotAllowed("Only the room admin can start the game")
            if room.phase != "waiting":
                raise InvalidState("Game already in progress")

            all_ready = all(p.ready for p in room.players if not p.is_admin)
            if not all_ready and not force_start:
                raise NotAllReady()

            connected = room.connected_players()
            if not connected:
                raise InvalidState("No connected players")

            self._rng.shuffle(connected)
            room.players = connected
            for p in room.players:
                p.score = 0
                p.has_guessed = False
                p.guess_timestamp_ms = None

            room.turn_order = [p.user_id for p in room.players]
            room.active = False
            room.current_round = None
            room.drawer_pause = None

            logger.info(
                "game starting room=%s players=%d rounds=%d",
                room.room_id,
                len(room.players),
                total_rounds(len(room.turn_order), self.settings.turns_per_player),
            )
            self._start_new_round(room)
            self._broadcast_room_update(room)

    # ------------------------------------------------------------------
    # Turn actions
    # ------------------------------------------------------------------

    def select_word(self, session: Session, word: Any) -> str:
        with self._lock:
            room, player = self._context(session)
            rnd = room.current_round
            if room.phase != "word_selection" or rnd is None:
                raise InvalidState("No word to select right now")
            if rnd.drawer_user_id != player.user_id:
                raise NotAllowed("Only the drawer can select the word")

            wanted = _normalize_guess(str(word or ""))
            choice = next((w for w in rnd.word_choices if _normalize_guess(w) == wanted), None)
            if choice is None:
                raise InvalidWord()

            self._timers_for(room.room_id).cancel(slots.WORD_SELECTION)
            logger.info("word selected room=%s round=%d drawer=%s", room.room_id, rnd.round_number, player.user_id)
            self._start_drawing(room, choice)
            return choice

    def relay_drawing(self, session: Session, event: Any) -> bool:
        with self._lock:
            room, player = self._context(session)
            rnd = room.current_round
            if room.phase != "drawing" or rnd is None or rnd.drawer_user_id != player.user_id:
                logger.debug("drawing event dropped room=%s user=%s", room.room_id, player.user_id)
                return False
            if not _is_drawing_event(event):
                return False
            self.broadcaster.broadcast(
                room,
                message(ServerEvent.DRAWING_EVENT, event=event),
                exclude_connection_id=player.connection_id,
            )
            return True

    def submit_guess(self, session: Session, text: Any) -> bool:
        """Returns True when the guess was correct and scored."""
        body = str(text or "")
        if not body.strip():
            return False

        with self._lock:
            room, player = self._context(session)
            rnd = room.current_round

            if room.phase != "drawing" or rnd is None or not rnd.word:
                self._broadcast_chat(room, player, body)
                return False

            if player.user_id == rnd.drawer_user_id:
                if _normalize_guess(rnd.word) in body.lower():
                    raise NotAllowed("The drawer cannot reveal the word")
                self._broadcast_chat(room, player, body)
                return False

            if player.has_guessed:
                logger.debug("repeat guess ignored room=%s user=%s", room.room_id, player.user_id)
                return False

            if _normalize_guess(body) != _normalize_guess(rnd.word):
                self._broadcast_chat(room, player, body)
                return False

            self._award_correct_guess(room, player)
            return True

    def leave_room(self, session: Session) -> bool:
        with self._lock:
            room = self.rooms.get(session.room_id)
            if room is None:
                return False
            player = room.find_player(session.user_id)
            if player is None:
                return False

            if player.connection_id:
                self.connections.delete(player.connection_id)
            session.connection_id = None

            rnd = room.current_round
            was_drawer = room.phase in TURN_PHASES and rnd is not None and rnd.drawer_user_id == player.user_id
            room.players.remove(player)
            logger.info("player left room=%s user=%s", room.room_id, player.user_id)

            if not room.players:
                self._drop_room(room)
                return True

            if player.is_admin:
                successor = room.players[0]
                successor.is_admin = True
                room.creator_user_id = successor.user_id
                logger.info("admin transferred room=%s to=%s", room.room_id, successor.user_id)

            self.broadcaster.broadcast(room, message(ServerEvent.PLAYER_LEFT, userId=player.user_id))

            if was_drawer:
                self._finish_round(room, "drawer_left", award_artist=False, schedule_next=False)
                self._start_new_round(room)
            elif room.phase == "drawing" and self._everyone_guessed(room):
                self._finish_round(room, "all_guessed")

            self._broadcast_room_update(room)
            return True

    # ------------------------------------------------------------------
    # Turn engine internals (lock held)
    # ------------------------------------------------------------------

    def _start_new_round(self, room: Room) -> None:
        self._timers_for(room.room_id).cancel_all()
        room.drawer_pause = None
        for p in room.players:
            p.has_guessed = False
            p.guess_timestamp_ms = None

        if not room.connected_players():
            logger.info("no connected players, aborting game room=%s", room.room_id)
            self._reset_to_waiting(room)
            return

        turns = self.settings.turns_per_player
        order = room.turn_order
        rounds = total_rounds(len(order), turns)
        round_number = (room.current_round.round_number if room.current_round else 0) + 1

        drawer: Player | None = None
        while round_number <= rounds:
            candidate = room.find_player(order[drawer_index(round_number, turns, len(order))])
            if candidate is not None and candidate.connected:
                drawer = candidate
                break
            logger.info("skipping round=%d room=%s, drawer unavailable", round_number, room.room_id)
            round_number += 1

        if drawer is None:
            self._end_game(room)
            return

        choices = words_for_category(room.category, self.settings.word_choices_count, self._rng)
        now = self._clock()
        choose_sec = self.settings.choose_duration_sec
        room.current_round = Round(
            turn_id=uuid.uuid4().hex,
            round_number=round_number,
            total_rounds=rounds,
            drawer_user_id=drawer.user_id,
            player_round=(round_number - 1) % turns + 1,
            word_choices=choices,
            timer_ends_at_ms=now + choose_sec * 1000,
        )
        room.phase = "word_selection"
        logger.info(
            "round started room=%s round=%d/%d drawer=%s",
            room.room_id,
            round_number,
            rounds,
            drawer.username,
        )

        rnd = room.current_round
        self.broadcaster.broadcast(
            room,
            message(
                ServerEvent.ROUND_START,
                roundNumber=rnd.round_number,
                totalRounds=rnd.total_rounds,
                drawerUserId=rnd.drawer_user_id,
                playerRound=rnd.player_round,
            ),
        )
        self.broadcaster.broadcast_each(room, lambda p: self._word_selection_message(room, p))
        self._arm(room, slots.WORD_SELECTION, choose_sec, self._on_word_selection_timeout)

    def _on_word_selection_timeout(self, room: Room) -> None:
        rnd = room.current_round
        if room.phase != "word_selection" or rnd is None:
            return
        if not room.connected_players():
            logger.info("word selection expired with nobody connected room=%s", room.room_id)
            self._reset_to_waiting(room)
            return

        self.broadcaster.broadcast(room, message(ServerEvent.WORD_SELECTION_TIMEOUT))
        word = pick_word(rnd.word_choices, self._rng)
        if word is None:
            word = pick_word(words_for_category(room.category, 1, self._rng), self._rng)
        logger.info("word auto-selected room=%s round=%d", room.room_id, rnd.round_number)
        self._start_drawing(room, word or "")

    def _start_drawing(self, room: Room, word: str) -> None:
        rnd = room.current_round
        if rnd is None:
            return
        now = self._clock()
        round_sec = room.settings.round_time_seconds
        rnd.word = word
        rnd.word_choices = []
        rnd.drawing_start_ms = now
        rnd.timer_ends_at_ms = now + round_sec * 1000
        room.phase = "drawing"
        for p in room.players:
            p.has_guessed = False
            p.guess_timestamp_ms = None

        self.broadcaster.broadcast_each(room, lambda p: self._word_selected_message(room, p))
        self._arm(room, slots.DRAWING, round_sec, self._on_drawing_timeout)

    def _on_drawing_timeout(self, room: Room) -> None:
        rnd = room.current_round
        if room.phase != "drawing" or rnd is None:
            return
        self.broadcaster.broadcast(room, message(ServerEvent.DRAWING_TIMEOUT, word=rnd.word))
        self._finish_round(room, "timeout")

    def _award_correct_guess(self, room: Room, player: Player) -> None:
        rnd = room.current_round
        now = self._clock()
        position = sum(1 for p in room.players if p.user_id != rnd.drawer_user_id and p.has_guessed) + 1
        # Guessers who scored and then dropped still hold their position.
        eligible = sum(
            1
            for p in room.players
            if p.user_id != rnd.drawer_user_id and (p.connected or p.has_guessed)
        )
        points = guesser_score(
            now,
            rnd.drawing_start_ms if rnd.drawing_start_ms is not None else now,
            room.settings.round_time_seconds,
            position,
            eligible,
        )
        player.score += points
        player.has_guessed = True
        player.guess_timestamp_ms = now
        logger.info(
            "correct guess room=%s user=%s points=%d position=%d/%d",
            room.room_id,
            player.user_id,
            points,
            position,
            eligible,
        )

        self.broadcaster.broadcast(
            room,
            message(
                ServerEvent.CORRECT_GUESS,
                userId=player.user_id,
                username=player.username,
                pointsAwarded=points,
                position=position,
                totalPlayers=eligible,
                drawerUserId=rnd.drawer_user_id,
            ),
        )
        self._broadcast_room_update(room)

        if self._everyone_guessed(room):
            logger.info("everyone guessed, ending round early room=%s", room.room_id)
            self._finish_round(room, "all_guessed")

    def _everyone_guessed(self, room: Room) -> bool:
        guessers = room.eligible_guessers()
        return bool(guessers) and all(p.has_guessed for p in guessers)

    def _finish_round(
        self,
        room: Room,
        reason: str,
        award_artist: bool = True,
        schedule_next: bool = True,
    ) -> None:
        room_timers = self._timers_for(room.room_id)
        room_timers.cancel(slots.WORD_SELECTION)
        room_timers.cancel(slots.DRAWING)
        room_timers.cancel(slots.DRAWER_RECONNECT)
        room.drawer_pause = None

        rnd = room.current_round
        if rnd is None:
            return

        artist_points = 0
        drawer = room.drawer
        if award_artist and drawer is not None and rnd.word:
            guessed = [p for p in room.players if p.user_id != drawer.user_id and p.has_guessed]
            first_guess = min(
                (p.guess_timestamp_ms for p in guessed if p.guess_timestamp_ms is not None),
                default=None,
            )
            artist_points = artist_score(
                len(guessed),
                rnd.drawing_start_ms,
                first_guess,
                room.settings.round_time_seconds,
            )
            drawer.score += artist_points

        room.phase = "round_end"
        logger.info(
            "round ended room=%s round=%d reason=%s artist_points=%d",
            room.room_id,
            rnd.round_number,
            reason,
            artist_points,
        )
        self.broadcaster.broadcast(
            room,
            message(
                ServerEvent.ROUND_END,
                word=rnd.word,
                scores=score_lines(room.players),
                drawerUserId=rnd.drawer_user_id,
                artistPoints=artist_points,
                roundNumber=rnd.round_number,
                totalRounds=rnd.total_rounds,
                reason=reason,
            ),
        )

        if schedule_next:
            self._broadcast_room_update(room)
            self._arm(room, slots.ROUND_END, self.settings.round_end_delay_sec, self._on_round_end_elapsed)

    def _on_round_end_elapsed(self, room: Room) -> None:
        if room.phase != "round_end":
            return
        self._start_new_round(room)

    def _end_game(self, room: Room) -> None:
        room.phase = "game_end"
        standings = final_standings(room)
        logger.info("game ended room=%s", room.room_id)
        self.broadcaster.broadcast(room, message(ServerEvent.GAME_END, finalScores=standings))
        self._reset_to_waiting(room)
        self._broadcast_room_update(room)

    def _reset_to_waiting(self, room: Room) -> None:
        self._timers_for(room.room_id).cancel_all()
        room.active = True
        room.phase = "waiting"
        room.current_round = None
        room.turn_order = []
        room.drawer_pause = None
        for p in room.players:
            p.has_guessed = False
            p.guess_timestamp_ms = None

    def _pause_turn(self, room: Room) -> None:
        rnd = room.current_round
        room_timers = self._timers_for(room.room_id)
        room_timers.cancel(slots.WORD_SELECTION)
        room_timers.cancel(slots.DRAWING)

        now = self._clock()
        grace = self.settings.drawer_reconnect_grace_sec
        remaining = max(0, (rnd.timer_ends_at_ms or now) - now)
        room.drawer_pause = DrawerPause(phase=room.phase, remaining_ms=remaining, grace_ends_at_ms=now + grace * 1000)
        logger.info("drawer disconnected, turn paused room=%s remaining_ms=%d", room.room_id, remaining)

        self.broadcaster.broadcast(
            room,
            message(ServerEvent.ROUND_PAUSED, drawerUserId=rnd.drawer_user_id, graceSeconds=grace),
        )
        self._arm(room, slots.DRAWER_RECONNECT, grace, self._on_drawer_grace_expired)

    def _resume_turn(self, room: Room) -> None:
        pause = room.drawer_pause
        rnd = room.current_round
        room.drawer_pause = None
        self._timers_for(room.room_id).cancel(slots.DRAWER_RECONNECT)

        now = self._clock()
        rnd.timer_ends_at_ms = now + pause.remaining_ms
        if pause.phase == "word_selection":
            self._arm(room, slots.WORD_SELECTION, pause.remaining_ms / 1000, self._on_word_selection_timeout)
        else:
            self._arm(room, slots.DRAWING, pause.remaining_ms / 1000, self._on_drawing_timeout)
        logger.info("drawer reconnected, turn resumed room=%s", room.room_id)

        self.broadcaster.broadcast(
            room,
            message(
                ServerEvent.ROUND_RESUMED,
                drawerUserId=rnd.drawer_user_id,
                phase=room.phase,
                timerEndsAt=iso_from_ms(rnd.timer_ends_at_ms),
            ),
        )
        self._send_phase_state(room, room.drawer)

    def _on_drawer_grace_expired(self, room: Room) -> None:
        if room.drawer_pause is None or room.phase not in TURN_PHASES:
            return
        logger.info("drawer did not reconnect in time room=%s", room.room_id)
        self._finish_round(room, "drawer_disconnected", award_artist=False)

    def _drop_room(self, room: Room) -> None:
        room_timers = self._timers.pop(room.room_id, None)
        if room_timers is not None:
            room_timers.cancel_all()
        self.rooms.delete(room.room_id)
        logger.info("room deleted (empty) room=%s", room.room_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _timers_for(self, room_id: str) -> RoomTimers:
        room_timers = self._timers.get(room_id)
        if room_timers is None:
            room_timers = RoomTimers(self._scheduler)
            self._timers[room_id] = room_timers
        return room_timers

    def _arm(self, room: Room, slot: str, delay_sec: float, fn: Callable[[Room], None]) -> None:
        """Arm a room timer slot; the callback is dropped if the turn moved on."""
        room_id = room.room_id
        turn_id = room.current_round.turn_id if room.current_round else None
        room_timers = self._timers_for(room_id)
        handle = None

        def _fire() -> None:
            with self._lock:
                if handle is None or handle.cancelled:
                    return
                room_timers.release(slot, handle)
                current = self.rooms.get(room_id)
                rnd = current.current_round if current is not None else None
                if rnd is None or rnd.turn_id != turn_id:
                    logger.debug("stale timer dropped room=%s slot=%s", room_id, slot)
                    return
                fn(current)

        handle = room_timers.arm(slot, delay_sec, _fire)

    def pending_timers(self, room_id: str) -> list[str]:
        with self._lock:
            return self._timers_for(room_id).pending()

    def _context(self, session: Session) -> tuple[Room, Player]:
        room = self.rooms.get(session.room_id)
        if room is None:
            raise RoomNotFound()
        player = room.find_player(session.user_id)
        if player is None:
            raise NotAllowed("You are not in this room")
        return room, player

    def _mint_session(self, user_id: str, username: str, room_id: str) -> Session:
        token = uuid.uuid4().hex
        session = Session(token=token, user_id=user_id, username=username, room_id=room_id)
        self.sessions.set(token, session)
        return session

    def _resolve_user_id(self, client_user_id: Any) -> str:
        if isinstance(client_user_id, str) and client_user_id.strip():
            return client_user_id.strip()
        return uuid.uuid4().hex

    def _validate_round_time(self, value: Any) -> int:
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            raise InvalidPayload("Invalid round time") from None
        if seconds < MIN_ROUND_TIME_SEC or seconds > MAX_ROUND_TIME_SEC:
            raise InvalidPayload("Invalid round time")
        return seconds

    def _broadcast_room_update(self, room: Room) -> None:
        self.broadcaster.broadcast_each(
            room,
            lambda p: message(ServerEvent.ROOM_UPDATE, room=room_public_state(room, p.user_id)),
        )

    def _broadcast_chat(self, room: Room, player: Player, text: str) -> None:
        self.broadcaster.broadcast(
            room,
            message(
                ServerEvent.CHAT_MESSAGE,
                userId=player.user_id,
                username=player.username,
                text=text,
                timestamp=iso_from_ms(self._clock()),
            ),
        )

    def _word_selection_message(self, room: Room, player: Player) -> dict:
        rnd = room.current_round
        is_drawer = player.user_id == rnd.drawer_user_id
        return message(
            ServerEvent.WORD_SELECTION_START,
            words=list(rnd.word_choices) if is_drawer else [],
            timeLimit=self.settings.choose_duration_sec,
            timerEndsAt=iso_from_ms(rnd.timer_ends_at_ms),
            roundNumber=rnd.round_number,
            totalRounds=rnd.total_rounds,
            playerRound=rnd.player_round,
            drawerUserId=rnd.drawer_user_id,
        )

    def _word_selected_message(self, room: Room, player: Player) -> dict:
        rnd = room.current_round
        is_drawer = player.user_id == rnd.drawer_user_id
        return message(
            ServerEvent.WORD_SELECTED,
            word=rnd.word if is_drawer else mask_word(rnd.word),
            drawerUserId=rnd.drawer_user_id,
            timeLimit=room.settings.round_time_seconds,
            timerEndsAt=iso_from_ms(rnd.timer_ends_at_ms),
        )

    def _send_phase_state(self, room: Room, player: Player | None) -> None:
        if player is None or room.current_round is None:
            return
        if room.phase == "word_selection":
            self.broadcaster.send_to_player(player, self._word_selection_message(room, player))
        elif room.phase == "drawing":
            self.broadcaster.send_to_player(player, self._word_selected_message(room, player))
