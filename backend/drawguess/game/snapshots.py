from __future__ import annotations

from datetime import datetime, timezone

from .models import Player, Room


def iso_from_ms(value_ms: int | None) -> str | None:
    if value_ms is None:
        return None
    return datetime.fromtimestamp(value_ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def mask_word(word: str | None) -> str | None:
    if word is None:
        return None
    return "".join(" " if ch == " " else "_" for ch in word)


def player_public_state(player: Player) -> dict:
    # Connection ids stay server-side.
    return {
        "userId": player.user_id,
        "username": player.username,
        "isAdmin": player.is_admin,
        "ready": player.ready,
        "score": player.score,
        "connected": player.connected,
        "hasGuessed": player.has_guessed,
    }


def score_lines(players: list[Player]) -> list[dict]:
    return [{"userId": p.user_id, "username": p.username, "score": p.score} for p in players]


def final_standings(room: Room) -> list[dict]:
    ranked = sorted(room.players, key=lambda p: p.score, reverse=True)
    return score_lines(ranked)


def room_public_state(room: Room, viewer_user_id: str | None = None) -> dict:
    """Room snapshot as sent to clients.

    The word is only included for the drawer, or for everybody once the
    round is over; other viewers get an underscore hint.
    """
    payload = {
        "roomId": room.room_id,
        "displayCode": room.display_code,
        "category": room.category,
        "creatorUserId": room.creator_user_id,
        "location": {"lat": room.location.lat, "lon": room.location.lon},
        "active": room.active,
        "phase": room.phase,
        "createdAt": iso_from_ms(room.created_at_ms),
        "players": [player_public_state(p) for p in room.players],
        "currentRound": None,
        "maxPlayers": room.max_players,
        "settings": {"roundTimeSeconds": room.settings.round_time_seconds},
        "paused": room.drawer_pause is not None,
    }

    rnd = room.current_round
    if rnd is not None:
        is_drawer = viewer_user_id is not None and viewer_user_id == rnd.drawer_user_id
        round_payload = {
            "roundNumber": rnd.round_number,
            "totalRounds": rnd.total_rounds,
            "playerRound": rnd.player_round,
            "drawerUserId": rnd.drawer_user_id,
            "timerEndsAt": iso_from_ms(rnd.timer_ends_at_ms),
            "drawingStartTime": rnd.drawing_start_ms,
            "wordHint": mask_word(rnd.word),
        }
        if rnd.word and (is_drawer or room.phase == "round_end"):
            round_payload["word"] = rnd.word
        if is_drawer and room.phase == "word_selection":
            round_payload["wordChoices"] = list(rnd.word_choices)
        payload["currentRound"] = round_payload

    return payload
