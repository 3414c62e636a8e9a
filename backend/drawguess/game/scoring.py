"""Point awards for guessers and the artist.

Both functions are pure: timestamps are epoch milliseconds supplied by the
caller, so results depend only on the arguments.
"""
from __future__ import annotations

import math


GUESSER_BASE_POINTS = 100
GUESSER_MAX_TIME_BONUS = 100
POSITION_BONUS_STEP = 10

ARTIST_BASE_POINTS = 50
ARTIST_POINTS_PER_GUESS = 25
ARTIST_SPEED_BONUS = 50


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def guesser_score(
    guess_timestamp_ms: int,
    drawing_start_ms: int,
    max_time_seconds: float,
    position: int,
    total_eligible_players: int,
) -> int:
    """Points for a correct guess.

    `position` is 1 for the first correct guesser of the round.
    """
    elapsed_sec = max(0.0, (guess_timestamp_ms - drawing_start_ms) / 1000)
    if max_time_seconds > 0:
        time_bonus = max(0, _round_half_up(GUESSER_MAX_TIME_BONUS - (elapsed_sec / max_time_seconds) * 100))
    else:
        time_bonus = 0
    position_bonus = max(0, (total_eligible_players - position + 1) * POSITION_BONUS_STEP)
    return GUESSER_BASE_POINTS + time_bonus + position_bonus


def artist_score(
    correct_guess_count: int,
    drawing_start_ms: int | None,
    first_guess_timestamp_ms: int | None = None,
    max_time_seconds: float = 80,
) -> int:
    """Points for the drawer at the end of the round.

    The speed bonus applies when the first correct guess landed inside the
    first half of the drawing window.
    """
    speed_bonus = 0
    if first_guess_timestamp_ms is not None and drawing_start_ms is not None:
        time_to_first_guess = (first_guess_timestamp_ms - drawing_start_ms) / 1000
        if time_to_first_guess < max_time_seconds / 2:
            speed_bonus = ARTIST_SPEED_BONUS
    return ARTIST_BASE_POINTS + correct_guess_count * ARTIST_POINTS_PER_GUESS + speed_bonus
