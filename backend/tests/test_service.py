import random

import pytest

from conftest import FakeConnection
from drawguess.config import GameSettings
from drawguess.game.errors import (
    InvalidPayload,
    InvalidSession,
    InvalidWord,
    NotAllowed,
    NotAllReady,
    RoomFull,
)
from drawguess.game.service import GameService, drawer_index, total_rounds
from drawguess.game.snapshots import room_public_state


def drawer_of(room, seats):
    drawer_id = room.current_round.drawer_user_id
    return next(seat for seat in seats.values() if seat.user_id == drawer_id)


def guessers_of(room, seats):
    drawer_id = room.current_round.drawer_user_id
    return [seat for seat in seats.values() if seat.user_id != drawer_id]


def start_drawing(service, room, seats):
    service.start_game(seats["alice"].session)
    drawer = drawer_of(room, seats)
    word = room.current_round.word_choices[0]
    service.select_word(drawer.session, word)
    return drawer, word


def test_rotation_helpers():
    assert [drawer_index(r, 3, 2) for r in range(1, 7)] == [0, 0, 0, 1, 1, 1]
    assert total_rounds(4, 3) == 12


def test_create_room_defaults(service):
    room, session = service.create_room("Alice", "Objects")
    assert len(room.display_code) == 4
    assert room.location.lat == 11.2488 and room.location.lon == 75.7839
    admin = room.find_player(session.user_id)
    assert admin.is_admin and admin.connected and not admin.ready
    assert room.phase == "waiting" and room.active


@pytest.mark.parametrize("name", ["", "   ", "<b>x</b>", "a" * 25, "tab\there"])
def test_create_room_rejects_bad_names(service, name):
    with pytest.raises(InvalidPayload):
        service.create_room(name, "Objects")


def test_create_room_rejects_unknown_category(service):
    with pytest.raises(InvalidPayload):
        service.create_room("Alice", "Vegetables")


def test_join_room_guest_defaults(service):
    room, _ = service.create_room("Alice", "Objects")
    _, session = service.join_room("Bob", room.room_id)
    bob = room.find_player(session.user_id)
    assert bob.ready and not bob.connected and not bob.is_admin


def test_join_full_room(scheduler, clock):
    service = GameService(scheduler, settings=GameSettings(max_players=2), clock=clock)
    room, _ = service.create_room("Alice", "Objects")
    _, bob = service.join_room("Bob", room.room_id, client_user_id="bob-1")
    with pytest.raises(RoomFull):
        service.join_room("Carol", room.room_id)

    # A known user may always come back, even into a full room.
    _, again = service.join_room("Bobby", room.room_id, client_user_id="bob-1")
    assert again.token != bob.token
    assert room.find_player("bob-1").username == "Bobby"
    assert len(room.players) == 2


def test_attach_rejects_bad_tokens(service):
    room, _ = service.create_room("Alice", "Objects")
    other, other_session = service.create_room("Zed", "Objects")
    with pytest.raises(InvalidSession):
        service.attach_connection(room.room_id, "nope", "c1", FakeConnection())
    with pytest.raises(InvalidSession):
        service.attach_connection(room.room_id, other_session.token, "c1", FakeConnection())


def test_attach_notifies_joiner_and_others(service):
    room, alice = service.create_room("Alice", "Objects")
    alice_conn = FakeConnection()
    service.attach_connection(room.room_id, alice.token, "c-alice", alice_conn)
    _, bob = service.join_room("Bob", room.room_id)
    bob_conn = FakeConnection()
    alice_conn.clear()

    service.attach_connection(room.room_id, bob.token, "c-bob", bob_conn)

    assert bob_conn.types() == ["roomUpdate"]
    assert alice_conn.last("playerJoined")["player"]["userId"] == bob.user_id
    assert "connectionId" not in alice_conn.last("playerJoined")["player"]


def test_start_game_with_unready_player_changes_nothing(service, table):
    room, seats = table("alice", "bob")
    service.set_ready(seats["bob"].session, False)
    before = room_public_state(room)

    with pytest.raises(NotAllReady):
        service.start_game(seats["alice"].session)

    assert room_public_state(room) == before


def test_only_admin_can_start(service, table):
    room, seats = table("alice", "bob")
    with pytest.raises(NotAllowed):
        service.start_game(seats["bob"].session)
    assert room.phase == "waiting"


def test_force_start_ignores_ready_flags(service, table):
    room, seats = table("alice", "bob")
    service.set_ready(seats["bob"].session, False)
    service.start_game(seats["alice"].session, force_start=True)
    assert room.phase == "word_selection"


def test_start_game_when_guest_already_ready(service, table):
    room, seats = table("alice", "bob")
    service.start_game(seats["alice"].session)

    rnd = room.current_round
    assert room.active is False
    assert rnd.round_number == 1
    assert rnd.total_rounds == 6
    assert rnd.drawer_user_id == room.turn_order[0]
    assert all(p.score == 0 for p in room.players)
    assert sorted(room.turn_order) == sorted(s.user_id for s in seats.values())


def test_start_game_drops_disconnected_players(service, table):
    room, seats = table("alice", "bob")
    _, ghost = service.join_room("Ghost", room.room_id)
    service.start_game(seats["alice"].session)
    assert room.find_player(ghost.user_id) is None
    assert ghost.user_id not in room.turn_order


def test_word_choices_go_to_drawer_only(service, table):
    room, seats = table("alice", "bob", "carol")
    service.start_game(seats["alice"].session)

    drawer = drawer_of(room, seats)
    offered = drawer.conn.last("wordSelectionStart")
    assert len(offered["words"]) == 2
    assert offered["words"] == room.current_round.word_choices
    assert offered["timeLimit"] == 20
    for seat in guessers_of(room, seats):
        assert seat.conn.last("wordSelectionStart")["words"] == []
    for seat in seats.values():
        start = seat.conn.last("roundStart")
        assert start["roundNumber"] == 1 and start["totalRounds"] == 9
        assert start["drawerUserId"] == drawer.user_id


def test_select_word_must_be_offered(service, table):
    room, seats = table("alice", "bob")
    service.start_game(seats["alice"].session)
    drawer = drawer_of(room, seats)
    guesser = guessers_of(room, seats)[0]

    with pytest.raises(InvalidWord):
        service.select_word(drawer.session, "definitely not offered")
    with pytest.raises(NotAllowed):
        service.select_word(guesser.session, room.current_round.word_choices[0])
    assert room.phase == "word_selection"

    choice = room.current_round.word_choices[1]
    assert service.select_word(drawer.session, f"  {choice.upper()} ") == choice
    assert room.phase == "drawing"
    assert room.current_round.word == choice


def test_word_selection_timeout_auto_picks(service, table, scheduler, clock):
    room, seats = table("alice", "bob")
    service.start_game(seats["alice"].session)
    offered = list(room.current_round.word_choices)
    drawer = drawer_of(room, seats)
    guesser = guessers_of(room, seats)[0]

    scheduler.advance(19)
    assert room.phase == "word_selection"
    scheduler.advance(1)

    assert room.phase == "drawing"
    word = room.current_round.word
    assert word in offered
    assert room.current_round.timer_ends_at_ms == clock.now + 80_000
    assert guesser.conn.of_type("wordSelectionTimeout")
    assert drawer.conn.last("wordSelected")["word"] == word
    masked = guesser.conn.last("wordSelected")["word"]
    assert masked == "".join(" " if ch == " " else "_" for ch in word)
    assert service.pending_timers(room.room_id) == ["drawing"]


def test_correct_guesses_score_by_time_and_position(service, table, scheduler):
    room, seats = table("alice", "bob", "carol", "dave")
    drawer, word = start_drawing(service, room, seats)
    first, second, third = guessers_of(room, seats)

    scheduler.advance(10)
    assert service.submit_guess(first.session, f"  {word.upper()}  ")
    scheduler.advance(10)
    assert service.submit_guess(second.session, word)

    p = {seat.user_id: room.find_player(seat.user_id) for seat in seats.values()}
    assert p[first.user_id].score == 218
    assert p[second.user_id].score == 100 + 75 + 20

    correct = drawer.conn.of_type("correctGuess")
    assert [m["userId"] for m in correct] == [first.user_id, second.user_id]
    assert correct[0]["pointsAwarded"] == 218
    assert correct[0]["position"] == 1 and correct[0]["totalPlayers"] == 3
    assert all("word" not in m for m in correct)
    assert room.phase == "drawing"

    scheduler.advance(10)
    assert service.submit_guess(third.session, word)
    assert p[third.user_id].score == 100 + 63 + 10

    # Everyone guessed: the round ends early with the artist bonus.
    assert room.phase == "round_end"
    end = drawer.conn.last("roundEnd")
    assert end["reason"] == "all_guessed"
    assert end["word"] == word
    assert end["artistPoints"] == 50 + 3 * 25 + 50
    assert p[drawer.user_id].score == 175
    assert service.pending_timers(room.room_id) == ["round_end"]


def test_early_round_end_cancels_drawing_deadline(service, table, scheduler):
    room, seats = table("alice", "bob")
    drawer, word = start_drawing(service, room, seats)
    guesser = guessers_of(room, seats)[0]

    scheduler.advance(30)
    service.submit_guess(guesser.session, word)
    assert room.phase == "round_end"

    # Past the first 80s deadline; round 2 is already underway.
    scheduler.advance(50)
    for seat in seats.values():
        assert seat.conn.of_type("drawingTimeout") == []
        assert len(seat.conn.of_type("roundEnd")) == 1
    assert room.current_round.round_number == 2


def test_repeat_correct_guess_is_ignored(service, table, scheduler):
    room, seats = table("alice", "bob", "carol")
    drawer, word = start_drawing(service, room, seats)
    guesser = guessers_of(room, seats)[0]

    scheduler.advance(5)
    assert service.submit_guess(guesser.session, word)
    score = room.find_player(guesser.user_id).score
    assert not service.submit_guess(guesser.session, word)

    assert room.find_player(guesser.user_id).score == score
    assert len(drawer.conn.of_type("correctGuess")) == 1
    assert room.phase == "drawing"


def test_wrong_guess_is_relayed_as_chat(service, table):
    room, seats = table("alice", "bob", "carol")
    drawer, _ = start_drawing(service, room, seats)
    guesser = guessers_of(room, seats)[0]

    assert not service.submit_guess(guesser.session, "is it a potato")
    for seat in seats.values():
        chat = seat.conn.last("chatMessage")
        assert chat["text"] == "is it a potato"
        assert chat["userId"] == guesser.user_id
    assert not room.find_player(guesser.user_id).has_guessed


def test_drawer_cannot_leak_the_word(service, table):
    room, seats = table("alice", "bob")
    drawer, word = start_drawing(service, room, seats)

    with pytest.raises(NotAllowed):
        service.submit_guess(drawer.session, f"hint: it's {word.lower()}!")
    assert drawer.conn.of_type("chatMessage") == []

    service.submit_guess(drawer.session, "good luck")
    assert drawer.conn.last("chatMessage")["text"] == "good luck"


def test_drawing_events_relay_to_everyone_but_the_drawer(service, table):
    room, seats = table("alice", "bob", "carol")
    drawer, _ = start_drawing(service, room, seats)
    guessers = guessers_of(room, seats)
    stroke = {"type": "stroke", "points": [[0, 0], [4, 7]], "color": "#222", "width": 3}

    assert service.relay_drawing(drawer.session, stroke)
    assert drawer.conn.of_type("drawingEvent") == []
    for seat in guessers:
        assert seat.conn.last("drawingEvent")["event"] == stroke

    assert not service.relay_drawing(guessers[0].session, {"type": "clear"})
    assert not service.relay_drawing(drawer.session, {"type": "erase-everything"})
    assert len(guessers[1].conn.of_type("drawingEvent")) == 1


def test_drawing_events_outside_drawing_are_dropped(service, table):
    room, seats = table("alice", "bob")
    service.start_game(seats["alice"].session)
    drawer = drawer_of(room, seats)
    assert not service.relay_drawing(drawer.session, {"type": "clear"})


def test_drawing_timeout_ends_round(service, table, scheduler):
    room, seats = table("alice", "bob")
    drawer, word = start_drawing(service, room, seats)

    scheduler.advance(80)

    assert drawer.conn.last("drawingTimeout")["word"] == word
    end = drawer.conn.last("roundEnd")
    assert end["reason"] == "timeout"
    assert end["artistPoints"] == 50
    assert room.find_player(drawer.user_id).score == 50

    scheduler.advance(5)
    assert room.phase == "word_selection"
    assert drawer.conn.last("roundStart")["roundNumber"] == 2


def test_two_players_play_six_rounds_then_game_ends(service, table, scheduler):
    room, seats = table("alice", "bob")
    service.start_game(seats["alice"].session)
    order = list(room.turn_order)

    drawers = []
    for _ in range(6):
        drawers.append(room.current_round.drawer_user_id)
        scheduler.advance(20)
        scheduler.advance(80)
        scheduler.advance(5)

    assert drawers == [order[0]] * 3 + [order[1]] * 3
    conn = seats["alice"].conn
    assert len(conn.of_type("roundStart")) == 6
    final = conn.last("gameEnd")["finalScores"]
    assert [line["score"] for line in final] == sorted((line["score"] for line in final), reverse=True)

    assert room.phase == "waiting"
    assert room.active is True
    assert room.current_round is None
    assert room.turn_order == []
    assert service.pending_timers(room.room_id) == []


def test_chat_only_in_waiting_room(service, table):
    room, seats = table("alice", "bob")
    assert service.chat(seats["bob"].session, "hello")
    assert seats["bob"].conn.last("chatMessage")["text"] == "hello"
    assert seats["alice"].conn.last("chatMessage")["username"] == "bob"

    service.start_game(seats["alice"].session)
    assert not service.chat(seats["bob"].session, "mid-game")


def test_ready_toggle_is_for_guests_in_waiting(service, table):
    room, seats = table("alice", "bob")
    assert not service.set_ready(seats["alice"].session, True)
    assert service.set_ready(seats["bob"].session, False)
    assert room.find_player(seats["bob"].user_id).ready is False


def test_update_settings(service, table):
    room, seats = table("alice", "bob")
    with pytest.raises(NotAllowed):
        service.update_settings(seats["bob"].session, 60)
    with pytest.raises(InvalidPayload):
        service.update_settings(seats["alice"].session, 5)

    service.update_settings(seats["alice"].session, 60)
    assert room.settings.round_time_seconds == 60

    drawer, _ = start_drawing(service, room, seats)
    assert drawer.conn.last("wordSelected")["timeLimit"] == 60


def test_guest_leaving_waiting_room(service, table):
    room, seats = table("alice", "bob", "carol")
    assert service.leave_room(seats["carol"].session)
    assert room.find_player(seats["carol"].user_id) is None
    assert seats["alice"].conn.last("playerLeft")["userId"] == seats["carol"].user_id


def test_admin_leaving_hands_over(service, table):
    room, seats = table("alice", "bob", "carol")
    service.leave_room(seats["alice"].session)

    successor = room.players[0]
    assert successor.is_admin
    assert room.creator_user_id == successor.user_id
    assert sum(1 for p in room.players if p.is_admin) == 1


def test_last_player_leaving_deletes_room(service, table):
    room, seats = table("alice")
    service.leave_room(seats["alice"].session)
    assert service.get_room(room.room_id) is None


def test_drawer_leaving_ends_turn(service, table):
    room, seats = table("alice", "bob", "carol")
    drawer, _ = start_drawing(service, room, seats)
    departed = drawer.user_id
    watcher = guessers_of(room, seats)[0]

    service.leave_room(drawer.session)

    end = watcher.conn.last("roundEnd")
    assert end["reason"] == "drawer_left"
    assert end["artistPoints"] == 0
    assert room.phase == "word_selection"
    # The departed drawer's remaining turns are skipped.
    assert room.current_round.round_number == 4
    assert room.current_round.drawer_user_id != departed
    assert room.find_player(room.current_round.drawer_user_id) is not None


def test_drawer_leaving_during_round_end_keeps_score_delay(service, table, scheduler):
    room, seats = table("alice", "bob", "carol")
    drawer, _ = start_drawing(service, room, seats)
    departed = drawer.user_id
    watcher = guessers_of(room, seats)[0]

    scheduler.advance(80)
    assert room.phase == "round_end"
    service.leave_room(drawer.session)

    assert room.phase == "round_end"
    assert len(watcher.conn.of_type("roundEnd")) == 1
    assert service.pending_timers(room.room_id) == ["round_end"]

    scheduler.advance(4)
    assert room.phase == "round_end"
    scheduler.advance(1)
    assert room.phase == "word_selection"
    assert room.current_round.round_number == 4
    assert room.current_round.drawer_user_id != departed


def test_position_bonus_counts_guessers_who_dropped(service, table):
    room, seats = table("alice", "bob", "carol", "dave")
    drawer, word = start_drawing(service, room, seats)
    first, second, third = guessers_of(room, seats)

    service.submit_guess(first.session, word)
    service.submit_guess(second.session, word)
    service.handle_disconnect(first.session, first.conn_id)
    service.handle_disconnect(second.session, second.conn_id)
    service.submit_guess(third.session, word)

    scored = drawer.conn.last("correctGuess")
    assert scored["userId"] == third.user_id
    assert scored["position"] == 3 and scored["totalPlayers"] == 3
    assert room.find_player(third.user_id).score == 100 + 100 + 10


def test_guesser_leaving_can_complete_the_round(service, table):
    room, seats = table("alice", "bob", "carol")
    drawer, word = start_drawing(service, room, seats)
    first, second = guessers_of(room, seats)

    service.submit_guess(first.session, word)
    service.leave_room(second.session)

    assert room.phase == "round_end"
    assert drawer.conn.last("roundEnd")["reason"] == "all_guessed"


def test_guesser_disconnect_and_reconnect(service, table):
    room, seats = table("alice", "bob", "carol")
    drawer, word = start_drawing(service, room, seats)
    guesser = guessers_of(room, seats)[0]
    service.submit_guess(guesser.session, word)
    score = room.find_player(guesser.user_id).score

    service.handle_disconnect(guesser.session, guesser.conn_id)
    player = room.find_player(guesser.user_id)
    assert not player.connected and player.score == score
    snapshot = drawer.conn.last("roomUpdate")["room"]
    assert any(p["userId"] == guesser.user_id and not p["connected"] for p in snapshot["players"])

    fresh = FakeConnection()
    service.attach_connection(room.room_id, guesser.session.token, "conn-new", fresh)
    assert player.connected and player.score == score
    assert fresh.types()[0] == "roomUpdate"
    assert fresh.last("wordSelected")["word"] != word


def test_stale_connection_close_keeps_player_online(service, table):
    room, seats = table("alice", "bob")
    bob = seats["bob"]
    service.attach_connection(room.room_id, bob.session.token, "conn-bob-2", FakeConnection())

    service.handle_disconnect(bob.session, bob.conn_id)

    player = room.find_player(bob.user_id)
    assert player.connected
    assert player.connection_id == "conn-bob-2"


def test_drawer_disconnect_pauses_and_resumes(service, table, scheduler, clock):
    room, seats = table("alice", "bob", "carol")
    drawer, word = start_drawing(service, room, seats)
    watcher = guessers_of(room, seats)[0]

    scheduler.advance(30)
    service.handle_disconnect(drawer.session, drawer.conn_id)
    paused = watcher.conn.last("roundPaused")
    assert paused["drawerUserId"] == drawer.user_id
    assert paused["graceSeconds"] == 15
    assert watcher.conn.last("roomUpdate")["room"]["paused"] is True
    assert service.pending_timers(room.room_id) == ["drawer_reconnect"]

    scheduler.advance(5)
    back = FakeConnection()
    service.attach_connection(room.room_id, drawer.session.token, "conn-back", back)

    assert watcher.conn.last("roundResumed")["drawerUserId"] == drawer.user_id
    assert back.last("wordSelected")["word"] == word
    assert room.current_round.timer_ends_at_ms == clock.now + 50_000

    scheduler.advance(49)
    assert watcher.conn.of_type("drawingTimeout") == []
    scheduler.advance(1)
    assert watcher.conn.last("drawingTimeout")["word"] == word


def test_drawer_grace_expiry_ends_round(service, table, scheduler):
    room, seats = table("alice", "bob", "carol")
    drawer, _ = start_drawing(service, room, seats)
    watcher = guessers_of(room, seats)[0]

    service.handle_disconnect(drawer.session, drawer.conn_id)
    scheduler.advance(15)

    end = watcher.conn.last("roundEnd")
    assert end["reason"] == "drawer_disconnected"
    assert end["artistPoints"] == 0
    assert room.find_player(drawer.user_id).score == 0
    assert watcher.conn.of_type("drawingTimeout") == []


def test_game_aborts_when_everyone_is_gone(service, table, scheduler):
    room, seats = table("alice", "bob")
    service.start_game(seats["alice"].session)
    drawer = drawer_of(room, seats)
    guesser = guessers_of(room, seats)[0]

    service.handle_disconnect(drawer.session, drawer.conn_id)
    service.handle_disconnect(guesser.session, guesser.conn_id)
    scheduler.advance(15)
    scheduler.advance(5)

    assert room.phase == "waiting"
    assert room.active is True
    assert room.current_round is None
    assert service.pending_timers(room.room_id) == []


def test_late_joiner_gets_current_phase(service, table):
    room, seats = table("alice", "bob")
    _, word = start_drawing(service, room, seats)

    _, dana = service.join_room("Dana", room.room_id)
    conn = FakeConnection()
    service.attach_connection(room.room_id, dana.token, "conn-dana", conn)

    assert conn.last("wordSelected")["word"] == "".join(" " if c == " " else "_" for c in word)


def test_snapshot_hides_word_from_guessers(service, table):
    room, seats = table("alice", "bob")
    drawer, word = start_drawing(service, room, seats)
    guesser = guessers_of(room, seats)[0]

    mine = room_public_state(room, drawer.user_id)["currentRound"]
    theirs = room_public_state(room, guesser.user_id)["currentRound"]
    assert mine["word"] == word
    assert "word" not in theirs
    assert theirs["wordHint"] == mine["wordHint"]


def test_list_rooms_filters_and_sorts(service, table):
    near, _ = service.create_room("Alice", "Objects", lat=11.25, lon=75.78)
    here, _ = service.create_room("Bob", "Objects")
    service.create_room("Far", "Objects", lat=0.0, lon=0.0)
    playing, seats = table("carol", "dave")
    service.start_game(seats["carol"].session)

    listing = service.list_rooms()
    assert [r["roomId"] for r in listing] == [here.room_id, near.room_id]
    assert listing[0]["distanceKm"] == 0
    assert listing[1]["playerCount"] == 1

    assert service.list_rooms(lat=0.0, lon=0.0, radius_km=1)[0]["category"] == "Objects"


def test_list_rooms_skips_disconnected_creator(service):
    room, session = service.create_room("Alice", "Objects")
    service.attach_connection(room.room_id, session.token, "c1", FakeConnection())
    service.handle_disconnect(session, "c1")
    assert service.list_rooms() == []


def test_clear_wipes_everything(service, table, scheduler):
    room, seats = table("alice", "bob")
    service.start_game(seats["alice"].session)
    service.clear()

    assert service.get_room(room.room_id) is None
    assert len(service.sessions) == 0
    assert len(service.connections) == 0
    scheduler.advance(120)
    assert seats["alice"].conn.of_type("wordSelectionTimeout") == []


def test_failing_connection_does_not_block_others(service, table):
    class Broken(FakeConnection):
        def send(self, message):
            raise OSError("socket gone")

    room, seats = table("alice", "bob")
    _, carol = service.join_room("Carol", room.room_id)
    service.attach_connection(room.room_id, carol.token, "conn-carol", Broken())

    assert service.chat(seats["alice"].session, "still here?")
    assert seats["bob"].conn.last("chatMessage")["text"] == "still here?"


def test_random_shuffle_is_seeded(scheduler, clock):
    orders = []
    for _ in range(2):
        service = GameService(scheduler, clock=clock, rng=random.Random(42))
        room, alice = service.create_room("Alice", "Objects", client_user_id="a")
        for name in ("b", "c", "d"):
            _, s = service.join_room(name, room.room_id, client_user_id=name)
            service.attach_connection(room.room_id, s.token, f"c-{name}", FakeConnection())
        service.start_game(alice)
        orders.append(list(room.turn_order))
    assert orders[0] == orders[1]
