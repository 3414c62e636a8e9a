import random

import pytest

from drawguess.config import Config, GameSettings
from drawguess.game.service import GameService
from drawguess.game.timers import TimerHandle
from drawguess.server import create_app


START_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, now_ms=START_MS):
        self.now = now_ms

    def __call__(self):
        return self.now


class ManualScheduler:
    """Deterministic stand-in for BackgroundScheduler driven by `advance`."""

    def __init__(self, clock):
        self.clock = clock
        self._queue = []
        self._seq = 0

    def call_later(self, delay_sec, callback):
        handle = TimerHandle(delay_sec)
        self._seq += 1
        self._queue.append((self.clock.now + int(delay_sec * 1000), self._seq, handle, callback))
        return handle

    def pending(self):
        return [entry for entry in self._queue if not entry[2].cancelled]

    def advance(self, seconds):
        target = self.clock.now + int(seconds * 1000)
        while True:
            due = [entry for entry in self._queue if entry[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda e: (e[0], e[1]))
            self._queue.remove(entry)
            when, _, handle, callback = entry
            self.clock.now = max(self.clock.now, when)
            if not handle.cancelled:
                callback()
        self.clock.now = target


class FakeConnection:
    def __init__(self):
        self.messages = []
        self.is_open = True

    def send(self, message):
        self.messages.append(message)

    def types(self):
        return [m["type"] for m in self.messages]

    def of_type(self, type_):
        return [m for m in self.messages if m["type"] == type_]

    def last(self, type_):
        found = self.of_type(type_)
        return found[-1] if found else None

    def clear(self):
        self.messages.clear()


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SOCKETIO_ASYNC_MODE = "threading"
    TRUST_PROXY_HEADERS = False
    ENABLE_DEBUG_ROUTES = True
    API_PREFIX = ""


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture()
def service(scheduler, clock):
    return GameService(scheduler, settings=GameSettings(), clock=clock, rng=random.Random(7))


class Seat:
    def __init__(self, session, connection, connection_id):
        self.session = session
        self.conn = connection
        self.conn_id = connection_id

    @property
    def user_id(self):
        return self.session.user_id


@pytest.fixture()
def table(service):
    """Factory: a room whose first name is the admin, everyone attached."""

    def build(*names, category="Objects"):
        admin_name, *guests = names
        room, admin_session = service.create_room(admin_name, category)
        sessions = [admin_session]
        for name in guests:
            _, session = service.join_room(name, room.room_id)
            sessions.append(session)

        seats = {}
        for name, session in zip(names, sessions):
            conn = FakeConnection()
            conn_id = f"conn-{name}"
            service.attach_connection(room.room_id, session.token, conn_id, conn)
            seats[name] = Seat(session, conn, conn_id)
        for seat in seats.values():
            seat.conn.clear()
        return room, seats

    return build


@pytest.fixture()
def flask_app(scheduler):
    application, _ = create_app(TestConfig, scheduler=scheduler)
    yield application
    application.extensions["drawguess"].clear()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    socketio = flask_app.extensions["socketio"]
    clients = []

    def connect():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(test_client)
        return test_client

    yield connect

    for test_client in clients:
        if test_client.is_connected():
            test_client.disconnect()
