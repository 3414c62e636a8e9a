from __future__ import annotations

import logging
from typing import Any, Callable


logger = logging.getLogger(__name__)

WORD_SELECTION = "word_selection"
DRAWING = "drawing"
ROUND_END = "round_end"
DRAWER_RECONNECT = "drawer_reconnect"


class TimerHandle:
    def __init__(self, delay_sec: float) -> None:
        self.delay_sec = delay_sec
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class BackgroundScheduler:
    """Runs delayed callbacks as Socket.IO background tasks.

    Works with whichever async mode the SocketIO instance was created with
    (eventlet green threads or plain threads).
    """

    def __init__(self, socketio: Any) -> None:
        self._socketio = socketio

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(delay_sec)

        def _runner() -> None:
            self._socketio.sleep(delay_sec)
            if handle.cancelled:
                return
            try:
                callback()
            except Exception:
                logger.exception("timer callback failed")

        self._socketio.start_background_task(_runner)
        return handle


class RoomTimers:
    """Named timer slots for one room.

    A slot holds at most one pending handle; arming a slot cancels the
    handle it held before.
    """

    def __init__(self, scheduler: Any) -> None:
        self._scheduler = scheduler
        self._slots: dict[str, TimerHandle] = {}

    def arm(self, slot: str, delay_sec: float, callback: Callable[[], None]) -> TimerHandle:
        self.cancel(slot)
        handle = self._scheduler.call_later(delay_sec, callback)
        self._slots[slot] = handle
        return handle

    def release(self, slot: str, handle: TimerHandle) -> None:
        if self._slots.get(slot) is handle:
            del self._slots[slot]

    def cancel(self, slot: str) -> None:
        handle = self._slots.pop(slot, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        for handle in self._slots.values():
            handle.cancel()
        self._slots.clear()

    def pending(self) -> list[str]:
        return sorted(slot for slot, h in self._slots.items() if not h.cancelled)
