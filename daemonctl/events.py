"""Event source for the console loop.

A background thread merges terminal input with a fixed-interval tick and
feeds both, in order, into one unbounded queue. The main loop is the only
consumer; closing the queue is what stops the producer.
"""

from __future__ import annotations

import curses
import logging
import queue
import select
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Union

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.25


# ── Event types ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class KeyInput:
    key: str
    modifiers: frozenset[str] = field(default_factory=frozenset)

    @property
    def ctrl(self) -> bool:
        return "ctrl" in self.modifiers


@dataclass(frozen=True)
class PointerInput:
    x: int
    y: int
    buttons: int = 0


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


Event = Union[Tick, KeyInput, PointerInput, Resize]

# reader(timeout) -> input events that arrived within timeout (may be empty)
Reader = Callable[[float], list[Event]]


# ── Queue ──────────────────────────────────────────────────────────────────


_END = object()


class EventQueue:
    """Unbounded FIFO between the event thread and the main loop."""

    def __init__(self) -> None:
        self._items: queue.SimpleQueue[object] = queue.SimpleQueue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, event: Event) -> bool:
        """Enqueue *event*. Returns False once the consumer has gone away."""
        if self._closed.is_set():
            return False
        self._items.put(event)
        return True

    def finish(self) -> None:
        """Producer side: no more events will follow."""
        self._items.put(_END)

    def close(self) -> None:
        """Consumer side: stop accepting events."""
        self._closed.set()

    def get(self, timeout: float | None = None) -> Event | None:
        """Next event, or None at end of stream.

        Raises:
            queue.Empty: If *timeout* elapses with nothing queued.
        """
        item = self._items.get(timeout=timeout)
        if item is _END:
            return None
        return item  # type: ignore[return-value]


# ── Producer ───────────────────────────────────────────────────────────────


class EventSource:
    """Polls *reader* until the next tick deadline and emits a Tick on expiry.

    A late deadline produces a single Tick and the next deadline is measured
    from that moment, so a long stall yields one catch-up tick rather than
    one per missed interval.
    """

    def __init__(
        self,
        reader: Reader,
        events: EventQueue,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reader = reader
        self._events = events
        self.tick_interval = tick_interval
        self._clock = clock
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self.run, name="daemonctl-events", daemon=True
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        try:
            self._pump()
        except Exception:
            logger.exception("event source stopped")
        finally:
            self._events.finish()

    def _pump(self) -> None:
        deadline = self._clock() + self.tick_interval
        while True:
            timeout = max(0.0, deadline - self._clock())
            for event in self._reader(timeout):
                if not self._events.put(event):
                    return
            if self._clock() >= deadline:
                if not self._events.put(Tick()):
                    return
                deadline = self._clock() + self.tick_interval
            elif self._events.closed:
                return


# ── Curses input ───────────────────────────────────────────────────────────

_NAMED_KEYS: dict[int, str] = {
    curses.KEY_UP: "up",
    curses.KEY_DOWN: "down",
    curses.KEY_LEFT: "left",
    curses.KEY_RIGHT: "right",
    curses.KEY_BTAB: "backtab",
    curses.KEY_ENTER: "enter",
    9: "tab",
    10: "enter",
    13: "enter",
    27: "esc",
}


def translate_key(code: int) -> KeyInput | None:
    """Map a curses key code to a KeyInput, or None for codes we ignore."""
    if code in _NAMED_KEYS:
        return KeyInput(_NAMED_KEYS[code])
    if 1 <= code <= 26:
        # Control-letter as delivered in raw mode (Ctrl-C == 3)
        return KeyInput(chr(code + 96), frozenset({"ctrl"}))
    if 32 <= code < 127:
        return KeyInput(chr(code))
    return None


class CursesInput:
    """Reader backed by a curses window.

    Waiting happens on stdin with select(), outside curses. Only the
    non-blocking getch() drain runs under *lock*, the same lock the renderer
    holds while drawing.
    """

    def __init__(self, window: curses.window, lock: threading.Lock) -> None:
        self._window = window
        self._lock = lock
        self._fd = sys.stdin.fileno()
        window.keypad(True)
        window.nodelay(True)

    def __call__(self, timeout: float) -> list[Event]:
        # KEY_RESIZE comes from SIGWINCH, not stdin, so drain even on timeout
        select.select([self._fd], [], [], timeout)
        events: list[Event] = []
        with self._lock:
            while True:
                code = self._window.getch()
                if code == -1:
                    break
                event = self._translate(code)
                if event is not None:
                    events.append(event)
        return events

    def _translate(self, code: int) -> Event | None:
        if code == curses.KEY_RESIZE:
            curses.update_lines_cols()
            return Resize(curses.COLS, curses.LINES)
        if code == curses.KEY_MOUSE:
            try:
                _, x, y, _, bstate = curses.getmouse()
            except curses.error:
                return None
            return PointerInput(x, y, bstate)
        return translate_key(code)
