"""Interactive operator console for a gRPC-controlled daemon.

Shows live daemon status and metrics, sends start/stop/restart/reload
commands and keeps a scrolling activity log, all in a curses UI redrawn on
every event.

Usage:
    uv run daemonctl
    uv run daemonctl 10.0.0.5:50051
"""

from __future__ import annotations

import argparse
import curses
import logging
import os
import sys
import threading
from typing import Any, Callable

from daemonctl.client import DaemonClient
from daemonctl.config import config_path_from_env, load_config
from daemonctl.dashboard import init_colors, render
from daemonctl.dispatch import Dispatcher
from daemonctl.events import CursesInput, EventQueue, EventSource
from daemonctl.state import INFO, AppState

logger = logging.getLogger(__name__)


# ── Main loop ──────────────────────────────────────────────────────────────


def run_loop(
    state: AppState,
    dispatcher: Dispatcher,
    events: EventQueue,
    draw: Callable[[AppState], None],
) -> None:
    """Draw, wait for one event, dispatch it; repeat until quit.

    End of the event stream counts as a quit. The queue is closed on the
    way out so the producer thread stops.
    """
    try:
        while True:
            draw(state)
            event = events.get()
            if event is None:
                logger.info("event stream ended")
                state.quit()
                break
            dispatcher.dispatch(event)
            if state.should_quit:
                break
    finally:
        events.close()


def _console(stdscr: curses.window, state: AppState, config: dict[str, Any]) -> None:
    init_colors()
    curses.curs_set(0)
    curses.raw()
    curses.mousemask(curses.ALL_MOUSE_EVENTS)

    client = DaemonClient(
        connect_timeout=float(config["connect_timeout"]),
        call_timeout=float(config["call_timeout"]),
    )
    dispatcher = Dispatcher(state, client)
    thresh: dict[str, Any] = config.get("thresholds", {})

    terminal_lock = threading.Lock()
    events = EventQueue()
    # getch() on a 1x1 window never repaints stdscr from the input thread
    input_win = curses.newwin(1, 1, 0, 0)
    tick_interval = int(config["tick_interval_ms"]) / 1000.0
    source = EventSource(
        CursesInput(input_win, terminal_lock), events, tick_interval=tick_interval
    )

    drawn_size = state.terminal_size

    def draw(current: AppState) -> None:
        nonlocal drawn_size
        with terminal_lock:
            if current.terminal_size != drawn_size:
                stdscr.clear()
                drawn_size = current.terminal_size
            render(stdscr, current, thresh)

    source.start()
    try:
        run_loop(state, dispatcher, events, draw)
    finally:
        client.disconnect()
        # The reader can sit in select() for up to one tick interval
        source.join(timeout=tick_interval + 1.0)


# ── CLI entry point ────────────────────────────────────────────────────────


def configure_logging(config: dict[str, Any]) -> None:
    """Route the package logger to a file, or nowhere; never to the screen."""
    root = logging.getLogger("daemonctl")
    root.setLevel(str(config.get("log_level", "INFO")).upper())
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    log_file = str(config.get("log_file") or "")
    if log_file:
        handler: logging.Handler = logging.FileHandler(
            os.path.expanduser(log_file), encoding="utf-8"
        )
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
        )
    else:
        handler = logging.NullHandler()
    root.addHandler(handler)
    root.propagate = False


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Interactive console for monitoring and controlling a daemon.",
    )
    parser.add_argument(
        "address",
        nargs="?",
        default=None,
        help="Daemon gRPC address (default: 127.0.0.1:50051)",
    )
    args = parser.parse_args(argv)

    config = load_config(config_path_from_env())
    configure_logging(config)

    state = AppState(
        args.address or str(config["address"]),
        max_log_entries=int(config["max_log_entries"]),
    )
    state.add_log(INFO, "Daemon Controller started")
    state.add_log(INFO, f"Target: {state.address}")

    os.environ.setdefault("ESCDELAY", "25")
    try:
        curses.wrapper(_console, state, config)
    except curses.error as e:
        print(f"daemonctl: terminal setup failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
