"""Application state for the daemon console.

``AppState`` is the single mutable model. Only the main loop (through the
dispatcher) writes to it; the event thread never touches it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum

from daemonctl.protocol import DaemonMetrics, DaemonStatus

logger = logging.getLogger(__name__)

INFO = "INFO"
WARN = "WARN"
ERROR = "ERROR"

_LOG_LEVELS = {INFO: logging.INFO, WARN: logging.WARNING, ERROR: logging.ERROR}


# ── Connection status ──────────────────────────────────────────────────────


class ConnectionKind(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionStatus:
    kind: ConnectionKind
    message: str = ""

    @classmethod
    def error(cls, message: str) -> ConnectionStatus:
        return cls(ConnectionKind.ERROR, message)

    @property
    def label(self) -> str:
        if self.kind is ConnectionKind.ERROR:
            return self.message
        if self.kind is ConnectionKind.CONNECTING:
            return "Connecting..."
        return self.kind.value.capitalize()


DISCONNECTED = ConnectionStatus(ConnectionKind.DISCONNECTED)
CONNECTING = ConnectionStatus(ConnectionKind.CONNECTING)
CONNECTED = ConnectionStatus(ConnectionKind.CONNECTED)


# ── Panels and actions ─────────────────────────────────────────────────────


class FocusedPanel(Enum):
    STATUS = "Status"
    CONTROLS = "Controls"
    LOGS = "Logs"

    def next(self) -> FocusedPanel:
        return PANEL_ORDER[(PANEL_ORDER.index(self) + 1) % len(PANEL_ORDER)]

    def prev(self) -> FocusedPanel:
        return PANEL_ORDER[(PANEL_ORDER.index(self) - 1) % len(PANEL_ORDER)]


PANEL_ORDER: tuple[FocusedPanel, ...] = tuple(FocusedPanel)


class ControlAction(Enum):
    START = ("Start", 0)
    STOP = ("Stop", 1)
    RESTART = ("Restart", 2)
    RELOAD = ("Reload", 3)

    def __init__(self, label: str, command: int) -> None:
        self.label = label
        self.command = command  # ControlCommand wire value


ACTIONS: tuple[ControlAction, ...] = tuple(ControlAction)


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    message: str


# ── Aggregate ──────────────────────────────────────────────────────────────


class AppState:
    def __init__(self, address: str, max_log_entries: int = 0) -> None:
        self._address = address
        self.max_log_entries = max_log_entries
        self.should_quit = False
        self.connection = DISCONNECTED
        self.focused_panel = FocusedPanel.STATUS
        self.selected_action = 0
        self.status: DaemonStatus | None = None
        self.metrics: DaemonMetrics | None = None
        self.logs: list[LogEntry] = []
        self.log_scroll = 0
        self.terminal_size: tuple[int, int] | None = None
        self.started_at = time.monotonic()

    @property
    def address(self) -> str:
        return self._address

    def quit(self) -> None:
        self.should_quit = True

    # Focus

    def focus_next(self) -> None:
        self.focused_panel = self.focused_panel.next()

    def focus_prev(self) -> None:
        self.focused_panel = self.focused_panel.prev()

    # Controls selection, clamped to the action list

    def select_next_action(self) -> None:
        self.selected_action = min(self.selected_action + 1, len(ACTIONS) - 1)

    def select_prev_action(self) -> None:
        self.selected_action = max(self.selected_action - 1, 0)

    def current_action(self) -> ControlAction:
        return ACTIONS[self.selected_action]

    # Log buffer

    def scroll_logs_up(self) -> None:
        self.log_scroll = max(self.log_scroll - 1, 0)

    def scroll_logs_down(self) -> None:
        self.log_scroll = min(self.log_scroll + 1, max(len(self.logs) - 1, 0))

    def add_log(self, level: str, message: str) -> None:
        """Append an activity entry and stick the view to the newest line."""
        self.logs.append(LogEntry(time.strftime("%H:%M:%S"), level, message))
        if self.max_log_entries > 0 and len(self.logs) > self.max_log_entries:
            del self.logs[: len(self.logs) - self.max_log_entries]
        self.log_scroll = len(self.logs) - 1
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "%s", message)

    # Connection and snapshots

    def set_connection(self, status: ConnectionStatus) -> None:
        self.connection = status

    def update_status(self, status: DaemonStatus) -> None:
        self.status = status

    def update_metrics(self, metrics: DaemonMetrics) -> None:
        self.metrics = metrics

    def clear_snapshots(self) -> None:
        self.status = None
        self.metrics = None

    def daemon_state_label(self) -> str:
        if self.status is None:
            return "N/A"
        return self.status.state.label
