"""Maps events onto state changes and daemon calls.

Global bindings win over panel bindings; the first match ends handling.
Every RPC runs to completion (or its deadline) before ``dispatch`` returns,
so events queued meanwhile are handled strictly in arrival order.
"""

from __future__ import annotations

import logging

from daemonctl.client import DaemonClient, DaemonError
from daemonctl.events import Event, KeyInput, PointerInput, Resize, Tick
from daemonctl.probe import listener_hint
from daemonctl.state import (
    CONNECTED,
    CONNECTING,
    DISCONNECTED,
    ERROR,
    INFO,
    WARN,
    AppState,
    ConnectionStatus,
    FocusedPanel,
)

logger = logging.getLogger(__name__)

QUIT_KEYS = {"q", "Q"}
CONNECT_KEYS = {"c", "C"}
DISCONNECT_KEYS = {"d", "D"}
UP_KEYS = {"up", "k"}
DOWN_KEYS = {"down", "j"}
CONFIRM_KEYS = {"enter"}


class Dispatcher:
    def __init__(self, state: AppState, client: DaemonClient) -> None:
        self.state = state
        self.client = client

    def dispatch(self, event: Event) -> None:
        if isinstance(event, KeyInput):
            self.handle_key(event)
        elif isinstance(event, Tick):
            if self.client.is_connected():
                self.refresh()
        elif isinstance(event, Resize):
            self.state.terminal_size = (event.width, event.height)
        elif isinstance(event, PointerInput):
            logger.debug("pointer event ignored: %s", event)

    # ── Keys ───────────────────────────────────────────────────────────────

    def handle_key(self, key: KeyInput) -> None:
        if not self._handle_global(key):
            self._handle_panel(key)

    def _handle_global(self, key: KeyInput) -> bool:
        state = self.state
        if key.key in QUIT_KEYS:
            state.quit()
        elif key.key == "c" and key.ctrl:
            state.quit()
        elif key.key == "tab":
            state.focus_next()
        elif key.key == "backtab":
            state.focus_prev()
        elif key.key in CONNECT_KEYS:
            self.connect_to_daemon()
        elif key.key in DISCONNECT_KEYS:
            self.disconnect_from_daemon()
        else:
            return False
        return True

    def _handle_panel(self, key: KeyInput) -> None:
        state = self.state
        if state.focused_panel is FocusedPanel.CONTROLS:
            if key.key in UP_KEYS:
                state.select_prev_action()
            elif key.key in DOWN_KEYS:
                state.select_next_action()
            elif key.key in CONFIRM_KEYS:
                self.execute_action()
        elif state.focused_panel is FocusedPanel.LOGS:
            if key.key in UP_KEYS:
                state.scroll_logs_up()
            elif key.key in DOWN_KEYS:
                state.scroll_logs_down()

    # ── Actions ────────────────────────────────────────────────────────────

    def refresh(self) -> None:
        """Fetch status then metrics; a failure keeps the previous snapshot."""
        try:
            self.state.update_status(self.client.get_status())
        except DaemonError as e:
            self.state.add_log(ERROR, f"Failed to get status: {e}")

        try:
            self.state.update_metrics(self.client.get_metrics())
        except DaemonError as e:
            self.state.add_log(ERROR, f"Failed to get metrics: {e}")

    def connect_to_daemon(self) -> None:
        state = self.state
        if self.client.is_connected():
            state.add_log(WARN, "Already connected")
            return

        state.set_connection(CONNECTING)
        state.add_log(INFO, "Connecting to daemon...")
        try:
            self.client.connect(state.address)
        except DaemonError as e:
            state.set_connection(ConnectionStatus.error("Connection failed"))
            reason = str(e)
            hint = listener_hint(state.address)
            if hint:
                reason = f"{reason} ({hint})"
            state.add_log(ERROR, f"Connection failed: {reason}")
            return

        state.set_connection(CONNECTED)
        state.add_log(INFO, "Connected successfully")
        self.refresh()

    def disconnect_from_daemon(self) -> None:
        state = self.state
        if not self.client.is_connected():
            state.add_log(WARN, "Not connected")
            return

        self.client.disconnect()
        state.set_connection(DISCONNECTED)
        state.clear_snapshots()
        state.add_log(INFO, "Disconnected from daemon")

    def execute_action(self) -> None:
        state = self.state
        if not self.client.is_connected():
            state.add_log(WARN, "Not connected - press 'c' to connect")
            return

        action = state.current_action()
        state.add_log(INFO, f"Executing: {action.label}")
        try:
            result = self.client.send_control(action)
        except DaemonError as e:
            state.add_log(ERROR, f"Command failed: {e}")
            return

        if result.success:
            state.add_log(INFO, f"Success: {result.message}")
        else:
            state.add_log(WARN, f"Failed: {result.message}")
