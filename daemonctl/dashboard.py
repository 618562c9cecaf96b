"""Curses rendering of the daemon console.

``render`` draws one frame from an ``AppState`` and never mutates it.
Layout: header, then status/metrics | controls | logs, then a key-hint
footer. Gauge colours follow the configured thresholds.
"""

from __future__ import annotations

import curses
from typing import Any

from daemonctl.protocol import DaemonMetrics
from daemonctl.state import ACTIONS, AppState, ConnectionKind, FocusedPanel, LogEntry

# ── Constants ──────────────────────────────────────────────────────────────

BAR_FILL = "█"
BAR_EMPTY = "░"
MIN_WIDTH = 60
MIN_HEIGHT = 14

# Curses colour-pair IDs
C_NORMAL = 1
C_WARNING = 2
C_CRITICAL = 3
C_TITLE = 4
C_DIM = 5
C_MAGENTA = 6
C_SELECTED = 7

_LEVEL_COLORS = {"INFO": C_NORMAL, "WARN": C_WARNING, "ERROR": C_CRITICAL}

_CONNECTION_COLORS = {
    ConnectionKind.CONNECTED: C_NORMAL,
    ConnectionKind.CONNECTING: C_WARNING,
    ConnectionKind.DISCONNECTED: C_CRITICAL,
    ConnectionKind.ERROR: C_CRITICAL,
}

FOOTER_HINTS = (
    ("q", "Quit", C_CRITICAL),
    ("Tab", "Switch Panel", C_TITLE),
    ("c", "Connect", C_NORMAL),
    ("d", "Disconnect", C_NORMAL),
    ("Enter", "Execute", C_WARNING),
    ("j/k", "Navigate", C_MAGENTA),
)


def init_colors() -> None:
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(C_NORMAL, curses.COLOR_GREEN, -1)
    curses.init_pair(C_WARNING, curses.COLOR_YELLOW, -1)
    curses.init_pair(C_CRITICAL, curses.COLOR_RED, -1)
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)
    curses.init_pair(C_DIM, curses.COLOR_WHITE, -1)
    curses.init_pair(C_MAGENTA, curses.COLOR_MAGENTA, -1)
    curses.init_pair(C_SELECTED, curses.COLOR_BLACK, curses.COLOR_YELLOW)


def _severity_color(value: float, warn: float, crit: float) -> int:
    if value >= crit:
        return C_CRITICAL
    if value >= warn:
        return C_WARNING
    return C_NORMAL


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_bytes(n: int) -> str:
    """Human-readable byte count, binary thresholds, e.g. ``1.4GB``."""
    kb = 1024
    mb = kb * 1024
    gb = mb * 1024
    if n >= gb:
        return f"{n / gb:.1f}GB"
    if n >= mb:
        return f"{n / mb:.1f}MB"
    if n >= kb:
        return f"{n / kb:.1f}KB"
    return f"{n}B"


def fmt_uptime(seconds: int) -> str:
    hrs, rem = divmod(int(seconds), 3600)
    mins, secs = divmod(rem, 60)
    if hrs:
        return f"{hrs}h {mins}m {secs}s"
    if mins:
        return f"{mins}m {secs}s"
    return f"{secs}s"


def cpu_ratio(metrics: DaemonMetrics) -> float:
    """CPU gauge fill in [0, 1]."""
    return min(max(metrics.cpu_usage_percent, 0.0), 100.0) / 100.0


def memory_ratio(metrics: DaemonMetrics) -> float:
    """Memory gauge fill in [0, 1]; 0 when the daemon reports no limit."""
    if metrics.memory_limit_bytes <= 0:
        return 0.0
    pct = metrics.memory_bytes / metrics.memory_limit_bytes * 100.0
    return min(max(pct, 0.0), 100.0) / 100.0


def visible_logs(state: AppState, rows: int) -> list[LogEntry]:
    """Log entries shown in a panel with *rows* lines, starting at the scroll offset."""
    if rows <= 0:
        return []
    return state.logs[state.log_scroll : state.log_scroll + rows]


# ── Curses drawing primitives ──────────────────────────────────────────────


def _safe(win: curses.window, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def _draw_box(
    win: curses.window,
    y: int,
    x: int,
    h: int,
    w: int,
    title: str = "",
    focused: bool = False,
) -> curses.window | None:
    """Draw a bordered box and return the sub-window it occupies."""
    max_y, max_x = win.getmaxyx()
    h = min(h, max_y - y)
    w = min(w, max_x - x)
    if h < 3 or w < 4:
        return None
    try:
        sub = win.subwin(h, w, y, x)
        border = curses.color_pair(C_WARNING if focused else C_DIM)
        sub.attron(border)
        sub.box()
        sub.attroff(border)
        if title and len(title) + 4 < w:
            sub.addstr(
                0, 2, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD
            )
        return sub
    except curses.error:
        return None


def _draw_gauge(
    win: curses.window,
    y: int,
    x: int,
    width: int,
    ratio: float,
    color: int,
) -> None:
    """Render a ``████░░░░`` bar filled to *ratio*."""
    max_y, max_x = win.getmaxyx()
    if y >= max_y - 1 or x >= max_x - 1:
        return
    bar_w = min(width, max_x - x - 1)
    if bar_w < 3:
        return
    filled = int(bar_w * ratio)
    _safe(win, y, x, BAR_FILL * filled, curses.color_pair(color) | curses.A_BOLD)
    _safe(win, BAR_EMPTY * (bar_w - filled), curses.color_pair(C_DIM))


# ── Panel renderers ────────────────────────────────────────────────────────


def draw_header(win: curses.window, y: int, w: int, state: AppState) -> None:
    box = _draw_box(win, y, 0, 3, w)
    if not box:
        return
    _safe(box, 1, 2, "Daemon Controller", curses.color_pair(C_TITLE) | curses.A_BOLD)
    _safe(box, " | ")
    color = _CONNECTION_COLORS[state.connection.kind]
    _safe(box, state.connection.label, curses.color_pair(color) | curses.A_BOLD)
    _safe(box, " | ")
    _safe(box, state.address[: max(0, w - 50)])


def draw_status_panel(
    win: curses.window, y: int, x: int, w: int, h: int, state: AppState
) -> None:
    box = _draw_box(
        win, y, x, h, w, "Status", state.focused_panel is FocusedPanel.STATUS
    )
    if not box:
        return
    status = state.status
    if status is None:
        _safe(box, 1, 2, "No data available", curses.color_pair(C_DIM) | curses.A_DIM)
        return

    inner = w - 4
    _safe(box, 1, 2, "State: ")
    _safe(box, state.daemon_state_label(), curses.color_pair(C_NORMAL) | curses.A_BOLD)
    lines = [
        f"Version: {status.version}",
        f"Uptime: {status.uptime_seconds}s ({fmt_uptime(status.uptime_seconds)})",
        f"Message: {status.message}",
    ]
    for row, line in enumerate(lines, start=2):
        if row >= h - 1:
            break
        _safe(box, row, 2, line[:inner])


def draw_metrics_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: AppState,
    thresh: dict[str, Any],
) -> None:
    box = _draw_box(win, y, x, h, w, "Metrics")
    if not box:
        return
    metrics = state.metrics
    if metrics is None:
        _safe(box, 1, 2, "No metrics available", curses.color_pair(C_DIM) | curses.A_DIM)
        return

    inner = w - 4
    cpu = cpu_ratio(metrics)
    cpu_t = thresh.get("cpu_percent", {})
    cpu_color = _severity_color(
        cpu * 100, float(cpu_t.get("warning", 80)), float(cpu_t.get("critical", 95))
    )
    _safe(box, 1, 2, f"CPU: {cpu * 100:.1f}%"[:inner])
    _draw_gauge(box, 2, 2, inner, cpu, cpu_color)

    mem = memory_ratio(metrics)
    mem_t = thresh.get("memory_percent", {})
    mem_color = _severity_color(
        mem * 100, float(mem_t.get("warning", 85)), float(mem_t.get("critical", 95))
    )
    mem_label = (
        f"Memory: {fmt_bytes(metrics.memory_bytes)} / "
        f"{fmt_bytes(metrics.memory_limit_bytes)} ({mem * 100:.1f}%)"
    )
    _safe(box, 3, 2, mem_label[:inner])
    _draw_gauge(box, 4, 2, inner, mem, mem_color)

    counters = [
        f"Connections: {metrics.connections_active}",
        f"Requests: {metrics.requests_total}",
        f"Errors: {metrics.errors_total}",
    ]
    for row, line in enumerate(counters, start=5):
        if row >= h - 1:
            break
        color = C_CRITICAL if line.startswith("Errors") and metrics.errors_total else C_DIM
        _safe(box, row, 2, line[:inner], curses.color_pair(color))


def draw_controls_panel(
    win: curses.window, y: int, x: int, w: int, h: int, state: AppState
) -> None:
    focused = state.focused_panel is FocusedPanel.CONTROLS
    box = _draw_box(win, y, x, h, w, "Controls", focused)
    if not box:
        return
    for i, action in enumerate(ACTIONS):
        row = 1 + i
        if row >= h - 1:
            break
        if i == state.selected_action and focused:
            attr = curses.color_pair(C_SELECTED) | curses.A_BOLD
        elif i == state.selected_action:
            attr = curses.color_pair(C_WARNING) | curses.A_BOLD
        else:
            attr = curses.A_NORMAL
        _safe(box, row, 1, f"  {action.label}  "[: w - 2], attr)


def draw_logs_panel(
    win: curses.window, y: int, x: int, w: int, h: int, state: AppState
) -> None:
    box = _draw_box(
        win,
        y,
        x,
        h,
        w,
        f"Logs ({len(state.logs)})",
        state.focused_panel is FocusedPanel.LOGS,
    )
    if not box:
        return
    inner = w - 3
    for row, entry in enumerate(visible_logs(state, h - 2), start=1):
        _safe(box, row, 1, f"[{entry.timestamp}] "[:inner], curses.color_pair(C_DIM))
        used = len(entry.timestamp) + 3
        if used >= inner:
            continue
        level_color = _LEVEL_COLORS.get(entry.level, C_DIM)
        _safe(box, f"{entry.level:<5} "[: inner - used], curses.color_pair(level_color))
        used += 6
        if used < inner:
            _safe(box, entry.message[: inner - used])


def draw_footer(win: curses.window, y: int, w: int) -> None:
    box = _draw_box(win, y, 0, 3, w)
    if not box:
        return
    for i, (key, label, color) in enumerate(FOOTER_HINTS):
        attr = curses.color_pair(color) | curses.A_BOLD
        if i:
            _safe(box, " | ")
            _safe(box, f" {key} ", attr)
        else:
            _safe(box, 1, 1, f" {key} ", attr)
        _safe(box, label)


# ── Frame ──────────────────────────────────────────────────────────────────


def render(stdscr: curses.window, state: AppState, thresh: dict[str, Any]) -> None:
    """Draw one full frame of *state* onto *stdscr*."""
    max_y, max_x = stdscr.getmaxyx()
    stdscr.erase()

    if max_y < MIN_HEIGHT or max_x < MIN_WIDTH:
        _safe(stdscr, 0, 0, f"Terminal too small (need {MIN_WIDTH}x{MIN_HEIGHT}+)")
        stdscr.refresh()
        return

    draw_header(stdscr, 0, max_x, state)

    body_y = 3
    body_h = max_y - 6
    left_w = max_x * 40 // 100
    mid_w = max_x * 30 // 100
    right_w = max_x - left_w - mid_w

    status_h = body_h // 2
    draw_status_panel(stdscr, body_y, 0, left_w, status_h, state)
    draw_metrics_panel(
        stdscr, body_y + status_h, 0, left_w, body_h - status_h, state, thresh
    )
    draw_controls_panel(stdscr, body_y, left_w, mid_w, body_h, state)
    draw_logs_panel(stdscr, body_y, left_w + mid_w, right_w, body_h, state)

    draw_footer(stdscr, max_y - 3, max_x)
    stdscr.refresh()
