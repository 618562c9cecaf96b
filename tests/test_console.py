"""Tests for the main loop and CLI entry point."""

from __future__ import annotations

import curses
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from daemonctl.client import DaemonClient
from daemonctl.config import DEFAULT_CONFIG
from daemonctl.console import _console, configure_logging, main, run_loop
from daemonctl.dispatch import Dispatcher
from daemonctl.events import Event, EventQueue, KeyInput, Tick
from daemonctl.state import AppState, FocusedPanel


def _queue(*events: Event, finish: bool = True) -> EventQueue:
    q = EventQueue()
    for e in events:
        q.put(e)
    if finish:
        q.finish()
    return q


class Recorder:
    """draw() stand-in that snapshots what each frame would show."""

    def __init__(self) -> None:
        self.frames: list[tuple[FocusedPanel, int]] = []

    def __call__(self, state: AppState) -> None:
        self.frames.append((state.focused_panel, len(state.logs)))


def _loop(*events: Event, finish: bool = True) -> tuple[AppState, MagicMock, Recorder, EventQueue]:
    state = AppState("127.0.0.1:50051")
    client = MagicMock(spec=DaemonClient)
    client.is_connected.return_value = False
    recorder = Recorder()
    q = _queue(*events, finish=finish)
    run_loop(state, Dispatcher(state, client), q, recorder)
    return state, client, recorder, q


class TestRunLoop:
    def test_renders_before_every_event(self) -> None:
        state, _, recorder, _ = _loop(KeyInput("tab"), KeyInput("tab"), KeyInput("q"))
        # One frame per iteration, each showing the state left by the previous event
        assert recorder.frames == [
            (FocusedPanel.STATUS, 0),
            (FocusedPanel.CONTROLS, 0),
            (FocusedPanel.LOGS, 0),
        ]
        assert state.should_quit

    def test_events_after_quit_not_processed(self) -> None:
        state, _, recorder, _ = _loop(KeyInput("q"), KeyInput("tab"))
        assert state.focused_panel is FocusedPanel.STATUS
        assert len(recorder.frames) == 1

    def test_end_of_stream_quits(self) -> None:
        state, _, recorder, q = _loop(Tick(), KeyInput("d"))
        assert state.should_quit
        assert len(recorder.frames) == 3
        assert [e.message for e in state.logs] == ["Not connected"]
        assert q.closed

    def test_queue_closed_on_quit(self) -> None:
        _, _, _, q = _loop(KeyInput("q"), finish=False)
        assert q.closed
        assert q.put(Tick()) is False

    def test_ticks_only_refresh_when_connected(self) -> None:
        _, client, _, _ = _loop(Tick(), Tick())
        client.get_status.assert_not_called()


class TestMain:
    @patch("daemonctl.console.configure_logging")
    @patch("daemonctl.console.load_config")
    @patch("daemonctl.console.curses.wrapper")
    def test_clean_exit(
        self, mock_wrapper: MagicMock, mock_load: MagicMock, mock_logging: MagicMock
    ) -> None:
        mock_load.return_value = dict(DEFAULT_CONFIG)
        assert main(["10.0.0.5:6000"]) == 0
        _, state, _ = mock_wrapper.call_args.args
        assert state.address == "10.0.0.5:6000"
        assert [e.message for e in state.logs] == [
            "Daemon Controller started",
            "Target: 10.0.0.5:6000",
        ]

    @patch("daemonctl.console.configure_logging")
    @patch("daemonctl.console.load_config")
    @patch("daemonctl.console.curses.wrapper", side_effect=curses.error("setupterm: could not find terminal"))
    def test_terminal_setup_failure(
        self, mock_wrapper: MagicMock, mock_load: MagicMock, mock_logging: MagicMock, capsys
    ) -> None:
        mock_load.return_value = dict(DEFAULT_CONFIG)
        assert main([]) == 1
        assert "terminal setup failed" in capsys.readouterr().err
        _, state, _ = mock_wrapper.call_args.args
        assert state.address == "127.0.0.1:50051"


@patch("daemonctl.console.run_loop")
@patch("daemonctl.console.EventSource")
@patch("daemonctl.console.CursesInput")
@patch("daemonctl.console.DaemonClient")
@patch("daemonctl.console.curses")
@patch("daemonctl.console.init_colors")
class TestConsoleShutdown:
    def _run(self, tick_interval_ms: int) -> None:
        config = dict(DEFAULT_CONFIG, tick_interval_ms=tick_interval_ms)
        _console(MagicMock(), AppState("127.0.0.1:50051"), config)

    def test_join_outlasts_slow_tick(
        self,
        mock_colors: MagicMock,
        mock_curses: MagicMock,
        mock_client: MagicMock,
        mock_input: MagicMock,
        mock_source: MagicMock,
        mock_loop: MagicMock,
    ) -> None:
        self._run(2000)
        assert mock_source.call_args.kwargs["tick_interval"] == 2.0
        mock_source.return_value.join.assert_called_once_with(timeout=3.0)
        mock_client.return_value.disconnect.assert_called_once()

    def test_cleanup_when_loop_raises(
        self,
        mock_colors: MagicMock,
        mock_curses: MagicMock,
        mock_client: MagicMock,
        mock_input: MagicMock,
        mock_source: MagicMock,
        mock_loop: MagicMock,
    ) -> None:
        mock_loop.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            self._run(250)
        mock_source.return_value.join.assert_called_once_with(timeout=1.25)
        mock_client.return_value.disconnect.assert_called_once()


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_logger(self) -> Iterator[logging.Logger]:
        logger = logging.getLogger("daemonctl")
        saved = (list(logger.handlers), logger.level, logger.propagate)
        yield logger
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        handlers, level, propagate = saved
        for handler in handlers:
            logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = propagate

    def test_repeated_calls_keep_one_handler(self, tmp_path: Path) -> None:
        config = dict(DEFAULT_CONFIG, log_file=str(tmp_path / "daemonctl.log"))
        configure_logging(config)
        configure_logging(config)
        logger = logging.getLogger("daemonctl")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.FileHandler)

    def test_file_output(self, tmp_path: Path) -> None:
        log_file = tmp_path / "daemonctl.log"
        configure_logging(dict(DEFAULT_CONFIG, log_file=str(log_file), log_level="debug"))
        logging.getLogger("daemonctl.dispatch").debug("hello")
        for handler in logging.getLogger("daemonctl").handlers:
            handler.flush()
        assert "DEBUG daemonctl.dispatch: hello" in log_file.read_text()

    def test_no_file_is_silent(self) -> None:
        configure_logging(dict(DEFAULT_CONFIG))
        logger = logging.getLogger("daemonctl")
        assert [type(h) for h in logger.handlers] == [logging.NullHandler]
        assert logger.propagate is False
