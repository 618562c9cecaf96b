"""Configuration loading for daemonctl.

Loads settings from a TOML config file layered over built-in defaults.
Search order: $DAEMONCTL_CONFIG → ~/.config/daemonctl/config.toml → defaults only.
"""

from __future__ import annotations

import os
import sys
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "address": "127.0.0.1:50051",
    "tick_interval_ms": 250,
    "connect_timeout": 5.0,
    "call_timeout": 10.0,
    "max_log_entries": 0,  # 0 = unbounded
    "log_file": "",
    "log_level": "INFO",
    "thresholds": {
        "cpu_percent": {"warning": 80.0, "critical": 95.0},
        "memory_percent": {"warning": 85.0, "critical": 95.0},
    },
}

ENV_VAR = "DAEMONCTL_CONFIG"

_DEFAULT_PATH = Path.home() / ".config" / "daemonctl" / "config.toml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Nested dicts are merged at the first level only."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _valid_log_level(config: dict[str, Any]) -> bool:
    return str(config.get("log_level", "")).upper() in LOG_LEVELS


def config_path_from_env() -> Path | None:
    raw = os.environ.get(ENV_VAR, "").strip()
    return Path(raw).expanduser() if raw else None


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from $DAEMONCTL_CONFIG). If None,
              tries the default location ~/.config/daemonctl/config.toml.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed,
            or sets an unknown log_level.
    """
    if path is not None:
        if not path.is_file():
            print(f"daemonctl: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            user_config = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            print(f"daemonctl: invalid TOML in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        config = _deep_merge(DEFAULT_CONFIG, user_config)
        if not _valid_log_level(config):
            print(
                f"daemonctl: invalid log_level {config['log_level']!r} in {path}"
                f" (expected one of {', '.join(LOG_LEVELS)})",
                file=sys.stderr,
            )
            raise SystemExit(1)
        return config

    if _DEFAULT_PATH.is_file():
        try:
            user_config = tomllib.loads(_DEFAULT_PATH.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError:
            print(
                f"daemonctl: warning: ignoring invalid TOML in {_DEFAULT_PATH}",
                file=sys.stderr,
            )
        else:
            config = _deep_merge(DEFAULT_CONFIG, user_config)
            if not _valid_log_level(config):
                print(
                    f"daemonctl: warning: ignoring invalid log_level in {_DEFAULT_PATH}",
                    file=sys.stderr,
                )
                config["log_level"] = DEFAULT_CONFIG["log_level"]
            return config

    return dict(DEFAULT_CONFIG)

