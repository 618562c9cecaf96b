"""Local listener lookup used to explain failed connects."""

from __future__ import annotations

import logging

import psutil

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1", "0.0.0.0", "::"}


def split_address(address: str) -> tuple[str, int | None]:
    """Split ``host:port`` (IPv6 hosts in brackets). Port is None if absent."""
    target = address.split("://", 1)[-1].rstrip("/")
    if target.startswith("["):
        host, _, rest = target[1:].partition("]")
        port_str = rest.lstrip(":")
    elif target.count(":") == 1:
        host, _, port_str = target.partition(":")
    else:
        host, port_str = target, ""
    try:
        port = int(port_str) if port_str else None
    except ValueError:
        port = None
    return host, port


def find_listener(port: int) -> tuple[int, str] | None:
    """Return ``(pid, name)`` of the local process listening on *port*.

    None means no listener. psutil.AccessDenied and OSError propagate when
    the socket table itself cannot be read.
    """
    for conn in psutil.net_connections(kind="inet"):
        if conn.status != psutil.CONN_LISTEN or not conn.laddr:
            continue
        if conn.laddr.port != port:
            continue
        if conn.pid is None:
            return (0, "?")
        try:
            return (conn.pid, psutil.Process(conn.pid).name())
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return (conn.pid, "?")
    return None


def listener_hint(address: str) -> str:
    """Short diagnostic for a loopback target, or "" when nothing can be said."""
    host, port = split_address(address)
    if port is None or host.lower() not in LOOPBACK_HOSTS:
        return ""
    try:
        found = find_listener(port)
    except (psutil.AccessDenied, OSError) as e:
        logger.debug("net_connections unavailable: %s", e)
        return ""
    if found is None:
        return f"nothing listening on port {port}"
    pid, name = found
    return f"port {port} held by {name} (pid {pid})"
