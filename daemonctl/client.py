"""gRPC client for the daemon control service.

Owns the channel lifecycle and wraps the three unary RPCs. Every call is a
single request/response with a per-call deadline; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import Any

import grpc

from daemonctl.protocol import (
    METHODS,
    ControlRequest,
    ControlResult,
    DaemonMetrics,
    DaemonStatus,
    MetricsRequest,
    StatusRequest,
    method_path,
)
from daemonctl.state import ControlAction

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_CALL_TIMEOUT = 10.0

_PLAINTEXT_SCHEMES = ("http://", "grpc://")


class DaemonError(Exception):
    """Base class for client failures."""


class ConnectError(DaemonError):
    pass


class NotConnectedError(DaemonError):
    def __init__(self) -> None:
        super().__init__("Not connected to daemon")


class RpcCallError(DaemonError):
    """A call reached the transport and failed there."""

    def __init__(self, method: str, code: str, detail: str) -> None:
        self.method = method
        self.code = code
        self.detail = detail
        super().__init__(f"{method}: {code}: {detail}" if detail else f"{method}: {code}")


def normalize_target(address: str) -> str:
    """Turn ``http://host:port`` style addresses into a gRPC target."""
    target = address.strip()
    for scheme in _PLAINTEXT_SCHEMES:
        if target.startswith(scheme):
            target = target[len(scheme):]
            break
    return target.rstrip("/")


class DaemonClient:
    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.call_timeout = call_timeout
        self._channel: grpc.Channel | None = None
        self._calls: dict[str, Any] = {}

    def is_connected(self) -> bool:
        """True when a session exists. Says nothing about peer liveness."""
        return self._channel is not None

    def connect(self, address: str) -> None:
        """Open a plaintext channel and wait until it is ready.

        Raises:
            ConnectError: If the channel isn't ready within connect_timeout.
        """
        target = normalize_target(address)
        channel = grpc.insecure_channel(target)
        try:
            grpc.channel_ready_future(channel).result(timeout=self.connect_timeout)
        except grpc.FutureTimeoutError as e:
            channel.close()
            raise ConnectError(
                f"{target} not reachable within {self.connect_timeout:g}s"
            ) from e

        self._channel = channel
        self._calls = {
            name: channel.unary_unary(
                method_path(name),
                request_serializer=req.SerializeToString,
                response_deserializer=resp.FromString,
            )
            for name, (req, resp) in METHODS.items()
        }
        logger.info("connected to %s", target)

    def disconnect(self) -> None:
        if self._channel is not None:
            self._channel.close()
            logger.info("channel closed")
        self._channel = None
        self._calls = {}

    def _call(self, name: str, request: Any) -> Any:
        if self._channel is None:
            raise NotConnectedError()
        try:
            return self._calls[name](request, timeout=self.call_timeout)
        except grpc.RpcError as exc:
            # Only call-bound errors (grpc.Call) carry code()/details().
            if isinstance(exc, grpc.Call):
                code, detail = exc.code().name, exc.details() or ""
            else:
                code, detail = "UNKNOWN", str(exc)
            raise RpcCallError(name, code, detail) from exc

    def get_status(self) -> DaemonStatus:
        return DaemonStatus.from_message(self._call("GetStatus", StatusRequest()))

    def get_metrics(self) -> DaemonMetrics:
        return DaemonMetrics.from_message(self._call("GetMetrics", MetricsRequest()))

    def send_control(self, action: ControlAction) -> ControlResult:
        response = self._call("Control", ControlRequest(command=action.command))
        return ControlResult(success=bool(response.success), message=response.message)
