"""Shared fixtures: an in-process daemon speaking the control protocol."""

from __future__ import annotations

from collections.abc import Iterator
from concurrent import futures
from dataclasses import dataclass, field
from typing import Any

import grpc
import pytest

from daemonctl import protocol


@dataclass
class FakeDaemon:
    state: int = 2  # DAEMON_STATE_RUNNING
    version: str = "1.2.0"
    uptime_seconds: int = 3723
    message: str = "healthy"
    fail_status: bool = False
    commands: list[int] = field(default_factory=list)

    def get_status(self, request: Any, context: grpc.ServicerContext) -> Any:
        if self.fail_status:
            context.abort(grpc.StatusCode.UNAVAILABLE, "status backend down")
        return protocol.StatusResponse(
            state=self.state,
            version=self.version,
            uptime_seconds=self.uptime_seconds,
            message=self.message,
        )

    def get_metrics(self, request: Any, context: grpc.ServicerContext) -> Any:
        return protocol.MetricsResponse(
            cpu_usage_percent=57.3,
            memory_bytes=1_500_000_000,
            memory_limit_bytes=4 * 1024**3,
            connections_active=3,
            requests_total=1000,
            errors_total=2,
        )

    def control(self, request: Any, context: grpc.ServicerContext) -> Any:
        self.commands.append(int(request.command))
        if request.command == 0 and self.state == 2:
            return protocol.ControlResponse(success=False, message="already running")
        return protocol.ControlResponse(success=True, message="ok")


def _handler(fn: Any, method: str) -> grpc.RpcMethodHandler:
    request_cls, response_cls = protocol.METHODS[method]
    return grpc.unary_unary_rpc_method_handler(
        fn,
        request_deserializer=request_cls.FromString,
        response_serializer=response_cls.SerializeToString,
    )


@pytest.fixture
def daemon_server() -> Iterator[tuple[FakeDaemon, str]]:
    daemon = FakeDaemon()
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=2))
    server.add_generic_rpc_handlers(
        (
            grpc.method_handlers_generic_handler(
                protocol.SERVICE,
                {
                    "GetStatus": _handler(daemon.get_status, "GetStatus"),
                    "GetMetrics": _handler(daemon.get_metrics, "GetMetrics"),
                    "Control": _handler(daemon.control, "Control"),
                },
            ),
        )
    )
    port = server.add_insecure_port("127.0.0.1:0")
    server.start()
    try:
        yield daemon, f"127.0.0.1:{port}"
    finally:
        server.stop(None)
