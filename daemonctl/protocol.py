"""Wire messages for the daemon control service.

The message classes are built at import time from a FileDescriptorProto, so
no protoc step is needed. ``proto/daemon.proto`` documents the same schema
for daemon implementers; keep the two in sync.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "daemon"
SERVICE = f"{PACKAGE}.DaemonService"

_F = descriptor_pb2.FieldDescriptorProto


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(
        name="daemon.proto", package=PACKAGE, syntax="proto3"
    )

    state = fdp.enum_type.add(name="DaemonState")
    for number, name in enumerate(
        ("UNKNOWN", "STARTING", "RUNNING", "STOPPING", "STOPPED", "ERROR")
    ):
        state.value.add(name=f"DAEMON_STATE_{name}", number=number)

    command = fdp.enum_type.add(name="ControlCommand")
    for number, name in enumerate(("START", "STOP", "RESTART", "RELOAD")):
        command.value.add(name=f"CONTROL_COMMAND_{name}", number=number)

    def message(name: str, *fields: tuple[str, int, int, str]) -> None:
        msg = fdp.message_type.add(name=name)
        for field_name, number, field_type, type_name in fields:
            f = msg.field.add(
                name=field_name,
                number=number,
                type=field_type,
                label=_F.LABEL_OPTIONAL,
            )
            if type_name:
                f.type_name = type_name

    message("StatusRequest")
    message(
        "StatusResponse",
        ("state", 1, _F.TYPE_ENUM, f".{PACKAGE}.DaemonState"),
        ("version", 2, _F.TYPE_STRING, ""),
        ("uptime_seconds", 3, _F.TYPE_UINT64, ""),
        ("message", 4, _F.TYPE_STRING, ""),
    )
    message("MetricsRequest")
    message(
        "MetricsResponse",
        ("cpu_usage_percent", 1, _F.TYPE_DOUBLE, ""),
        ("memory_bytes", 2, _F.TYPE_UINT64, ""),
        ("memory_limit_bytes", 3, _F.TYPE_UINT64, ""),
        ("connections_active", 4, _F.TYPE_UINT32, ""),
        ("requests_total", 5, _F.TYPE_UINT64, ""),
        ("errors_total", 6, _F.TYPE_UINT64, ""),
    )
    message(
        "ControlRequest",
        ("command", 1, _F.TYPE_ENUM, f".{PACKAGE}.ControlCommand"),
    )
    message(
        "ControlResponse",
        ("success", 1, _F.TYPE_BOOL, ""),
        ("message", 2, _F.TYPE_STRING, ""),
    )
    return fdp


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str) -> Any:
    return message_factory.GetMessageClass(
        _pool.FindMessageTypeByName(f"{PACKAGE}.{name}")
    )


StatusRequest = _message_class("StatusRequest")
StatusResponse = _message_class("StatusResponse")
MetricsRequest = _message_class("MetricsRequest")
MetricsResponse = _message_class("MetricsResponse")
ControlRequest = _message_class("ControlRequest")
ControlResponse = _message_class("ControlResponse")

# Method name -> (request class, response class)
METHODS: dict[str, tuple[Any, Any]] = {
    "GetStatus": (StatusRequest, StatusResponse),
    "GetMetrics": (MetricsRequest, MetricsResponse),
    "Control": (ControlRequest, ControlResponse),
}


def method_path(name: str) -> str:
    return f"/{SERVICE}/{name}"


# ── Snapshots ──────────────────────────────────────────────────────────────


class DaemonState(Enum):
    UNKNOWN = 0
    STARTING = 1
    RUNNING = 2
    STOPPING = 3
    STOPPED = 4
    ERROR = 5
    INVALID = -1  # any wire value outside the known set

    @classmethod
    def from_wire(cls, value: int) -> DaemonState:
        try:
            return cls(value)
        except ValueError:
            return cls.INVALID

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class DaemonStatus:
    """Last-known daemon status."""

    state: DaemonState
    version: str = ""
    uptime_seconds: int = 0
    message: str = ""

    @classmethod
    def from_message(cls, msg: Any) -> DaemonStatus:
        return cls(
            state=DaemonState.from_wire(int(msg.state)),
            version=msg.version,
            uptime_seconds=int(msg.uptime_seconds),
            message=msg.message,
        )


@dataclass(frozen=True)
class DaemonMetrics:
    """Last-known daemon resource metrics."""

    cpu_usage_percent: float = 0.0
    memory_bytes: int = 0
    memory_limit_bytes: int = 0
    connections_active: int = 0
    requests_total: int = 0
    errors_total: int = 0

    @classmethod
    def from_message(cls, msg: Any) -> DaemonMetrics:
        return cls(
            cpu_usage_percent=float(msg.cpu_usage_percent),
            memory_bytes=int(msg.memory_bytes),
            memory_limit_bytes=int(msg.memory_limit_bytes),
            connections_active=int(msg.connections_active),
            requests_total=int(msg.requests_total),
            errors_total=int(msg.errors_total),
        )


@dataclass(frozen=True)
class ControlResult:
    success: bool
    message: str
