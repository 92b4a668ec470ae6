"""
Bridge Module - Black Box Interface

Purpose: Expose readiness across a process boundary
Interface: ReadinessRequestTable.dispatch() (server), DesktopControlBridge.get_status() (client)
Hidden: Request name aliases, transport channels, fallback snapshot synthesis

The client never raises; transport failures become ``unknown`` snapshots.
"""

from .channels import HttpChannel, LocalChannel, ReadinessChannel
from .client import (
    BRIDGE_ERROR_CODES,
    DesktopControlBridge,
    bridge_unavailable_snapshot,
    ipc_failure_snapshot,
    normalize_ipc_error_message,
)
from .factory import ReadinessFactory
from .requests import (
    DESKTOP_CONTROL_CHANNELS,
    STATUS_REQUEST_ALIASES,
    ReadinessRequestTable,
    UnknownRequestError,
)

__all__ = [
    "ReadinessRequestTable",
    "UnknownRequestError",
    "DESKTOP_CONTROL_CHANNELS",
    "STATUS_REQUEST_ALIASES",
    "ReadinessChannel",
    "LocalChannel",
    "HttpChannel",
    "DesktopControlBridge",
    "BRIDGE_ERROR_CODES",
    "ipc_failure_snapshot",
    "bridge_unavailable_snapshot",
    "normalize_ipc_error_message",
    "ReadinessFactory",
]
