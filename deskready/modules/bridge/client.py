"""
Client side of the desktop control bridge.

Every public method resolves to ``_invoke_status`` and never raises: when
the channel is missing, fails, or returns something that is not a
snapshot, the caller receives a synthesized ``unknown`` snapshot whose
error code says which of those happened.
"""

import logging
import re
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from ..readiness import ReadinessSnapshot, StatusRequest, error_message, unknown_snapshot
from .channels import ReadinessChannel, describe_channel
from .requests import DESKTOP_CONTROL_CHANNELS

logger = logging.getLogger("deskready.bridge")

BRIDGE_ERROR_CODES = {
    "bridge_unavailable": "desktop_control_bridge_unavailable",
    "ipc_invoke_failed": "desktop_control_ipc_invoke_failed",
    "ipc_malformed_payload": "desktop_control_ipc_malformed_payload",
    "invalid_request": "desktop_control_invalid_request",
}

_REMOTE_METHOD_PREFIX = re.compile(r"^Error invoking remote method '[^']*':\s*")


def normalize_ipc_error_message(error: BaseException) -> str:
    """Strip framework prefixes so the cause reads cleanly in the UI."""
    message = error_message(error).strip()
    return _REMOTE_METHOD_PREFIX.sub("", message, count=1) or message


def ipc_failure_snapshot(
    cause: str,
    error_code: str = BRIDGE_ERROR_CODES["ipc_invoke_failed"],
    now: Optional[datetime] = None,
) -> ReadinessSnapshot:
    """Fallback snapshot for a failed round trip."""
    return unknown_snapshot(
        error_code=error_code,
        message=f"Desktop control status IPC request failed: {cause}",
        cause=cause,
        checked_at=now or datetime.now(UTC),
        check_message="Readiness status could not be retrieved over IPC.",
    )


def bridge_unavailable_snapshot(
    cause: str = "Desktop control bridge is not configured",
    now: Optional[datetime] = None,
) -> ReadinessSnapshot:
    """Fallback snapshot for when no channel exists at all."""
    return unknown_snapshot(
        error_code=BRIDGE_ERROR_CODES["bridge_unavailable"],
        message=f"Desktop control IPC bridge is unavailable: {cause}",
        cause=cause,
        checked_at=now or datetime.now(UTC),
        check_message="Readiness status could not be retrieved over IPC.",
    )


class DesktopControlBridge:
    """Caller-facing readiness surface; all names share one implementation."""

    def __init__(
        self,
        channel: Optional[ReadinessChannel],
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        """
        Initialize the bridge.

        Args:
            channel: Transport to the readiness service (None if unavailable)
            clock: Time source for fallback snapshots
        """
        self.channel = channel
        self.clock = clock

    async def _invoke_status(self, options: Optional[Dict[str, Any]] = None) -> ReadinessSnapshot:
        if self.channel is None:
            logger.warning("Desktop control bridge has no channel; returning fallback snapshot")
            return bridge_unavailable_snapshot(now=self.clock())

        try:
            request = StatusRequest.model_validate(options or {})
        except ValidationError as e:
            logger.warning(f"Rejected desktop control status options: {e.error_count()} error(s)")
            return ipc_failure_snapshot(
                f"Invalid desktop-control status options: {options!r}",
                error_code=BRIDGE_ERROR_CODES["invalid_request"],
                now=self.clock(),
            )

        try:
            payload = await self.channel.invoke(
                DESKTOP_CONTROL_CHANNELS["get_status"], request.model_dump()
            )
        except Exception as e:
            cause = normalize_ipc_error_message(e)
            logger.warning(
                f"Desktop control IPC invoke failed via {describe_channel(self.channel)}: {cause}"
            )
            return ipc_failure_snapshot(cause, now=self.clock())

        try:
            return ReadinessSnapshot.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Desktop control IPC returned malformed payload: {e.error_count()} error(s)")
            return ipc_failure_snapshot(
                "IPC returned malformed desktop-control readiness payload",
                error_code=BRIDGE_ERROR_CODES["ipc_malformed_payload"],
                now=self.clock(),
            )

    async def get_status(self, options: Optional[Dict[str, Any]] = None) -> ReadinessSnapshot:
        """Current readiness snapshot; ``options`` may carry ``force_refresh``."""
        return await self._invoke_status(options)

    # Compatibility names
    get_desktop_control_status = get_status
    desktop_control_get_status = get_status
