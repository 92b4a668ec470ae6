"""
Server side of the desktop control bridge.

One operation, reachable under a canonical request name and its
compatibility aliases. All names map to the same handler.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from ..cache import ReadinessCache
from ..readiness import StatusRequest

logger = logging.getLogger("deskready.bridge")

DESKTOP_CONTROL_CHANNELS = {
    "get_status": "desktop_control:get_status",
}

# Older callers still send these names.
STATUS_REQUEST_ALIASES: Tuple[str, ...] = (
    "desktopControl:getStatus",
    "getDesktopControlStatus",
    "desktopControlGetStatus",
)

Handler = Callable[[Mapping[str, Any]], Awaitable[Dict[str, Any]]]


class UnknownRequestError(LookupError):
    """Raised when a request name has no handler."""

    def __init__(self, request_name: str):
        super().__init__(f"Unknown desktop control request: {request_name}")
        self.request_name = request_name


class ReadinessRequestTable:
    """Maps external request names to the readiness operation."""

    def __init__(self, cache: ReadinessCache):
        self.cache = cache
        self._handlers: Dict[str, Handler] = {
            DESKTOP_CONTROL_CHANNELS["get_status"]: self._get_status,
        }
        for alias in STATUS_REQUEST_ALIASES:
            self._handlers[alias] = self._get_status

    @property
    def request_names(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def handles(self, request_name: str) -> bool:
        return request_name in self._handlers

    async def dispatch(
        self, request_name: str, payload: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Run the operation registered under ``request_name``.

        Raises:
            UnknownRequestError: If no handler is registered for the name
            pydantic.ValidationError: If the payload is malformed
        """
        handler = self._handlers.get(request_name)
        if handler is None:
            raise UnknownRequestError(request_name)
        return await handler(payload or {})

    async def _get_status(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        request = StatusRequest.model_validate(payload)
        snapshot = await self.cache.get(force_refresh=request.force_refresh)
        logger.debug(
            f"Readiness request served: status={snapshot.status.value} "
            f"from_cache={snapshot.cache.from_cache}"
        )
        return snapshot.model_dump(mode="json")
