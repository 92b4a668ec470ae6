"""
Transport channels for the desktop control bridge.

A channel sends one named request with a JSON payload and returns the
decoded JSON response. Any exception raised by ``invoke`` is a transport
failure from the bridge client's point of view.
"""

from typing import Any, Dict, Mapping, Optional, Protocol

import httpx

from .requests import ReadinessRequestTable


class ReadinessChannel(Protocol):
    """Request/response channel across the process boundary."""

    async def invoke(self, request_name: str, payload: Mapping[str, Any]) -> Any:
        ...


class LocalChannel:
    """In-process channel dispatching straight to a request table."""

    def __init__(self, table: ReadinessRequestTable):
        self.table = table

    async def invoke(self, request_name: str, payload: Mapping[str, Any]) -> Any:
        return await self.table.dispatch(request_name, payload)


class HttpChannel:
    """Channel over the deskready HTTP API (``POST /bridge/{request_name}``)."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8787",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize HTTP channel.

        Args:
            base_url: Deskready API root
            timeout: Request timeout in seconds
            client: Pre-built client (e.g. with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def invoke(self, request_name: str, payload: Mapping[str, Any]) -> Any:
        response = await self.client.post(f"/bridge/{request_name}", json=dict(payload))
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "HttpChannel":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def describe_channel(channel: Optional[ReadinessChannel]) -> Dict[str, Any]:
    """Short description of a channel for logs."""
    if channel is None:
        return {"type": None}
    data: Dict[str, Any] = {"type": type(channel).__name__}
    if isinstance(channel, HttpChannel):
        data["base_url"] = channel.base_url
    return data
