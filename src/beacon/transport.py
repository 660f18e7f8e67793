# src/beacon/transport.py
"""Transport used to ship a batch to the collector.

The core only needs "POST this JSON body with these headers and tell me the
status and body". TransportProtocol captures that; HttpxTransport is the
production implementation.

Error handling:
    send() does NOT catch transport errors (timeouts, refused connections).
    They propagate to the dispatcher, which reports and swallows them at the
    flush boundary.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog

from beacon.config import get_internal_default

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class TransportResponse:
    """Status and raw body of a collector response."""

    status_code: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            json.JSONDecodeError: If the body is not valid JSON
        """
        return json.loads(self.body)


@runtime_checkable
class TransportProtocol(Protocol):
    """Sends one serialized batch to the collector."""

    async def send(
        self,
        endpoint: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> TransportResponse:
        """POST payload as JSON to endpoint.

        Raises:
            Exception: Any transport-level failure. Non-success statuses are
                returned, not raised.
        """
        ...

    async def aclose(self) -> None:
        """Release connections. Must be idempotent."""
        ...


class HttpxTransport:
    """TransportProtocol backed by a shared httpx.AsyncClient.

    The client is created on first send so a Beacon can be constructed
    before any request is made. Connections are pooled across flushes.
    """

    def __init__(self, *, timeout: float | None = None, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the transport.

        Args:
            timeout: Per-request timeout in seconds. Defaults to the internal
                transport timeout.
            client: Pre-built client to use instead of creating one (the
                caller keeps ownership and must close it)
        """
        if timeout is None:
            timeout = float(get_internal_default("transport", "timeout"))
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def send(
        self,
        endpoint: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> TransportResponse:
        body = json.dumps(payload).encode("utf-8")
        response = await self._get_client().post(endpoint, content=body, headers=headers)
        logger.debug(
            "Collector responded",
            endpoint=endpoint,
            status_code=response.status_code,
            request_bytes=len(body),
        )
        return TransportResponse(status_code=response.status_code, body=response.content)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
