# tests/fixtures.py
"""Reusable fakes for beacon testing.

1. FakeTransport - In-memory transport that records every batch it is given
2. make_beacon - Builds a Beacon wired to fakes with a short throttle window
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from beacon import Beacon
from beacon.records import ClientDescriptor
from beacon.sources import ManualFaultSource
from beacon.transport import TransportResponse

ENDPOINT = "https://collector.example.com/v1/errors"
CREDENTIAL = "pk_test_123"
THROTTLE_MS = 10


@dataclass
class SentBatch:
    endpoint: str
    payload: dict[str, Any]
    headers: dict[str, str]

    @property
    def messages(self) -> list[str]:
        return [entry["errorMessage"] for entry in self.payload["errors"]]


@dataclass
class FakeTransport:
    """Transport that records sends and replays scripted responses.

    Each send pops the next entry of `responses`; an exception instance is
    raised instead of returned. When empty, answers 200 with `{}`.

    Set `hold` to keep requests in flight until release() is called.
    """

    responses: list[TransportResponse | BaseException] = field(default_factory=list)
    sent: list[SentBatch] = field(default_factory=list)
    hold: bool = False
    closed: int = 0

    def __post_init__(self) -> None:
        self.in_flight = asyncio.Event()
        self._release = asyncio.Event()

    def respond(self, *responses: TransportResponse | BaseException) -> None:
        self.responses.extend(responses)

    def respond_json(self, status_code: int, body: Any) -> None:
        self.respond(TransportResponse(status_code=status_code, body=json.dumps(body).encode()))

    def release(self) -> None:
        self._release.set()

    async def send(
        self,
        endpoint: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> TransportResponse:
        self.sent.append(SentBatch(endpoint=endpoint, payload=payload, headers=dict(headers)))
        self.in_flight.set()
        if self.hold:
            await self._release.wait()
        self.in_flight.clear()
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, BaseException):
                raise response
            return response
        return TransportResponse(status_code=200, body=b"{}")

    async def aclose(self) -> None:
        self.closed += 1


def make_beacon(
    transport: FakeTransport,
    *,
    fault_source: ManualFaultSource | None = None,
    client: ClientDescriptor | None = None,
    throttle_ms: int = THROTTLE_MS,
) -> Beacon:
    """Build a Beacon wired to fakes. Must be called inside a running loop."""
    return Beacon(
        ENDPOINT,
        CREDENTIAL,
        throttle_ms=throttle_ms,
        fault_source=fault_source if fault_source is not None else ManualFaultSource(),
        transport=transport,
        client=client if client is not None else ClientDescriptor(name="CPython", version="3.12.1"),
    )


async def run_pending_flushes(beacon: Beacon, limit: int = 10) -> None:
    """Await armed timers until the beacon has none left."""
    for _ in range(limit):
        task = beacon.pending_flush
        if task is None:
            return
        await task


def messages(records: Iterable[Any]) -> list[str]:
    return [record.message for record in records]
