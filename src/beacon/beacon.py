# src/beacon/beacon.py
"""Beacon captures faults and ships them to the collector in batches.

The Beacon is the whole client-side pipeline:
1. Receives faults from its fault source (uncaught faults, unhandled
   async failures) and from explicit capture_exception()/submit() calls
2. Normalizes each into a FaultRecord and appends it to the pending queue
3. Arms a single throttle timer on the first fault of a window
4. When the timer fires, POSTs every pending fault as one batch
5. Latches a permanent stop when the collector reports its quota is reached

Design principles:
- The host application never sees an exception from the beacon after
  construction; failures are logged and swallowed at the flush boundary
- A failed delivery keeps the queue intact and is never retried on its own
- At most one flush is in flight: the timer is a single-slot task, and a
  window that opens during a flush is armed only once the flush completes
- A successful flush removes exactly the faults it sent

Thread Safety:
    Not thread-safe. All state is touched from the event loop the beacon was
    built on. ProcessFaultSource hops off-loop deliveries onto that loop.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from beacon.config import DEFAULT_THROTTLE_MS, BeaconSettings
from beacon.enums import BeaconState
from beacon.errors import BeaconConfigError, DeliveryError
from beacon.fingerprint import describe_client
from beacon.pending import PendingQueue
from beacon.records import ClientDescriptor, FaultRecord, build_batch_payload
from beacon.sources import FaultSourceProtocol, ProcessFaultSource
from beacon.transport import HttpxTransport, TransportProtocol

logger = structlog.get_logger(__name__)


class Beacon:
    """Batches captured faults and delivers them to a remote collector.

    Example:
        >>> async def main():
        ...     beacon = Beacon("https://collector.example.com/errors", "pk_123")
        ...     try:
        ...         risky()
        ...     except Exception as exc:
        ...         beacon.capture_exception(exc)
    """

    def __init__(
        self,
        endpoint: str,
        credential: str,
        *,
        throttle_ms: int = DEFAULT_THROTTLE_MS,
        fault_source: FaultSourceProtocol | None = None,
        transport: TransportProtocol | None = None,
        client: ClientDescriptor | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize the beacon and subscribe to its fault source.

        Args:
            endpoint: Collector URL that receives error batches
            credential: Public key, sent as a bearer token
            throttle_ms: Delay between the first queued fault and the flush
            fault_source: Where uncaught faults come from. Defaults to the
                process-wide hooks (ProcessFaultSource).
            transport: How batches are sent. Defaults to HttpxTransport.
            client: Descriptor attached to every fault. Defaults to the
                running interpreter.
            loop: Event loop that runs timers and flushes. Defaults to the
                running loop.

        Raises:
            BeaconConfigError: If a setting is invalid or no event loop is
                available
        """
        self._settings = BeaconSettings.build(
            endpoint=endpoint,
            credential=credential,
            throttle_ms=throttle_ms,
        )
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise BeaconConfigError(
                    "loop",
                    "Beacon must be constructed inside a running event loop or be given one",
                ) from e
        self._loop = loop
        self._client = client if client is not None else describe_client()
        self._owns_transport = transport is None
        self._transport: TransportProtocol = transport if transport is not None else HttpxTransport()
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.credential}",
        }

        self._queue = PendingQueue()
        self._state = BeaconState.IDLE
        self._timer: asyncio.Task[None] | None = None
        self._inflight: asyncio.Task[None] | None = None
        # Set when a fault arrives while a flush is in flight
        self._window_opened_during_flush = False

        # Health metrics
        self._batches_sent = 0
        self._faults_sent = 0
        self._delivery_failures = 0
        self._faults_dropped_quota = 0

        self._fault_source = fault_source if fault_source is not None else ProcessFaultSource(loop)
        self._fault_source.on_fault(self._handle_fault)
        self._fault_source.on_unhandled_rejection(self._handle_rejection)

        logger.debug(
            "Beacon initialized",
            endpoint=self._settings.endpoint,
            throttle_ms=self._settings.throttle_ms,
            client=self._client.name,
        )

    # =========================================================================
    # Fault intake
    # =========================================================================

    def _handle_fault(self, exc: BaseException) -> None:
        self.submit(FaultRecord.from_exception(exc))

    def _handle_rejection(self, reason: object, handle: object) -> None:
        self.submit(FaultRecord.from_rejection(reason, handle))

    def capture_exception(self, exc: BaseException) -> None:
        """Report an error the host application caught itself.

        Normalized exactly like faults delivered by the fault source.
        """
        self.submit(FaultRecord.from_exception(exc))

    def submit(self, record: FaultRecord) -> None:
        """Queue a fault for the next batch.

        Never blocks and never raises. Once the quota latch is set the fault
        is dropped silently.
        """
        if self._state is BeaconState.QUOTA_STOPPED:
            self._faults_dropped_quota += 1
            return

        self._queue.append(record)

        if self._state is BeaconState.IDLE:
            self._arm()
        elif self._state is BeaconState.FLUSHING:
            self._window_opened_during_flush = True
        # ARMED: the pending timer will pick this fault up

    # =========================================================================
    # Scheduling
    # =========================================================================

    def _arm(self) -> None:
        if self._loop.is_closed():
            # Host is shutting down; the fault stays queued but nothing will send it
            logger.debug("Event loop closed, flush not scheduled", queue_depth=len(self._queue))
            self._state = BeaconState.IDLE
            return
        self._timer = self._loop.create_task(self._fire(), name="beacon-flush-timer")
        self._state = BeaconState.ARMED

    async def _fire(self) -> None:
        await asyncio.sleep(self._settings.throttle_seconds)
        # The loop only keeps weak references to tasks
        self._inflight, self._timer = self._timer, None
        await self._flush()

    def _settle(self) -> None:
        """Leave FLUSHING (or a no-op fire) for the next state."""
        self._inflight = None
        reopen = self._window_opened_during_flush
        self._window_opened_during_flush = False
        if self._state is BeaconState.QUOTA_STOPPED:
            return
        if reopen and len(self._queue) > 0:
            self._arm()
        else:
            self._state = BeaconState.IDLE

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _flush(self) -> None:
        """Deliver every pending fault as one batch.

        Only the throttle timer calls this. Never raises.
        """
        if self._state is BeaconState.QUOTA_STOPPED or len(self._queue) == 0:
            self._settle()
            return

        self._state = BeaconState.FLUSHING
        try:
            await self._deliver()
        except DeliveryError as e:
            self._delivery_failures += 1
            logger.error(
                "Beacon delivery failed",
                endpoint=self._settings.endpoint,
                status_code=e.status_code,
                queue_depth=len(self._queue),
            )
        except Exception as e:
            # Telemetry must never take down the host
            self._delivery_failures += 1
            logger.error(
                "Failed to send errors to collector",
                endpoint=self._settings.endpoint,
                error=str(e),
                error_type=type(e).__name__,
                queue_depth=len(self._queue),
                exc_info=True,
            )
        finally:
            self._settle()

    async def _deliver(self) -> None:
        """Send the current snapshot and interpret the response.

        The queue is only modified after a successful, parsed response.

        Raises:
            DeliveryError: On a non-success HTTP status
            Exception: Anything raised by serialization, transport or parsing
        """
        batch, last_seq = self._queue.snapshot()
        payload = build_batch_payload(batch, self._client)

        response = await self._transport.send(self._settings.endpoint, payload, self._headers)
        if not response.ok:
            raise DeliveryError(response.status_code)

        data = response.json()

        if isinstance(data, dict) and data.get("quotaReached"):
            self._state = BeaconState.QUOTA_STOPPED
            logger.info("Error quota reached, no more errors will be sent")
            # Latched: faults queued during the request will never be sent
            self._queue.clear()
        else:
            self._queue.discard_through(last_seq)

        self._batches_sent += 1
        self._faults_sent += len(batch)
        logger.info("Errors sent to collector", count=len(batch))

    # =========================================================================
    # Introspection and lifecycle
    # =========================================================================

    @property
    def state(self) -> BeaconState:
        return self._state

    @property
    def quota_reached(self) -> bool:
        return self._state is BeaconState.QUOTA_STOPPED

    @property
    def pending(self) -> list[FaultRecord]:
        """Faults waiting for the next successful flush, oldest first."""
        return self._queue.records()

    @property
    def pending_flush(self) -> asyncio.Task[None] | None:
        """The armed throttle timer, if any. Awaiting it waits for its flush."""
        return self._timer

    @property
    def client(self) -> ClientDescriptor:
        return self._client

    @property
    def settings(self) -> BeaconSettings:
        return self._settings

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Return a snapshot of beacon health.

        - batches_sent: Batches the collector accepted
        - faults_sent: Faults contained in those batches
        - delivery_failures: Flushes that failed (status or exception)
        - faults_dropped_quota: Faults discarded after the quota latch
        - queue_depth: Faults currently pending
        - queue_dropped: Faults evicted because the queue was full
        - state: Current scheduler state
        """
        return {
            "batches_sent": self._batches_sent,
            "faults_sent": self._faults_sent,
            "delivery_failures": self._delivery_failures,
            "faults_dropped_quota": self._faults_dropped_quota,
            "queue_depth": len(self._queue),
            "queue_dropped": self._queue.dropped_count,
            "state": self._state.value,
        }

    async def aclose(self) -> None:
        """Release the transport if the beacon created it.

        Does not flush or cancel an armed timer; pending faults are not
        persisted.
        """
        if self._owns_transport:
            await self._transport.aclose()
