"""
Beacon: client-side error telemetry.

Captures uncaught faults in the host process and ships them to a remote
collector in throttled batches, stopping for good once the collector reports
that its quota is reached.

Usage:
    from beacon import Beacon

    beacon = Beacon("https://collector.example.com/errors", "pk_live_123")
    beacon.capture_exception(exc)
"""

from beacon.beacon import Beacon
from beacon.config import BeaconSettings
from beacon.enums import BeaconState
from beacon.errors import BeaconConfigError, BeaconError, DeliveryError
from beacon.fingerprint import describe_client
from beacon.logging import configure_logging
from beacon.pending import PendingQueue
from beacon.records import ClientDescriptor, FaultRecord, build_batch_payload
from beacon.sources import FaultSourceProtocol, ManualFaultSource, ProcessFaultSource
from beacon.transport import HttpxTransport, TransportProtocol, TransportResponse

__version__ = "0.1.0"

__all__ = [
    "Beacon",
    "BeaconConfigError",
    "BeaconError",
    "BeaconSettings",
    "BeaconState",
    "ClientDescriptor",
    "DeliveryError",
    "FaultRecord",
    "FaultSourceProtocol",
    "HttpxTransport",
    "ManualFaultSource",
    "PendingQueue",
    "ProcessFaultSource",
    "TransportProtocol",
    "TransportResponse",
    "build_batch_payload",
    "configure_logging",
    "describe_client",
]
