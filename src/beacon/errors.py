# src/beacon/errors.py
"""Beacon-specific exceptions.

Only BeaconConfigError ever reaches the host application, and only at
construction time. Everything raised during intake or delivery is caught at
the flush boundary and reported through the log.
"""


class BeaconError(Exception):
    """Base class for beacon errors."""


class BeaconConfigError(BeaconError):
    """Raised when the beacon is constructed with invalid settings.

    Attributes:
        field: Name of the offending setting
        message: Human-readable error description
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Invalid beacon setting '{field}': {message}")


class DeliveryError(BeaconError):
    """Raised inside a flush when the collector answers with a non-success status.

    Attributes:
        status_code: HTTP status returned by the collector
    """

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP error! status: {status_code}")
