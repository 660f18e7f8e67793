# src/beacon/config.py
"""Beacon settings and internal defaults.

Two categories of values:

1. BeaconSettings: the only user-facing configuration - endpoint, credential
   and throttle interval. Validated once at construction.

2. INTERNAL_DEFAULTS: values hardcoded in runtime code and NOT exposed in
   settings (queue bound, HTTP timeout, log interval). Listed here so the
   numbers the beacon runs with are visible in one place.
"""

from typing import Any, Final
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from beacon.errors import BeaconConfigError

INTERNAL_DEFAULTS: Final[dict[str, dict[str, int | float]]] = {
    "queue": {
        # Pending faults kept between flushes; oldest evicted beyond this
        "max_size": 1000,
        # Aggregate overflow warning every N evictions
        "log_interval": 100,
    },
    "transport": {
        # Seconds before a single POST to the collector is abandoned
        "timeout": 10.0,
    },
}

DEFAULT_THROTTLE_MS: Final[int] = 5000


def get_internal_default(subsystem: str, field: str) -> int | float:
    """Get an internal default value.

    Raises:
        KeyError: If subsystem or field not found (bug - internal defaults
            are a closed set)
    """
    return INTERNAL_DEFAULTS[subsystem][field]


class BeaconSettings(BaseModel):
    """Validated construction parameters for a Beacon.

    Example:
        settings = BeaconSettings(
            endpoint="https://collector.example.com/v1/errors",
            credential="pk_live_123",
        )
    """

    model_config = {"frozen": True}

    endpoint: str = Field(description="Collector URL that receives error batches")
    credential: str = Field(description="Public key sent as a bearer token")
    throttle_ms: int = Field(
        default=DEFAULT_THROTTLE_MS,
        gt=0,
        description="Delay between the first queued fault and the batch flush",
    )

    @field_validator("endpoint")
    @classmethod
    def _endpoint_is_http_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"endpoint must be an absolute http(s) URL, got {v!r}")
        return v

    @field_validator("credential")
    @classmethod
    def _credential_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("credential must not be empty")
        return v

    @property
    def throttle_seconds(self) -> float:
        return self.throttle_ms / 1000.0

    @classmethod
    def build(cls, **values: Any) -> "BeaconSettings":
        """Validate values, translating pydantic errors to BeaconConfigError.

        Raises:
            BeaconConfigError: On the first invalid field
        """
        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "settings"
            raise BeaconConfigError(field, first["msg"]) from e
