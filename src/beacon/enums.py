# src/beacon/enums.py
"""Beacon lifecycle states."""

from enum import StrEnum


class BeaconState(StrEnum):
    """Scheduler state of a Beacon.

    Transitions:
        IDLE -> ARMED          first submit into an idle beacon
        ARMED -> FLUSHING      throttle timer fires with faults pending
        ARMED -> IDLE          timer fires with nothing to send
        FLUSHING -> ARMED      flush done, faults arrived during the request
        FLUSHING -> IDLE       flush done, nothing new to send
        any -> QUOTA_STOPPED   collector reported quotaReached (terminal)
    """

    IDLE = "idle"
    ARMED = "armed"
    FLUSHING = "flushing"
    QUOTA_STOPPED = "quota_stopped"
