# src/beacon/records.py
"""Fault records and the collector wire format.

A FaultRecord is the normalized form of one captured error: a message and
an optional stack trace. The same normalization is used for hook-delivered
faults and for explicit submissions, so the collector cannot tell them apart.

Wire format (one POST per batch):

    {"errors": [{"errorMessage": str, "stack": str, "browser": {"name": str, "version": str}}, ...]}

The "stack" key is omitted for records without a stack.
"""

from __future__ import annotations

import traceback
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any


def _format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


@dataclass(frozen=True, slots=True)
class ClientDescriptor:
    """Static description of the reporting client, shared by every batch."""

    name: str
    version: str

    def to_wire(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version}


@dataclass(frozen=True, slots=True)
class FaultRecord:
    """One captured error.

    Attributes:
        message: Human-readable error message
        stack: Formatted stack trace, if one was available
    """

    message: str
    stack: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> FaultRecord:
        """Normalize an exception into a record.

        The message is str(exc); exceptions raised without arguments fall
        back to their class name so the record is never blank.
        """
        message = str(exc) or type(exc).__name__
        return cls(message=message, stack=_format_stack(exc))

    @classmethod
    def from_rejection(cls, reason: object, handle: object) -> FaultRecord:
        """Normalize an unhandled asynchronous failure.

        Args:
            reason: Exception (or any object) the operation failed with
            handle: The pending operation (task, future) that failed
        """
        stack = _format_stack(reason) if isinstance(reason, BaseException) else None
        return cls(
            message=f"Unhandled Rejection at: {handle}, reason: {reason}",
            stack=stack,
        )

    def to_wire(self, client: ClientDescriptor) -> dict[str, Any]:
        entry: dict[str, Any] = {"errorMessage": self.message}
        if self.stack is not None:
            entry["stack"] = self.stack
        entry["browser"] = client.to_wire()
        return entry


def build_batch_payload(records: Iterable[FaultRecord], client: ClientDescriptor) -> dict[str, Any]:
    """Build the request body for one batch, preserving record order."""
    return {"errors": [record.to_wire(client) for record in records]}
