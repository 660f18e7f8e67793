# src/beacon/sources.py
"""Fault sources the beacon subscribes to.

A fault source delivers two classes of events:

- on_fault: a synchronous fault that nothing caught
- on_unhandled_rejection: an asynchronous operation failed and nobody
  awaited or inspected its result

The Beacon registers one handler for each at construction. Registrations
last for the lifetime of the source; there is no unregistration path.

ProcessFaultSource binds to the real interpreter hooks. ManualFaultSource is
an in-process source that tests (or host frameworks with their own error
hooks) drive directly.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from collections.abc import Callable
from types import TracebackType
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

FaultHandler = Callable[[BaseException], None]
RejectionHandler = Callable[[object, object], None]

# Interpreter exits, not faults
_IGNORED_EXCEPTIONS: tuple[type[BaseException], ...] = (SystemExit, KeyboardInterrupt)


@runtime_checkable
class FaultSourceProtocol(Protocol):
    """Source of uncaught faults and unhandled asynchronous failures."""

    def on_fault(self, handler: FaultHandler) -> None:
        """Register handler for uncaught synchronous faults."""
        ...

    def on_unhandled_rejection(self, handler: RejectionHandler) -> None:
        """Register handler for unhandled asynchronous failures.

        The handler receives (reason, handle): the failure reason and the
        pending operation it belonged to.
        """
        ...


class ManualFaultSource:
    """Fault source driven by explicit calls.

    Example:
        source = ManualFaultSource()
        beacon = Beacon(endpoint, key, fault_source=source)
        source.raise_fault(RuntimeError("boom"))
    """

    def __init__(self) -> None:
        self._fault_handlers: list[FaultHandler] = []
        self._rejection_handlers: list[RejectionHandler] = []

    def on_fault(self, handler: FaultHandler) -> None:
        self._fault_handlers.append(handler)

    def on_unhandled_rejection(self, handler: RejectionHandler) -> None:
        self._rejection_handlers.append(handler)

    def raise_fault(self, exc: BaseException) -> None:
        for handler in self._fault_handlers:
            handler(exc)

    def reject(self, reason: object, handle: object) -> None:
        for handler in self._rejection_handlers:
            handler(reason, handle)

    @property
    def handler_count(self) -> int:
        return len(self._fault_handlers) + len(self._rejection_handlers)


class ProcessFaultSource:
    """Fault source bound to the interpreter's global hooks.

    Synchronous faults come from sys.excepthook (main thread) and
    threading.excepthook (other threads). Asynchronous failures come from
    the event loop's exception handler, which asyncio calls for tasks and
    futures whose exception was never retrieved.

    Previously installed hooks keep running after the beacon has seen the
    fault, so default tracebacks still reach stderr.

    Thread Safety:
        Hooks may fire on any thread. Deliveries from a thread other than
        the loop's are hopped onto the loop with call_soon_threadsafe, so
        handlers always run on the loop thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._fault_handlers: list[FaultHandler] = []
        self._rejection_handlers: list[RejectionHandler] = []
        self._sys_hook_installed = False
        self._loop_hook_installed = False

    def on_fault(self, handler: FaultHandler) -> None:
        self._fault_handlers.append(handler)
        if not self._sys_hook_installed:
            self._install_sys_hooks()

    def on_unhandled_rejection(self, handler: RejectionHandler) -> None:
        self._rejection_handlers.append(handler)
        if not self._loop_hook_installed:
            self._install_loop_hook()

    # =========================================================================
    # Hook installation
    # =========================================================================

    def _install_sys_hooks(self) -> None:
        previous_excepthook = sys.excepthook
        previous_threading_hook = threading.excepthook

        def _excepthook(
            exc_type: type[BaseException],
            exc: BaseException,
            tb: TracebackType | None,
        ) -> None:
            if not issubclass(exc_type, _IGNORED_EXCEPTIONS):
                self._deliver_fault(exc)
            previous_excepthook(exc_type, exc, tb)

        def _threading_hook(args: threading.ExceptHookArgs) -> None:
            if args.exc_value is not None and not issubclass(args.exc_type, _IGNORED_EXCEPTIONS):
                self._deliver_fault(args.exc_value)
            previous_threading_hook(args)

        sys.excepthook = _excepthook
        threading.excepthook = _threading_hook
        self._sys_hook_installed = True
        logger.debug("Installed process fault hooks")

    def _install_loop_hook(self) -> None:
        previous_handler = self._loop.get_exception_handler()

        def _loop_handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
            reason = context.get("exception") or context.get("message", "unknown error")
            handle = context.get("task") or context.get("future") or context.get("handle")
            self._deliver_rejection(reason, handle)
            if previous_handler is not None:
                previous_handler(loop, context)
            else:
                loop.default_exception_handler(context)

        self._loop.set_exception_handler(_loop_handler)
        self._loop_hook_installed = True
        logger.debug("Installed event loop exception handler")

    # =========================================================================
    # Delivery
    # =========================================================================

    def _on_loop_thread(self) -> bool:
        if self._loop.is_closed():
            return False
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _deliver_fault(self, exc: BaseException) -> None:
        for handler in self._fault_handlers:
            self._dispatch(handler, exc)

    def _deliver_rejection(self, reason: object, handle: object) -> None:
        for handler in self._rejection_handlers:
            self._dispatch(handler, reason, handle)

    def _dispatch(self, handler: Callable[..., None], *args: object) -> None:
        if self._on_loop_thread():
            handler(*args)
            return
        try:
            self._loop.call_soon_threadsafe(handler, *args)
        except RuntimeError:
            # Loop already closed - the interpreter is going down with it
            logger.debug("Event loop closed, fault not captured")
