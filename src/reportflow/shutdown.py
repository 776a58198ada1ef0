"""Cooperative shutdown coordination.

A :class:`ShutdownCoordinator` is a process-wide cancellation token. Signal
handlers set it; the report engine and the worker consult it at every stage
boundary and before every prompt, so in-flight work unwinds at the next
checkpoint instead of being interrupted mid-call.

Example:
    >>> coordinator = get_shutdown_coordinator()
    >>> coordinator.install_signal_handlers(worker.close, grace_period=5.0)
    >>> ...
    >>> coordinator.check()  # raises ShutdownError once a signal arrived
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import threading
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

SHUTDOWN_MESSAGE = "Operation cancelled - shutting down"


class ShutdownError(Exception):
    """Raised at a checkpoint once shutdown has been requested."""

    def __init__(self, message: str = SHUTDOWN_MESSAGE):
        super().__init__(message)


def is_shutdown_error(error: BaseException) -> bool:
    """Return True if ``error`` signals cooperative cancellation.

    Typed errors are authoritative. Message matching covers errors raised by
    code that wraps the original exception in its own type.
    """
    if isinstance(error, ShutdownError):
        return True
    return "shutting down" in str(error)


class ShutdownCoordinator:
    """Process-wide cooperative cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._signals_received = 0
        self._lock = threading.Lock()
        self._exit: Callable[[int], Any] = os._exit

    @property
    def is_shutting_down(self) -> bool:
        return self._event.is_set()

    def request_shutdown(self) -> None:
        self._event.set()

    def set_shutdown(self, value: bool) -> None:
        if value:
            self._event.set()
        else:
            self._event.clear()

    def reset(self) -> None:
        """Clear the flag and the signal counter."""
        with self._lock:
            self._signals_received = 0
        self._event.clear()

    def check(self) -> None:
        """Raise :class:`ShutdownError` if shutdown was requested."""
        if self._event.is_set():
            raise ShutdownError()

    def install_signal_handlers(
        self,
        on_shutdown: Callable[[], Awaitable[None]] | None = None,
        *,
        grace_period: float = 5.0,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        """Install SIGINT/SIGTERM handlers on the running event loop.

        The first signal sets the flag and runs ``on_shutdown`` bounded by
        ``grace_period`` seconds before exiting. A second signal exits
        immediately with status 1.
        """
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            loop.add_signal_handler(
                sig,
                lambda s=sig: self.handle_signal(s, on_shutdown, grace_period, loop),
            )

    def handle_signal(
        self,
        sig: int,
        on_shutdown: Callable[[], Awaitable[None]] | None,
        grace_period: float,
        loop: asyncio.AbstractEventLoop,
    ) -> asyncio.Task[None] | None:
        """Process one termination signal.

        Returns the task that runs the graceful shutdown on first receipt.
        """
        with self._lock:
            self._signals_received += 1
            repeated = self._signals_received > 1 or self.is_shutting_down

        try:
            name = signal.Signals(sig).name
        except ValueError:
            name = str(sig)

        if repeated:
            logger.warning(f"{name} received again, forcing exit")
            self._exit(1)
            return None

        self.request_shutdown()
        logger.info(f"{name} received, shutdown flag set; waiting up to {grace_period}s")
        return loop.create_task(self._graceful_exit(on_shutdown, grace_period))

    async def _graceful_exit(
        self,
        on_shutdown: Callable[[], Awaitable[None]] | None,
        grace_period: float,
    ) -> None:
        status = 0
        if on_shutdown is not None:
            try:
                await asyncio.wait_for(on_shutdown(), timeout=grace_period)
                logger.info("Closed gracefully")
            except asyncio.TimeoutError:
                logger.warning("Grace period elapsed, forcing exit")
                status = 1
            except Exception:
                logger.exception("Error during graceful shutdown")
                status = 1
        self._exit(status)


# =============================================================================
# Process default
# =============================================================================

_default_coordinator = ShutdownCoordinator()


def get_shutdown_coordinator() -> ShutdownCoordinator:
    return _default_coordinator


def set_shutdown(value: bool) -> None:
    _default_coordinator.set_shutdown(value)


def is_shutting_down() -> bool:
    return _default_coordinator.is_shutting_down


def check_shutdown() -> None:
    _default_coordinator.check()
