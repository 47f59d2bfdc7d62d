"""
Process-wide shutdown coordination.

A ShutdownSignal fires at most once, either because the OS delivered
SIGINT/SIGTERM or because some component asked for it. Any number of threads
can wait on it; once fired it stays fired. It never stops anything itself,
it only tells the other components to begin an orderly stop.
"""

import logging
import signal
import threading
from enum import Enum

logger = logging.getLogger(__name__)


class ShutdownState(Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    DRAINED = "drained"


class ShutdownSignal:
    """Idempotent, broadcast-once shutdown notification."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._state = ShutdownState.IDLE
        self._reason: str | None = None

    @property
    def state(self) -> ShutdownState:
        with self._lock:
            return self._state

    @property
    def reason(self) -> str | None:
        return self._reason

    def request_shutdown(self, reason: str | None = None) -> bool:
        """Request shutdown. Returns True only for the call that fired it."""
        with self._lock:
            if self._state is not ShutdownState.IDLE:
                return False
            self._state = ShutdownState.REQUESTED
            self._reason = reason
        logger.info(f"Shutdown requested{f' ({reason})' if reason else ''}")
        self._event.set()
        return True

    def done(self) -> threading.Event:
        """The notification itself; set once shutdown has been requested."""
        return self._event

    def is_requested(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until shutdown is requested or timeout elapses."""
        return self._event.wait(timeout)

    def mark_drained(self):
        """Record that the orchestrator has stopped all log draining."""
        with self._lock:
            if self._state is ShutdownState.IDLE:
                raise RuntimeError("cannot mark drained before shutdown was requested")
            self._state = ShutdownState.DRAINED

    def install_signal_handlers(self, signals=(signal.SIGINT, signal.SIGTERM)):
        """Route OS termination signals to request_shutdown.

        Must be called from the main thread.
        """

        def handler(signum, frame):
            name = signal.Signals(signum).name
            if not self.request_shutdown(f"received {name}"):
                logger.info(f"Received {name}, already shutting down")

        for sig in signals:
            signal.signal(sig, handler)


# Global shutdown signal instance
shutdown_signal = ShutdownSignal()
