"""
Supervision loop tying the child process, log translation and shutdown
together.

The calling thread watches the shutdown signal while a second thread drains
lnd's stdout through the translator into the log sink. On shutdown the child
is asked to exit, which closes its stdout and unblocks the drain thread; the
drain thread is joined before the child is reaped so nothing reads from a
pipe whose process is being waited on.

Escalation: if lnd or anything left in its process group keeps the output
open for longer than config.shutdown_timeout, the group is killed. Callers wanting a different policy can pass their own
ProcessSupervisor subclass and override terminate()/kill().
"""

import logging
import subprocess
import threading
from enum import Enum
from typing import Callable, Iterable

from .errors import ChildExited, ConduitError
from .log import forward_record, new_sub_logger
from .process import ExitOutcome, ProcessSupervisor
from .shutdown import ShutdownSignal, shutdown_signal
from .translator import LogRecord, LogTranslator

log = new_sub_logger("SPVR", logging.getLogger(__name__))


class OrchestratorState(Enum):
    STARTING = "starting"
    SUPERVISING = "supervising"
    SHUTTING_DOWN = "shutting_down"


class RunOutcome(Enum):
    VERSION_REQUESTED = "version_requested"
    SHUTDOWN = "shutdown"


def drain(
    lines: Iterable[str],
    translator: LogTranslator,
    sink: Callable[[LogRecord], None],
    shutdown: ShutdownSignal,
) -> int:
    """Forward translated lines to sink until the lines run out or shutdown.

    The shutdown check runs after every read, so at most the line already
    read when shutdown fires is discarded. Returns the number of records
    forwarded.
    """
    forwarded = 0
    for line in lines:
        if shutdown.is_requested():
            break
        record = translator.parse(line)
        if record is None:
            continue
        sink(record)
        forwarded += 1
    return forwarded


class Orchestrator:
    """Runs one supervision of lnd from start to shutdown."""

    def __init__(
        self,
        config,
        supervisor: ProcessSupervisor | None = None,
        shutdown: ShutdownSignal | None = None,
        translator: LogTranslator | None = None,
        sink: Callable[[LogRecord], None] = forward_record,
    ):
        self.config = config
        self.supervisor = supervisor or ProcessSupervisor(config.lnd_binary)
        self.shutdown = shutdown or shutdown_signal
        self.translator = translator or LogTranslator()
        self.sink = sink
        self.records_forwarded = 0
        self._state = OrchestratorState.STARTING
        self._drain_error: BaseException | None = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def run(self) -> RunOutcome:
        """Supervise lnd until shutdown.

        Returns RunOutcome.VERSION_REQUESTED after a version query and
        RunOutcome.SHUTDOWN after a requested stop. Raises NotFound,
        SpawnFailed or ChildExited on fatal conditions.
        """
        try:
            return self._run()
        except ConduitError:
            # the error itself is reported once, by the caller
            self.shutdown.request_shutdown("fatal error")
            raise
        finally:
            self._state = OrchestratorState.SHUTTING_DOWN
            if self.shutdown.is_requested():
                self.shutdown.mark_drained()

    def _run(self) -> RunOutcome:
        self._state = OrchestratorState.STARTING
        path = self.supervisor.locate()
        log.debug(f"Found {self.supervisor.binary} at {path}")

        if self.config.lnd_show_version:
            self.supervisor.run_version_query()
            log.info(f"{self.supervisor.binary} --version called. Gracefully exiting now...")
            return RunOutcome.VERSION_REQUESTED

        lines = self.supervisor.start(self.config.lnd_args())
        self._state = OrchestratorState.SUPERVISING

        drain_thread = threading.Thread(
            target=self._drain,
            args=(lines,),
            name="lnd-drain",
            daemon=True,
        )
        drain_thread.start()

        # lnd may die while a descendant still holds its stdout open, so
        # watch the process as well as the drain thread
        while not self.shutdown.wait(self.config.poll_interval):
            if not drain_thread.is_alive() or not self.supervisor.is_running():
                break

        try:
            self._state = OrchestratorState.SHUTTING_DOWN
            if self.shutdown.is_requested():
                outcome = self._stop(drain_thread)
                log.info(f"{self.supervisor.binary} stopped after shutdown request ({outcome.describe()})")
                return RunOutcome.SHUTDOWN

            # lnd exited or closed its output on its own
            outcome = self._stop(drain_thread)
            if self._drain_error is not None:
                raise ConduitError(f"log drain failed: {self._drain_error}") from self._drain_error
            raise ChildExited(self.supervisor.binary, outcome)
        finally:
            if not drain_thread.is_alive():
                lines.close()

    def _drain(self, lines):
        try:
            self.records_forwarded = drain(lines, self.translator, self.sink, self.shutdown)
        except Exception as e:
            log.exception(f"Error draining {self.supervisor.binary} output")
            self._drain_error = e

    def _stop(self, drain_thread: threading.Thread) -> ExitOutcome:
        """Ask lnd's process group to exit, join the drain thread, then reap lnd.

        Escalates to SIGKILL for the whole group when the output stays open
        past shutdown_timeout. If something outside the group still holds the
        pipe after that, the reader is abandoned; it forwards nothing more
        once shutdown has been requested.
        """
        timeout = self.config.shutdown_timeout
        self.supervisor.stop()
        drain_thread.join(timeout)
        if drain_thread.is_alive():
            log.warning(f"{self.supervisor.binary} output still open after {timeout}s, killing it")
            self.supervisor.kill()
            drain_thread.join(timeout)
        if drain_thread.is_alive():
            self.shutdown.request_shutdown("output held open")
            log.error(f"{self.supervisor.binary} output is held open by another process, abandoning the reader")
        return self._reap()

    def _reap(self) -> ExitOutcome:
        try:
            return self.supervisor.wait(timeout=self.config.shutdown_timeout)
        except subprocess.TimeoutExpired:
            log.warning(f"{self.supervisor.binary} did not exit after {self.config.shutdown_timeout}s, killing it")
            self.supervisor.kill()
            return self.supervisor.wait()
