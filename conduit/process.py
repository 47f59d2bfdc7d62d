"""
Process supervisor for the lnd child process.

Locates the binary, runs the one-shot version query, or starts lnd for the
long run and hands its stdout back as a stream of lines. A supervisor
instance owns at most one child for its whole life.
"""

import logging
import os
import shutil
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator

import psutil

from .errors import NotFound, SpawnFailed

logger = logging.getLogger(__name__)

VERSION_ARGS = ("--version",)


@dataclass(frozen=True)
class ExitOutcome:
    """How the child process ended."""

    returncode: int

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def signal(self) -> str | None:
        """Name of the terminating signal, if the child was killed by one."""
        if self.returncode >= 0:
            return None
        try:
            return signal.Signals(-self.returncode).name
        except ValueError:
            return f"signal {-self.returncode}"

    def describe(self) -> str:
        if self.signal:
            return f"killed by {self.signal}"
        return f"exit code {self.returncode}"


@dataclass
class ProcessHandle:
    """Information about the running child."""

    pid: int
    pgid: int
    process: subprocess.Popen
    started_at: datetime = field(default_factory=datetime.now)
    outcome: ExitOutcome | None = None


@dataclass(frozen=True)
class VersionRequested:
    """Result of a version query: the run is finished, successfully."""

    line: str
    outcome: ExitOutcome


class LineStream:
    """Decoded lines from a child's stdout pipe, without line endings."""

    def __init__(self, stream):
        self._stream = stream

    def __iter__(self) -> Iterator[str]:
        for raw in iter(self._stream.readline, b""):
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def close(self):
        try:
            self._stream.close()
        except OSError as e:
            logger.debug(f"Error closing output stream: {e}")


class ProcessSupervisor:
    """Owns the lifecycle of one lnd child process."""

    def __init__(
        self,
        binary: str = "lnd",
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self.binary = binary
        self._popen = popen
        self._which = which
        self._path: str | None = None
        self._handle: ProcessHandle | None = None
        self._used = False
        self._descendants: list[psutil.Process] = []
        self._lock = threading.Lock()

    @property
    def pid(self) -> int | None:
        return self._handle.pid if self._handle else None

    def locate(self) -> str:
        """Resolve the binary on PATH. Raises NotFound."""
        path = self._which(self.binary)
        if not path:
            raise NotFound(self.binary)
        self._path = path
        return path

    def _claim(self):
        with self._lock:
            if self._used:
                raise RuntimeError(f"{self.binary} supervisor already used, create a new one")
            self._used = True

    def run_version_query(self, args=VERSION_ARGS, out=None) -> VersionRequested:
        """Run `<binary> --version`, echo its first line and wait for it to exit."""
        path = self._path or self.locate()
        self._claim()

        try:
            process = self._popen([path, *args], stdout=subprocess.PIPE)
        except (OSError, ValueError) as e:
            raise SpawnFailed(self.binary, e) from e

        with process:
            line = process.stdout.readline().decode("utf-8", errors="replace").rstrip("\r\n")
            print(line, file=out or sys.stdout)
            # keep reading so the child never blocks on a full pipe
            for _ in iter(process.stdout.readline, b""):
                pass
            outcome = ExitOutcome(process.wait())

        if not outcome.success:
            logger.warning(f"{self.binary} version query ended with {outcome.describe()}")
        return VersionRequested(line=line, outcome=outcome)

    def start(self, args) -> LineStream:
        """Start the child for supervision and return its stdout lines.

        Returns as soon as the process is spawned. Raises SpawnFailed, in
        which case no child is left running.
        """
        path = self._path or self.locate()
        self._claim()

        try:
            process = self._popen(
                [path, *args],
                stdout=subprocess.PIPE,
                start_new_session=True,  # Create new process group
            )
        except (OSError, ValueError) as e:
            raise SpawnFailed(self.binary, e) from e

        if process.stdout is None:
            process.kill()
            process.wait()
            raise SpawnFailed(self.binary, "no stdout pipe")

        self._handle = ProcessHandle(pid=process.pid, pgid=process.pid, process=process)
        logger.info(f"Started {self.binary} with PID {process.pid}")
        return LineStream(process.stdout)

    def is_running(self) -> bool:
        """Check if the child is still alive."""
        if not self._handle:
            return False
        return self._handle.process.poll() is None

    def wait(self, timeout: float | None = None) -> ExitOutcome:
        """Block until the child exits.

        Raises subprocess.TimeoutExpired if timeout elapses first. Only call
        this once nothing is reading the child's stdout any more.
        """
        if not self._handle:
            raise RuntimeError(f"{self.binary} was never started")

        returncode = self._handle.process.wait(timeout=timeout)
        if self._handle.outcome is None:
            self._handle.outcome = ExitOutcome(returncode)
            logger.info(f"{self.binary} (PID {self._handle.pid}) exited with {self._handle.outcome.describe()}")
        return self._handle.outcome

    def _signal_group(self, sig: signal.Signals):
        # start_new_session makes lnd the leader of its own group; the group
        # outlives lnd for as long as any descendant stays in it
        try:
            os.killpg(self._handle.pgid, sig)
        except (ProcessLookupError, PermissionError):
            pass

    def _remember_descendants(self):
        if not self.is_running():
            return
        try:
            children = psutil.Process(self._handle.pid).children(recursive=True)
        except psutil.NoSuchProcess:
            return
        known = {proc.pid for proc in self._descendants}
        self._descendants.extend(proc for proc in children if proc.pid not in known)

    def stop(self):
        """Ask the child and its process group to exit (SIGTERM). Does not wait."""
        if not self._handle:
            return
        self._remember_descendants()
        self._signal_group(signal.SIGTERM)

    def kill(self):
        """Forcefully kill the child and everything it spawned.

        Works after lnd itself has exited too: whatever is left of its
        process group, and any descendant seen by stop(), is killed.
        """
        if not self._handle:
            return
        self._remember_descendants()
        self._signal_group(signal.SIGKILL)

        # children that moved to their own process group
        for proc in self._descendants:
            try:
                proc.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                pass

    def terminate(self, timeout: float = 10) -> ExitOutcome:
        """Stop the child, escalating to kill if it outlives timeout."""
        self.stop()
        try:
            return self.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.binary} did not stop gracefully, forcing kill")
            self.kill()
            return self.wait(timeout=5)
