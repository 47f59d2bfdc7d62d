"""
Error types raised by the supervisor core.

Every fatal condition derives from ConduitError so the entry point can log it
once and exit non-zero. A version query is not an error and has no exception
here; see RunOutcome in orchestrator.py.
"""


class ConduitError(Exception):
    """Base class for fatal supervisor errors."""


class NotFound(ConduitError):
    """The child executable could not be resolved on PATH."""

    def __init__(self, binary: str):
        self.binary = binary
        super().__init__(f"{binary} command not found. Please install {binary} to use conduit")


class SpawnFailed(ConduitError):
    """The child process or its output pipe could not be created."""

    def __init__(self, binary: str, reason: Exception | str):
        self.binary = binary
        self.reason = reason
        super().__init__(f"could not start {binary}: {reason}")


class ChildExited(ConduitError):
    """The child exited while still being supervised."""

    def __init__(self, binary: str, outcome):
        self.binary = binary
        self.outcome = outcome
        super().__init__(f"{binary} exited unexpectedly ({outcome.describe()})")


class UnknownLogLevel(ConduitError, ValueError):
    """A log level name outside the supported set."""

    def __init__(self, level: str):
        self.level = level
        super().__init__(f"log level {level} not found")
