"""
Translation of lnd log lines into structured log records.

lnd writes lines of the form

    2024-01-01 00:00:00.000 [INF] RPCS: started

Lines that do not follow this shape (banners, stack traces, partial writes)
are dropped without error. A line that has the shape but an impossible
date, such as month 13, is still forwarded with timestamp None.
"""

import re
from dataclasses import dataclass
from datetime import datetime

from .log import Severity

CHILD_ORIGIN = "LND"

LOG_LINE_RE = re.compile(
    r"^(?P<timestamp>[0-9]{4}-[0-9]{2}-[0-9]{2} [0-9]{2}:[0-9]{2}:[0-9]{2}\.[0-9]{3})"
    r" \[(?P<level>[A-Z]{3})\]"
    r" (?P<subsystem>[A-Z][A-Z0-9]*):"
    r" (?P<text>.+)$"
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

LEVEL_CODES = {
    "TRC": Severity.TRACE,
    "DBG": Severity.DEBUG,
    "INF": Severity.INFO,
    "WRN": Severity.WARN,
    "ERR": Severity.ERROR,
    "CRT": Severity.FATAL,
}


@dataclass(frozen=True)
class LogRecord:
    """One structured log line from the child process."""

    timestamp: datetime | None
    severity: Severity
    subsystem: str
    message: str
    origin: str = CHILD_ORIGIN


class LogTranslator:
    """Parses raw lnd output lines. Holds no state between calls."""

    def __init__(self, origin: str = CHILD_ORIGIN):
        self.origin = origin

    def parse(self, line: str) -> LogRecord | None:
        """Return the LogRecord for line, or None if it does not match."""
        match = LOG_LINE_RE.match(line.rstrip("\r\n"))
        if not match:
            return None

        severity = LEVEL_CODES.get(match.group("level"))
        if severity is None:
            return None

        try:
            timestamp = datetime.strptime(match.group("timestamp"), TIMESTAMP_FORMAT)
        except ValueError:
            timestamp = None

        return LogRecord(
            timestamp=timestamp,
            severity=severity,
            subsystem=match.group("subsystem"),
            message=match.group("text"),
            origin=self.origin,
        )

    __call__ = parse


def parse_line(line: str) -> LogRecord | None:
    return LogTranslator().parse(line)
