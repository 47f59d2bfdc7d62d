"""
Logging setup for conduit.

Every record carries two structured fields, ``origin`` (which process the
message came from) and ``subsystem`` (a short uppercase code), so conduit's
own messages and the ones translated from lnd can share one log file.
"""

import logging
from enum import Enum
from logging.handlers import RotatingFileHandler

from .errors import UnknownLogLevel

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

ORIGIN = "conduit"
SUBSYSTEM = "CNDT"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(origin)s/%(subsystem)s: %(message)s"

logger = logging.getLogger("conduit")


class Severity(Enum):
    """Canonical severity levels, valued by their stdlib logging level."""

    TRACE = TRACE
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARN = logging.WARNING
    ERROR = logging.ERROR
    # logged as CRITICAL, never exits the process
    FATAL = logging.CRITICAL


LEVEL_NAMES = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
    "CRITICAL": logging.CRITICAL,
    "PANIC": logging.CRITICAL,
}


def level_from_name(name: str) -> int:
    """Resolve a level name to a logging level, raising UnknownLogLevel."""
    try:
        return LEVEL_NAMES[name.upper()]
    except KeyError:
        raise UnknownLogLevel(name) from None


class FieldDefaults(logging.Filter):
    """Fill in origin/subsystem for records that were logged without them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "origin"):
            record.origin = ORIGIN
        if not hasattr(record, "subsystem"):
            record.subsystem = SUBSYSTEM
        return True


def init_logging(config) -> logging.Logger:
    """Configure the conduit logger from config.

    Always logs to the rotating log file in the conduit directory; also logs
    to the console when console_output is set. Calling it again replaces the
    handlers installed by the previous call.
    """
    level = level_from_name(config.log_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    defaults = FieldDefaults()

    # Rotating file handler
    config.ensure_dirs()
    file_handler = RotatingFileHandler(
        config.log_file,
        maxBytes=config.log_max_bytes,
        backupCount=config.log_backup_count,
    )
    file_handler.setFormatter(formatter)
    file_handler.addFilter(defaults)
    logger.addHandler(file_handler)

    # Console handler
    if config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.addFilter(defaults)
        logger.addHandler(console_handler)

    logger.setLevel(level)
    return logger


class SubLogger(logging.LoggerAdapter):
    """A logger bound to one subsystem code."""

    def __init__(self, base: logging.Logger, subsystem: str, origin: str = ORIGIN):
        super().__init__(base, {"subsystem": subsystem, "origin": origin})
        self.subsystem = subsystem

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def log_with_errors(self, level: str, msg: str):
        """Log msg at the named level. Unknown names are logged and raised."""
        try:
            lvl = level_from_name(level)
        except UnknownLogLevel:
            self.error(f"Log level {level} not found.")
            raise
        self.log(lvl, msg)

    def log_named(self, level: str, msg: str):
        """Like log_with_errors, but never raises."""
        try:
            self.log_with_errors(level, msg)
        except UnknownLogLevel:
            pass


def new_sub_logger(subsystem: str, base: logging.Logger | None = None) -> SubLogger:
    return SubLogger(base or logger, subsystem)


def forward_record(record, target: logging.Logger | None = None):
    """Emit one translated child LogRecord through the logging system."""
    target = target or logging.getLogger("conduit.lnd")
    target.log(
        record.severity.value,
        record.message,
        extra={
            "origin": record.origin,
            "subsystem": record.subsystem,
            "child_time": record.timestamp,
        },
    )
