"""
Conduit - a supervisor for the lnd node daemon.

Starts lnd as a child process, translates its log output into structured
log records and coordinates a graceful shutdown between itself and the
child.
"""

__version__ = "0.1.0"
