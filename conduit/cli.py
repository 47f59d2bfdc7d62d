"""
Command-line entry point for the conduit daemon.

Unknown options are passed through to lnd untouched, e.g.

    conduit --console-output --bitcoin.testnet --bitcoin.node=neutrino
"""

import logging
from pathlib import Path
from typing import Optional

import typer

from . import __version__
from .config import load_config
from .errors import ConduitError, UnknownLogLevel
from .log import init_logging
from .orchestrator import Orchestrator, RunOutcome
from .shutdown import shutdown_signal

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="conduit",
    help="Conduit plugin manager: supervises lnd and captures its logs.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"conduit version {__version__}")
        raise typer.Exit()


def fatal(message: str) -> None:
    typer.echo(f"[conduit] {message}", err=True)
    raise typer.Exit(code=1)


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def run(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", callback=version_callback, is_eager=True,
        help="Display version information and exit",
    ),
    lnd_version: bool = typer.Option(
        False, "--lnd-version", "-V", help="Display lnd version information and exit",
    ),
    conduit_dir: Optional[Path] = typer.Option(
        None, "--conduitdir", help="Directory for conduit's config and log files",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--configfile", "-C", help="Path to configuration file",
    ),
    console_output: Optional[bool] = typer.Option(
        None, "--console-output/--no-console-output", help="Whether conduit prints the log to the console",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Minimum log level"),
    shutdown_timeout: Optional[float] = typer.Option(
        None, "--shutdown-timeout", help="Seconds to wait for lnd to stop before killing it",
    ),
) -> None:
    """Start lnd and supervise it until interrupted."""
    config = load_config(
        conduit_dir=conduit_dir,
        config_file=config_file,
        lnd_show_version=lnd_version or None,
        console_output=console_output,
        log_level=log_level,
        shutdown_timeout=shutdown_timeout,
        lnd_extra_args=tuple(ctx.args) or None,
    )

    try:
        init_logging(config)
    except (OSError, UnknownLogLevel) as e:
        fatal(f"could not initialize logging: {e}")

    shutdown_signal.install_signal_handlers()
    orchestrator = Orchestrator(config, shutdown=shutdown_signal)

    try:
        outcome = orchestrator.run()
    except ConduitError as e:
        logger.error(f"{e}")
        fatal(str(e))

    if outcome is RunOutcome.SHUTDOWN:
        logger.info(f"Shutdown complete, {orchestrator.records_forwarded} lnd log records captured")


def main():
    app()


if __name__ == "__main__":
    main()
