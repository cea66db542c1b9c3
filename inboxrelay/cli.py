"""
inboxrelay CLI

Launcher for the bridge. A browser starts native messaging hosts with
extra arguments (the caller's origin, and --parent-window on Windows);
those are accepted and logged but not interpreted.

Usage:
    inboxrelay
    inboxrelay --log-level DEBUG
    python -m inboxrelay

Configuration comes from the environment, see inboxrelay.config.
"""

import logging
from typing import Tuple

import click

from . import __version__
from .config import get_config
from .logs import configure_logging
from .service import RelayService

log = logging.getLogger(__name__)


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True}
)
@click.version_option(version=__version__, prog_name="inboxrelay")
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    help="Diagnostic log level (default: INFO)"
)
@click.argument("caller", nargs=-1, type=click.UNPROCESSED)
def main(log_level: str, caller: Tuple[str, ...]):
    """Relay commands between the inbox file and the peer on stdin/stdout."""
    config = get_config()
    configure_logging(config.log_file, log_level)

    if caller:
        log.info("Launched by %s", " ".join(caller))
    log.info("Command file: %s", config.command_path)
    log.info("Output file: %s", config.output_path)

    try:
        RelayService(config).run()
    except Exception:
        log.exception("Critical error")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
