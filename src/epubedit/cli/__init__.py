# ABOUTME: CLI package for epubedit, built on Click.
# ABOUTME: Defines the root command group, log verbosity, and registers subcommands.

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from epubedit.cli.commands import batch_cmd, check_cmd, edit_cmd, inspect_cmd, rename_cmd

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def _configure_logging(verbosity: int) -> None:
    """Route epubedit log records to stderr through rich."""
    level = _LEVELS.get(verbosity, logging.DEBUG)
    package_logger = logging.getLogger("epubedit")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)

    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setLevel(level)
    package_logger.addHandler(handler)
    if verbosity:
        package_logger.setLevel(level)


@click.group()
@click.version_option(package_name="epubedit")
@click.option("-v", "--verbose", count=True, help="Show more log output (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """epubedit - edit EPUB metadata and covers without breaking the book."""
    _configure_logging(verbose)


cli.add_command(inspect_cmd.inspect)
cli.add_command(edit_cmd.edit)
cli.add_command(batch_cmd.batch)
cli.add_command(check_cmd.check)
cli.add_command(rename_cmd.rename)
