"""depforge CLI -- Transitive dependency resolution for multi-module builds.

Entry point for the ``depforge`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    resolve    -- Resolve a project's dependencies and show the tree.
    classpath  -- Print the resolved files of a project.
    coordinate -- Parse a textual coordinate and show its parts.

Usage::

    depforge resolve                         # depforge.yaml in the current directory
    depforge resolve ./webapp -s test
    depforge resolve ./webapp --strategy fail --format json
    depforge classpath ./webapp -s runtime
    depforge coordinate org.acme:core:sources:1.0
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from depforge import __version__
from depforge.cli.classpath_cmd import classpath_command
from depforge.cli.coordinate_cmd import coordinate_command
from depforge.cli.resolve_cmd import resolve_command


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """depforge: Transitive dependency resolution for multi-module builds.

    Resolve module dependencies declared in depforge.yaml against local
    and Maven repositories, reconcile version conflicts, and report what
    could not be resolved.
    """
    _configure_logging(verbose)


# Register all subcommands
cli.add_command(resolve_command)
cli.add_command(classpath_command)
cli.add_command(coordinate_command)
