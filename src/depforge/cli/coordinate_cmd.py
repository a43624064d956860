"""``depforge coordinate DESCRIPTION`` -- Parse and explain a coordinate.

Accepts the textual syntax used in build descriptors::

    group:name
    group:name:version
    group:name:classifiers:version
    group:name:classifiers:type:version
    group:name:classifiers:type:

Exit Codes:
    0 -- Description parsed.
    2 -- Malformed description.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from depforge.cli.output import print_coordinate
from depforge.core.model.coordinate import Coordinate
from depforge.core.resolution.repository import default_cache_root
from depforge.exceptions import CoordinateParseError


@click.command("coordinate")
@click.argument("description")
@click.option(
    "--cache-root",
    type=click.Path(file_okay=False),
    default=None,
    help="Artifact cache root used to compute paths (default: DEPFORGE_CACHE_DIR or ~/.depforge/cache).",
)
def coordinate_command(description: str, cache_root: str | None) -> None:
    """Show the module, version and artifacts of DESCRIPTION."""
    try:
        coordinate = Coordinate.parse(description)
    except CoordinateParseError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    print_coordinate(coordinate, Path(cache_root) if cache_root else default_cache_root())
