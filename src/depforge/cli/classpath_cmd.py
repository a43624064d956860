"""``depforge classpath [PATH]`` -- Print the resolved files of a project.

Files are printed in tree order, joined with the platform path separator,
ready to be used as a class path.

Exit Codes:
    0 -- Files printed.
    1 -- Resolution reported errors (with ``--fail``, the default here).
    2 -- No build descriptor, or an invalid one.
"""

from __future__ import annotations

import os
import sys

import click

from depforge.cli.resolve_cmd import fetch, load_or_exit


@click.command("classpath")
@click.argument("path", type=click.Path(exists=True), default=".")
@click.option(
    "--scope", "-s", "scope_names",
    multiple=True,
    help="Scope to collect files for (repeatable). Default: every declared scope.",
)
@click.option(
    "--fail/--no-fail",
    default=True,
    help="Exit with code 1 when errors are reported (default: fail).",
)
def classpath_command(path: str, scope_names: tuple[str, ...], fail: bool) -> None:
    """Print the files of the resolved dependencies of PATH.

    Exit code 0 on success, 1 on resolution errors, 2 on descriptor errors.
    """
    config, scopes = load_or_exit(path, scope_names)
    result = fetch(config, scopes)
    if fail and result.error_report.has_errors:
        click.echo(str(result.error_report), err=True)
        sys.exit(1)
    files: dict[str, None] = {}
    if scopes:
        for scope in scopes:
            files.update(dict.fromkeys(str(f) for f in result.files(scope)))
    else:
        files.update(dict.fromkeys(str(f) for f in result.files()))
    click.echo(os.pathsep.join(files))
