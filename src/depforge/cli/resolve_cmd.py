"""``depforge resolve [PATH]`` -- Resolve a project's dependency tree.

Loads the build descriptor at PATH, resolves its dependencies for the
requested scopes and prints the resolved tree, versions and error report.

Exit Codes:
    0 -- Resolution succeeded (or errors were reported with ``--no-fail``).
    1 -- Resolution reported errors.
    2 -- No build descriptor, or an invalid one.
"""

from __future__ import annotations

import json
import sys
from dataclasses import replace

import click

from depforge.cli.output import print_resolve_result
from depforge.config import BuildConfig, load_build_config
from depforge.core.management import DependencyManagement
from depforge.core.model.coordinate import ConflictStrategy
from depforge.core.model.scope import Scope
from depforge.core.resolution.result import ResolveResult
from depforge.exceptions import DepforgeError, ResolutionError


def load_or_exit(path: str, scope_names: tuple[str, ...]) -> tuple[BuildConfig, list[Scope]]:
    """Load the descriptor and look up scopes, exiting with code 2 on error."""
    try:
        config = load_build_config(path)
        scopes = [config.scope(name) for name in scope_names]
    except DepforgeError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    return config, scopes


def fetch(
    config: BuildConfig,
    scopes: list[Scope],
    strategy: str | None = None,
) -> ResolveResult:
    """Resolve the project, leaving the fail-on-error decision to the caller."""
    parameters = config.parameters
    if strategy:
        parameters = replace(parameters, conflict_strategy=ConflictStrategy(strategy))
    management = DependencyManagement(config.repositories, parameters, fail_on_error=False)
    management.set_dependencies(config.dependencies)
    try:
        return management.fetch_dependencies(*scopes)
    except ResolutionError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except DepforgeError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)


@click.command("resolve")
@click.argument("path", type=click.Path(exists=True), default=".")
@click.option(
    "--scope", "-s", "scope_names",
    multiple=True,
    help="Scope to resolve for (repeatable). Default: every declared scope.",
)
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in ConflictStrategy]),
    default=None,
    help="Conflict strategy, overriding the descriptor's.",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.option(
    "--fail/--no-fail",
    default=None,
    help="Exit with code 1 when errors are reported (default: the descriptor's fail_on_error).",
)
def resolve_command(
    path: str,
    scope_names: tuple[str, ...],
    strategy: str | None,
    output_format: str,
    fail: bool | None,
) -> None:
    """Resolve the dependencies declared in PATH (a depforge.yaml or its directory).

    Exit code 0 on success, 1 on resolution errors, 2 on descriptor errors.
    """
    config, scopes = load_or_exit(path, scope_names)
    result = fetch(config, scopes, strategy)

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_resolve_result(result, title=config.name)

    fail_on_error = config.fail_on_error if fail is None else fail
    sys.exit(1 if fail_on_error and result.error_report.has_errors else 0)
