"""Rich output formatting helpers for the depforge CLI.

Renders resolved dependency trees, version tables, error reports and
coordinate details with consistent styling:

    resolved = green, evicted = dim, problem = bold red, file = cyan
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from depforge.core.model.coordinate import Coordinate
from depforge.core.model.version import Version
from depforge.core.resolution.graph import FileNodeInfo, ModuleNodeInfo, ResolvedNode
from depforge.core.resolution.result import ErrorReport, ResolveResult

console = Console()


def version_kind(version: Version) -> str:
    """Classification label of a version."""
    if version.is_unspecified():
        return "unspecified"
    if version.is_dynamic():
        return "dynamic"
    if version.is_snapshot():
        return "snapshot"
    return "fixed"


def _node_label(info: ModuleNodeInfo | FileNodeInfo) -> Text:
    if isinstance(info, FileNodeInfo):
        if info.project:
            return Text.assemble(("project ", "bold magenta"), (info.project, "bold"))
        return Text(", ".join(str(f) for f in info.files), style="cyan")
    label = Text(str(info.module_id), style="bold")
    label.append(f":{info.declared_version}" if info.declared_version.value else ":?")
    if info.problem:
        label.append(f"  {info.problem}", style="bold red")
    elif info.evicted:
        label.stylize("dim")
        label.append(f" (evicted -> {info.resolved_version})", style="dim")
    elif info.declared_version != info.resolved_version:
        label.append(f" -> {info.resolved_version}", style="green")
    return label


def _add_children(tree: Tree, node: ResolvedNode) -> None:
    for child in node.children:
        branch = tree.add(_node_label(child.info))
        _add_children(branch, child)


def build_tree(result: ResolveResult, title: str = "dependencies") -> Tree:
    """A rich ``Tree`` mirroring the resolved dependency tree."""
    scopes = ", ".join(s.name for s in result.requested_scopes) or "all scopes"
    tree = Tree(Text.assemble((title, "bold"), (f"  [{scopes}]", "dim")))
    _add_children(tree, result.tree)
    return tree


def print_resolve_result(result: ResolveResult, title: str = "dependencies") -> None:
    """Print the tree, the resolved versions and the error report.

    Args:
        result: The resolution to display.
        title: Label of the tree root (usually the project name).
    """
    if not result.tree.children:
        console.print("[dim]No dependencies declared for the requested scopes.[/dim]")
        return
    console.print(build_tree(result, title))

    versions = result.resolved_versions
    if versions:
        table = Table(title="Resolved Versions", show_header=True, header_style="bold")
        table.add_column("Module", style="bold")
        table.add_column("Version")
        table.add_column("Kind", style="dim")
        for module_id, version in versions.items():
            table.add_row(str(module_id), str(version), version_kind(version))
        console.print(table)
    print_error_report(result.error_report)


def print_error_report(report: ErrorReport) -> None:
    """Print the error report, or a success panel when it is empty."""
    if not report.has_errors:
        console.print(
            Panel("[bold green]Resolution successful[/bold green]",
                  title="Dependency Resolution")
        )
        return
    console.print(
        Panel("[bold red]Resolution finished with errors[/bold red]",
              title="Dependency Resolution")
    )
    table = Table(show_header=True, header_style="bold")
    table.add_column("Module", style="bold")
    table.add_column("Requested")
    table.add_column("Kind", justify="center")
    table.add_column("Message")
    for problem in report:
        artifact = f" {problem.artifact}" if problem.artifact else ""
        table.add_row(
            str(problem.module_id) + artifact,
            problem.requested_version or "?",
            Text(problem.kind.value.upper(), style="bold red"),
            problem.message,
        )
    console.print(table)


def print_coordinate(coordinate: Coordinate, cache_root: Any = None) -> None:
    """Print the parts of a parsed coordinate and, when its version is
    concrete, the cache path of each requested artifact."""
    header = Text.assemble(
        ("Module: ", "bold"), (str(coordinate.module_id), ""),
        ("  Version: ", "bold"), (coordinate.version.value or "?", ""),
        ("  Kind: ", "bold"), (version_kind(coordinate.version), "dim"),
    )
    console.print(Panel(header, title="Coordinate"))

    table = Table(title="Artifacts", show_header=True)
    table.add_column("Classifier")
    table.add_column("Type")
    table.add_column("Cache Path", style="dim")
    for spec in coordinate.effective_artifact_specs:
        path = ""
        if cache_root is not None and coordinate.version.is_concrete():
            path = str(coordinate.cache_path(cache_root, spec))
        table.add_row(spec.classifier or "(main)", spec.type, path)
    console.print(table)

