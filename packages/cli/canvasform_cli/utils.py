from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

import typer
from canvasform.diagram import Finding
from rich.console import Console
from rich.table import Table
from rich.text import Text

_err_console = Console(stderr=True)


def handle_error(ctx: typer.Context, e: Exception) -> None:
    """Print a clean error message and exit 1."""
    import yaml
    from canvasform.compiler import SnapshotError

    verbose = ctx.obj.get("verbose", False) if ctx.obj else False
    json_mode = ctx.obj.get("json", False) if ctx.obj else False

    if isinstance(e, FileNotFoundError):
        msg = f"File not found: {e}"
    elif isinstance(e, yaml.YAMLError):
        msg = f"Invalid YAML: {e}"
    elif isinstance(e, SnapshotError):
        msg = f"Invalid diagram: {e}"
    elif "validation" in type(e).__name__.lower():
        msg = f"Invalid diagram: {e}"
    elif isinstance(e, ValueError):
        msg = str(e)
    else:
        msg = f"Error: {e}"

    if json_mode:
        print(json.dumps({"error": msg}))
    else:
        _err_console.print(f"[red]Error:[/red] {msg}")

    if verbose:
        _err_console.print_exception()

    raise typer.Exit(1)


def findings_table(findings: Sequence[Finding], title: str) -> Table:
    table = Table(title=title, show_lines=True)
    table.add_column("Severity", width=9)
    table.add_column("Code", style="cyan")
    table.add_column("Node / Edge")
    table.add_column("Message")

    for f in findings:
        sev = Text("error", style="bold red") if f.severity == "error" else Text("warning", style="yellow")
        table.add_row(sev, f.code, f.node_id or f.edge_id or "-", f.message)
    return table


def print_findings(console: Console, findings: Sequence[Finding], title: str) -> None:
    if not findings:
        console.print("[green][PASS][/green] No findings")
        return
    console.print(findings_table(findings, title))
    errors = [f for f in findings if f.severity == "error"]
    warns = [f for f in findings if f.severity == "warning"]
    console.print(
        f"\n[bold]{len(findings)} finding(s)[/bold]: "
        f"[red]{len(errors)} error(s)[/red], "
        f"[yellow]{len(warns)} warning(s)[/yellow]"
    )


def should_fail(findings: Sequence[Finding], strict: bool) -> bool:
    has_errors = any(f.severity == "error" for f in findings)
    has_warnings = any(f.severity == "warning" for f in findings)
    return has_errors or (strict and has_warnings)


def write_dir(dir_path: Path, files: dict[str, str]) -> None:
    dir_path.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        (dir_path / name).write_text(content)
