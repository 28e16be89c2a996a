"""Check a diagram for connection, type and generator problems without emitting HCL."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from canvasform_cli.utils import handle_error, print_findings, should_fail

console = Console()


def check(
    ctx: typer.Context,
    diagram_file: Annotated[
        Path | None, typer.Argument(help="Diagram YAML/JSON file (default: .canvasform/diagram.yaml)")
    ] = None,
    strict: Annotated[bool, typer.Option(help="Fail on warnings too")] = False,
) -> None:
    """Report findings for a diagram."""
    try:
        from canvasform.compiler import compile_diagram

        from canvasform_cli.project import load_diagram

        diagram = load_diagram(diagram_file)
        findings = compile_diagram(diagram).findings

        if ctx.obj and ctx.obj.get("json"):
            print(json.dumps([f.model_dump() for f in findings], indent=2))
        else:
            print_findings(console, findings, f"Check Results: {diagram.name}")

        if should_fail(findings, strict):
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
