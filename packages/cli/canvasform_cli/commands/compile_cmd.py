"""Compile a diagram into Terraform configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.syntax import Syntax

from canvasform_cli.utils import handle_error, print_findings, should_fail, write_dir

console = Console()


def compile_cmd(
    ctx: typer.Context,
    diagram_file: Annotated[
        Path | None, typer.Argument(help="Diagram YAML/JSON file (default: .canvasform/diagram.yaml)")
    ] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Output .tf file, or a directory for split files")
    ] = None,
    strict: Annotated[bool, typer.Option(help="Fail on warnings too")] = False,
) -> None:
    """Compile a diagram into Terraform HCL."""
    try:
        from canvasform.compiler import compile_diagram

        from canvasform_cli.project import load_diagram

        diagram = load_diagram(diagram_file)
        result = compile_diagram(diagram)

        if ctx.obj and ctx.obj.get("json"):
            print(
                json.dumps(
                    {
                        "document": result.document,
                        "files": result.files,
                        "findings": [f.model_dump() for f in result.findings],
                    }
                )
            )
        else:
            if output is None:
                console.print(Syntax(result.document, "hcl", theme="monokai", word_wrap=True))
            # Extensionless or existing directory targets get one file per section
            elif output.is_dir() or not output.suffix:
                write_dir(output, result.files)
                console.print(f"[green]Written {len(result.files)} file(s) to {output}[/green]")
            else:
                output.write_text(result.document)
                console.print(f"[green]Written to {output}[/green]")

            if result.findings:
                print_findings(console, result.findings, f"Findings: {diagram.name}")

        if should_fail(result.findings, strict):
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
