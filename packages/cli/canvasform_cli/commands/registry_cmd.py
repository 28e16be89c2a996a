"""List registered resource types and connection rules."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

console = Console()


def types(
    ctx: typer.Context,
    provider: Annotated[str | None, typer.Option("--provider", "-p", help="Only this provider")] = None,
) -> None:
    """List registered resource types."""
    from canvasform.registry import default_registry

    resource_types = default_registry().list_types(provider)

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps([rt.schema.model_dump() for rt in resource_types], indent=2))
        return

    table = Table(title="Resource Types")
    table.add_column("Type ID", style="cyan")
    table.add_column("Name")
    table.add_column("Terraform Type")
    table.add_column("Virtual")
    for rt in resource_types:
        s = rt.schema
        table.add_row(s.type_id, s.display_name, s.terraform_type, "yes" if s.is_virtual else "")
    console.print(table)


def rules(
    ctx: typer.Context,
    provider: Annotated[
        str | None, typer.Option("--provider", "-p", help="Only rules whose source type is in this provider")
    ] = None,
) -> None:
    """List connection rules."""
    from canvasform.registry import default_registry

    selected = [r for r in default_registry().rules if provider is None or r.source_type.split("/")[0] == provider]

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps([r.model_dump() for r in selected], indent=2))
        return

    table = Table(title="Connection Rules")
    table.add_column("Source")
    table.add_column("Target")
    table.add_column("Sets")
    table.add_column("Label")
    for r in selected:
        ref = r.creates_reference
        sets = f"{ref.side}.{ref.property_key}" if ref else "-"
        table.add_row(
            f"{r.source_type}[{r.source_handle}]",
            f"{r.target_type}[{r.target_handle}]",
            sets,
            r.label,
        )
    console.print(table)
