import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from canvasform_cli import __version__
from canvasform_cli.commands.check_cmd import check
from canvasform_cli.commands.compile_cmd import compile_cmd
from canvasform_cli.commands.registry_cmd import rules, types


def _version_callback(value: bool) -> None:
    if value:
        print(f"canvasform {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="canvasform",
    help="Compile infrastructure diagrams into Terraform",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version", callback=_version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json"] = json_output
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app.command(name="compile")(compile_cmd)
app.command()(check)
app.command()(types)
app.command()(rules)
