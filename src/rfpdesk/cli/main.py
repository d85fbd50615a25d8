"""rfpdesk CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from rfpdesk.cli.export import export_cmd
from rfpdesk.cli.init import init_cmd
from rfpdesk.cli.serve import serve_cmd
from rfpdesk.cli.status import status_cmd
from rfpdesk.cli.summarize import summarize_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("rfpdesk")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"rfpdesk {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="rfpdesk",
    help=(
        "rfpdesk — RFI/RFP response workbench.\n\n"
        "  rfpdesk serve      Run the HTTP API used by the web UI.\n"
        "  rfpdesk summarize  Fill the summary cache for a project.\n"
        "  rfpdesk export     Write a project's draft as .docx."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """rfpdesk — RFI/RFP response workbench."""


app.command("init")(init_cmd)
app.command("serve")(serve_cmd)
app.command("status")(status_cmd)
app.command("summarize")(summarize_cmd)
app.command("export")(export_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed rfpdesk version."""
    typer.echo(f"rfpdesk {_installed_version()}")


if __name__ == "__main__":
    app()
