"""rfpdesk export: write a project's current draft as a Word document.

Usage:
  rfpdesk export --project ID --output drafts/proposal.docx [--yes]

The output path is validated (relative paths may not escape the working
directory) and written atomically; an existing file needs confirmation
unless --yes is given.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from rfpdesk.cli.errors import (
    err_config,
    err_no_db,
    err_no_draft,
    err_output_path_unsafe,
    err_project_not_found,
)
from rfpdesk.config import ConfigError, load_config
from rfpdesk.db.connection import Database
from rfpdesk.db.repository import Repository
from rfpdesk.db.revisions import RevisionStore
from rfpdesk.db.schema import initialize
from rfpdesk.generate.writer import check_overwrite, render_draft, validate_output_path, write_output

console = Console()


def export_cmd(
    project: Annotated[str, typer.Option("--project", "-p", help="Project id.")],
    output: Annotated[str, typer.Option("--output", "-o", help="Output .docx path.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Overwrite without asking.")] = False,
    db: Annotated[Optional[Path], typer.Option("--db", help="Database path.")] = None,
) -> None:
    """Export the project's current draft to a .docx file."""
    try:
        out_path = validate_output_path(output)
    except ValueError:
        console.print(err_output_path_unsafe(output))
        raise typer.Exit(1)
    if out_path.suffix.lower() != ".docx":
        out_path = out_path.with_suffix(".docx")

    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    db_path = db or Path(cfg.database.path)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    with Database(db_path) as conn:
        initialize(conn)
        proj = Repository(conn).get_project(project)
        if proj is None:
            console.print(err_project_not_found(project))
            raise typer.Exit(1)
        draft = RevisionStore(conn).get_draft(proj.id)
        if draft is None:
            console.print(err_no_draft(proj.id))
            raise typer.Exit(1)

    if not check_overwrite(out_path, yes):
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(0)

    sections = {k: str(v) for k, v in draft.content.items() if v}
    write_output(out_path, render_draft(proj, sections, version=draft.current_version))
    console.print(f"[green]✓[/] Draft v{draft.current_version} written to {out_path}")
