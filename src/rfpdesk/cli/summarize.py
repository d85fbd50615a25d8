"""rfpdesk summarize: fill the summary cache for a project's documents and web sources."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from rfpdesk.cli.errors import err_config, err_missing_api_key, err_no_db, err_project_not_found
from rfpdesk.config import ConfigError, load_config
from rfpdesk.db.connection import Database
from rfpdesk.db.repository import Repository
from rfpdesk.db.schema import initialize
from rfpdesk.errors import RfpDeskError
from rfpdesk.ingest.pipeline import summarize_entity
from rfpdesk.rag.llm_client import MissingApiKeyError, validate_api_key

console = Console()


def summarize_cmd(
    project: Annotated[str, typer.Option("--project", "-p", help="Project id.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Regenerate summaries that are already cached.")
    ] = False,
    db: Annotated[Optional[Path], typer.Option("--db", help="Database path.")] = None,
) -> None:
    """Summarize every document and web source of a project."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    db_path = db or Path(cfg.database.path)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    try:
        validate_api_key(cfg.summarizer.model)
    except MissingApiKeyError as exc:
        console.print(err_missing_api_key(exc.message))
        raise typer.Exit(1)

    with Database(db_path) as conn:
        initialize(conn)
        repo = Repository(conn)
        proj = repo.get_project(project)
        if proj is None:
            console.print(err_project_not_found(project))
            raise typer.Exit(1)

        targets = [("document", d.id, d.content, d.filename) for d in repo.list_documents(proj.id)]
        targets += [
            ("web_source", s.id, s.content, s.title or s.url)
            for s in repo.list_web_sources(proj.id)
        ]
        if not targets:
            console.print("[dim]Nothing to summarize: the project has no documents or sources.[/]")
            return

        generated = cached = failed = 0
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console) as progress:
            task = progress.add_task("Summarizing…", total=len(targets))
            for kind, entity_id, text, label in targets:
                progress.update(task, description=f"Summarizing {label}…")
                try:
                    summary, was_cached = summarize_entity(
                        repo, kind, entity_id, text, label, proj.project_type, cfg, force=force
                    )
                except RfpDeskError as exc:
                    failed += 1
                    progress.console.print(f"  [red]✗[/] {label}: {exc.message}")
                else:
                    if was_cached:
                        cached += 1
                        progress.console.print(f"  [dim]·[/] {label} (cached)")
                    else:
                        generated += 1
                        progress.console.print(
                            f"  [green]✓[/] {label} ({summary.chunk_count} chunk(s))"
                        )
                progress.advance(task)

    console.print(
        f"\n[bold]{generated}[/] generated, [bold]{cached}[/] cached, "
        f"[bold]{failed}[/] failed."
    )
    if failed:
        raise typer.Exit(1)
