"""rfpdesk status: database overview and a table of projects."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rfpdesk.cli.errors import err_no_db
from rfpdesk.config import RfpDeskConfig, load_config
from rfpdesk.db.connection import Database
from rfpdesk.db.repository import Repository
from rfpdesk.db.revisions import RevisionStore
from rfpdesk.db.schema import initialize

console = Console()


def status_cmd(
    db: Annotated[Optional[Path], typer.Option("--db", help="Database path.")] = None,
    include_archived: Annotated[
        bool, typer.Option("--all", "-a", help="Include archived projects.")
    ] = False,
) -> None:
    """Show the database and every project with its documents, questions and draft."""
    # status works even with a broken rfpdesk.yaml
    try:
        cfg = load_config()
    except Exception:
        cfg = RfpDeskConfig()

    db_path = db or Path(cfg.database.path)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    conn = _open_db(db_path)
    try:
        _show_overview_panel(db_path, conn, cfg)
        _show_projects_table(Repository(conn), RevisionStore(conn), include_archived)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _show_overview_panel(db_path: Path, conn: sqlite3.Connection, cfg: RfpDeskConfig) -> None:
    size_mb = db_path.stat().st_size / (1024 * 1024)
    knowledge = conn.execute("SELECT COUNT(*) FROM company_knowledge").fetchone()[0]
    company = conn.execute("SELECT company_name FROM company_info WHERE id = 1").fetchone()
    lines = [
        f"Database:    {db_path} ({size_mb:.1f} MB)",
        f"Company:     {company['company_name'] if company and company['company_name'] else '[dim](not set)[/]'}",
        f"Knowledge:   [bold]{knowledge}[/] file(s)",
        f"Generation:  {cfg.generation.model}",
        f"Summaries:   {cfg.summarizer.model}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]rfpdesk[/]", expand=False))


def _show_projects_table(
    repo: Repository, revisions: RevisionStore, include_archived: bool
) -> None:
    projects = repo.list_projects(include_archived=include_archived)
    if not projects:
        console.print("[dim]No projects yet.[/]")
        return

    table = Table(title="Projects", show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Docs", justify="right")
    table.add_column("Summarized", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("Draft", justify="right")
    table.add_column("Status")

    for project in projects:
        docs = repo.list_documents(project.id)
        summarized = sum(1 for d in docs if d.summary_generated_at)
        questions = repo.list_questions(project.id)
        answered = sum(1 for q in questions if q.answer and q.answer.strip())
        draft = revisions.get_draft(project.id)
        status = "[yellow]archived[/]" if project.is_archived else "[green]active[/]"
        table.add_row(
            project.id,
            project.name,
            project.project_type,
            str(len(docs)),
            f"{summarized}/{len(docs)}",
            f"{answered}/{len(questions)}",
            f"v{draft.current_version}" if draft else "-",
            status,
        )
    console.print(table)


def _open_db(db_path: Path) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn)
    return conn
