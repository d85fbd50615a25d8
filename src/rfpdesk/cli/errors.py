"""rfpdesk rich error messages.

Each message names what went wrong and the command or setting that fixes it.

Usage:
    from rfpdesk.cli.errors import err_no_db
    console.print(err_no_db(str(db_path)))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str = "rfpdesk.db") -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  rfpdesk init"
    )


def err_project_not_found(project_id: str) -> str:
    return (
        f"[red]Error:[/] Project '{project_id}' not found.\n"
        "  Run:  rfpdesk status  to list project ids."
    )


def err_no_draft(project_id: str) -> str:
    return (
        f"[red]Error:[/] Project '{project_id}' has no draft yet.\n"
        "  Generate one first:  POST /projects/{id}/generate-draft"
    )


def err_missing_api_key(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  API keys are read from the environment only, never from config files."
    )


def err_output_path_unsafe(path: str) -> str:
    """--output path fails security validation."""
    return (
        f"[red]Error:[/] Output path is not allowed: '{path}'\n"
        "  Use a path within the current working directory."
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {message}\n"
        "  Check rfpdesk.yaml and ~/.rfpdesk/config.yaml."
    )
