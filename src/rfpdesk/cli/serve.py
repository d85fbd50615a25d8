"""rfpdesk serve: run the HTTP API with uvicorn."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
import uvicorn
from rich.console import Console

from rfpdesk.api.app import create_app
from rfpdesk.cli.errors import err_config
from rfpdesk.config import ConfigError, load_config

console = Console()


def serve_cmd(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port.")] = None,
    db: Annotated[Optional[Path], typer.Option("--db", help="Database path.")] = None,
) -> None:
    """Start the rfpdesk HTTP API."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    # CLI flags override every config layer
    if host:
        cfg.server.host = host
    if port:
        cfg.server.port = port
    if db:
        cfg.database.path = str(db)

    app = create_app(cfg)
    console.print(
        f"[bold]rfpdesk[/] serving on http://{cfg.server.host}:{cfg.server.port} "
        f"[dim](database: {cfg.database.path})[/]"
    )
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port,
                log_level=cfg.server.log_level.lower())
