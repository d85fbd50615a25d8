"""rfpdesk init: create the database and the global config file.

Creates:
  rfpdesk.db               database with the current schema (path from config or --db)
  uploads/                 stored uploads (storage.upload_dir)
  ~/.rfpdesk/config.yaml   global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from rfpdesk.cli.errors import err_config
from rfpdesk.config import ConfigError, ensure_global_config, load_config
from rfpdesk.db.connection import Database
from rfpdesk.db.schema import CURRENT_VERSION, initialize

console = Console()


def init_cmd(
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path (default: database.path from config)."),
    ] = None,
    global_config: Annotated[
        Optional[Path],
        typer.Option("--global-config", hidden=True, help="Override global config path."),
    ] = None,
) -> None:
    """Create the rfpdesk database and global config."""
    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    try:
        cfg = load_config(global_config_path=global_config)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    db_path = db or Path(cfg.database.path)
    existed = db_path.exists()
    with Database(db_path) as conn:
        initialize(conn)
    label = "migrated" if existed else "created"
    console.print(f"  [green]✓[/] {db_path} ({label}, schema v{CURRENT_VERSION})")

    upload_dir = Path(cfg.storage.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    console.print(f"  [green]✓[/] {upload_dir}/")

    console.print("\n[bold green]✓ rfpdesk initialized.[/]")
    console.print("\nNext steps:")
    console.print("  1. export OPENAI_API_KEY=sk-...   (or the key for your configured model)")
    console.print("  2. rfpdesk serve                  (start the HTTP API)")
