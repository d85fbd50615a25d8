"""FastAPI dependencies: per-request database access and configuration."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator

from fastapi import Depends, Request

from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import Project
from rfpdesk.db.repository import Repository
from rfpdesk.db.revisions import RevisionStore
from rfpdesk.errors import NotFoundError


def get_config(request: Request) -> RfpDeskConfig:
    return request.app.state.config


def get_conn(request: Request) -> Iterator[sqlite3.Connection]:
    """Open one connection for the request; closed once the response is sent."""
    conn = request.app.state.database.connect()
    try:
        yield conn
    finally:
        conn.close()


def get_repo(conn: sqlite3.Connection = Depends(get_conn)) -> Repository:
    return Repository(conn)


def get_revisions(conn: sqlite3.Connection = Depends(get_conn)) -> RevisionStore:
    return RevisionStore(conn)


def require_project(project_id: str, repo: Repository = Depends(get_repo)) -> Project:
    """Resolve the ``{project_id}`` path parameter or fail with 404."""
    project = repo.get_project(project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project
