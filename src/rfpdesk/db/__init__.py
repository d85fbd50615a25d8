"""rfpdesk database layer."""

from rfpdesk.db.connection import Database, transaction
from rfpdesk.db.migrations import MIGRATIONS, run_migrations
from rfpdesk.db.repository import Repository
from rfpdesk.db.revisions import RevisionStore
from rfpdesk.db.schema import initialize

__all__ = [
    "Database",
    "transaction",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
    "RevisionStore",
]
