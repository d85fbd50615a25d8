"""Tests for the forward-only migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from rfpdesk.db.connection import Database
from rfpdesk.db.migrations import MIGRATIONS, run_migrations
from rfpdesk.db.schema import CURRENT_VERSION, initialize


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    ).fetchone() is not None


def _columns(conn, table: str) -> set[str]:
    return {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}


# --- Bootstrap ---

def test_run_migrations_records_latest_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == MIGRATIONS[-1][0] == CURRENT_VERSION
    conn.close()


def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    initialize(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


def test_versions_strictly_ascending():
    versions = [v for v, _ in MIGRATIONS]
    assert versions == sorted(set(versions))


# --- Tables and columns ---

@pytest.mark.parametrize(
    "table",
    [
        "organizations",
        "projects",
        "documents",
        "web_sources",
        "company_info",
        "company_knowledge",
        "rfi_questions",
        "drafts",
        "draft_revisions",
        "project_activity",
    ],
)
def test_tables_created(tmp_db, table):
    assert _table_exists(tmp_db, table)


def test_v3_columns_present(tmp_db):
    assert "active_draft_id" in _columns(tmp_db, "projects")
    assert "is_main_document" in _columns(tmp_db, "documents")
    assert {"summary_cache", "summary_generated_at"} <= _columns(tmp_db, "company_knowledge")


def test_partial_upgrade_applies_remaining(tmp_path):
    """A database stopped at v1 is brought forward to the latest version."""
    conn = _fresh_conn(tmp_path)
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_version "
        "(version INTEGER PRIMARY KEY, applied_at DATETIME DEFAULT CURRENT_TIMESTAMP)"
    )
    conn.executescript(MIGRATIONS[0][1])
    conn.execute("INSERT INTO schema_version (version) VALUES (1)")
    conn.commit()

    run_migrations(conn)
    assert _table_exists(conn, "drafts")
    assert "active_draft_id" in _columns(conn, "projects")
    conn.close()


# --- Constraints ---

def test_project_type_check(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO projects (id, name, project_type) VALUES ('p', 'x', 'RFQ')"
        )


def test_company_info_single_row(tmp_db):
    tmp_db.execute("INSERT INTO company_info (id, company_name) VALUES (1, 'Acme')")
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute("INSERT INTO company_info (id, company_name) VALUES (2, 'Other')")


def test_revision_version_unique_per_draft(tmp_db):
    tmp_db.execute("INSERT INTO projects (id, name, project_type) VALUES ('p', 'x', 'RFP')")
    tmp_db.execute("INSERT INTO drafts (id, project_id, content) VALUES ('d', 'p', '{}')")
    tmp_db.execute(
        "INSERT INTO draft_revisions (id, draft_id, project_id, version_number, content) "
        "VALUES ('r1', 'd', 'p', 1, '{}')"
    )
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO draft_revisions (id, draft_id, project_id, version_number, content) "
            "VALUES ('r2', 'd', 'p', 1, '{}')"
        )


def test_one_main_document_per_project(tmp_db):
    tmp_db.execute("INSERT INTO projects (id, name, project_type) VALUES ('p', 'x', 'RFP')")
    for doc_id in ("a", "b"):
        tmp_db.execute(
            "INSERT INTO documents (id, project_id, filename, file_type) VALUES (?, 'p', ?, 'txt')",
            (doc_id, f"{doc_id}.txt"),
        )
    tmp_db.execute("UPDATE documents SET is_main_document = 1 WHERE id = 'a'")
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute("UPDATE documents SET is_main_document = 1 WHERE id = 'b'")
