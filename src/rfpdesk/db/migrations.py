"""Forward-only migration runner for the rfpdesk database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS organizations (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    created_at  DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS projects (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    project_type    TEXT NOT NULL CHECK (project_type IN ('RFI', 'RFP')),
    organization_id TEXT REFERENCES organizations(id) ON DELETE SET NULL,
    description     TEXT,
    status          TEXT NOT NULL DEFAULT 'active',
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    updated_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS documents (
    id                   TEXT PRIMARY KEY,
    project_id           TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    filename             TEXT NOT NULL,
    file_type            TEXT NOT NULL,
    file_path            TEXT,
    size                 INTEGER NOT NULL DEFAULT 0,
    content              TEXT NOT NULL DEFAULT '',
    key_info             TEXT NOT NULL DEFAULT '{}',
    metadata             TEXT NOT NULL DEFAULT '{}',
    summary_cache        TEXT,
    summary_generated_at DATETIME,
    uploaded_at          DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS web_sources (
    id                   TEXT PRIMARY KEY,
    project_id           TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    url                  TEXT NOT NULL,
    title                TEXT NOT NULL DEFAULT '',
    content              TEXT NOT NULL DEFAULT '',
    metadata             TEXT NOT NULL DEFAULT '{}',
    summary_cache        TEXT,
    summary_generated_at DATETIME,
    scraped_at           DATETIME NOT NULL DEFAULT (datetime('now')),
    updated_at           DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS company_info (
    id               INTEGER PRIMARY KEY CHECK (id = 1),
    company_name     TEXT NOT NULL DEFAULT '',
    description      TEXT NOT NULL DEFAULT '',
    services         TEXT NOT NULL DEFAULT '',
    capabilities     TEXT NOT NULL DEFAULT '',
    differentiators  TEXT NOT NULL DEFAULT '',
    experience       TEXT NOT NULL DEFAULT '',
    certifications   TEXT NOT NULL DEFAULT '',
    team_size        TEXT NOT NULL DEFAULT '',
    website          TEXT NOT NULL DEFAULT '',
    email            TEXT NOT NULL DEFAULT '',
    phone            TEXT NOT NULL DEFAULT '',
    address          TEXT NOT NULL DEFAULT '',
    updated_at       DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS company_knowledge (
    id                TEXT PRIMARY KEY,
    category          TEXT NOT NULL,
    filename          TEXT NOT NULL,
    original_filename TEXT NOT NULL,
    file_type         TEXT NOT NULL,
    content           TEXT NOT NULL DEFAULT '',
    metadata          TEXT NOT NULL DEFAULT '{}',
    uploaded_at       DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS rfi_questions (
    id            TEXT PRIMARY KEY,
    project_id    TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    question_text TEXT NOT NULL,
    question_type TEXT NOT NULL DEFAULT 'text',
    category      TEXT,
    answer        TEXT,
    position      INTEGER NOT NULL DEFAULT 0,
    required      INTEGER NOT NULL DEFAULT 0,
    created_at    DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_documents_project ON documents(project_id);
CREATE INDEX IF NOT EXISTS idx_web_sources_project ON web_sources(project_id);
CREATE INDEX IF NOT EXISTS idx_questions_project ON rfi_questions(project_id, position);
"""

# v2: archiving, drafts with append-only revisions, activity log.
_V2_SQL = """
ALTER TABLE projects ADD COLUMN archived_at DATETIME;
ALTER TABLE projects ADD COLUMN archived_by TEXT;

CREATE TABLE IF NOT EXISTS drafts (
    id              TEXT PRIMARY KEY,
    project_id      TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    content         TEXT NOT NULL,
    format          TEXT NOT NULL DEFAULT 'sections',
    metadata        TEXT NOT NULL DEFAULT '{}',
    current_version INTEGER NOT NULL DEFAULT 1 CHECK (current_version >= 1),
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    updated_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS draft_revisions (
    id             TEXT PRIMARY KEY,
    draft_id       TEXT NOT NULL REFERENCES drafts(id) ON DELETE CASCADE,
    project_id     TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    version_number INTEGER NOT NULL,
    content        TEXT NOT NULL,
    metadata       TEXT NOT NULL DEFAULT '{}',
    created_at     DATETIME NOT NULL DEFAULT (datetime('now')),
    created_by     TEXT,
    UNIQUE (draft_id, version_number)
);

CREATE TABLE IF NOT EXISTS project_activity (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id     TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    action_type    TEXT NOT NULL,
    action_details TEXT NOT NULL DEFAULT '',
    performed_at   DATETIME NOT NULL DEFAULT (datetime('now')),
    performed_by   TEXT,
    metadata       TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_revisions_draft ON draft_revisions(draft_id, version_number);
CREATE INDEX IF NOT EXISTS idx_activity_project ON project_activity(project_id, performed_at);
"""

# v3: explicit active-draft pointer, main-document flag, knowledge summary cache.
_V3_SQL = """
ALTER TABLE projects ADD COLUMN active_draft_id TEXT REFERENCES drafts(id) ON DELETE SET NULL;
ALTER TABLE documents ADD COLUMN is_main_document INTEGER NOT NULL DEFAULT 0;
ALTER TABLE company_knowledge ADD COLUMN summary_cache TEXT;
ALTER TABLE company_knowledge ADD COLUMN summary_generated_at DATETIME;

CREATE UNIQUE INDEX IF NOT EXISTS idx_documents_one_main
    ON documents(project_id) WHERE is_main_document = 1;
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
    (3, _V3_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Bring the schema up to the newest entry in MIGRATIONS.

    Each pending script runs once and is recorded in schema_version; a
    database already at the latest version is left untouched.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()
    applied = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()[0]

    for version, script in MIGRATIONS:
        if version <= applied:
            continue
        conn.executescript(script)
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
        conn.commit()
