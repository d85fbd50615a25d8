"""Repository pattern for all rfpdesk database operations.

Single interface for: organizations, projects, activity, documents, web
sources, company profile, knowledge files, questions, and the per-entity
summary cache columns. Drafts and revisions live in ``rfpdesk.db.revisions``.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable

from rfpdesk.db.connection import transaction
from rfpdesk.db.models import (
    COMPANY_INFO_FIELDS,
    Activity,
    CompanyInfo,
    Document,
    KnowledgeFile,
    Project,
    Question,
    WebSource,
    new_id,
)
from rfpdesk.errors import InvalidInputError, NotFoundError

# entity kind → table holding summary_cache / summary_generated_at
SUMMARY_TABLES: dict[str, str] = {
    "document": "documents",
    "web_source": "web_sources",
    "knowledge": "company_knowledge",
}

_PROJECT_COLUMNS = """
    p.id, p.name, p.project_type, p.organization_id, o.name AS organization_name,
    p.description, p.status, p.active_draft_id, p.created_at, p.updated_at,
    p.archived_at, p.archived_by
"""


class Repository:
    """Data access layer for all rfpdesk database entities.

    Wraps an open sqlite3.Connection. Single-statement writes commit
    immediately; multi-statement writes run inside one transaction. The
    connection is owned by the caller and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see rfpdesk.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    def get_or_create_organization(self, name: str) -> str:
        """Return the id of the organization called *name*, creating it if needed."""
        row = self._conn.execute(
            "SELECT id FROM organizations WHERE name = ?", (name,)
        ).fetchone()
        if row:
            return row["id"]
        org_id = new_id()
        self._conn.execute(
            "INSERT INTO organizations (id, name) VALUES (?, ?)", (org_id, name)
        )
        self._conn.commit()
        return org_id

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def add_project(self, project: Project) -> Project:
        """Insert a new project and return it as stored."""
        self._conn.execute(
            """
            INSERT INTO projects (id, name, project_type, organization_id, description, status)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                project.id,
                project.name,
                project.project_type,
                project.organization_id,
                project.description,
                project.status,
            ),
        )
        self._conn.commit()
        stored = self.get_project(project.id)
        if stored is None:
            raise NotFoundError("Project", project.id)
        return stored

    def get_project(self, project_id: str) -> Project | None:
        row = self._conn.execute(
            f"""
            SELECT {_PROJECT_COLUMNS}
            FROM projects p LEFT JOIN organizations o ON o.id = p.organization_id
            WHERE p.id = ?
            """,  # noqa: S608
            (project_id,),
        ).fetchone()
        return _row_to_project(row) if row else None

    def list_projects(self, include_archived: bool = False) -> list[Project]:
        """Return projects, newest first. Archived projects only on request."""
        where = "" if include_archived else "WHERE p.archived_at IS NULL"
        rows = self._conn.execute(
            f"""
            SELECT {_PROJECT_COLUMNS}
            FROM projects p LEFT JOIN organizations o ON o.id = p.organization_id
            {where}
            ORDER BY p.created_at DESC, p.rowid DESC
            """  # noqa: S608
        ).fetchall()
        return [_row_to_project(r) for r in rows]

    def set_project_archived(
        self, project_id: str, archived: bool, performed_by: str | None = None
    ) -> Project:
        """Archive or restore a project and record the activity atomically.

        Raises:
            NotFoundError: If the project does not exist.
        """
        with transaction(self._conn):
            if archived:
                cur = self._conn.execute(
                    """
                    UPDATE projects
                    SET archived_at = datetime('now'), archived_by = ?,
                        status = 'archived', updated_at = datetime('now')
                    WHERE id = ?
                    """,
                    (performed_by, project_id),
                )
            else:
                cur = self._conn.execute(
                    """
                    UPDATE projects
                    SET archived_at = NULL, archived_by = NULL,
                        status = 'active', updated_at = datetime('now')
                    WHERE id = ?
                    """,
                    (project_id,),
                )
            if cur.rowcount == 0:
                raise NotFoundError("Project", project_id)
            action = "archived" if archived else "restored"
            self._insert_activity(
                Activity(
                    project_id=project_id,
                    action_type=action,
                    action_details=f"Project {action}",
                    performed_by=performed_by,
                )
            )
        project = self.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def delete_project(self, project_id: str) -> bool:
        """Permanently delete a project; owned rows cascade. Returns False if absent."""
        cur = self._conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        self._conn.commit()
        return cur.rowcount > 0

    def touch_project(self, project_id: str) -> None:
        self._conn.execute(
            "UPDATE projects SET updated_at = datetime('now') WHERE id = ?", (project_id,)
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def log_activity(self, activity: Activity) -> int:
        """Append an activity record and commit. Returns the new row id."""
        activity_id = self._insert_activity(activity)
        self._conn.commit()
        return activity_id

    def _insert_activity(self, activity: Activity) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO project_activity
                (project_id, action_type, action_details, performed_by, metadata)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                activity.project_id,
                activity.action_type,
                activity.action_details,
                activity.performed_by,
                json.dumps(activity.metadata),
            ),
        )
        return int(cur.lastrowid)

    def list_activity(self, project_id: str, limit: int = 100) -> list[Activity]:
        """Return the project's activity, newest first."""
        rows = self._conn.execute(
            """
            SELECT id, project_id, action_type, action_details, performed_at,
                   performed_by, metadata
            FROM project_activity WHERE project_id = ?
            ORDER BY id DESC LIMIT ?
            """,
            (project_id, limit),
        ).fetchall()
        return [_row_to_activity(r) for r in rows]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_document(self, doc: Document) -> Document:
        self._conn.execute(
            """
            INSERT INTO documents
                (id, project_id, filename, file_type, file_path, size, content,
                 key_info, metadata, is_main_document)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                doc.id,
                doc.project_id,
                doc.filename,
                doc.file_type,
                doc.file_path,
                doc.size,
                doc.content,
                json.dumps(doc.key_info),
                json.dumps(doc.metadata),
                int(doc.is_main_document),
            ),
        )
        self._conn.commit()
        stored = self.get_document(doc.project_id, doc.id)
        if stored is None:
            raise NotFoundError("Document", doc.id)
        return stored

    def get_document(self, project_id: str, document_id: str) -> Document | None:
        row = self._conn.execute(
            "SELECT * FROM documents WHERE id = ? AND project_id = ?",
            (document_id, project_id),
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self, project_id: str) -> list[Document]:
        """Return a project's documents, main document first, then newest first."""
        rows = self._conn.execute(
            """
            SELECT * FROM documents WHERE project_id = ?
            ORDER BY is_main_document DESC, uploaded_at DESC, rowid DESC
            """,
            (project_id,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def get_documents_by_ids(self, project_id: str, document_ids: Iterable[str]) -> list[Document]:
        """Return the named documents of a project in the order given; unknown ids are skipped."""
        docs = {d.id: d for d in self.list_documents(project_id)}
        return [docs[i] for i in document_ids if i in docs]

    def delete_document(self, project_id: str, document_id: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM documents WHERE id = ? AND project_id = ?",
            (document_id, project_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def set_main_document(self, project_id: str, document_id: str) -> None:
        """Mark *document_id* as the project's only main document.

        Raises:
            NotFoundError: If the document is not part of the project.
        """
        with transaction(self._conn):
            self._conn.execute(
                "UPDATE documents SET is_main_document = 0 WHERE project_id = ?",
                (project_id,),
            )
            cur = self._conn.execute(
                "UPDATE documents SET is_main_document = 1 WHERE id = ? AND project_id = ?",
                (document_id, project_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Document", document_id)

    def unset_main_document(self, project_id: str) -> None:
        self._conn.execute(
            "UPDATE documents SET is_main_document = 0 WHERE project_id = ?",
            (project_id,),
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Web sources
    # ------------------------------------------------------------------

    def add_web_source(self, source: WebSource) -> WebSource:
        self._conn.execute(
            """
            INSERT INTO web_sources (id, project_id, url, title, content, metadata)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                source.id,
                source.project_id,
                source.url,
                source.title,
                source.content,
                json.dumps(source.metadata),
            ),
        )
        self._conn.commit()
        stored = self.get_web_source(source.project_id, source.id)
        if stored is None:
            raise NotFoundError("Web source", source.id)
        return stored

    def get_web_source(self, project_id: str, source_id: str) -> WebSource | None:
        row = self._conn.execute(
            "SELECT * FROM web_sources WHERE id = ? AND project_id = ?",
            (source_id, project_id),
        ).fetchone()
        return _row_to_web_source(row) if row else None

    def list_web_sources(self, project_id: str) -> list[WebSource]:
        rows = self._conn.execute(
            "SELECT * FROM web_sources WHERE project_id = ? ORDER BY scraped_at DESC, rowid DESC",
            (project_id,),
        ).fetchall()
        return [_row_to_web_source(r) for r in rows]

    def update_web_source(
        self,
        project_id: str,
        source_id: str,
        *,
        content: str | None = None,
        title: str | None = None,
        metadata: dict | None = None,
    ) -> WebSource:
        """Edit a web source. Any edit clears its summary cache in the same statement.

        Raises:
            NotFoundError: If the source does not exist in the project.
        """
        cur = self._conn.execute(
            """
            UPDATE web_sources
            SET content = COALESCE(?, content),
                title = COALESCE(?, title),
                metadata = COALESCE(?, metadata),
                summary_cache = NULL,
                summary_generated_at = NULL,
                updated_at = datetime('now')
            WHERE id = ? AND project_id = ?
            """,
            (
                content,
                title,
                json.dumps(metadata) if metadata is not None else None,
                source_id,
                project_id,
            ),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError("Web source", source_id)
        updated = self.get_web_source(project_id, source_id)
        if updated is None:
            raise NotFoundError("Web source", source_id)
        return updated

    def delete_web_source(self, project_id: str, source_id: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM web_sources WHERE id = ? AND project_id = ?",
            (source_id, project_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Company profile
    # ------------------------------------------------------------------

    def get_company_info(self) -> CompanyInfo | None:
        row = self._conn.execute("SELECT * FROM company_info WHERE id = 1").fetchone()
        if not row:
            return None
        values = {f: row[f] for f in COMPANY_INFO_FIELDS}
        return CompanyInfo(**values, updated_at=row["updated_at"])

    def upsert_company_info(self, info: CompanyInfo) -> CompanyInfo:
        """Create or replace the single company profile row."""
        columns = ", ".join(COMPANY_INFO_FIELDS)
        placeholders = ", ".join("?" * len(COMPANY_INFO_FIELDS))
        updates = ", ".join(f"{f} = excluded.{f}" for f in COMPANY_INFO_FIELDS)
        self._conn.execute(
            f"""
            INSERT INTO company_info (id, {columns}) VALUES (1, {placeholders})
            ON CONFLICT(id) DO UPDATE SET {updates}, updated_at = datetime('now')
            """,  # noqa: S608
            tuple(getattr(info, f) or "" for f in COMPANY_INFO_FIELDS),
        )
        self._conn.commit()
        stored = self.get_company_info()
        if stored is None:
            raise NotFoundError("Company info", "default")
        return stored

    # ------------------------------------------------------------------
    # Knowledge base
    # ------------------------------------------------------------------

    def add_knowledge_file(self, kf: KnowledgeFile) -> KnowledgeFile:
        self._conn.execute(
            """
            INSERT INTO company_knowledge
                (id, category, filename, original_filename, file_type, content, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                kf.id,
                kf.category,
                kf.filename,
                kf.original_filename,
                kf.file_type,
                kf.content,
                json.dumps(kf.metadata),
            ),
        )
        self._conn.commit()
        stored = self.get_knowledge_file(kf.id)
        if stored is None:
            raise NotFoundError("Knowledge file", kf.id)
        return stored

    def get_knowledge_file(self, knowledge_id: str) -> KnowledgeFile | None:
        row = self._conn.execute(
            "SELECT * FROM company_knowledge WHERE id = ?", (knowledge_id,)
        ).fetchone()
        return _row_to_knowledge(row) if row else None

    def list_knowledge_files(self, category: str | None = None) -> list[KnowledgeFile]:
        if category:
            rows = self._conn.execute(
                "SELECT * FROM company_knowledge WHERE category = ? ORDER BY uploaded_at DESC, rowid DESC",
                (category,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM company_knowledge ORDER BY uploaded_at DESC, rowid DESC"
            ).fetchall()
        return [_row_to_knowledge(r) for r in rows]

    def delete_knowledge_file(self, knowledge_id: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM company_knowledge WHERE id = ?", (knowledge_id,)
        )
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Summary cache columns
    # ------------------------------------------------------------------

    def get_summary_cache(self, kind: str, entity_id: str) -> str | None:
        """Return the raw cached summary JSON for an entity, or None."""
        row = self._conn.execute(
            f"SELECT summary_cache FROM {_summary_table(kind)} WHERE id = ?",  # noqa: S608
            (entity_id,),
        ).fetchone()
        return row["summary_cache"] if row else None

    def set_summary_cache(self, kind: str, entity_id: str, raw: str) -> bool:
        """Overwrite the cache and stamp its generation time. False if the row is gone."""
        cur = self._conn.execute(
            f"""
            UPDATE {_summary_table(kind)}
            SET summary_cache = ?, summary_generated_at = datetime('now')
            WHERE id = ?
            """,  # noqa: S608
            (raw, entity_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def clear_summary_cache(self, kind: str, entity_id: str) -> bool:
        cur = self._conn.execute(
            f"""
            UPDATE {_summary_table(kind)}
            SET summary_cache = NULL, summary_generated_at = NULL
            WHERE id = ?
            """,  # noqa: S608
            (entity_id,),
        )
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def add_question(self, question: Question, position: int | None = None) -> Question:
        """Insert a question; without *position* it is appended after the last one."""
        if position is None:
            row = self._conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM rfi_questions WHERE project_id = ?",
                (question.project_id,),
            ).fetchone()
            position = int(row[0])
        self._conn.execute(
            """
            INSERT INTO rfi_questions
                (id, project_id, question_text, question_type, category, answer, position, required)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                question.id,
                question.project_id,
                question.question_text,
                question.question_type,
                question.category,
                question.answer,
                position,
                int(question.required),
            ),
        )
        self._conn.commit()
        stored = self.get_question(question.project_id, question.id)
        if stored is None:
            raise NotFoundError("Question", question.id)
        return stored

    def append_questions(self, project_id: str, questions: list[Question]) -> list[Question]:
        """Insert *questions* after the project's last one, in order, in one transaction."""
        with transaction(self._conn):
            row = self._conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM rfi_questions WHERE project_id = ?",
                (project_id,),
            ).fetchone()
            next_position = int(row[0])
            self._conn.executemany(
                """
                INSERT INTO rfi_questions
                    (id, project_id, question_text, question_type, category, answer, position, required)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (q.id, project_id, q.question_text, q.question_type, q.category,
                     q.answer, next_position + offset, int(q.required))
                    for offset, q in enumerate(questions)
                ],
            )
        added = {q.id for q in questions}
        return [q for q in self.list_questions(project_id) if q.id in added]

    def get_question(self, project_id: str, question_id: str) -> Question | None:
        row = self._conn.execute(
            "SELECT * FROM rfi_questions WHERE id = ? AND project_id = ?",
            (question_id, project_id),
        ).fetchone()
        return _row_to_question(row) if row else None

    def list_questions(self, project_id: str) -> list[Question]:
        rows = self._conn.execute(
            """
            SELECT * FROM rfi_questions WHERE project_id = ?
            ORDER BY position, created_at, rowid
            """,
            (project_id,),
        ).fetchall()
        return [_row_to_question(r) for r in rows]

    def update_question(self, question: Question) -> Question:
        cur = self._conn.execute(
            """
            UPDATE rfi_questions
            SET question_text = ?, question_type = ?, category = ?, answer = ?,
                position = ?, required = ?
            WHERE id = ? AND project_id = ?
            """,
            (
                question.question_text,
                question.question_type,
                question.category,
                question.answer,
                question.position,
                int(question.required),
                question.id,
                question.project_id,
            ),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFoundError("Question", question.id)
        return question

    def set_answers(self, project_id: str, answers: dict[str, str]) -> int:
        """Store several answers in one transaction. Returns the number updated."""
        updated = 0
        with transaction(self._conn):
            for question_id, answer in answers.items():
                cur = self._conn.execute(
                    "UPDATE rfi_questions SET answer = ? WHERE id = ? AND project_id = ?",
                    (answer, question_id, project_id),
                )
                updated += cur.rowcount
        return updated

    def delete_question(self, project_id: str, question_id: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM rfi_questions WHERE id = ? AND project_id = ?",
            (question_id, project_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def reorder_questions(self, project_id: str, positions: list[tuple[str, int]]) -> None:
        """Apply all ``(question_id, position)`` pairs or none of them.

        Raises:
            InvalidInputError: If a position is negative.
            NotFoundError: If any id is not a question of the project; no
                position is changed in that case.
        """
        with transaction(self._conn):
            for question_id, position in positions:
                if position < 0:
                    raise InvalidInputError(
                        f"Position must be non-negative, got {position} for {question_id}"
                    )
                cur = self._conn.execute(
                    "UPDATE rfi_questions SET position = ? WHERE id = ? AND project_id = ?",
                    (position, question_id, project_id),
                )
                if cur.rowcount == 0:
                    raise NotFoundError("Question", question_id)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _summary_table(kind: str) -> str:
    try:
        return SUMMARY_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown summary entity kind: {kind!r}") from None


def _loads(raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        project_type=row["project_type"],
        organization_id=row["organization_id"],
        organization_name=row["organization_name"],
        description=row["description"],
        status=row["status"],
        active_draft_id=row["active_draft_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        archived_at=row["archived_at"],
        archived_by=row["archived_by"],
    )


def _row_to_activity(row: sqlite3.Row) -> Activity:
    return Activity(
        id=row["id"],
        project_id=row["project_id"],
        action_type=row["action_type"],
        action_details=row["action_details"],
        performed_at=row["performed_at"],
        performed_by=row["performed_by"],
        metadata=_loads(row["metadata"]),
    )


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        project_id=row["project_id"],
        filename=row["filename"],
        file_type=row["file_type"],
        file_path=row["file_path"],
        size=row["size"],
        content=row["content"],
        key_info=_loads(row["key_info"]),
        metadata=_loads(row["metadata"]),
        summary_cache=row["summary_cache"],
        summary_generated_at=row["summary_generated_at"],
        is_main_document=bool(row["is_main_document"]),
        uploaded_at=row["uploaded_at"],
    )


def _row_to_web_source(row: sqlite3.Row) -> WebSource:
    return WebSource(
        id=row["id"],
        project_id=row["project_id"],
        url=row["url"],
        title=row["title"],
        content=row["content"],
        metadata=_loads(row["metadata"]),
        summary_cache=row["summary_cache"],
        summary_generated_at=row["summary_generated_at"],
        scraped_at=row["scraped_at"],
        updated_at=row["updated_at"],
    )


def _row_to_knowledge(row: sqlite3.Row) -> KnowledgeFile:
    return KnowledgeFile(
        id=row["id"],
        category=row["category"],
        filename=row["filename"],
        original_filename=row["original_filename"],
        file_type=row["file_type"],
        content=row["content"],
        metadata=_loads(row["metadata"]),
        summary_cache=row["summary_cache"],
        summary_generated_at=row["summary_generated_at"],
        uploaded_at=row["uploaded_at"],
    )


def _row_to_question(row: sqlite3.Row) -> Question:
    return Question(
        id=row["id"],
        project_id=row["project_id"],
        question_text=row["question_text"],
        question_type=row["question_type"],
        category=row["category"],
        answer=row["answer"],
        position=row["position"],
        required=bool(row["required"]),
        created_at=row["created_at"],
    )
