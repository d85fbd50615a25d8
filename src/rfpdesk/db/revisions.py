"""Draft storage with an append-only revision log.

Every change to a project's draft content is recorded as a numbered
revision. Version numbers per draft only ever grow: they are allocated inside
a ``BEGIN IMMEDIATE`` transaction, the draft row is updated with a
compare-and-swap on ``current_version``, and ``(draft_id, version_number)``
is unique at the schema level.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any

from rfpdesk.db.connection import transaction
from rfpdesk.db.models import Draft, DraftRevision, new_id
from rfpdesk.errors import ConcurrentUpdateError, NotFoundError


def _canonical(content: Any) -> str:
    """Key-order-independent JSON form used for deep comparison."""
    return json.dumps(content, sort_keys=True, ensure_ascii=False)


def _dump(content: Any) -> str:
    return json.dumps(content, ensure_ascii=False)


class RevisionStore:
    """Read and write drafts and their revisions for one connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_draft(self, project_id: str) -> Draft | None:
        """Return the project's active draft, falling back to its newest draft."""
        row = self._conn.execute(
            """
            SELECT d.* FROM drafts d JOIN projects p ON p.active_draft_id = d.id
            WHERE p.id = ?
            """,
            (project_id,),
        ).fetchone()
        if row is None:
            row = self._conn.execute(
                """
                SELECT * FROM drafts WHERE project_id = ?
                ORDER BY created_at DESC, rowid DESC LIMIT 1
                """,
                (project_id,),
            ).fetchone()
        return _row_to_draft(row) if row else None

    def list_revisions(self, project_id: str) -> list[DraftRevision]:
        """Return every revision of the project's drafts, newest version first."""
        rows = self._conn.execute(
            """
            SELECT * FROM draft_revisions WHERE project_id = ?
            ORDER BY version_number DESC, created_at DESC
            """,
            (project_id,),
        ).fetchall()
        return [_row_to_revision(r) for r in rows]

    def get_revision(self, project_id: str, revision_id: str) -> DraftRevision | None:
        row = self._conn.execute(
            "SELECT * FROM draft_revisions WHERE id = ? AND project_id = ?",
            (revision_id, project_id),
        ).fetchone()
        return _row_to_revision(row) if row else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append_revision(
        self,
        draft_id: str,
        project_id: str,
        content: dict[str, Any],
        metadata: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> int:
        """Record *content* as the draft's next version.

        Nothing is written when *content* deep-equals the latest stored
        revision; the existing version number is returned instead.

        Returns:
            The version number that now holds *content*.

        Raises:
            NotFoundError: If the draft does not exist.
        """
        with transaction(self._conn):
            draft = self._draft_by_id(draft_id)
            return self._append(
                draft, content, metadata or {}, created_by, expected=draft.current_version
            )

    def save(
        self,
        project_id: str,
        content: dict[str, Any],
        metadata: dict[str, Any] | None = None,
        created_by: str | None = None,
        expected_version: int | None = None,
    ) -> Draft:
        """Create the project's draft or append a new revision to it.

        Args:
            project_id: Owning project.
            content: Draft sections (any JSON-serializable mapping).
            metadata: Free-form metadata stored with the draft and revision.
            created_by: Author recorded on the revision.
            expected_version: If given, the caller's view of
                ``current_version``; a mismatch raises ConcurrentUpdateError.

        Returns:
            The draft as stored after the write.
        """
        metadata = metadata or {}
        with transaction(self._conn):
            draft = self.get_draft(project_id)
            if draft is None:
                draft = self._create(project_id, content, metadata, created_by)
            else:
                if expected_version is not None and expected_version != draft.current_version:
                    raise ConcurrentUpdateError(
                        f"Draft is at version {draft.current_version}, "
                        f"not {expected_version}; reload and retry.",
                        details={"current_version": draft.current_version},
                    )
                self._append(draft, content, metadata, created_by, expected=draft.current_version)
        saved = self.get_draft(project_id)
        if saved is None:
            raise NotFoundError("Draft", project_id)
        return saved

    def restore(
        self, project_id: str, revision_id: str, restored_by: str | None = None
    ) -> int:
        """Make an earlier revision's content current again.

        The current draft state is captured first if it is not already the
        latest revision, then the target content is written as a new top
        revision. Earlier revisions are never removed.

        Returns:
            The new ``current_version``, strictly greater than before.

        Raises:
            NotFoundError: If the revision or the draft does not exist.
        """
        with transaction(self._conn):
            target = self._revision_by_id(project_id, revision_id)
            draft = self._draft_by_id(target.draft_id)
            version = draft.current_version

            latest = self._latest_revision(draft.id)
            if latest is None or _canonical(latest.content) != _canonical(draft.content):
                version = self._append(
                    draft,
                    draft.content,
                    {**draft.metadata, "auto_saved_before_restore": True},
                    restored_by,
                    expected=version,
                )

            version = self._write_version(
                draft,
                target.content,
                {**target.metadata, "restored_from_revision": target.id,
                 "restored_from_version": target.version_number},
                restored_by,
                expected=version,
            )

            self._conn.execute(
                """
                INSERT INTO project_activity (project_id, action_type, action_details,
                                              performed_by, metadata)
                VALUES (?, 'draft_restored', ?, ?, ?)
                """,
                (
                    project_id,
                    f"Restored draft to version {target.version_number}",
                    restored_by,
                    json.dumps({"revision_id": target.id, "new_version": version}),
                ),
            )
        return version

    def delete_drafts(self, project_id: str) -> int:
        """Delete all of a project's drafts and their revisions. Returns drafts removed."""
        cur = self._conn.execute("DELETE FROM drafts WHERE project_id = ?", (project_id,))
        self._conn.commit()
        return cur.rowcount

    # ------------------------------------------------------------------
    # Internals (caller holds the transaction)
    # ------------------------------------------------------------------

    def _create(
        self,
        project_id: str,
        content: dict[str, Any],
        metadata: dict[str, Any],
        created_by: str | None,
    ) -> Draft:
        exists = self._conn.execute(
            "SELECT 1 FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        if not exists:
            raise NotFoundError("Project", project_id)
        draft_id = new_id()
        self._conn.execute(
            """
            INSERT INTO drafts (id, project_id, content, metadata, current_version)
            VALUES (?, ?, ?, ?, 1)
            """,
            (draft_id, project_id, _dump(content), json.dumps(metadata)),
        )
        self._insert_revision(draft_id, project_id, 1, content, metadata, created_by)
        self._conn.execute(
            "UPDATE projects SET active_draft_id = ?, updated_at = datetime('now') WHERE id = ?",
            (draft_id, project_id),
        )
        return self._draft_by_id(draft_id)

    def _append(
        self,
        draft: Draft,
        content: dict[str, Any],
        metadata: dict[str, Any],
        created_by: str | None,
        *,
        expected: int,
    ) -> int:
        latest = self._latest_revision(draft.id)
        if latest is not None and _canonical(latest.content) == _canonical(content):
            return latest.version_number
        return self._write_version(draft, content, metadata, created_by, expected=expected)

    def _write_version(
        self,
        draft: Draft,
        content: dict[str, Any],
        metadata: dict[str, Any],
        created_by: str | None,
        *,
        expected: int,
    ) -> int:
        new_version = expected + 1
        cur = self._conn.execute(
            """
            UPDATE drafts
            SET content = ?, metadata = ?, current_version = ?, updated_at = datetime('now')
            WHERE id = ? AND current_version = ?
            """,
            (_dump(content), json.dumps(metadata), new_version, draft.id, expected),
        )
        if cur.rowcount == 0:
            raise ConcurrentUpdateError(
                f"Draft {draft.id} changed while writing version {new_version}; reload and retry."
            )
        self._insert_revision(
            draft.id, draft.project_id, new_version, content, metadata, created_by
        )
        return new_version

    def _insert_revision(
        self,
        draft_id: str,
        project_id: str,
        version: int,
        content: dict[str, Any],
        metadata: dict[str, Any],
        created_by: str | None,
    ) -> None:
        try:
            self._conn.execute(
                """
                INSERT INTO draft_revisions
                    (id, draft_id, project_id, version_number, content, metadata, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    new_id(),
                    draft_id,
                    project_id,
                    version,
                    _dump(content),
                    json.dumps(metadata),
                    created_by,
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise ConcurrentUpdateError(
                f"Version {version} of draft {draft_id} already exists."
            ) from exc

    def _draft_by_id(self, draft_id: str) -> Draft:
        row = self._conn.execute("SELECT * FROM drafts WHERE id = ?", (draft_id,)).fetchone()
        if row is None:
            raise NotFoundError("Draft", draft_id)
        return _row_to_draft(row)

    def _revision_by_id(self, project_id: str, revision_id: str) -> DraftRevision:
        revision = self.get_revision(project_id, revision_id)
        if revision is None:
            raise NotFoundError("Revision", revision_id)
        return revision

    def _latest_revision(self, draft_id: str) -> DraftRevision | None:
        row = self._conn.execute(
            """
            SELECT * FROM draft_revisions WHERE draft_id = ?
            ORDER BY version_number DESC LIMIT 1
            """,
            (draft_id,),
        ).fetchone()
        return _row_to_revision(row) if row else None


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_draft(row: sqlite3.Row) -> Draft:
    return Draft(
        id=row["id"],
        project_id=row["project_id"],
        content=json.loads(row["content"]),
        format=row["format"],
        metadata=json.loads(row["metadata"] or "{}"),
        current_version=row["current_version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_revision(row: sqlite3.Row) -> DraftRevision:
    return DraftRevision(
        id=row["id"],
        draft_id=row["draft_id"],
        project_id=row["project_id"],
        version_number=row["version_number"],
        content=json.loads(row["content"]),
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
        created_by=row["created_by"],
    )
