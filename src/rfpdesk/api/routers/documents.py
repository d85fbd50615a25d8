"""Project document endpoints: upload, list, delete, main document, summaries."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from rfpdesk.api.deps import get_config, get_repo, require_project
from rfpdesk.api.schemas import SummarizeRequest, document_out
from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import Activity, Project
from rfpdesk.db.repository import Repository
from rfpdesk.errors import InvalidInputError, NotFoundError
from rfpdesk.ingest import get_extractor
from rfpdesk.ingest.pipeline import ingest_document, summarize_entity
from rfpdesk.ingest.summary_cache import SummaryCache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])

_COPY_CHUNK = 1024 * 1024


def spool_upload(upload: UploadFile, max_mb: int) -> Path:
    """Copy an upload to a named temp file, enforcing the size limit.

    The caller deletes the returned path.

    Raises:
        InvalidInputError: If the upload is empty or larger than *max_mb*.
    """
    limit = max_mb * 1024 * 1024
    suffix = Path(upload.filename or "").suffix
    written = 0
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
        tmp_path = Path(tmp.name)
        while chunk := upload.file.read(_COPY_CHUNK):
            written += len(chunk)
            if written > limit:
                tmp.close()
                tmp_path.unlink(missing_ok=True)
                raise InvalidInputError(f"File exceeds the {max_mb} MB upload limit")
            tmp.write(chunk)
    if written == 0:
        tmp_path.unlink(missing_ok=True)
        raise InvalidInputError("Uploaded file is empty")
    return tmp_path


def _require_document(repo: Repository, project_id: str, document_id: str):
    doc = repo.get_document(project_id, document_id)
    if doc is None:
        raise NotFoundError("Document", document_id)
    return doc


@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload_document(
    file: UploadFile = File(...),
    project_id: str = Form(..., alias="projectId"),
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    """Store an uploaded file as a project document and try to summarize it."""
    project = repo.get_project(project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    filename = Path(file.filename or "").name
    if not filename:
        raise InvalidInputError("Uploaded file has no name")
    get_extractor(filename)

    tmp_path = spool_upload(file, config.storage.max_upload_mb)
    try:
        doc = ingest_document(repo, project.id, project.project_type, tmp_path, filename, config)
    finally:
        tmp_path.unlink(missing_ok=True)

    repo.log_activity(
        Activity(project_id=project.id, action_type="document_uploaded",
                 action_details=f"Uploaded {filename}", metadata={"document_id": doc.id})
    )
    repo.touch_project(project.id)
    return document_out(doc)


@router.get("/projects/{project_id}/documents")
def list_documents(
    project: Project = Depends(require_project), repo: Repository = Depends(get_repo)
) -> list[dict]:
    return [document_out(d) for d in repo.list_documents(project.id)]


@router.get("/projects/{project_id}/documents/{document_id}")
def get_document(
    document_id: str,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    return document_out(_require_document(repo, project.id, document_id), include_content=True)


@router.delete("/projects/{project_id}/documents/{document_id}")
def delete_document(
    document_id: str,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    doc = _require_document(repo, project.id, document_id)
    repo.delete_document(project.id, doc.id)
    if doc.file_path:
        Path(doc.file_path).unlink(missing_ok=True)
    repo.log_activity(
        Activity(project_id=project.id, action_type="document_deleted",
                 action_details=f"Deleted {doc.filename}", metadata={"document_id": doc.id})
    )
    return {"success": True}


@router.post("/projects/{project_id}/documents/unset-main")
def unset_main_document(
    project: Project = Depends(require_project), repo: Repository = Depends(get_repo)
) -> dict:
    repo.unset_main_document(project.id)
    return {"success": True}


@router.post("/projects/{project_id}/documents/{document_id}/set-main")
def set_main_document(
    document_id: str,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    repo.set_main_document(project.id, document_id)
    return {"success": True, "main_document_id": document_id}


@router.post("/projects/{project_id}/documents/{document_id}/summarize")
def summarize_document(
    document_id: str,
    body: SummarizeRequest | None = None,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    """Return the cached summary, or generate one (always with ``force``)."""
    doc = _require_document(repo, project.id, document_id)
    summary, cached = summarize_entity(
        repo, "document", doc.id, doc.content, doc.filename, project.project_type, config,
        force=bool(body and body.force),
    )
    return {"summary": summary.to_dict(), "cached": cached}


@router.delete("/projects/{project_id}/documents/{document_id}/delete-summary")
def delete_document_summary(
    document_id: str,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    doc = _require_document(repo, project.id, document_id)
    SummaryCache(repo, "document").invalidate(doc.id)
    return {"success": True}
