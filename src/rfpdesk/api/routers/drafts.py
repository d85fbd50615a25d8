"""Draft endpoints: generate, read, edit, delete, revision history, restore, export."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from rfpdesk.api.deps import get_config, get_repo, get_revisions, require_project
from rfpdesk.api.routers.generate import docx_response
from rfpdesk.api.schemas import (
    DraftUpdate,
    GenerateDraftRequest,
    RestoreRequest,
    draft_out,
    revision_out,
)
from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import Activity, Project
from rfpdesk.db.repository import Repository
from rfpdesk.db.revisions import RevisionStore
from rfpdesk.errors import NotFoundError
from rfpdesk.generate.drafter import generate_draft_sections
from rfpdesk.generate.writer import render_draft
from rfpdesk.rag import llm_client
from rfpdesk.rag.assembler import assemble_for_project

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}", tags=["drafts"])


def _require_draft(revisions: RevisionStore, project_id: str):
    draft = revisions.get_draft(project_id)
    if draft is None:
        raise NotFoundError("Draft", project_id)
    return draft


@router.post("/generate-draft")
def generate_draft(
    body: GenerateDraftRequest | None = None,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    revisions: RevisionStore = Depends(get_revisions),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    """Generate every section and save the result as the next draft revision."""
    body = body or GenerateDraftRequest()
    llm_client.validate_api_key(config.generation.model)
    context = assemble_for_project(
        repo,
        project.id,
        model=config.generation.model,
        cfg=config.context,
        document_ids=body.document_ids,
        include_knowledge=body.include_company_knowledge,
    )
    company = repo.get_company_info()
    sections, defaulted = generate_draft_sections(
        project,
        context,
        repo.list_questions(project.id),
        config.generation,
        company_name=company.company_name if company else "",
    )
    draft = revisions.save(
        project.id,
        sections,
        metadata={
            "generated": True,
            "model": config.generation.model,
            "documents_used": context.documents_used,
            "knowledge_used": context.knowledge_used,
            "defaulted_sections": defaulted,
        },
        created_by=body.created_by,
    )
    repo.log_activity(
        Activity(project_id=project.id, action_type="draft_generated",
                 action_details=f"Generated draft version {draft.current_version}",
                 performed_by=body.created_by)
    )
    return {**draft_out(draft), "defaulted_sections": defaulted}


@router.get("/draft")
def get_draft(
    project: Project = Depends(require_project),
    revisions: RevisionStore = Depends(get_revisions),
) -> dict:
    return draft_out(_require_draft(revisions, project.id))


@router.put("/draft")
def update_draft(
    body: DraftUpdate,
    project: Project = Depends(require_project),
    revisions: RevisionStore = Depends(get_revisions),
) -> dict:
    """Save edited sections as a new revision.

    With ``expectedVersion`` a stale edit is rejected with 409.
    """
    current = _require_draft(revisions, project.id)
    draft = revisions.save(
        project.id,
        body.sections,
        metadata=body.metadata if body.metadata is not None else current.metadata,
        created_by=body.updated_by,
        expected_version=body.expected_version,
    )
    return draft_out(draft)


@router.delete("/draft")
def delete_draft(
    project: Project = Depends(require_project),
    revisions: RevisionStore = Depends(get_revisions),
) -> dict:
    deleted = revisions.delete_drafts(project.id)
    return {"success": True, "deleted": deleted}


@router.get("/draft/revisions")
def list_revisions(
    project: Project = Depends(require_project),
    revisions: RevisionStore = Depends(get_revisions),
) -> dict:
    draft = revisions.get_draft(project.id)
    return {
        "current_version": draft.current_version if draft else None,
        "revisions": [revision_out(r) for r in revisions.list_revisions(project.id)],
    }


@router.post("/draft/revisions")
def restore_revision(
    body: RestoreRequest,
    project: Project = Depends(require_project),
    revisions: RevisionStore = Depends(get_revisions),
) -> dict:
    version = revisions.restore(project.id, body.revision_id, restored_by=body.restored_by)
    logger.info("Project %s draft restored from revision %s as version %d",
                project.id, body.revision_id, version)
    return {"success": True, "current_version": version,
            "draft": draft_out(_require_draft(revisions, project.id))}


@router.post("/export-draft")
def export_draft(
    project: Project = Depends(require_project),
    revisions: RevisionStore = Depends(get_revisions),
) -> Response:
    draft = _require_draft(revisions, project.id)
    sections = {k: str(v) for k, v in draft.content.items() if v}
    content = render_draft(project, sections, version=draft.current_version)
    return docx_response(content, f"{project.project_type}_Draft_{project.id}.docx")
