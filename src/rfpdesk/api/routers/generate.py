"""Word document downloads: proposal response, RFI document, Form 470 response.

Each endpoint uses the saved draft's sections when the draft matches the
document type, otherwise generates the sections first.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from rfpdesk.api.deps import get_config, get_repo, get_revisions, require_project
from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import Activity, Project
from rfpdesk.db.repository import Repository
from rfpdesk.db.revisions import RevisionStore
from rfpdesk.generate.drafter import generate_draft_sections
from rfpdesk.generate.writer import render_form470, render_rfi, render_rfp_response
from rfpdesk.rag import llm_client
from rfpdesk.rag.assembler import assemble_for_project

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}", tags=["generate"])

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def docx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _sections(
    document_type: str,
    project: Project,
    repo: Repository,
    revisions: RevisionStore,
    config: RfpDeskConfig,
) -> dict[str, str]:
    if document_type == project.project_type:
        draft = revisions.get_draft(project.id)
        if draft is not None and draft.content:
            return {k: str(v) for k, v in draft.content.items() if v}

    llm_client.validate_api_key(config.generation.model)
    context = assemble_for_project(
        repo, project.id, model=config.generation.model, cfg=config.context
    )
    company = repo.get_company_info()
    sections, _defaulted = generate_draft_sections(
        project,
        context,
        repo.list_questions(project.id),
        config.generation,
        company_name=company.company_name if company else "",
        document_type=document_type,
    )
    return sections


def _log_export(repo: Repository, project: Project, kind: str) -> None:
    repo.log_activity(
        Activity(project_id=project.id, action_type="document_generated",
                 action_details=f"Generated {kind} document")
    )
    logger.info("Generated %s document for project %s", kind, project.id)


@router.post("/generate")
def generate_response(
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    revisions: RevisionStore = Depends(get_revisions),
    config: RfpDeskConfig = Depends(get_config),
) -> Response:
    sections = _sections("RFP", project, repo, revisions, config)
    content = render_rfp_response(
        project, sections, repo.list_questions(project.id), repo.get_company_info()
    )
    _log_export(repo, project, "RFP")
    return docx_response(content, f"RFP_{project.id}.docx")


@router.post("/generate-rfi")
def generate_rfi(
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    revisions: RevisionStore = Depends(get_revisions),
    config: RfpDeskConfig = Depends(get_config),
) -> Response:
    sections = _sections("RFI", project, repo, revisions, config)
    content = render_rfi(
        project, sections, repo.list_questions(project.id), repo.get_company_info()
    )
    _log_export(repo, project, "RFI")
    return docx_response(content, f"RFI_{project.id}.docx")


@router.post("/generate-form470")
def generate_form470(
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    revisions: RevisionStore = Depends(get_revisions),
    config: RfpDeskConfig = Depends(get_config),
) -> Response:
    sections = _sections("FORM470", project, repo, revisions, config)
    content = render_form470(
        project, sections, repo.list_questions(project.id), repo.get_company_info()
    )
    _log_export(repo, project, "Form 470")
    return docx_response(content, f"Form470_Response_{project.id}.docx")
