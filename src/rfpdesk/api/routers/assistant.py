"""Assistant endpoints: project chat and suggested RFI questions."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends

from rfpdesk.api.deps import get_config, get_repo, get_revisions, require_project
from rfpdesk.api.schemas import ChatRequest
from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import Activity, Project, Question, new_id
from rfpdesk.db.repository import Repository
from rfpdesk.db.revisions import RevisionStore
from rfpdesk.errors import InvalidInputError
from rfpdesk.rag import llm_client
from rfpdesk.rag.assembler import assemble_for_project
from rfpdesk.rag.assistant import chat_reply, generate_smart_questions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}", tags=["assistant"])


def _project_state(
    project: Project, repo: Repository, revisions: RevisionStore, extra: dict
) -> dict:
    draft = revisions.get_draft(project.id)
    questions = repo.list_questions(project.id)
    # server-derived values win over client-supplied keys
    return {
        **extra,
        "project_type": project.project_type,
        "project_name": project.name,
        "document_count": len(repo.list_documents(project.id)),
        "has_draft": draft is not None,
        "draft_version": draft.current_version if draft else None,
        "draft_sections": draft.content if draft else {},
        "question_count": len(questions),
        "answered_questions": sum(1 for q in questions if q.answer),
    }


@router.post("/chat")
def chat(
    body: ChatRequest,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    revisions: RevisionStore = Depends(get_revisions),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    """Answer a message about the project; never modifies the draft."""
    llm_client.validate_api_key(config.generation.model)
    context = assemble_for_project(
        repo, project.id, model=config.generation.model, cfg=config.context
    )
    state = _project_state(project, repo, revisions, body.context)
    reply = chat_reply(project, body.message, context, state, config.generation)
    return {
        "success": True,
        "response": reply.message,
        "suggestions": reply.suggestions,
        "documents_used": context.documents_used,
    }


@router.post("/smart-questions")
def smart_questions(
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    """Generate vendor questions from the project's sources and append them."""
    if project.project_type != "RFI":
        raise InvalidInputError(
            f"Suggested questions are only available for RFI projects, not {project.project_type}"
        )
    llm_client.validate_api_key(config.generation.model)
    context = assemble_for_project(
        repo,
        project.id,
        model=config.generation.model,
        cfg=config.context,
        include_knowledge=False,
    )
    generated = generate_smart_questions(project, context, config.generation)
    added = repo.append_questions(
        project.id,
        [
            Question(
                id=new_id(),
                project_id=project.id,
                question_text=q.question,
                category=q.category,
                required=q.required,
            )
            for q in generated
        ],
    )
    repo.log_activity(
        Activity(
            project_id=project.id,
            action_type="questions_generated",
            action_details=f"Generated {len(added)} question(s)",
        )
    )
    return {
        "success": True,
        "questions_added": len(added),
        "questions": [asdict(q) for q in added],
    }
