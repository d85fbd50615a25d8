"""Question endpoints: CRUD, reorder, single-answer regeneration, fill-answers."""

from __future__ import annotations

import logging
from dataclasses import asdict, replace

from fastapi import APIRouter, Depends, status

from rfpdesk.api.deps import get_config, get_repo, require_project
from rfpdesk.api.schemas import QuestionCreate, QuestionUpdate, RegenerateRequest, ReorderRequest
from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import Activity, Project, Question, new_id
from rfpdesk.db.repository import Repository
from rfpdesk.errors import MissingAnswersError, NotFoundError
from rfpdesk.rag import llm_client
from rfpdesk.rag.answers import generate_answers
from rfpdesk.rag.assembler import assemble_for_project

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}", tags=["questions"])


def _require_question(repo: Repository, project_id: str, question_id: str) -> Question:
    question = repo.get_question(project_id, question_id)
    if question is None:
        raise NotFoundError("Question", question_id)
    return question


@router.get("/questions")
def list_questions(
    project: Project = Depends(require_project), repo: Repository = Depends(get_repo)
) -> list[dict]:
    return [asdict(q) for q in repo.list_questions(project.id)]


@router.post("/questions", status_code=status.HTTP_201_CREATED)
def create_question(
    body: QuestionCreate,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    question = repo.add_question(
        Question(
            id=new_id(),
            project_id=project.id,
            question_text=body.question_text.strip(),
            question_type=body.question_type,
            category=body.category,
            answer=body.answer,
            required=body.required,
        ),
        position=body.position,
    )
    return asdict(question)


# Must be registered before the /questions/{question_id} routes.
@router.put("/questions/reorder")
def reorder_questions(
    body: ReorderRequest,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    """Apply every position or none of them."""
    repo.reorder_questions(project.id, [(q.id, q.position) for q in body.questions])
    return {"success": True, "questions": [asdict(q) for q in repo.list_questions(project.id)]}


@router.put("/questions/{question_id}")
def update_question(
    question_id: str,
    body: QuestionUpdate,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    question = _require_question(repo, project.id, question_id)
    # null clears answer and category; for the other fields it means "unchanged"
    changes = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k in ("answer", "category")
    }
    if "question_text" in changes:
        changes["question_text"] = changes["question_text"].strip()
    updated = repo.update_question(replace(question, **changes))
    return asdict(updated)


@router.delete("/questions/{question_id}")
def delete_question(
    question_id: str,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    if not repo.delete_question(project.id, question_id):
        raise NotFoundError("Question", question_id)
    return {"success": True}


@router.post("/questions/{question_id}/regenerate-answer")
def regenerate_answer(
    question_id: str,
    body: RegenerateRequest | None = None,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    """Answer one question again, optionally from a chosen subset of documents."""
    body = body or RegenerateRequest()
    question = _require_question(repo, project.id, question_id)
    llm_client.validate_api_key(config.generation.model)

    context = assemble_for_project(
        repo,
        project.id,
        model=config.generation.model,
        cfg=config.context,
        document_ids=body.document_ids,
        include_knowledge=body.include_company_knowledge,
    )
    result = generate_answers(project, [question], context, config.generation)
    result.raise_for_missing()

    answer = result.answers[0].answer
    repo.set_answers(project.id, {question.id: answer})
    return {
        "question_id": question.id,
        "answer": answer,
        "documents_used": context.documents_used,
        "knowledge_used": context.knowledge_used,
    }


@router.post("/fill-answers")
def fill_answers(
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    """Answer every question of the project.

    Partial success is a 200 listing the ``missing`` ids; a run that answers
    nothing fails with MissingAnswersError.
    """
    questions = repo.list_questions(project.id)
    if not questions:
        return {"answers": {}, "missing": [], "updated": 0}
    llm_client.validate_api_key(config.generation.model)

    context = assemble_for_project(
        repo, project.id, model=config.generation.model, cfg=config.context
    )
    result = generate_answers(project, questions, context, config.generation)
    if not result.answers:
        raise MissingAnswersError(result.missing)

    answers = result.as_dict()
    updated = repo.set_answers(project.id, answers)
    repo.log_activity(
        Activity(
            project_id=project.id,
            action_type="answers_generated",
            action_details=f"Generated {updated} answer(s)",
            metadata={"missing": result.missing},
        )
    )
    return {
        "answers": answers,
        "missing": result.missing,
        "updated": updated,
        "documents_used": context.documents_used,
        "knowledge_used": context.knowledge_used,
        "warning": result.budget_warning,
    }
