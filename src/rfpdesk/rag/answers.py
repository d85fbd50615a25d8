"""Answer-generation orchestrator.

One batched model call answers every question as a JSON array. Questions
the batch did not answer (missing id, empty answer, unparsable reply, failed
call) are retried with one call each. Whatever is still unanswered is
reported in ``AnswerSet.missing``; nothing is dropped silently.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from rfpdesk.config import GenerationCfg
from rfpdesk.db.models import Project, Question
from rfpdesk.errors import MissingAnswersError
from rfpdesk.generate.templates import build_batch_answer_prompt, build_single_answer_prompt
from rfpdesk.rag import llm_client
from rfpdesk.rag.assembler import ContextBundle

logger = logging.getLogger(__name__)


@dataclass
class Answer:
    question_id: str
    answer: str


@dataclass
class AnswerSet:
    answers: list[Answer] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    budget_warning: str | None = None

    def as_dict(self) -> dict[str, str]:
        return {a.question_id: a.answer for a in self.answers}

    def raise_for_missing(self) -> None:
        """Raise MissingAnswersError naming every unanswered question id."""
        if self.missing:
            raise MissingAnswersError(self.missing)


def generate_answers(
    project: Project,
    questions: list[Question],
    context: ContextBundle,
    cfg: GenerationCfg | None = None,
) -> AnswerSet:
    """Answer *questions* from *context*.

    Returns:
        AnswerSet with at most one answer per question id, in input order,
        and the ids that could not be answered.
    """
    cfg = cfg or GenerationCfg()
    if not questions:
        return AnswerSet()

    warning: str | None = None
    answered: dict[str, str] = {}
    if len(questions) > 1:
        prompt = build_batch_answer_prompt(project, questions, context, cfg.model)
        warning = prompt.budget_warning
        try:
            raw = llm_client.complete(
                model=cfg.model,
                messages=prompt.messages,
                max_tokens=cfg.max_tokens,
                temperature=cfg.temperature,
            )
            wanted = {q.id for q in questions}
            answered = {
                qid: text for qid, text in _parse_answer_array(raw).items() if qid in wanted
            }
        except Exception as exc:
            logger.warning("Batched answer call failed for project %s: %s", project.id, exc)

    for question in questions:
        if question.id in answered:
            continue
        prompt = build_single_answer_prompt(project, question, context, cfg.model)
        warning = warning or prompt.budget_warning
        try:
            text = llm_client.complete(
                model=cfg.model,
                messages=prompt.messages,
                max_tokens=cfg.max_tokens,
                temperature=cfg.temperature,
            ).strip()
        except Exception as exc:
            logger.warning("Answer call failed for question %s: %s", question.id, exc)
            continue
        if text:
            answered[question.id] = text

    result = AnswerSet(budget_warning=warning)
    for question in questions:
        if question.id in answered:
            result.answers.append(Answer(question.id, answered[question.id]))
        elif question.id not in result.missing:
            result.missing.append(question.id)
    if result.missing:
        logger.warning(
            "%d of %d question(s) unanswered for project %s",
            len(result.missing),
            len(questions),
            project.id,
        )
    return result


def _parse_answer_array(raw: str) -> dict[str, str]:
    """Parse a JSON array of ``{"id", "answer"}``; first non-empty answer per id wins."""
    try:
        start = raw.index("[")
        end = raw.rindex("]") + 1
        arr = json.loads(raw[start:end])
    except (ValueError, json.JSONDecodeError):
        return {}
    answers: dict[str, str] = {}
    if not isinstance(arr, list):
        return answers
    for item in arr:
        if not isinstance(item, dict):
            continue
        qid = str(item.get("id", "")).strip()
        text = item.get("answer")
        if not qid or not isinstance(text, str) or not text.strip():
            continue
        answers.setdefault(qid, text.strip())
    return answers
