"""Project assistant: suggested RFI questions and chat replies.

Both features read the same context bundle as answer and draft generation.
Neither writes drafts; persisting generated questions is up to the caller.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from rfpdesk.config import GenerationCfg
from rfpdesk.db.models import Project
from rfpdesk.errors import GenerationError
from rfpdesk.generate.templates import build_chat_prompt, build_smart_questions_prompt
from rfpdesk.rag import llm_client
from rfpdesk.rag.assembler import ContextBundle

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"^\s*(CATEGORY|QUESTION|PRIORITY)\s*:\s*(.*)$", re.IGNORECASE)
_SUGGESTIONS_RE = re.compile(r"^\s*SUGGESTIONS\s*:\s*$", re.IGNORECASE | re.MULTILINE)

DEFAULT_PRIORITY = 3
REQUIRED_PRIORITY = 4
MAX_SUGGESTIONS = 3


@dataclass
class SmartQuestion:
    question: str
    category: str
    priority: int = DEFAULT_PRIORITY

    @property
    def required(self) -> bool:
        return self.priority >= REQUIRED_PRIORITY


@dataclass
class ChatReply:
    message: str
    suggestions: list[str] = field(default_factory=list)


def parse_smart_questions(raw: str) -> list[SmartQuestion]:
    """Parse ``CATEGORY:/QUESTION:/PRIORITY:`` blocks.

    A block is complete at its PRIORITY line; blocks missing a category or
    question are dropped. Priorities outside 1-5 or unparsable fall back to 3.
    """
    questions: list[SmartQuestion] = []
    category = question = ""
    for line in (raw or "").splitlines():
        match = _FIELD_RE.match(line.strip("*# \t"))
        if not match:
            continue
        name, value = match.group(1).upper(), match.group(2).strip()
        if name == "CATEGORY":
            category = value
        elif name == "QUESTION":
            question = value
        else:
            try:
                priority = int(value.split()[0]) if value else DEFAULT_PRIORITY
            except ValueError:
                priority = DEFAULT_PRIORITY
            if not 1 <= priority <= 5:
                priority = DEFAULT_PRIORITY
            if category and question:
                questions.append(SmartQuestion(question, category, priority))
            category = question = ""
    return questions


def generate_smart_questions(
    project: Project, context: ContextBundle, cfg: GenerationCfg | None = None
) -> list[SmartQuestion]:
    """Ask the model for vendor questions tailored to *project*'s documents.

    Raises:
        GenerationError: If the call fails or the reply holds no questions.
    """
    cfg = cfg or GenerationCfg()
    prompt = build_smart_questions_prompt(project, context, cfg.model)
    if prompt.budget_warning:
        logger.warning(prompt.budget_warning)
    try:
        raw = llm_client.complete(
            model=cfg.model,
            messages=prompt.messages,
            max_tokens=cfg.max_tokens,
            temperature=0.5,
        )
    except Exception as exc:
        raise GenerationError(f"Question generation failed for project {project.id}: {exc}") from exc

    questions = parse_smart_questions(raw)
    if not questions:
        raise GenerationError(f"Question generation for project {project.id} returned no questions")
    logger.info("Generated %d question(s) for project %s", len(questions), project.id)
    return questions


def split_suggestions(raw: str) -> ChatReply:
    """Separate the trailing ``SUGGESTIONS:`` list from the reply text."""
    match = _SUGGESTIONS_RE.search(raw or "")
    if match is None:
        return ChatReply(message=(raw or "").strip())
    suggestions = [
        line.strip()[2:].strip()
        for line in raw[match.end():].splitlines()
        if line.strip().startswith("- ") and line.strip()[2:].strip()
    ]
    return ChatReply(message=raw[: match.start()].strip(), suggestions=suggestions[:MAX_SUGGESTIONS])


def chat_reply(
    project: Project,
    message: str,
    context: ContextBundle,
    project_state: dict,
    cfg: GenerationCfg | None = None,
) -> ChatReply:
    """Answer one chat *message* about *project*.

    Raises:
        GenerationError: If the call fails or returns no text.
    """
    cfg = cfg or GenerationCfg()
    prompt = build_chat_prompt(project, context, message, project_state, cfg.model)
    try:
        raw = llm_client.complete(
            model=cfg.model,
            messages=prompt.messages,
            max_tokens=cfg.max_tokens,
            temperature=cfg.temperature,
        )
    except Exception as exc:
        raise GenerationError(f"Chat reply failed for project {project.id}: {exc}") from exc

    reply = split_suggestions(raw)
    if not reply.message:
        raise GenerationError(f"Chat reply for project {project.id} was empty")
    return reply
