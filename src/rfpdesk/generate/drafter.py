"""Draft generation: one model call producing every section of an RFI/RFP document."""

from __future__ import annotations

import logging
import re

from rfpdesk.config import GenerationCfg
from rfpdesk.db.models import Project, Question
from rfpdesk.errors import GenerationError
from rfpdesk.generate.templates import build_draft_prompt, default_section_text, sections_for
from rfpdesk.rag import llm_client
from rfpdesk.rag.assembler import ContextBundle

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^\s{0,3}#{1,3}\s*(.+?)\s*#*\s*$")


def parse_sections(raw: str, sections: tuple[tuple[str, str], ...]) -> dict[str, str]:
    """Split a markdown reply into ``{section_key: text}``.

    A heading matches a section by its key or its title, case-insensitively.
    Text under unknown headings stays with the preceding section.
    """
    lookup: dict[str, str] = {}
    for key, heading in sections:
        lookup[key.lower()] = key
        lookup[heading.lower()] = key

    found: dict[str, list[str]] = {}
    current: str | None = None
    for line in raw.splitlines():
        match = _HEADING_RE.match(line)
        if match:
            name = match.group(1).strip().strip("*").strip().lower()
            key = lookup.get(name) or lookup.get(name.replace(" ", "_"))
            if key is not None:
                current = key
                found.setdefault(key, [])
                continue
        if current is not None:
            found[current].append(line)
    return {k: "\n".join(v).strip() for k, v in found.items() if "\n".join(v).strip()}


def generate_draft_sections(
    project: Project,
    context: ContextBundle,
    questions: list[Question],
    cfg: GenerationCfg | None = None,
    company_name: str = "",
    document_type: str | None = None,
) -> tuple[dict[str, str], list[str]]:
    """Generate the project's draft sections.

    Sections the model leaves out get default text. *document_type*
    (``RFI``/``RFP``/``FORM470``) selects the layout; the project's own type
    by default.

    Returns:
        ``(sections, defaulted_keys)`` with sections in layout order.

    Raises:
        GenerationError: If the reply contains none of the expected sections.
    """
    cfg = cfg or GenerationCfg()
    layout = sections_for(document_type or project.project_type)
    prompt = build_draft_prompt(project, layout, context, questions, cfg.model, document_type)
    if prompt.budget_warning:
        logger.warning(prompt.budget_warning)

    raw = llm_client.complete(
        model=cfg.model,
        messages=prompt.messages,
        max_tokens=cfg.max_tokens,
        temperature=cfg.temperature,
    )
    parsed = parse_sections(raw, layout)
    if not parsed:
        raise GenerationError(
            f"Draft generation for project {project.id} returned no recognizable sections"
        )

    sections: dict[str, str] = {}
    defaulted: list[str] = []
    for key, _heading in layout:
        if key in parsed:
            sections[key] = parsed[key]
        else:
            sections[key] = default_section_text(key, project, company_name)
            defaulted.append(key)
    if defaulted:
        logger.info("Draft for project %s used default text for: %s", project.id, ", ".join(defaulted))
    return sections, defaulted
