"""Context assembler: company profile, project sources and knowledge base → one bundle.

Order:
  1. Company profile (if any).
  2. Project documents (main document first), then web sources.
  3. Company knowledge-base files.

Each source contributes its best available text: the cached summary when a
valid one exists, otherwise raw text truncated to ``max_source_chars``.
Sources are added in order until the token budget is reached.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rfpdesk.config import ContextCfg
from rfpdesk.db.models import CompanyInfo, Document, KnowledgeFile, Summary, WebSource
from rfpdesk.db.repository import Repository
from rfpdesk.ingest.summarizer import truncate_for_context
from rfpdesk.ingest.summary_cache import load_summary
from rfpdesk.rag.llm_client import count_tokens

_FIELD_TITLES: dict[str, str] = {
    "scope": "Scope",
    "requirements": "Requirements",
    "timeline": "Timeline",
    "budget": "Budget",
    "deliverables": "Deliverables",
    "technical_specs": "Technical Specifications",
    "evaluation_criteria": "Evaluation Criteria",
}

_COMPANY_TITLES: dict[str, str] = {
    "company_name": "Company",
    "description": "Description",
    "services": "Services",
    "capabilities": "Capabilities",
    "differentiators": "Differentiators",
    "experience": "Experience",
    "certifications": "Certifications",
    "team_size": "Team size",
    "website": "Website",
    "email": "Email",
    "phone": "Phone",
    "address": "Address",
}


@dataclass
class ContextSource:
    kind: str  # company | document | web_source | knowledge
    id: str
    label: str
    text: str
    from_summary: bool = False
    tokens: int = 0


@dataclass
class ContextBundle:
    sources: list[ContextSource] = field(default_factory=list)
    skipped: list[ContextSource] = field(default_factory=list)  # over budget
    total_tokens: int = 0

    @property
    def documents_used(self) -> list[str]:
        return [s.label for s in self.sources if s.kind in ("document", "web_source")]

    @property
    def knowledge_used(self) -> list[str]:
        return [s.label for s in self.sources if s.kind == "knowledge"]

    @property
    def has_company_info(self) -> bool:
        return any(s.kind == "company" for s in self.sources)

    def render(self) -> str:
        """Render the bundle as the text placed inside the prompt's context block."""
        blocks: list[str] = []
        for source in self.sources:
            if source.kind == "company":
                blocks.append(f"=== Company Information ===\n{source.text}")
            elif source.kind == "knowledge":
                blocks.append(f"=== Company Knowledge: {source.label} ===\n{source.text}")
            else:
                blocks.append(f"=== Document: {source.label} ===\n{source.text}")
        return "\n\n".join(blocks)


# ------------------------------------------------------------------
# Formatting
# ------------------------------------------------------------------


def format_summary(summary: Summary) -> str:
    """Render a Summary as prompt text: narrative, key points, extracted fields."""
    parts = [f"Summary: {summary.narrative.strip()}"]
    if summary.key_points:
        parts.append("Key Points:\n" + "\n".join(f"- {p}" for p in summary.key_points))
    if summary.fields:
        lines = []
        for name, value in summary.fields.items():
            title = _FIELD_TITLES.get(name, name.replace("_", " ").title())
            if isinstance(value, list):
                lines.append(f"{title}:\n" + "\n".join(f"  - {v}" for v in value))
            else:
                lines.append(f"{title}: {value}")
        parts.append("Extracted Information:\n" + "\n".join(lines))
    return "\n\n".join(parts)


def format_company_info(info: CompanyInfo) -> str:
    lines = []
    for name, title in _COMPANY_TITLES.items():
        value = (getattr(info, name) or "").strip()
        if value:
            lines.append(f"{title}: {value}")
    return "\n".join(lines)


def best_text(
    summary_cache: str | None, content: str, label: str, max_chars: int
) -> tuple[str, bool]:
    """Return ``(text, from_summary)``: the valid cached summary, else truncated raw text."""
    summary = load_summary(summary_cache, label)
    if summary is not None:
        return format_summary(summary), True
    return truncate_for_context(content or "", max_chars), False


# ------------------------------------------------------------------
# Assembly
# ------------------------------------------------------------------


def build_context(
    *,
    company: CompanyInfo | None = None,
    documents: list[Document] | None = None,
    web_sources: list[WebSource] | None = None,
    knowledge: list[KnowledgeFile] | None = None,
    model: str,
    cfg: ContextCfg | None = None,
) -> ContextBundle:
    """Assemble the context bundle for answer or draft generation.

    Args:
        company: Company profile; placed first when non-empty.
        documents: Project documents in priority order.
        web_sources: Project web sources.
        knowledge: Knowledge-base files.
        model: Generation model, used for token counting.
        cfg: Token budget and raw-text truncation.
    """
    cfg = cfg or ContextCfg()
    candidates: list[ContextSource] = []

    if company is not None and not company.is_empty:
        candidates.append(
            ContextSource(kind="company", id="company", label="Company Information",
                          text=format_company_info(company))
        )
    for doc in documents or []:
        text, cached = best_text(doc.summary_cache, doc.content, doc.filename, cfg.max_source_chars)
        if text.strip():
            candidates.append(ContextSource("document", doc.id, doc.filename, text, cached))
    for src in web_sources or []:
        label = src.title or src.url
        text, cached = best_text(src.summary_cache, src.content, label, cfg.max_source_chars)
        if text.strip():
            candidates.append(ContextSource("web_source", src.id, label, text, cached))
    for kf in knowledge or []:
        label = f"{kf.original_filename} ({kf.category})"
        text, cached = best_text(kf.summary_cache, kf.content, label, cfg.max_source_chars)
        if text.strip():
            candidates.append(ContextSource("knowledge", kf.id, label, text, cached))

    return _apply_token_budget(candidates, model, cfg.token_budget)


def _apply_token_budget(
    candidates: list[ContextSource], model: str, budget: int
) -> ContextBundle:
    """Keep sources in order while they fit within *budget* tokens."""
    bundle = ContextBundle()
    for index, source in enumerate(candidates):
        source.tokens = count_tokens(model, source.text)
        if bundle.total_tokens + source.tokens > budget:
            bundle.skipped = candidates[index:]
            break
        bundle.sources.append(source)
        bundle.total_tokens += source.tokens
    return bundle


def assemble_for_project(
    repo: Repository,
    project_id: str,
    *,
    model: str,
    cfg: ContextCfg | None = None,
    document_ids: list[str] | None = None,
    include_web_sources: bool = True,
    include_knowledge: bool = True,
) -> ContextBundle:
    """Build the context bundle for a stored project.

    Args:
        document_ids: Restrict documents (and web sources) to these ids;
            None means all of the project's sources.
        include_web_sources: Whether scraped pages are candidates.
        include_knowledge: Whether knowledge-base files are candidates.
    """
    documents = repo.list_documents(project_id)
    web_sources = repo.list_web_sources(project_id) if include_web_sources else []
    if document_ids is not None:
        wanted = set(document_ids)
        documents = [d for d in documents if d.id in wanted]
        web_sources = [s for s in web_sources if s.id in wanted]
    return build_context(
        company=repo.get_company_info(),
        documents=documents,
        web_sources=web_sources,
        knowledge=repo.list_knowledge_files() if include_knowledge else [],
        model=model,
        cfg=cfg,
    )
