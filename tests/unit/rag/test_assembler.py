"""Tests for context assembly."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from rfpdesk.config import ContextCfg
from rfpdesk.db.models import CompanyInfo, Document, KnowledgeFile, Project, Summary, WebSource
from rfpdesk.db.repository import Repository
from rfpdesk.rag.assembler import (
    assemble_for_project,
    best_text,
    build_context,
    format_summary,
)

MODEL = "openai/gpt-4o"


@pytest.fixture(autouse=True)
def _char_tokens():
    """One token per four characters, independent of tokenizer downloads."""
    with patch(
        "rfpdesk.rag.assembler.count_tokens",
        side_effect=lambda model, text: max(1, len(text) // 4),
    ):
        yield


def _doc(id, content="", summary=None, filename=None):
    return Document(
        id=id, project_id="p1", filename=filename or f"{id}.txt", file_type="txt",
        content=content, summary_cache=summary.to_json() if summary else None,
    )


def test_cached_summary_preferred_over_raw_text():
    summary = Summary(narrative="Short digest.", key_points=["Due May 1"],
                      fields={"budget": "$50k", "requirements": ["PoE", "VLANs"]})
    text, cached = best_text(summary.to_json(), "raw " * 1000, "rfp", 100)

    assert cached is True
    assert text.startswith("Summary: Short digest.")
    assert "- Due May 1" in text
    assert "Budget: $50k" in text
    assert "Requirements:\n  - PoE\n  - VLANs" in text


def test_raw_text_truncated_without_summary():
    text, cached = best_text(None, "x" * 500, "rfp", 100)
    assert cached is False
    assert text == "x" * 100 + "..."


def test_invalid_summary_falls_back_to_raw():
    text, cached = best_text('{"narrative": ""}', "raw body", "rfp", 100)
    assert cached is False
    assert text == "raw body"


def test_format_summary_titles_unknown_fields():
    rendered = format_summary(Summary(narrative="n", fields={"contract_term": "3 years"}))
    assert "Contract Term: 3 years" in rendered


def test_order_company_documents_web_knowledge():
    bundle = build_context(
        company=CompanyInfo(company_name="Acme Networks", certifications="CCIE"),
        documents=[_doc("d1", "Scope: fiber"), _doc("d2", "Budget: $5k")],
        web_sources=[WebSource(id="w1", project_id="p1", url="https://x.test", content="page")],
        knowledge=[KnowledgeFile(id="k1", category="sow", filename="k1_sow.txt",
                                 original_filename="sow.txt", file_type="txt", content="past SOW")],
        model=MODEL,
    )

    assert [s.kind for s in bundle.sources] == ["company", "document", "document", "web_source", "knowledge"]
    assert bundle.documents_used == ["d1.txt", "d2.txt", "https://x.test"]
    assert bundle.knowledge_used == ["sow.txt (sow)"]
    assert bundle.has_company_info is True
    rendered = bundle.render()
    assert rendered.index("=== Company Information ===") < rendered.index("=== Document: d1.txt ===")
    assert "Certifications: CCIE" in rendered
    assert "=== Company Knowledge: sow.txt (sow) ===" in rendered


def test_empty_company_and_blank_sources_skipped():
    bundle = build_context(
        company=CompanyInfo(),
        documents=[_doc("d1", "   "), _doc("d2", "content")],
        model=MODEL,
    )
    assert [s.id for s in bundle.sources] == ["d2"]
    assert bundle.has_company_info is False


def test_token_budget_stops_at_first_overflow():
    docs = [_doc("d1", "a" * 400), _doc("d2", "b" * 400), _doc("d3", "c" * 40)]
    bundle = build_context(documents=docs, model=MODEL, cfg=ContextCfg(token_budget=150))

    assert [s.id for s in bundle.sources] == ["d1"]
    assert [s.id for s in bundle.skipped] == ["d2", "d3"]
    assert bundle.total_tokens == 100


def test_empty_context_renders_empty():
    bundle = build_context(model=MODEL)
    assert bundle.sources == []
    assert bundle.render() == ""


# ------------------------------------------------------------------
# assemble_for_project
# ------------------------------------------------------------------


@pytest.fixture
def repo(tmp_db):
    r = Repository(tmp_db)
    r.add_project(Project(id="p1", name="WAN", project_type="RFP"))
    r.add_document(_doc("d1", "first doc"))
    r.add_document(_doc("d2", "main doc"))
    r.set_main_document("p1", "d2")
    r.add_web_source(WebSource(id="w1", project_id="p1", url="https://x.test", content="page"))
    r.add_knowledge_file(KnowledgeFile(id="k1", category="legal", filename="k1_terms.txt",
                                       original_filename="terms.txt", file_type="txt", content="terms"))
    r.upsert_company_info(CompanyInfo(company_name="Acme"))
    return r


def test_assemble_for_project_uses_main_document_first(repo):
    bundle = assemble_for_project(repo, "p1", model=MODEL)
    assert [s.id for s in bundle.sources] == ["company", "d2", "d1", "w1", "k1"]


def test_assemble_for_project_filters_ids(repo):
    bundle = assemble_for_project(repo, "p1", model=MODEL, document_ids=["d1", "w1"],
                                  include_knowledge=False)
    assert [s.id for s in bundle.sources] == ["company", "d1", "w1"]


def test_assemble_for_project_without_web_sources(repo):
    bundle = assemble_for_project(repo, "p1", model=MODEL, include_web_sources=False)
    assert "w1" not in [s.id for s in bundle.sources]
